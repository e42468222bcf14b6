"""
Contract service of the runner.

Implements the contract_* RPC methods: building and submitting deploy, call and
terminate transactions, estimating them against a disposable copy of the head
state, and reading contract storage, read-only methods, stakes and events.
"""

import logging
from decimal import Decimal

from contractrunner.api import codec
from contractrunner.api.base_api import BaseApi
from contractrunner.api.schemas import (
    DeployArgs, CallArgs, TerminateArgs, ReadonlyCallArgs, EventsArgs,
    TxReceipt, Event, MapItem, IterateMapResponse, StakeResponse
)
from contractrunner.core import types
from contractrunner.core.attachments import (
    DeployContractAttachment, CallContractAttachment, TerminateContractAttachment
)
from contractrunner.core.blockchain import MemBlockchain
from contractrunner.core.errors import FormatError, NoSignerError, NotFoundError
from contractrunner.core.fee import calculate_fee
from contractrunner.core.types import Transaction, TxType
from contractrunner.core.utils import HASH_LENGTH, from_hex, is_zero_address, to_hex
from contractrunner.core.validation import validate_tx
from contractrunner.storage.world_state import AppState
from contractrunner.vm.env import format_map_key
from contractrunner.vm.vm import VM, NOT_MINED

logger = logging.getLogger(__name__)


def convert_receipt(tx: Transaction, receipt: types.TxReceipt, fee_per_gas: int,
                    gas_per_byte: int) -> TxReceipt:
    """Client form of a receipt, with amounts in DNA"""
    return TxReceipt(
        contract=receipt.contract_address,
        method=receipt.method,
        success=receipt.success,
        gas_used=receipt.gas_used,
        tx_hash=receipt.tx_hash,
        error=receipt.error or "",
        gas_cost=codec.dna_string(receipt.gas_cost),
        tx_fee=codec.dna_string(calculate_fee(fee_per_gas, tx, gas_per_byte))
    )


def convert_estimated_receipt(tx: Transaction, receipt: types.TxReceipt, fee_per_gas: int,
                              gas_per_byte: int) -> TxReceipt:
    result = convert_receipt(tx, receipt, fee_per_gas, gas_per_byte)
    if not tx.signed:
        result.tx_hash = None
    return result


def _code_hash(data: bytes) -> bytes:
    """Fit data into a hash, keeping the trailing bytes and left padding with zeros"""
    return data[-HASH_LENGTH:].rjust(HASH_LENGTH, b"\x00")


class ContractApi:
    def __init__(self, base_api: BaseApi, chain: MemBlockchain):
        self.base_api = base_api
        self.chain = chain

    # Transaction building

    def _resolve_sender(self, sender: str | None) -> str:
        if is_zero_address(sender):
            sender = self.base_api.get_current_coinbase()
        if sender is None:
            raise NoSignerError("no default signer is configured")
        return sender

    def _sign_if_needed(self, sender: str, tx: Transaction, estimate: bool) -> Transaction:
        if estimate and not self.base_api.can_sign(sender):
            return tx
        return self.base_api.sign_transaction(sender, tx)

    def build_deploy_tx(self, args: DeployArgs, estimate: bool) -> tuple[Transaction, str]:
        """
        Build a deploy transaction.

        Args:
            args: Deploy request
            estimate: Leave the transaction unsigned when the node holds no key for
                the sender instead of failing

        Returns:
            The transaction and its resolved sender
        """
        sender = self._resolve_sender(args.from_)
        attachment = DeployContractAttachment(
            code_hash=_code_hash(args.code_hash),
            code=args.code,
            args=codec.to_slice(args.args)
        )
        tx = self.base_api.get_tx(sender, None, TxType.DEPLOY_CONTRACT, args.amount, args.max_fee,
                                  Decimal(0), payload=attachment.to_bytes())
        return self._sign_if_needed(sender, tx, estimate), sender

    def build_call_tx(self, args: CallArgs, estimate: bool) -> tuple[Transaction, str]:
        sender = self._resolve_sender(args.from_)
        attachment = CallContractAttachment(method=args.method, args=codec.to_slice(args.args))
        tx = self.base_api.get_tx(sender, args.contract, TxType.CALL_CONTRACT, args.amount, args.max_fee,
                                  Decimal(0), payload=attachment.to_bytes())
        return self._sign_if_needed(sender, tx, estimate), sender

    def build_terminate_tx(self, args: TerminateArgs, estimate: bool) -> tuple[Transaction, str]:
        sender = self._resolve_sender(args.from_)
        attachment = TerminateContractAttachment(args=codec.to_slice(args.args))
        tx = self.base_api.get_tx(sender, args.contract, TxType.TERMINATE_CONTRACT, Decimal(0), args.max_fee,
                                  Decimal(0), payload=attachment.to_bytes())
        return self._sign_if_needed(sender, tx, estimate), sender

    # Estimation

    def _estimate(self, app_state: AppState, tx: Transaction, sender: str, apply_amount: bool = False) -> TxReceipt:
        fee_per_gas = app_state.state.fee_per_gas
        if tx.signed:
            validate_tx(app_state, tx, fee_per_gas)
        if apply_amount and tx.amount:
            app_state.state.sub_balance(sender, tx.amount)
            app_state.state.add_balance(tx.to, tx.amount)

        vm = VM(app_state, self.chain.head.timestamp, NOT_MINED)
        receipt = vm.run(tx, from_=None if tx.signed else sender, gas_limit=None)
        receipt.gas_cost = self.chain.get_gas_cost(app_state, receipt.gas_used)
        return convert_estimated_receipt(tx, receipt, fee_per_gas, app_state.state.gas_per_byte)

    def estimate_deploy(self, args: DeployArgs) -> TxReceipt:
        """
        Dry-run a deploy against a disposable copy of the head state.

        Raises:
            BuildError: if the transaction cannot be built
            ValidationError: if the signed transaction breaks a ledger rule
        """
        app_state = self.base_api.get_app_state_for_check()
        tx, sender = self.build_deploy_tx(args, estimate=True)
        return self._estimate(app_state, tx, sender)

    def estimate_call(self, args: CallArgs) -> TxReceipt:
        app_state = self.base_api.get_app_state_for_check()
        tx, sender = self.build_call_tx(args, estimate=True)
        return self._estimate(app_state, tx, sender, apply_amount=True)

    def estimate_terminate(self, args: TerminateArgs) -> TxReceipt:
        app_state = self.base_api.get_app_state_for_check()
        tx, sender = self.build_terminate_tx(args, estimate=True)
        return self._estimate(app_state, tx, sender)

    # Submission

    def deploy(self, args: DeployArgs) -> str:
        tx, _ = self.build_deploy_tx(args, estimate=False)
        return self.base_api.send_internal_tx(tx)

    def call(self, args: CallArgs) -> str:
        tx, _ = self.build_call_tx(args, estimate=False)
        return self.base_api.send_internal_tx(tx)

    def terminate(self, args: TerminateArgs) -> str:
        tx, _ = self.build_terminate_tx(args, estimate=False)
        return self.base_api.send_internal_tx(tx)

    # State reading

    def read_data(self, contract: str, key: str, format_name: str):
        """
        Read a raw storage key of contract.

        Raises:
            NotFoundError: if the key holds no value
            FormatError: if the value cannot be decoded as format_name
        """
        data = self.base_api.get_readonly_app_state().state.get_contract_value(contract, key.encode("utf-8"))
        if data is None:
            raise NotFoundError("data is nil")
        return codec.decode(format_name, data)

    def read_map(self, contract: str, map_name: str, key: str, format_name: str):
        """Read the entry of key (hex) in map map_name of contract."""
        try:
            raw_key = from_hex(key)
        except ValueError:
            raise FormatError("hex", key) from None
        state = self.base_api.get_readonly_app_state().state
        data = state.get_contract_value(contract, format_map_key(map_name.encode("utf-8"), raw_key))
        if data is None:
            raise NotFoundError("data is nil")
        return codec.decode(format_name, data)

    def readonly_call(self, args: ReadonlyCallArgs):
        """
        Execute a read-only contract method against the head state.

        Raises:
            FormatError: if an argument cannot be encoded or the result decoded
            ExecutionError: if the contract is missing or the method fails
        """
        vm = VM(self.base_api.get_readonly_app_state(), self.chain.head.timestamp)
        data = vm.read(args.contract, args.method, codec.to_slice(args.args))
        return codec.decode(args.format, data)

    def get_stake(self, contract: str) -> StakeResponse:
        state = self.base_api.get_readonly_app_state().state
        code_hash = state.get_code_hash(contract)
        return StakeResponse(
            hash=to_hex(code_hash) if code_hash is not None else None,
            stake=codec.dna_string(state.get_contract_stake(contract))
        )

    def events(self, args: EventsArgs) -> list[Event]:
        return [
            Event(contract=e.contract, event=e.event, args=[to_hex(a or b"") for a in e.args])
            for e in self.chain.read_events(args.contract)
        ]

    def iterate_map(self, contract: str, map_name: str, continuation_token: str | None,
                    key_format: str, value_format: str, limit: int) -> IterateMapResponse:
        """
        Page through the entries of a contract map in ascending key order.

        Args:
            contract: Contract address
            map_name: Name of the map, the prefix of its storage keys
            continuation_token: Storage key to resume from, as returned by the
                previous page
            key_format: Format of the keys with the map prefix stripped
            value_format: Format of the values
            limit: Maximum number of items in the page

        Returns:
            Items of the page and the token of the next page, None when the map
            is exhausted

        Raises:
            FormatError: if any key or value of the page cannot be decoded
        """
        state = self.base_api.get_readonly_app_state().state
        prefix = map_name.encode("utf-8")
        min_key = prefix
        max_key = prefix + b"\xff" * (state.max_key_length - len(prefix))
        if continuation_token:
            try:
                token_key = from_hex(continuation_token)
            except ValueError:
                raise FormatError("hex", continuation_token) from None
            # A token outside the map range never leaves the map
            if token_key > max_key:
                return IterateMapResponse(items=[], continuation_token=None)
            min_key = max(token_key, prefix)

        items, token = [], None
        for key, value in state.iterate_contract_store(contract, min_key, max_key):
            if len(items) >= limit:
                token = to_hex(key)
                break
            items.append(MapItem(
                key=codec.decode(key_format, key[len(prefix):]),
                value=codec.decode(value_format, value)
            ))
        return IterateMapResponse(items=items, continuation_token=token)
