"""
Contract VM of the in-memory chain.

The VM executes deploy, call and terminate transactions against an AppState and
produces a TxReceipt. Contract failures never raise: they produce an unsuccessful
receipt and leave the state untouched. Read-only calls raise ExecutionError.
"""

import logging

from contractrunner.core.attachments import (
    DeployContractAttachment, CallContractAttachment, TerminateContractAttachment
)
from contractrunner.core.errors import ExecutionError
from contractrunner.core.types import Transaction, TxType, TxReceipt
from contractrunner.core.utils import canonical_json, hash_bytes, to_hex, ADDRESS_LENGTH
from contractrunner.storage.world_state import AppState
from contractrunner.vm import gas
from contractrunner.vm.embedded import resolve_contract, EmbeddedContract
from contractrunner.vm.env import Env, ContractError
from contractrunner.vm.gas import GasMeter, OutOfGas

logger = logging.getLogger(__name__)

# Height of transactions that are not part of any block yet
NOT_MINED = -1


def compute_contract_address(sender: str, nonce: int, code_hash: bytes, args: list[bytes | None]) -> str:
    data = canonical_json({
        "sender": sender,
        "nonce": nonce,
        "codeHash": to_hex(code_hash),
        "args": [to_hex(a) if a is not None else None for a in args]
    })
    return to_hex(hash_bytes(data)[-ADDRESS_LENGTH:])


class VM:
    """
    Executes contract transactions.

    Args:
        app_state: State the execution reads and, on success, writes
        block_time: Timestamp contracts observe
        height: Height contracts observe; NOT_MINED for dry runs
    """

    def __init__(self, app_state: AppState, block_time: int, height: int = NOT_MINED):
        self.app_state = app_state
        self.block_time = block_time
        self.height = height

    def _env(self, contract: str, caller: str | None, meter: GasMeter) -> Env:
        return Env(self.app_state, contract, caller, self.block_time, self.height, meter)

    def _load(self, contract: str | None, env: Env) -> EmbeddedContract:
        code_hash = self.app_state.state.get_code_hash(contract) if contract else None
        cls = resolve_contract(code_hash)
        if cls is None:
            raise ContractError("contract is not found")
        return cls(env)

    def run(self, tx: Transaction, from_: str | None = None, gas_limit: int | None = None) -> TxReceipt:
        """
        Execute tx and return its receipt.

        Args:
            tx: Transaction to execute
            from_: Sender to assume when tx is unsigned
            gas_limit: Gas available to the execution; None means unbounded
        """
        sender = tx.sender() if tx.signed else from_
        meter = GasMeter(gas_limit)
        receipt = TxReceipt(tx_hash=tx.hash(), success=False, gas_used=0)
        try:
            meter.consume(gas.BASE_TX_GAS)
            if sender is None:
                raise ContractError("sender is unknown")
            if tx.type == TxType.DEPLOY_CONTRACT:
                self._deploy(tx, sender, meter, receipt)
            elif tx.type == TxType.CALL_CONTRACT:
                self._call(tx, sender, meter, receipt)
            elif tx.type == TxType.TERMINATE_CONTRACT:
                self._terminate(tx, sender, meter, receipt)
            else:
                raise ContractError(f"unsupported transaction type {tx.type}")
            receipt.success = True
        except (ContractError, OutOfGas, ValueError) as e:
            receipt.error = str(e)
            receipt.events = []
            logger.debug(f"Execution of {receipt.tx_hash} failed: {e}")
        receipt.gas_used = meter.used
        return receipt

    def _deploy(self, tx: Transaction, sender: str, meter: GasMeter, receipt: TxReceipt):
        attachment = DeployContractAttachment.from_bytes(tx.payload)
        code_hash = hash_bytes(attachment.code) if attachment.code else attachment.code_hash
        receipt.method = "deploy"
        cls = resolve_contract(code_hash)
        if cls is None:
            raise ContractError(f"unknown contract code {to_hex(code_hash)}")
        address = compute_contract_address(sender, tx.nonce, code_hash, attachment.args)
        receipt.contract_address = address
        state = self.app_state.state
        if state.get_code_hash(address) is not None:
            raise ContractError("contract already exists")
        meter.consume(gas.DEPLOY_GAS)
        env = self._env(address, sender, meter)
        cls(env).deploy(attachment.args)
        env.commit()
        state.deploy_contract(address, code_hash, tx.amount, sender)
        receipt.events = env.events

    def _call(self, tx: Transaction, sender: str, meter: GasMeter, receipt: TxReceipt):
        attachment = CallContractAttachment.from_bytes(tx.payload)
        receipt.method = attachment.method
        receipt.contract_address = tx.to
        env = self._env(tx.to, sender, meter)
        self._load(tx.to, env).call(attachment.method, attachment.args)
        env.commit()
        receipt.events = env.events

    def _terminate(self, tx: Transaction, sender: str, meter: GasMeter, receipt: TxReceipt):
        attachment = TerminateContractAttachment.from_bytes(tx.payload)
        receipt.method = "terminate"
        receipt.contract_address = tx.to
        env = self._env(tx.to, sender, meter)
        dest = self._load(tx.to, env).terminate(attachment.args)
        env.commit()
        state = self.app_state.state
        stake = state.get_contract_stake(tx.to)
        state.remove_contract(tx.to)
        if dest and stake:
            state.add_balance(dest, stake)
        receipt.events = env.events

    def read(self, contract: str, method: str, args: list[bytes | None]) -> bytes:
        """
        Execute a read-only method and return its output.

        Raises:
            ExecutionError: if the contract is missing or the method fails
        """
        env = self._env(contract, None, GasMeter())
        try:
            data = self._load(contract, env).read(method, args)
        except (ContractError, ValueError) as e:
            raise ExecutionError(str(e)) from e
        if data is None:
            raise ExecutionError("method returned no data")
        return data
