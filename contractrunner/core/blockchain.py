"""
In-memory blockchain for ContractRunner.

MemBlockchain is a single-validator chain that only moves forward when asked to.
generate_blocks() proposes a block from the pending pool, appends it after the
same validity checks any block goes through, and finalizes it with a certificate
made of a single vote of the local validator. With one validator that vote is the
whole quorum, so no voting round is needed.

Chain mutation (block production, reset) is serialized by one lock. Readers get
copies of the head state and never see a block half-applied.
"""

import logging
import threading

import pyarrow as pa
import pyarrow.compute as pc

from contractrunner.config.settings import Settings, settings as default_settings
from contractrunner.core import schemas
from contractrunner.core.block import Block, BlockHeader
from contractrunner.core.consensus.proof_of_authority import ProofOfAuthority, FINAL_STEP
from contractrunner.core.errors import ChainFault, ResetError, ValidationError
from contractrunner.core.fee import calculate_fee, calculate_gas_cost, gas_limit
from contractrunner.core.mempool import TxPool
from contractrunner.core.types import (
    Transaction, TxType, TxReceipt, ContractEvent, Vote, VoteHeader, FullBlockCert, BlockCert
)
from contractrunner.core.utils import ZERO_ADDRESS, from_hex
from contractrunner.core.validation import validate_tx
from contractrunner.security.key_store import KeyStore
from contractrunner.security.security_utils import KeyPair
from contractrunner.storage.world_state import AppState, StateDB
from contractrunner.vm.vm import VM

logger = logging.getLogger(__name__)

GENESIS_PARENT_HASH = "0x" + "00" * 32


class MemBlockchain:
    """
    Single-validator in-memory chain.

    Args:
        god_key: Key of the validator, which is also the funded default signer
        config: Settings class providing chain and fee parameters
    """

    def __init__(self, god_key: KeyPair, config: Settings | None = None):
        self.config = config or default_settings
        self.key_store = KeyStore()
        self.god_address = self.key_store.add_key(god_key)
        self.validator_address = self.god_address
        self.consensus = ProofOfAuthority()
        self.consensus.add_authority(self.validator_address, {"role": "local validator"})
        self.txpool = TxPool(self)

        self.blocks: list[Block] = []
        self.certs: dict[str, BlockCert] = {}
        self._states: list[StateDB] = []
        self._receipts: dict[str, tuple[int, TxReceipt]] = {}
        self._transactions: dict[str, tuple[int, Transaction]] = {}
        self._events = pa.Table.from_pylist([], schema=schemas.get_contract_event_schema())
        self._lock = threading.RLock()

        self.initialize_chain()

    def initialize_chain(self):
        """Create the genesis state and block."""
        chain_config = self.config.get_chain_config()
        state = StateDB(
            self.config.FEE_PER_GAS, self.config.GAS_PER_BYTE, self.config.MAX_CONTRACT_STORE_KEY_LENGTH
        )
        state.set_balance(self.god_address, chain_config["god_balance"])

        header = BlockHeader(
            height=0,
            parent_hash=GENESIS_PARENT_HASH,
            timestamp=chain_config["genesis_timestamp"],
            proposer=ZERO_ADDRESS,
            tx_root=Block.calculate_tx_root([]),
            state_root=state.root()
        )
        genesis = Block(header, [])
        self.blocks = [genesis]
        self._states = [state]
        logger.info(f"Genesis block {genesis.hash} created, god address {self.god_address}")

    # Accessors

    @property
    def head(self) -> Block:
        with self._lock:
            return self.blocks[-1]

    def app_state_for_check(self) -> AppState:
        """Disposable copy of the head state"""
        with self._lock:
            return AppState(self._states[-1]).for_check()

    def readonly_app_state(self) -> AppState:
        """Snapshot of the head state"""
        with self._lock:
            return AppState(self._states[-1]).readonly()

    def get_block(self, height: int) -> Block | None:
        with self._lock:
            if 0 <= height < len(self.blocks):
                return self.blocks[height]
        return None

    def get_receipt(self, tx_hash: str) -> TxReceipt | None:
        with self._lock:
            entry = self._receipts.get(tx_hash)
        return entry[1] if entry else None

    def get_transaction(self, tx_hash: str) -> tuple[int, Transaction] | None:
        """Committed transaction and the height of its block"""
        with self._lock:
            return self._transactions.get(tx_hash)

    def get_certificate(self, block_hash: str) -> BlockCert | None:
        with self._lock:
            return self.certs.get(block_hash)

    def read_events(self, contract: str) -> list[ContractEvent]:
        """Committed events of contract in emission order"""
        with self._lock:
            table = self._events
        filtered = table.filter(pc.equal(table['contract'], contract))
        return [
            ContractEvent(contract=row['contract'], event=row['event'], args=list(row['args'] or []))
            for row in filtered.to_pylist()
        ]

    @staticmethod
    def get_gas_cost(app_state: AppState, gas_used: int) -> int:
        return calculate_gas_cost(app_state.state.fee_per_gas, gas_used)

    # Block production

    def _apply_transactions(self, state: StateDB, txs: list[Transaction], height: int, timestamp: int,
                            strict: bool) -> tuple[list[Transaction], list[TxReceipt]]:
        """
        Apply txs to state in order.

        Invalid transactions are dropped, or raise ValidationError when strict.
        """
        applied, receipts = [], []
        fee_per_gas = state.fee_per_gas
        for tx in txs:
            app_state = AppState(state)
            try:
                sender = validate_tx(app_state, tx, fee_per_gas)
            except ValidationError as e:
                if strict:
                    raise
                logger.warning(f"Dropping transaction {tx.hash()}: {e}")
                continue

            snapshot = state.copy()
            if tx.type in (TxType.SEND, TxType.CALL_CONTRACT) and tx.amount:
                state.sub_balance(sender, tx.amount)
                state.add_balance(tx.to, tx.amount)
            elif tx.type == TxType.DEPLOY_CONTRACT and tx.amount:
                state.sub_balance(sender, tx.amount)

            if tx.type == TxType.SEND:
                receipt = TxReceipt(tx_hash=tx.hash(), success=True, gas_used=0)
            else:
                vm = VM(app_state, timestamp, height)
                receipt = vm.run(tx, gas_limit=gas_limit(fee_per_gas, tx, state.gas_per_byte))
                if not receipt.success:
                    state.restore(snapshot)

            receipt.gas_cost = calculate_gas_cost(fee_per_gas, receipt.gas_used)
            fee = calculate_fee(fee_per_gas, tx, state.gas_per_byte)
            state.sub_balance(sender, min(tx.max_fee, fee + receipt.gas_cost))
            state.set_nonce(sender, max(state.get_nonce(sender), tx.nonce))
            applied.append(tx)
            receipts.append(receipt)
        return applied, receipts

    def propose_block(self, proposer_payload: bytes = b"") -> Block:
        """
        Build and sign a block on top of the head from the pending pool.
        """
        with self._lock:
            head = self.blocks[-1]
            state = self._states[-1].copy()
            height = head.height + 1
            timestamp = head.timestamp + self.config.BLOCK_TIME_STEP
            candidates = self.txpool.pending()[:self.config.MAX_BLOCK_TRANSACTIONS]
            applied, _ = self._apply_transactions(state, candidates, height, timestamp, strict=False)

            dropped = [tx.hash() for tx in candidates if tx not in applied]
            if dropped:
                self.txpool.remove(dropped)

            header = BlockHeader(
                height=height,
                parent_hash=head.hash,
                timestamp=timestamp,
                proposer=self.validator_address,
                tx_root=Block.calculate_tx_root(applied),
                state_root=state.root(),
                proposer_payload=proposer_payload
            )
            block = Block(header, applied)
            block.proposer_signature = self.key_store.sign(self.validator_address, from_hex(block.hash))
            logger.debug(f"Proposed {block}")
            return block

    def add_block(self, block: Block):
        """
        Validate block against the head and append it.

        Raises:
            ValueError: if the block is not a valid successor of the head
        """
        with self._lock:
            head = self.blocks[-1]
            reason = self.consensus.validate_proposal(block, head)
            if reason:
                raise ValueError(f"invalid block {block.hash}: {reason}")

            txs = block.to_transaction_list()
            if Block.calculate_tx_root(txs) != block.header.tx_root:
                raise ValueError(f"invalid block {block.hash}: transaction root mismatch")

            state = self._states[-1].copy()
            try:
                _, receipts = self._apply_transactions(state, txs, block.height, block.timestamp, strict=True)
            except ValidationError as e:
                raise ValueError(f"invalid block {block.hash}: {e}") from e
            if state.root() != block.header.state_root:
                raise ValueError(f"invalid block {block.hash}: state root mismatch")

            self.blocks.append(block)
            self._states.append(state)
            self._index_block(block, txs, receipts)
            self.txpool.remove([r.tx_hash for r in receipts])
            logger.debug(f"Added {block}")

    def _index_block(self, block: Block, txs: list[Transaction], receipts: list[TxReceipt]):
        rows = []
        for tx, receipt in zip(txs, receipts):
            self._transactions[receipt.tx_hash] = (block.height, tx)
            self._receipts[receipt.tx_hash] = (block.height, receipt)
            for event in receipt.events:
                rows.append({
                    'height': block.height,
                    'tx_hash': receipt.tx_hash,
                    'contract': event.contract,
                    'event': event.event,
                    'args': event.args
                })
        if rows:
            new_events = pa.Table.from_pylist(rows, schema=schemas.get_contract_event_schema())
            self._events = pa.concat_tables([self._events, new_events])

    def write_certificate(self, block_hash: str, cert: BlockCert):
        """
        Store the certificate finalizing a block of the chain.

        Raises:
            ValueError: if the block is unknown or the certificate is invalid
        """
        with self._lock:
            block = next((b for b in reversed(self.blocks) if b.hash == block_hash), None)
            if block is None:
                raise ValueError(f"unknown block {block_hash}")
            reason = self.consensus.validate_certificate(block, cert)
            if reason:
                raise ValueError(f"invalid certificate for {block_hash}: {reason}")
            self.certs[block_hash] = cert

    def _add_cert(self, block: Block):
        vote = Vote(header=VoteHeader(
            round=block.height,
            step=FINAL_STEP,
            parent_hash=block.parent_hash,
            voted_hash=block.hash,
            turn_offline=False
        ))
        vote.signature = self.key_store.sign(self.validator_address, vote.signature_hash())
        cert = FullBlockCert(votes=[vote])
        self.write_certificate(block.hash, cert.compress())

    def generate_blocks(self, count: int):
        """
        Produce and finalize count blocks.

        Raises:
            ChainFault: if a self-produced block or certificate is rejected
        """
        with self._lock:
            for _ in range(count):
                block = self.propose_block(b"")
                try:
                    self.add_block(block)
                    self._add_cert(block)
                except ValueError as e:
                    logger.critical(f"Local block production failed: {e}")
                    raise ChainFault(str(e)) from e
            if count > 0:
                logger.info(f"Generated {count} block(s), head is {self.head.height} ({self.head.hash})")

    def reset_to(self, height: int):
        """
        Roll the chain back so that the block at height becomes the head.

        Raises:
            ResetError: if no block exists at height
        """
        with self._lock:
            head_height = self.blocks[-1].height
            if height < 0 or height > head_height:
                raise ResetError(f"cannot reset to height {height}, head is {head_height}")

            for block in self.blocks[height + 1:]:
                self.certs.pop(block.hash, None)
            del self.blocks[height + 1:]
            del self._states[height + 1:]
            self._receipts = {h: e for h, e in self._receipts.items() if e[0] <= height}
            self._transactions = {h: e for h, e in self._transactions.items() if e[0] <= height}
            self._events = self._events.filter(pc.less_equal(self._events['height'], height))
            logger.info(f"Chain reset to height {height} ({self.blocks[-1].hash})")

    def __repr__(self) -> str:
        return f"MemBlockchain(height={self.head.height}, validator={self.validator_address})"
