"""
World State Management Module

This module implements the account and contract state of the in-memory chain. The
world state holds the current balances, nonces, deployed contracts and their
key/value storage, enabling reads and writes without replaying the chain.

Durable state is never handed out for mutation: estimations get a disposable copy
(AppState.for_check) and readers get a point-in-time snapshot (AppState.readonly).
"""

from dataclasses import dataclass
from typing import Any, Iterator

from contractrunner.config.settings import Settings
from contractrunner.core.utils import generate_hash, to_hex
from contractrunner.storage.memory_storage import OrderedStore


@dataclass
class ContractRecord:
    """Deployed contract metadata"""
    code_hash: bytes
    stake: int
    owner: str


class StateDB:
    """Account balances, nonces and contract storage of one chain state"""

    def __init__(self, fee_per_gas: int = 0, gas_per_byte: int = Settings.GAS_PER_BYTE,
                 max_key_length: int = Settings.MAX_CONTRACT_STORE_KEY_LENGTH):
        self.balances: dict[str, int] = {}
        self.nonces: dict[str, int] = {}
        self.contracts: dict[str, ContractRecord] = {}
        self.stores: dict[str, OrderedStore] = {}
        self.fee_per_gas = fee_per_gas
        self.gas_per_byte = gas_per_byte
        self.max_key_length = max_key_length

    # Accounts

    def get_balance(self, address: str) -> int:
        return self.balances.get(address, 0)

    def set_balance(self, address: str, amount: int):
        self.balances[address] = amount

    def add_balance(self, address: str, amount: int):
        self.balances[address] = self.get_balance(address) + amount

    def sub_balance(self, address: str, amount: int):
        self.balances[address] = self.get_balance(address) - amount

    def get_nonce(self, address: str) -> int:
        return self.nonces.get(address, 0)

    def set_nonce(self, address: str, nonce: int):
        self.nonces[address] = nonce

    # Contracts

    def get_code_hash(self, contract: str) -> bytes | None:
        record = self.contracts.get(contract)
        return record.code_hash if record else None

    def get_contract_stake(self, contract: str) -> int:
        record = self.contracts.get(contract)
        return record.stake if record else 0

    def get_contract_owner(self, contract: str) -> str | None:
        record = self.contracts.get(contract)
        return record.owner if record else None

    def deploy_contract(self, contract: str, code_hash: bytes, stake: int, owner: str):
        self.contracts[contract] = ContractRecord(code_hash=code_hash, stake=stake, owner=owner)
        self.stores.setdefault(contract, OrderedStore())

    def remove_contract(self, contract: str):
        self.contracts.pop(contract, None)
        self.stores.pop(contract, None)

    def get_contract_value(self, contract: str, key: bytes) -> bytes | None:
        store = self.stores.get(contract)
        return store.get(key) if store else None

    def set_contract_value(self, contract: str, key: bytes, value: bytes):
        self.stores.setdefault(contract, OrderedStore()).set(key, value)

    def remove_contract_value(self, contract: str, key: bytes):
        store = self.stores.get(contract)
        if store:
            store.delete(key)

    def iterate_contract_store(self, contract: str, min_key: bytes,
                               max_key: bytes) -> Iterator[tuple[bytes, bytes]]:
        """Ascending scan of contract storage within [min_key, max_key]"""
        store = self.stores.get(contract)
        if store is None:
            return iter(())
        return store.iterate(min_key, max_key)

    # Snapshots

    def copy(self) -> 'StateDB':
        """Deep copy sharing no mutable storage with self"""
        clone = StateDB(self.fee_per_gas, self.gas_per_byte, self.max_key_length)
        clone.balances = dict(self.balances)
        clone.nonces = dict(self.nonces)
        clone.contracts = {
            addr: ContractRecord(r.code_hash, r.stake, r.owner) for addr, r in self.contracts.items()
        }
        clone.stores = {addr: store.copy() for addr, store in self.stores.items()}
        return clone

    def restore(self, snapshot: 'StateDB'):
        """Replace the contents of self with a copy taken earlier"""
        self.balances = snapshot.balances
        self.nonces = snapshot.nonces
        self.contracts = snapshot.contracts
        self.stores = snapshot.stores
        self.fee_per_gas = snapshot.fee_per_gas
        self.gas_per_byte = snapshot.gas_per_byte
        self.max_key_length = snapshot.max_key_length

    def to_dict(self) -> dict[str, Any]:
        return {
            "feePerGas": str(self.fee_per_gas),
            "balances": {a: str(v) for a, v in sorted(self.balances.items()) if v},
            "nonces": {a: n for a, n in sorted(self.nonces.items()) if n},
            "contracts": {
                a: {"codeHash": to_hex(r.code_hash), "stake": str(r.stake), "owner": r.owner}
                for a, r in sorted(self.contracts.items())
            },
            "stores": {
                a: {to_hex(k): to_hex(store.get(k)) for k in store.get_all_keys()}
                for a, store in sorted(self.stores.items()) if store.size()
            }
        }

    def root(self) -> str:
        """Hash committing to the whole state"""
        return generate_hash(self.to_dict())


class AppState:
    """
    Handle on one chain state.

    The chain owns the durable AppState of its head; everyone else works on
    copies obtained from for_check() or readonly().
    """

    def __init__(self, state: StateDB):
        self.state = state

    def for_check(self) -> 'AppState':
        """Disposable state for non-committing execution"""
        return AppState(self.state.copy())

    def readonly(self) -> 'AppState':
        """Point-in-time snapshot for readers"""
        return AppState(self.state.copy())
