"""
Execution environment handed to contracts.

All storage writes, value transfers and events are buffered in the environment and
only reach the state on commit(), so a failed execution leaves the state untouched.
"""

import logging

from contractrunner.core.types import ContractEvent
from contractrunner.storage.world_state import AppState
from contractrunner.vm import gas
from contractrunner.vm.gas import GasMeter

logger = logging.getLogger(__name__)

_REMOVED = object()


class ContractError(Exception):
    """Contract-level failure; turns into an unsuccessful receipt"""
    pass


def format_map_key(map_name: bytes, key: bytes) -> bytes:
    """Storage key of an entry of a contract map"""
    return map_name + key


class Env:
    """Buffered view of one contract's state during an execution"""

    def __init__(self, app_state: AppState, contract: str, caller: str | None,
                 block_time: int, height: int, meter: GasMeter):
        self.app_state = app_state
        self.contract = contract
        self.caller = caller
        self.block_time = block_time
        self.height = height
        self.meter = meter
        self._writes: dict[bytes, object] = {}
        self._transfers: list[tuple[str, int]] = []
        self._events: list[ContractEvent] = []

    def get_value(self, key: bytes) -> bytes | None:
        self.meter.consume(gas.READ_GAS)
        if key in self._writes:
            value = self._writes[key]
            return None if value is _REMOVED else value
        return self.app_state.state.get_contract_value(self.contract, key)

    def set_value(self, key: bytes, value: bytes):
        if len(key) > self.app_state.state.max_key_length:
            raise ContractError("key is too big")
        self.meter.consume(gas.WRITE_GAS + gas.WRITE_BYTE_GAS * (len(key) + len(value)))
        self._writes[key] = bytes(value)

    def remove_value(self, key: bytes):
        self.meter.consume(gas.REMOVE_GAS)
        self._writes[key] = _REMOVED

    def emit_event(self, name: str, *args: bytes):
        self.meter.consume(gas.EVENT_GAS + gas.EVENT_BYTE_GAS * sum(len(a) for a in args))
        self._events.append(ContractEvent(contract=self.contract, event=name, args=list(args)))

    def balance(self) -> int:
        """Spendable balance of the contract, net of pending sends"""
        pending = sum(amount for _, amount in self._transfers)
        return self.app_state.state.get_balance(self.contract) - pending

    def send(self, dest: str, amount: int):
        self.meter.consume(gas.TRANSFER_GAS)
        if amount < 0:
            raise ContractError("negative amount")
        if self.balance() < amount:
            raise ContractError("insufficient funds")
        self._transfers.append((dest, amount))

    @property
    def events(self) -> list[ContractEvent]:
        return list(self._events)

    def commit(self):
        """Apply buffered writes and transfers to the state"""
        state = self.app_state.state
        for key, value in self._writes.items():
            if value is _REMOVED:
                state.remove_contract_value(self.contract, key)
            else:
                state.set_contract_value(self.contract, key, value)
        for dest, amount in self._transfers:
            state.sub_balance(self.contract, amount)
            state.add_balance(dest, amount)
        logger.debug(f"Committed {len(self._writes)} writes and {len(self._transfers)} transfers "
                     f"for {self.contract}")
