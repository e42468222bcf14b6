"""
Embedded contracts.

Contracts are Python classes registered under a 32 byte code hash. A deploy
transaction selects the contract either by its code hash or, when code bytes are
attached, by the SHA3-256 hash of that code.
"""

import logging
from typing import Callable

from contractrunner.core.utils import ADDRESS_LENGTH, HASH_LENGTH, to_hex
from contractrunner.vm.env import Env, ContractError, format_map_key

logger = logging.getLogger(__name__)

TIME_LOCK_CODE_HASH = b"\x01" + b"\x00" * (HASH_LENGTH - 1)
KEY_VALUE_STORE_CODE_HASH = b"\x06" + b"\x00" * (HASH_LENGTH - 1)

_registry: dict[bytes, type['EmbeddedContract']] = {}


def register_contract(code_hash: bytes) -> Callable[[type['EmbeddedContract']], type['EmbeddedContract']]:
    """Class decorator registering a contract under code_hash"""
    if len(code_hash) != HASH_LENGTH:
        raise ValueError(f"code hash must be {HASH_LENGTH} bytes")

    def decorator(cls: type['EmbeddedContract']) -> type['EmbeddedContract']:
        _registry[code_hash] = cls
        cls.code_hash = code_hash
        logger.debug(f"Registered contract {cls.__name__} at {to_hex(code_hash)}")
        return cls
    return decorator


def resolve_contract(code_hash: bytes | None) -> type['EmbeddedContract'] | None:
    if code_hash is None:
        return None
    return _registry.get(code_hash)


def arg(args: list[bytes | None], index: int, name: str) -> bytes:
    """Positional argument or a ContractError naming it"""
    if index >= len(args) or args[index] is None:
        raise ContractError(f"{name} is required")
    return args[index]


def to_uint64(data: bytes) -> int:
    if not data or len(data) > 8:
        raise ContractError("invalid uint64")
    return int.from_bytes(data, "big")


def from_uint64(value: int) -> bytes:
    return value.to_bytes(8, "big")


def to_address(data: bytes) -> str:
    if len(data) != ADDRESS_LENGTH:
        raise ContractError("invalid address")
    return to_hex(data)


class EmbeddedContract:
    """
    Base class of embedded contracts.

    Subclasses expose mutating methods through `methods` and read-only methods
    through `read_methods`; both map a method name to a bound method name.
    """
    code_hash: bytes = b""
    methods: dict[str, str] = {}
    read_methods: dict[str, str] = {}

    def __init__(self, env: Env):
        self.env = env

    def deploy(self, args: list[bytes | None]):
        self.env.set_value(b"owner", bytes.fromhex(self.env.caller[2:]))

    def call(self, method: str, args: list[bytes | None]):
        handler = self.methods.get(method)
        if handler is None:
            raise ContractError(f"unknown method {method}")
        getattr(self, handler)(args)

    def read(self, method: str, args: list[bytes | None]) -> bytes:
        handler = self.read_methods.get(method)
        if handler is None:
            raise ContractError(f"unknown method {method}")
        return getattr(self, handler)(args)

    def terminate(self, args: list[bytes | None]) -> str | None:
        """Terminate the contract and return the stake refund address"""
        self.require_owner()
        if args and args[0] is not None:
            return to_address(args[0])
        return self.owner()

    def owner(self) -> str:
        return to_hex(self.env.get_value(b"owner") or b"")

    def require_owner(self):
        if self.env.caller != self.owner():
            raise ContractError("sender is not an owner")


@register_contract(TIME_LOCK_CODE_HASH)
class TimeLock(EmbeddedContract):
    """Holds funds until a timestamp, then lets the owner move them"""
    methods = {"transfer": "transfer"}
    read_methods = {"timestamp": "read_timestamp", "owner": "read_owner"}

    def deploy(self, args):
        timestamp = to_uint64(arg(args, 0, "timestamp"))
        super().deploy(args)
        self.env.set_value(b"timestamp", from_uint64(timestamp))

    def _unlocked(self) -> bool:
        return self.env.block_time >= to_uint64(self.env.get_value(b"timestamp"))

    def transfer(self, args):
        self.require_owner()
        if not self._unlocked():
            raise ContractError("transfer is locked")
        dest = to_address(arg(args, 0, "destination"))
        amount = int.from_bytes(arg(args, 1, "amount"), "big")
        self.env.send(dest, amount)
        self.env.emit_event("transfer", bytes.fromhex(dest[2:]), amount.to_bytes(32, "big"))

    def terminate(self, args):
        if not self._unlocked():
            raise ContractError("terminate is locked")
        return super().terminate(args)

    def read_timestamp(self, args) -> bytes:
        return self.env.get_value(b"timestamp")

    def read_owner(self, args) -> bytes:
        return self.env.get_value(b"owner")


@register_contract(KEY_VALUE_STORE_CODE_HASH)
class KeyValueStore(EmbeddedContract):
    """Owner-writable map of entries, readable by anyone"""
    MAP_NAME = b"kv"
    methods = {"set": "set_entry", "remove": "remove_entry"}
    read_methods = {"get": "get_entry", "count": "read_count"}

    def deploy(self, args):
        super().deploy(args)
        self.env.set_value(b"count", from_uint64(0))

    def _count(self) -> int:
        return to_uint64(self.env.get_value(b"count"))

    def set_entry(self, args):
        self.require_owner()
        key = arg(args, 0, "key")
        value = arg(args, 1, "value")
        map_key = format_map_key(self.MAP_NAME, key)
        if self.env.get_value(map_key) is None:
            self.env.set_value(b"count", from_uint64(self._count() + 1))
        self.env.set_value(map_key, value)
        self.env.emit_event("set", key, value)

    def remove_entry(self, args):
        self.require_owner()
        key = arg(args, 0, "key")
        map_key = format_map_key(self.MAP_NAME, key)
        if self.env.get_value(map_key) is None:
            raise ContractError("key not found")
        self.env.remove_value(map_key)
        self.env.set_value(b"count", from_uint64(self._count() - 1))
        self.env.emit_event("removed", key)

    def get_entry(self, args) -> bytes:
        value = self.env.get_value(format_map_key(self.MAP_NAME, arg(args, 0, "key")))
        if value is None:
            raise ContractError("key not found")
        return value

    def read_count(self, args) -> bytes:
        return self.env.get_value(b"count")
