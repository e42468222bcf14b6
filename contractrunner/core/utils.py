"""
Utility functions for ContractRunner.

This module provides common helpers used throughout the runner: canonical hashing,
hex and address handling, and conversion between DNA decimal amounts and the
integer base units the ledger stores.
"""

import hashlib
import json
from decimal import Decimal, localcontext, ROUND_DOWN
from typing import Any

from contractrunner.config.settings import settings

ADDRESS_LENGTH = 20
HASH_LENGTH = 32
ZERO_ADDRESS = "0x" + "00" * ADDRESS_LENGTH

# Enough precision for any amount the chain can hold
_AMOUNT_PRECISION = 80


def canonical_json(data: Any) -> bytes:
    """Serialize data as compact JSON with sorted keys."""
    return json.dumps(data, sort_keys=True, separators=(',', ':')).encode()


def hash_bytes(data: bytes) -> bytes:
    """SHA3-256 digest of raw bytes."""
    return hashlib.sha3_256(data).digest()


def generate_hash(data: str | bytes | dict[str, Any]) -> str:
    """
    Generate a 0x-prefixed SHA3-256 hash for given data.

    Args:
        data: Data to hash (string, bytes or dictionary)

    Returns:
        Hash as 0x-prefixed hexadecimal string
    """
    if isinstance(data, dict):
        data = canonical_json(data)
    elif isinstance(data, str):
        data = data.encode()
    return to_hex(hash_bytes(data))


def to_hex(data: bytes) -> str:
    """Encode bytes as a 0x-prefixed hex string."""
    return "0x" + data.hex()


def from_hex(value: str) -> bytes:
    """
    Decode a 0x-prefixed hex string.

    Raises:
        ValueError: if the prefix is missing or the digits are not valid hex
    """
    if not isinstance(value, str) or not value.startswith(("0x", "0X")):
        raise ValueError(f"hex string without 0x prefix: {value!r}")
    digits = value[2:]
    if len(digits) % 2:
        raise ValueError(f"hex string of odd length: {value!r}")
    return bytes.fromhex(digits)


def normalize_address(value: str) -> str:
    """
    Validate an address and return its canonical lowercase form.

    Raises:
        ValueError: if the value is not a 0x-prefixed 20 byte hex string
    """
    raw = from_hex(value)
    if len(raw) != ADDRESS_LENGTH:
        raise ValueError(f"address must be {ADDRESS_LENGTH} bytes: {value!r}")
    return to_hex(raw)


def is_zero_address(address: str | None) -> bool:
    """True for a missing or all-zero address."""
    return not address or address.lower() == ZERO_ADDRESS


def convert_to_int(amount: Decimal) -> int:
    """
    Scale a DNA amount to base units, truncating extra precision.

    The sign is kept; callers that need a magnitude take abs() themselves.
    """
    with localcontext() as ctx:
        ctx.prec = _AMOUNT_PRECISION
        scaled = Decimal(amount) * Decimal(settings.dna_base())
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def convert_to_float(amount: int) -> Decimal:
    """Scale base units back to a DNA amount."""
    with localcontext() as ctx:
        ctx.prec = _AMOUNT_PRECISION
        return Decimal(amount) / Decimal(settings.dna_base())


class MerkleTree:
    """
    Merkle Tree over pre-computed 0x-prefixed leaf hashes.
    """

    def __init__(self, leaves: list[str] | None = None):
        self.leaves = list(leaves or [])
        self.root = self._build_tree(self.leaves)

    def _build_tree(self, nodes: list[str]) -> str:
        """
        Recursively build the Merkle Tree.

        Args:
            nodes: List of hash nodes at the current level

        Returns:
            Root hash of the tree
        """
        if not nodes:
            return to_hex(hash_bytes(b""))  # Empty tree hash

        if len(nodes) == 1:
            return nodes[0]

        new_level = []
        for i in range(0, len(nodes), 2):
            left = nodes[i]
            # Duplicate last node if number of nodes is odd
            right = nodes[i + 1] if i + 1 < len(nodes) else left
            new_level.append(to_hex(hash_bytes(from_hex(left) + from_hex(right))))

        return self._build_tree(new_level)

    def get_root(self) -> str:
        """Get the Merkle Root hash."""
        return self.root
