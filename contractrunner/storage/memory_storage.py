"""
Memory Storage Module for ContractRunner

This module provides the in-memory ordered key/value store backing contract storage.
Keys are raw bytes kept in ascending lexicographic order so that range scans over
a key prefix (a contract "map") are a bisect plus a linear walk.
"""

import bisect
from typing import Iterator


class OrderedStore:
    """Ordered in-memory bytes key/value store"""

    def __init__(self):
        self.data: dict[bytes, bytes] = {}
        self._keys: list[bytes] = []

    def get(self, key: bytes) -> bytes | None:
        """Get value by key"""
        return self.data.get(key)

    def set(self, key: bytes, value: bytes):
        """Set value by key"""
        if key not in self.data:
            bisect.insort(self._keys, key)
        self.data[key] = value

    def delete(self, key: bytes) -> bool:
        """Delete value by key"""
        if key in self.data:
            del self.data[key]
            index = bisect.bisect_left(self._keys, key)
            del self._keys[index]
            return True
        return False

    def iterate(self, min_key: bytes, max_key: bytes) -> Iterator[tuple[bytes, bytes]]:
        """
        Yield (key, value) pairs with min_key <= key <= max_key in ascending order.

        The walk works on a copy of the key range, so the store may be mutated
        while a caller iterates.
        """
        start = bisect.bisect_left(self._keys, min_key)
        end = bisect.bisect_right(self._keys, max_key)
        for key in self._keys[start:end]:
            yield key, self.data[key]

    def get_all_keys(self) -> list[bytes]:
        """Get all keys in ascending order"""
        return list(self._keys)

    def clear(self):
        """Clear all data"""
        self.data.clear()
        self._keys.clear()

    def size(self) -> int:
        """Get number of items in storage"""
        return len(self.data)

    def copy(self) -> 'OrderedStore':
        """Independent copy; keys and values are immutable bytes"""
        clone = OrderedStore()
        clone.data = dict(self.data)
        clone._keys = list(self._keys)
        return clone
