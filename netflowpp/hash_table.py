"""A key/value table with bucket accounting and batch lookups."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Generic, Hashable, Iterable, List, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MAX_LOAD_FACTOR = 1.0


@dataclass(frozen=True)
class HashTableStats:
    """A snapshot of a table's size and occupancy."""

    num_entries: int = 0
    num_buckets: int = 0
    collisions: int = 0
    avg_lookup_time: float = 0.0
    load_factor: float = 0.0


class HashTable(Generic[K, V]):
    """A hash table keyed by any hashable value.

    The bucket count starts at ``initial_capacity`` and doubles whenever the
    number of entries would exceed it, so the load factor never rises above
    1.0. Clearing the table keeps its bucket count.
    """

    def __init__(self, initial_capacity: int = 1024) -> None:
        if initial_capacity < 0:
            raise ValueError("initial capacity must not be negative")
        self._map: Dict[K, V] = {}
        self._buckets = max(1, initial_capacity)

    def _grow_for(self, entries: int) -> None:
        while entries > self._buckets * _MAX_LOAD_FACTOR:
            self._buckets *= 2

    def insert(self, key: K, value: V) -> bool:
        """Insert ``key`` if absent; ``False`` (and no update) if it exists."""
        if key in self._map:
            return False
        self._grow_for(len(self._map) + 1)
        self._map[key] = value
        return True

    def insert_or_assign(self, key: K, value: V) -> bool:
        """Insert or overwrite; ``True`` if a new entry was created."""
        if key in self._map:
            self._map[key] = value
            return False
        self._grow_for(len(self._map) + 1)
        self._map[key] = value
        return True

    def lookup(self, key: K) -> Optional[V]:
        """The value stored under ``key``, or ``None``."""
        return self._map.get(key)

    def remove(self, key: K) -> bool:
        """Remove ``key``; ``False`` if it was not present."""
        return self._map.pop(key, _MISSING) is not _MISSING

    def batch_lookup(self, keys: Iterable[K]) -> List[Optional[V]]:
        """Look up each key in turn, in the order given."""
        return [self._map.get(key) for key in keys]

    def __len__(self) -> int:
        return len(self._map)

    def __contains__(self, key: object) -> bool:
        return key in self._map

    @property
    def load_factor(self) -> float:
        return len(self._map) / self._buckets

    def stats(self) -> HashTableStats:
        return HashTableStats(
            num_entries=len(self._map),
            num_buckets=self._buckets,
            load_factor=self.load_factor,
        )

    def clear(self) -> None:
        self._map.clear()


_MISSING = object()