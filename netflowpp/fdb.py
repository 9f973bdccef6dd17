"""The MAC forwarding database: learned and static MAC-to-port bindings per VLAN."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional, Tuple, Union

from netflowpp.headers import MacAddress

log = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 300.0


@dataclass
class FdbEntry:
    """One binding; ``timestamp`` is a monotonic time in seconds."""

    mac: MacAddress
    port: int
    vlan_id: int
    timestamp: float
    is_static: bool = False


class ForwardingDatabase:
    """MAC entries keyed by (MAC, VLAN); dynamic entries age out, static ones do not."""

    def __init__(self, initial_capacity: int = 0) -> None:
        if initial_capacity < 0:
            raise ValueError("initial capacity must not be negative")
        self._initial_capacity = initial_capacity
        self._entries: Dict[Tuple[MacAddress, int], FdbEntry] = {}

    def learn_mac(self, mac: MacAddress, port: int, vlan_id: int) -> bool:
        """Learn or refresh a dynamic entry; ``True`` if a new entry was created.

        An existing static entry for the same MAC and VLAN is left unchanged.
        """
        now = time.monotonic()
        entry = self._entries.get((mac, vlan_id))
        if entry is None:
            self._entries[(mac, vlan_id)] = FdbEntry(mac, port, vlan_id, now)
            return True
        if entry.is_static:
            return False
        if entry.port != port:
            log.debug("MAC %s on VLAN %d moved from port %d to %d",
                      mac, vlan_id, entry.port, port)
        entry.port = port
        entry.timestamp = now
        return False

    def add_static_entry(self, mac: MacAddress, port: int, vlan_id: int) -> None:
        """Add or replace an entry that is never aged out."""
        self._entries[(mac, vlan_id)] = FdbEntry(
            mac, port, vlan_id, time.monotonic(), is_static=True
        )

    def lookup_port(self, mac: MacAddress, vlan_id: int) -> Optional[int]:
        entry = self._entries.get((mac, vlan_id))
        return entry.port if entry is not None else None

    def age_entries(
        self, max_age: Union[float, timedelta] = DEFAULT_MAX_AGE_SECONDS
    ) -> int:
        """Drop dynamic entries older than ``max_age``; return how many went."""
        limit = max_age.total_seconds() if isinstance(max_age, timedelta) else max_age
        now = time.monotonic()
        return self._remove_where(
            lambda e: not e.is_static and now - e.timestamp > limit
        )

    def flush_port(self, port: int) -> int:
        """Drop every entry on ``port``; return how many went."""
        return self._remove_where(lambda e: e.port == port)

    def flush_vlan(self, vlan_id: int) -> int:
        """Drop every entry in ``vlan_id``; return how many went."""
        return self._remove_where(lambda e: e.vlan_id == vlan_id)

    def flush_all(self) -> None:
        self._entries.clear()

    def remove_entry(self, mac: MacAddress, vlan_id: int) -> bool:
        """Remove the entry for ``mac`` in ``vlan_id``; ``False`` if absent."""
        return self._entries.pop((mac, vlan_id), None) is not None

    def _remove_where(self, predicate) -> int:
        doomed = [key for key, entry in self._entries.items() if predicate(entry)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    @property
    def entries(self) -> Tuple[FdbEntry, ...]:
        """All entries, in the order they were first added."""
        return tuple(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def capacity(self) -> int:
        return max(self._initial_capacity, len(self._entries))

    @property
    def load_factor(self) -> float:
        capacity = self.capacity
        return len(self._entries) / capacity if capacity else 0.0