"""A static IPv4 routing table with longest-prefix-match lookups."""

from __future__ import annotations

import ipaddress
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

Address = Union[int, str, ipaddress.IPv4Address]


def _as_int(value: Address) -> int:
    return int(ipaddress.IPv4Address(value))


@dataclass(frozen=True)
class RouteEntry:
    """A route; addresses are host-order integers."""

    destination_network: int
    subnet_mask: int
    next_hop_ip: int
    egress_interface_id: int
    metric: int = 1

    @property
    def prefix_length(self) -> int:
        return self.subnet_mask.bit_count()


def _route_order(entry: RouteEntry) -> Tuple[int, int, int]:
    return (-entry.prefix_length, entry.metric, entry.destination_network)


class RoutingManager:
    """A thread-safe table of static routes kept in lookup order.

    Routes are ordered by prefix length (longest first), then by metric
    (lowest first), then by destination network.
    """

    def __init__(self) -> None:
        self._table: List[RouteEntry] = []
        self._lock = threading.Lock()

    def add_static_route(
        self,
        destination_network: Address,
        subnet_mask: Address,
        next_hop_ip: Address,
        egress_interface_id: int,
        metric: int = 1,
    ) -> None:
        """Add a route; the destination is masked down to its network address.

        A route with the same network, mask, next hop and interface as an
        existing one is ignored.
        """
        mask = _as_int(subnet_mask)
        network = _as_int(destination_network) & mask
        next_hop = _as_int(next_hop_ip)
        with self._lock:
            for entry in self._table:
                if (
                    entry.destination_network == network
                    and entry.subnet_mask == mask
                    and entry.next_hop_ip == next_hop
                    and entry.egress_interface_id == egress_interface_id
                ):
                    return
            self._table.append(
                RouteEntry(network, mask, next_hop, egress_interface_id, metric)
            )
            self._table.sort(key=_route_order)

    def remove_static_route(
        self, destination_network: Address, subnet_mask: Address
    ) -> None:
        """Remove every route for the given network and mask."""
        mask = _as_int(subnet_mask)
        network = _as_int(destination_network) & mask
        with self._lock:
            self._table = [
                entry
                for entry in self._table
                if not (
                    entry.destination_network == network and entry.subnet_mask == mask
                )
            ]

    def lookup_route(self, destination_ip: Address) -> Optional[RouteEntry]:
        """The best route to ``destination_ip``, or ``None`` if none covers it."""
        address = _as_int(destination_ip)
        with self._lock:
            for entry in self._table:
                if address & entry.subnet_mask == entry.destination_network:
                    return entry
        return None

    @property
    def routing_table(self) -> Tuple[RouteEntry, ...]:
        """A snapshot of the routes in lookup order."""
        with self._lock:
            return tuple(self._table)