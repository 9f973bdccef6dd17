"""Per-port 802.1Q configuration and the ingress/egress tagging rules."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Optional

from netflowpp.packet import Packet


class PortType(Enum):
    ACCESS = "access"
    TRUNK = "trunk"
    HYBRID = "hybrid"


class PacketAction(Enum):
    FORWARD = "forward"
    DROP = "drop"


@dataclass(frozen=True)
class PortConfig:
    """VLAN membership of one port.

    An access port belongs only to its native VLAN. Trunk and hybrid ports
    carry ``allowed_vlans``; ``tag_native`` keeps native VLAN frames tagged
    on egress.
    """

    type: PortType = PortType.ACCESS
    native_vlan: int = 1
    allowed_vlans: FrozenSet[int] = field(default_factory=frozenset)
    tag_native: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_vlans", frozenset(self.allowed_vlans))

    def allows(self, vlan_id: int) -> bool:
        if self.type is PortType.ACCESS:
            return vlan_id == self.native_vlan
        return vlan_id in self.allowed_vlans


class VlanManager:
    """Holds port VLAN configuration and applies it to frames."""

    def __init__(self) -> None:
        self._ports: Dict[int, PortConfig] = {}

    def configure_port(self, port_id: int, config: PortConfig) -> None:
        """Store a port's configuration; an access port allows only its native VLAN."""
        if config.type is PortType.ACCESS:
            config = replace(config, allowed_vlans=frozenset({config.native_vlan}))
        self._ports[port_id] = config

    def get_port_config(self, port_id: int) -> Optional[PortConfig]:
        return self._ports.get(port_id)

    def should_forward(
        self, ingress_port_id: int, egress_port_id: int, vlan_id: int
    ) -> bool:
        """Whether ``vlan_id`` may pass from the ingress to the egress port."""
        ingress = self._ports.get(ingress_port_id)
        egress = self._ports.get(egress_port_id)
        if ingress is None or egress is None:
            return False
        return ingress.allows(vlan_id) and egress.allows(vlan_id)

    def process_ingress(self, pkt: Packet, port_id: int) -> PacketAction:
        """Admit or drop a frame arriving on ``port_id``.

        Untagged frames on an access port are tagged with its native VLAN.
        """
        config = self._ports.get(port_id)
        if config is None:
            return PacketAction.DROP

        tagged = pkt.has_vlan()
        vlan_id = pkt.vlan_id() or 0

        if config.type is PortType.ACCESS:
            if tagged:
                if vlan_id != config.native_vlan:
                    return PacketAction.DROP
            elif not pkt.push_vlan(config.native_vlan, 0):
                return PacketAction.DROP
            if config.native_vlan not in config.allowed_vlans:
                return PacketAction.DROP
        else:
            wanted = vlan_id if tagged else config.native_vlan
            if wanted not in config.allowed_vlans:
                return PacketAction.DROP
        return PacketAction.FORWARD

    def process_egress(self, pkt: Packet, port_id: int) -> None:
        """Strip the tag where the egress port sends that VLAN untagged."""
        config = self._ports.get(port_id)
        if config is None:
            return
        vlan_id = pkt.vlan_id()
        if vlan_id is None:
            return
        if config.type is PortType.ACCESS:
            if vlan_id == config.native_vlan:
                pkt.pop_vlan()
        elif vlan_id == config.native_vlan and not config.tag_native:
            pkt.pop_vlan()