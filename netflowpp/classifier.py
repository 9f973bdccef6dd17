"""Flow extraction and masked, prioritised classification of frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from netflowpp.headers import (
    ETHERTYPE_IPV4,
    ETHERTYPE_IPV6,
    IPPROTO_TCP,
    IPPROTO_UDP,
    MacAddress,
)
from netflowpp.packet import Packet

_ZERO_IPV6 = bytes(16)


@dataclass(frozen=True)
class FlowKey:
    """The fields that identify a flow; numbers are host-order integers."""

    src_mac: MacAddress = field(default_factory=MacAddress)
    dst_mac: MacAddress = field(default_factory=MacAddress)
    vlan_id: int = 0
    ethertype: int = 0
    src_ip: int = 0
    dst_ip: int = 0
    src_ipv6: bytes = _ZERO_IPV6
    dst_ipv6: bytes = _ZERO_IPV6
    protocol: int = 0
    src_port: int = 0
    dst_port: int = 0
    is_ipv6: bool = False

    def __post_init__(self) -> None:
        for name in ("src_ipv6", "dst_ipv6"):
            value = bytes(getattr(self, name))
            if len(value) != 16:
                raise ValueError(f"{name} needs 16 bytes, got {len(value)}")
            object.__setattr__(self, name, value)


@dataclass(frozen=True)
class ClassificationRule:
    """A template and mask over flow keys; a match yields ``action_id``.

    Integer fields match where the mask has bits set; MAC and IPv6 fields match
    exactly when their mask is non-zero; ``mask.is_ipv6`` makes the IP version
    significant.
    """

    key_template: FlowKey
    mask: FlowKey
    action_id: int
    priority: int = 0


class PacketClassifier:
    """Classifies frames against rules evaluated in descending priority."""

    def __init__(self) -> None:
        self._rules: List[ClassificationRule] = []

    def extract_flow_key(self, pkt: Packet) -> FlowKey:
        """Build the flow key of a frame; missing fields stay zero."""
        values: dict = {}
        ethertype = 0
        eth = pkt.ethernet()
        if eth is not None:
            values["src_mac"] = eth.src_mac
            values["dst_mac"] = eth.dst_mac
            ethertype = eth.ethertype
            if pkt.has_vlan():
                values["vlan_id"] = pkt.vlan_id() or 0
                tag = pkt.vlan()
                if tag is not None:
                    ethertype = tag.ethertype
        values["ethertype"] = ethertype

        protocol = None
        if ethertype == ETHERTYPE_IPV4:
            ip4 = pkt.ipv4()
            if ip4 is not None:
                values.update(src_ip=ip4.src_ip, dst_ip=ip4.dst_ip, protocol=ip4.protocol)
                protocol = ip4.protocol
        elif ethertype == ETHERTYPE_IPV6:
            values["is_ipv6"] = True
            ip6 = pkt.ipv6()
            if ip6 is not None:
                values.update(
                    src_ipv6=ip6.src_ip, dst_ipv6=ip6.dst_ip, protocol=ip6.next_header
                )
                protocol = ip6.next_header

        if protocol == IPPROTO_TCP:
            l4 = pkt.tcp()
        elif protocol == IPPROTO_UDP:
            l4 = pkt.udp()
        else:
            l4 = None
        if l4 is not None:
            values.update(src_port=l4.src_port, dst_port=l4.dst_port)
        return FlowKey(**values)

    @staticmethod
    def hash_flow(key: FlowKey) -> int:
        """A 32-bit XOR-folding hash of a flow key."""
        value = 0
        for i, (src, dst) in enumerate(zip(key.src_mac.octets, key.dst_mac.octets)):
            shift = (i % 4) * 8
            value ^= (src << shift) ^ (dst << shift)
        value ^= key.vlan_id & 0xFFFF
        value ^= (key.ethertype & 0xFFFF) << 16
        if key.is_ipv6:
            for i, (src, dst) in enumerate(zip(key.src_ipv6, key.dst_ipv6)):
                shift = (i % 4) * 8
                value ^= (src << shift) ^ (dst << shift)
        else:
            value ^= key.src_ip & 0xFFFFFFFF
            value ^= key.dst_ip & 0xFFFFFFFF
        value ^= key.protocol & 0xFF
        value ^= (key.src_port & 0xFFFF) << 16
        value ^= key.dst_port & 0xFFFF
        return value & 0xFFFFFFFF

    def add_rule(self, rule: ClassificationRule) -> None:
        self._rules.append(rule)
        self._rules.sort(key=lambda r: -r.priority)

    def classify(self, pkt: Packet) -> int:
        """Return the action ID of the first matching rule, or 0."""
        key = self.extract_flow_key(pkt)
        for rule in self._rules:
            if self.match_key(key, rule.key_template, rule.mask):
                return rule.action_id
        return 0

    @property
    def rules(self) -> Tuple[ClassificationRule, ...]:
        """The rules in evaluation order."""
        return tuple(self._rules)

    def match_key(self, extracted: FlowKey, template: FlowKey, mask: FlowKey) -> bool:
        """Whether ``extracted`` agrees with ``template`` wherever ``mask`` selects."""

        def differs(a: int, b: int, m: int) -> bool:
            return ((a ^ b) & m) != 0

        if differs(extracted.vlan_id, template.vlan_id, mask.vlan_id):
            return False
        if differs(extracted.ethertype, template.ethertype, mask.ethertype):
            return False
        if not mask.src_mac.is_zero() and extracted.src_mac != template.src_mac:
            return False
        if not mask.dst_mac.is_zero() and extracted.dst_mac != template.dst_mac:
            return False
        if mask.is_ipv6 and extracted.is_ipv6 != template.is_ipv6:
            return False

        if extracted.is_ipv6:
            if mask.src_ipv6 != _ZERO_IPV6 and extracted.src_ipv6 != template.src_ipv6:
                return False
            if mask.dst_ipv6 != _ZERO_IPV6 and extracted.dst_ipv6 != template.dst_ipv6:
                return False
        else:
            if differs(extracted.src_ip, template.src_ip, mask.src_ip):
                return False
            if differs(extracted.dst_ip, template.dst_ip, mask.dst_ip):
                return False

        if differs(extracted.protocol, template.protocol, mask.protocol):
            return False
        if differs(extracted.src_port, template.src_port, mask.src_port):
            return False
        if differs(extracted.dst_port, template.dst_port, mask.dst_port):
            return False
        return True