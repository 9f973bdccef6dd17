"""Access control lists: prioritised rules that permit, deny or redirect frames."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from netflowpp.headers import (
    ETHERTYPE_IPV4,
    IPPROTO_TCP,
    IPPROTO_UDP,
    MacAddress,
)
from netflowpp.packet import Packet


class AclActionType(Enum):
    PERMIT = "permit"
    DENY = "deny"
    REDIRECT = "redirect"


@dataclass
class AclRule:
    """One ACL entry.

    A match field left as ``None`` is a wildcard. Numeric fields are host-order
    integers; IPv4 addresses match exactly. Rules with a higher ``priority``
    are evaluated first, ties broken by the lower ``rule_id``.
    """

    rule_id: int = 0
    priority: int = 0
    action: AclActionType = AclActionType.DENY
    src_mac: Optional[MacAddress] = None
    dst_mac: Optional[MacAddress] = None
    vlan_id: Optional[int] = None
    ethertype: Optional[int] = None
    src_ip: Optional[int] = None
    dst_ip: Optional[int] = None
    protocol: Optional[int] = None
    src_port: Optional[int] = None
    dst_port: Optional[int] = None
    redirect_port_id: Optional[int] = None

    @property
    def needs_ip(self) -> bool:
        """Whether the rule matches on any IPv4 or transport field."""
        return any(
            value is not None
            for value in (
                self.src_ip,
                self.dst_ip,
                self.protocol,
                self.src_port,
                self.dst_port,
            )
        )


@dataclass(frozen=True)
class AclDecision:
    """The outcome of evaluating a frame against the ACL."""

    action: AclActionType
    redirect_port_id: Optional[int] = None


def _evaluation_order(rule: AclRule) -> Tuple[int, int]:
    return (-rule.priority, rule.rule_id)


class AclManager:
    """An ordered table of ACL rules with a default-permit policy."""

    def __init__(self) -> None:
        self._rules: List[AclRule] = []

    def add_rule(self, rule: AclRule) -> bool:
        """Add a rule, replacing any rule with the same ID. Always returns ``True``."""
        self._rules = [r for r in self._rules if r.rule_id != rule.rule_id]
        self._rules.append(rule)
        self._rules.sort(key=_evaluation_order)
        return True

    def remove_rule(self, rule_id: int) -> bool:
        """Remove the rule with ``rule_id``; ``False`` if there was none."""
        kept = [r for r in self._rules if r.rule_id != rule_id]
        removed = len(kept) != len(self._rules)
        self._rules = kept
        return removed

    @property
    def rules(self) -> Tuple[AclRule, ...]:
        """The rules in evaluation order."""
        return tuple(self._rules)

    def clear_rules(self) -> None:
        self._rules.clear()

    def evaluate(self, pkt: Packet) -> AclDecision:
        """Return the action of the first matching rule, or PERMIT if none match.

        A REDIRECT rule without a target port is treated as DENY.
        """
        for rule in self._rules:
            if not _matches(pkt, rule):
                continue
            if rule.action is AclActionType.REDIRECT:
                if rule.redirect_port_id is None:
                    return AclDecision(AclActionType.DENY)
                return AclDecision(AclActionType.REDIRECT, rule.redirect_port_id)
            return AclDecision(rule.action)
        return AclDecision(AclActionType.PERMIT)


def _matches(pkt: Packet, rule: AclRule) -> bool:
    if rule.src_mac is not None and pkt.src_mac() != rule.src_mac:
        return False
    if rule.dst_mac is not None and pkt.dst_mac() != rule.dst_mac:
        return False
    if rule.vlan_id is not None and pkt.vlan_id() != rule.vlan_id:
        return False

    needs_ip = rule.needs_ip
    needs_l3 = needs_ip or rule.ethertype is not None

    effective_ethertype = 0
    eth = pkt.ethernet()
    if eth is None:
        if needs_l3:
            return False
    else:
        if pkt.has_vlan():
            tag = pkt.vlan()
            if tag is not None:
                effective_ethertype = tag.ethertype
            elif needs_l3:
                return False
        else:
            effective_ethertype = eth.ethertype
        if rule.ethertype is not None and effective_ethertype != rule.ethertype:
            return False

    if not needs_ip:
        return True

    if effective_ethertype != ETHERTYPE_IPV4:
        return False
    ip = pkt.ipv4()
    if ip is None:
        return False
    if rule.src_ip is not None and ip.src_ip != rule.src_ip:
        return False
    if rule.dst_ip is not None and ip.dst_ip != rule.dst_ip:
        return False
    if rule.protocol is not None and ip.protocol != rule.protocol:
        return False

    if rule.src_port is None and rule.dst_port is None:
        return True

    if ip.protocol == IPPROTO_TCP:
        l4 = pkt.tcp()
    elif ip.protocol == IPPROTO_UDP:
        l4 = pkt.udp()
    else:
        return False
    if l4 is None:
        return False
    if rule.src_port is not None and l4.src_port != rule.src_port:
        return False
    if rule.dst_port is not None and l4.dst_port != rule.dst_port:
        return False
    return True