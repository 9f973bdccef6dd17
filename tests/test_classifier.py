import dataclasses
import ipaddress

import pytest

from netflowpp.classifier import ClassificationRule, FlowKey, PacketClassifier
from netflowpp.headers import (
    ETHERTYPE_IPV4,
    ETHERTYPE_IPV6,
    ETHERTYPE_VLAN,
    IPPROTO_TCP,
    IPPROTO_UDP,
    EthernetHeader,
    IPv4Header,
    IPv6Header,
    MacAddress,
    TcpHeader,
    UdpHeader,
    VlanHeader,
)
from netflowpp.packet import Packet

SRC_MAC = MacAddress.from_string("02:00:00:00:00:0a")
DST_MAC = MacAddress.from_string("02:00:00:00:00:0b")
SRC_IP = int(ipaddress.IPv4Address("10.0.0.5"))
DST_IP = int(ipaddress.IPv4Address("10.0.0.9"))
SRC_IP6 = ipaddress.IPv6Address("2001:db8::1").packed
DST_IP6 = ipaddress.IPv6Address("2001:db8::2").packed


def ip4_frame(protocol=IPPROTO_TCP, sport=40000, dport=443, vlan=None, src_ip=SRC_IP):
    if protocol == IPPROTO_UDP:
        l4 = UdpHeader(sport, dport, UdpHeader.SIZE).to_bytes()
    else:
        l4 = TcpHeader(src_port=sport, dst_port=dport).to_bytes()
    ip = IPv4Header(
        total_length=IPv4Header.SIZE + len(l4), ttl=64, protocol=protocol,
        src_ip=src_ip, dst_ip=DST_IP,
    ).to_bytes()
    if vlan is None:
        l2 = EthernetHeader(DST_MAC, SRC_MAC, ETHERTYPE_IPV4).to_bytes()
    else:
        l2 = EthernetHeader(DST_MAC, SRC_MAC, ETHERTYPE_VLAN).to_bytes()
        l2 += VlanHeader(vlan, ETHERTYPE_IPV4).to_bytes()
    return Packet(l2 + ip + l4)


def ip6_frame(sport=40000, dport=443):
    l4 = TcpHeader(src_port=sport, dst_port=dport).to_bytes()
    ip = IPv6Header(
        payload_length=len(l4), next_header=IPPROTO_TCP, hop_limit=64,
        src_ip=SRC_IP6, dst_ip=DST_IP6,
    ).to_bytes()
    return Packet(EthernetHeader(DST_MAC, SRC_MAC, ETHERTYPE_IPV6).to_bytes() + ip + l4)


def test_extract_ipv4_tcp():
    key = PacketClassifier().extract_flow_key(ip4_frame(sport=40000, dport=443))
    assert key == FlowKey(
        src_mac=SRC_MAC, dst_mac=DST_MAC, ethertype=ETHERTYPE_IPV4,
        src_ip=SRC_IP, dst_ip=DST_IP, protocol=IPPROTO_TCP,
        src_port=40000, dst_port=443,
    )


def test_extract_vlan_udp():
    key = PacketClassifier().extract_flow_key(
        ip4_frame(IPPROTO_UDP, sport=5000, dport=53, vlan=42)
    )
    assert key.vlan_id == 42
    assert key.ethertype == ETHERTYPE_IPV4
    assert (key.protocol, key.src_port, key.dst_port) == (IPPROTO_UDP, 5000, 53)
    assert key.is_ipv6 is False


def test_extract_ipv6_tcp():
    key = PacketClassifier().extract_flow_key(ip6_frame(sport=1111, dport=2222))
    assert key.is_ipv6 is True
    assert key.src_ipv6 == SRC_IP6
    assert key.dst_ipv6 == DST_IP6
    assert (key.protocol, key.src_port, key.dst_port) == (IPPROTO_TCP, 1111, 2222)
    assert key.src_ip == 0


def test_extract_short_frame_is_empty_key():
    assert PacketClassifier().extract_flow_key(Packet(bytes(6))) == FlowKey()


def test_no_rules_classifies_zero():
    assert PacketClassifier().classify(ip4_frame()) == 0


def test_port_rule():
    classifier = PacketClassifier()
    classifier.add_rule(ClassificationRule(
        FlowKey(dst_port=443), FlowKey(dst_port=0xFFFF), action_id=7, priority=1,
    ))
    assert classifier.classify(ip4_frame(dport=443)) == 7
    assert classifier.classify(ip4_frame(dport=80)) == 0


def test_rules_sorted_by_priority():
    classifier = PacketClassifier()
    for prio, action in [(1, 10), (5, 50), (3, 30)]:
        classifier.add_rule(ClassificationRule(FlowKey(), FlowKey(), action, prio))
    assert [r.priority for r in classifier.rules] == [5, 3, 1]
    assert classifier.classify(ip4_frame()) == 50


def test_prefix_mask_on_source_ip():
    net = int(ipaddress.IPv4Address("10.0.0.0"))
    mask = int(ipaddress.IPv4Address("255.255.255.0"))
    classifier = PacketClassifier()
    classifier.add_rule(ClassificationRule(FlowKey(src_ip=net), FlowKey(src_ip=mask), 3))
    assert classifier.classify(ip4_frame(src_ip=SRC_IP)) == 3
    other = int(ipaddress.IPv4Address("10.0.1.5"))
    assert classifier.classify(ip4_frame(src_ip=other)) == 0


def test_mac_mask_requires_exact_match():
    classifier = PacketClassifier()
    full = MacAddress.from_string("ff:ff:ff:ff:ff:ff")
    extracted = classifier.extract_flow_key(ip4_frame())
    assert classifier.match_key(extracted, FlowKey(src_mac=SRC_MAC), FlowKey(src_mac=full))
    assert not classifier.match_key(
        extracted, FlowKey(src_mac=DST_MAC), FlowKey(src_mac=full)
    )
    assert classifier.match_key(extracted, FlowKey(src_mac=DST_MAC), FlowKey())


def test_ip_version_mask():
    classifier = PacketClassifier()
    classifier.add_rule(ClassificationRule(
        FlowKey(is_ipv6=True), FlowKey(is_ipv6=True), action_id=6,
    ))
    assert classifier.classify(ip6_frame()) == 6
    assert classifier.classify(ip4_frame()) == 0


def test_ipv6_address_mask():
    classifier = PacketClassifier()
    extracted = classifier.extract_flow_key(ip6_frame())
    full = b"\xff" * 16
    assert classifier.match_key(
        extracted, FlowKey(dst_ipv6=DST_IP6), FlowKey(dst_ipv6=full)
    )
    assert not classifier.match_key(
        extracted, FlowKey(dst_ipv6=SRC_IP6), FlowKey(dst_ipv6=full)
    )


def test_hash_of_empty_key_is_zero():
    assert PacketClassifier.hash_flow(FlowKey()) == 0


def test_hash_is_deterministic_and_32_bit():
    key = PacketClassifier().extract_flow_key(ip6_frame())
    value = PacketClassifier.hash_flow(key)
    assert value == PacketClassifier.hash_flow(dataclasses.replace(key))
    assert 0 <= value <= 0xFFFFFFFF


def test_hash_symmetric_in_addresses():
    key = PacketClassifier().extract_flow_key(ip4_frame())
    swapped = dataclasses.replace(
        key, src_mac=key.dst_mac, dst_mac=key.src_mac,
        src_ip=key.dst_ip, dst_ip=key.src_ip,
    )
    assert PacketClassifier.hash_flow(swapped) == PacketClassifier.hash_flow(key)


def test_hash_changes_with_port():
    key = FlowKey(dst_port=80)
    assert PacketClassifier.hash_flow(key) != PacketClassifier.hash_flow(
        dataclasses.replace(key, dst_port=81)
    )


def test_flow_key_rejects_bad_ipv6_length():
    with pytest.raises(ValueError):
        FlowKey(src_ipv6=bytes(4))