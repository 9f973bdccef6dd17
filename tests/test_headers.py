import ipaddress
import struct

import pytest

from netflowpp.headers import (
    ETHERTYPE_ARP,
    ETHERTYPE_IPV4,
    ETHERTYPE_IPV6,
    ETHERTYPE_VLAN,
    IPPROTO_TCP,
    IPPROTO_UDP,
    ArpHeader,
    EthernetHeader,
    IcmpHeader,
    IPv4Header,
    IPv6Header,
    MacAddress,
    TcpHeader,
    UdpHeader,
    VlanHeader,
    internet_checksum,
)

SRC_MAC = bytes([0x00, 0x11, 0x22, 0x33, 0x44, 0x55])
DST_MAC = bytes([0xAA, 0xBB, 0xCC, 0xDD, 0xEE, 0xFF])
SRC_IPV4 = ipaddress.IPv4Address("192.168.1.10")
DST_IPV4 = ipaddress.IPv4Address("192.168.1.20")
SRC_IPV6 = ipaddress.IPv6Address("2001:db8:85a3::8a2e:370:7334")
DST_IPV6 = ipaddress.IPv6Address("2001:db8:85a3::8a2e:370:7335")
SRC_PORT = 12345
DST_PORT = 80
VLAN_ID = 101
VLAN_PRIO = 5


def eth_ipv4_tcp(with_vlan=False):
    data = bytearray(DST_MAC + SRC_MAC)
    if with_vlan:
        data += bytes([0x81, 0x00]) + struct.pack("!H", (VLAN_PRIO << 13) | VLAN_ID)
    data += bytes([0x08, 0x00])
    data += bytes([0x45, 0x00, 0x00, 40, 0x00, 0x01, 0x00, 0x00, 0x40, 0x06, 0x00, 0x00])
    data += SRC_IPV4.packed + DST_IPV4.packed
    data += struct.pack("!HH", SRC_PORT, DST_PORT)
    data += bytes([0, 0, 0, 1, 0, 0, 0, 2, 0x50, 0x02, 0x72, 0x10, 0, 0, 0, 0])
    return bytes(data)


def eth_ipv6_tcp():
    data = bytearray(DST_MAC + SRC_MAC + bytes([0x86, 0xDD]))
    data += bytes([0x60, 0, 0, 0, 0, 20, 0x06, 0x40])
    data += SRC_IPV6.packed + DST_IPV6.packed
    data += struct.pack("!HH", SRC_PORT, DST_PORT)
    data += bytes([0, 0, 0, 1, 0, 0, 0, 2, 0x50, 0x02, 0x72, 0x10, 0, 0, 0, 0])
    return bytes(data)


def test_mac_string_round_trip():
    mac = MacAddress(SRC_MAC)
    assert str(mac) == "00:11:22:33:44:55"
    assert MacAddress.from_string(str(mac)) == mac
    assert MacAddress.from_string("AA-BB-CC-DD-EE-FF") == MacAddress(DST_MAC)


def test_mac_zero_default():
    assert MacAddress().is_zero()
    assert not MacAddress(SRC_MAC).is_zero()
    assert bytes(MacAddress()) == bytes(6)


@pytest.mark.parametrize("text", ["00:11:22:33:44", "00:11:22:33:44:5g", "", "001122334455"])
def test_mac_from_string_rejects_bad_text(text):
    with pytest.raises(ValueError):
        MacAddress.from_string(text)


def test_mac_rejects_wrong_length():
    with pytest.raises(ValueError):
        MacAddress(b"\x01\x02\x03")


def test_ethernet_parse_and_round_trip():
    data = eth_ipv4_tcp()
    eth = EthernetHeader.from_bytes(data)
    assert eth.src_mac == MacAddress(SRC_MAC)
    assert eth.dst_mac == MacAddress(DST_MAC)
    assert eth.ethertype == ETHERTYPE_IPV4
    assert eth.to_bytes() == data[: EthernetHeader.SIZE]
    assert EthernetHeader.SIZE == 14


def test_ethernet_arp_ethertype():
    data = DST_MAC + SRC_MAC + bytes([0x08, 0x06])
    assert EthernetHeader.from_bytes(data).ethertype == ETHERTYPE_ARP


def test_ethernet_too_short_raises():
    with pytest.raises(ValueError):
        EthernetHeader.from_bytes(bytes([1, 2, 3, 4, 5, 6]))


def test_vlan_fields():
    data = eth_ipv4_tcp(with_vlan=True)
    eth = EthernetHeader.from_bytes(data)
    assert eth.ethertype == ETHERTYPE_VLAN
    vlan = VlanHeader.from_bytes(data, EthernetHeader.SIZE)
    assert vlan.vlan_id == VLAN_ID
    assert vlan.priority == VLAN_PRIO
    assert vlan.ethertype == ETHERTYPE_IPV4
    assert vlan.to_bytes() == data[14:18]


def test_vlan_with_tag():
    vlan = VlanHeader.from_bytes(eth_ipv4_tcp(with_vlan=True), 14)
    retagged = vlan.with_tag(202, 2)
    assert retagged.vlan_id == 202
    assert retagged.priority == 2
    assert retagged.ethertype == vlan.ethertype


def test_vlan_with_tag_keeps_dei_bit():
    vlan = VlanHeader(tci=0x1000, ethertype=ETHERTYPE_IPV4)
    retagged = vlan.with_tag(VLAN_ID, VLAN_PRIO)
    assert retagged.tci & 0x1000
    assert retagged.vlan_id == VLAN_ID
    assert retagged.priority == VLAN_PRIO


def test_ipv4_parse():
    ip = IPv4Header.from_bytes(eth_ipv4_tcp(), EthernetHeader.SIZE)
    assert ip.src_ip == int(SRC_IPV4)
    assert ip.dst_ip == int(DST_IPV4)
    assert ip.protocol == IPPROTO_TCP
    assert ip.total_length == 40
    assert ip.header_length == 20
    assert ip.version == 4


def test_ipv4_round_trip():
    data = eth_ipv4_tcp()
    ip = IPv4Header.from_bytes(data, 14)
    assert ip.to_bytes() == data[14:34]
    assert IPv4Header.from_bytes(ip.to_bytes()) == ip


def test_ipv4_checksum_verifies_to_zero():
    data = eth_ipv4_tcp()
    ip = IPv4Header.from_bytes(data, 14)
    checksum = internet_checksum(ip.to_bytes())
    fixed = IPv4Header(**{**ip.__dict__, "header_checksum": checksum})
    assert internet_checksum(fixed.to_bytes()) == 0


def test_checksum_odd_length_pads_with_zero():
    assert internet_checksum(b"\x12\x34\x56") == internet_checksum(b"\x12\x34\x56\x00")


def test_checksum_of_empty():
    assert internet_checksum(b"") == 0xFFFF


def test_ipv6_parse_and_round_trip():
    data = eth_ipv6_tcp()
    assert EthernetHeader.from_bytes(data).ethertype == ETHERTYPE_IPV6
    ip6 = IPv6Header.from_bytes(data, 14)
    assert ip6.version == 6
    assert ip6.next_header == IPPROTO_TCP
    assert ip6.src_ip == SRC_IPV6.packed
    assert ip6.dst_ip == DST_IPV6.packed
    assert ip6.payload_length == 20
    assert ip6.to_bytes() == data[14:54]


def test_ipv6_rejects_bad_address_length():
    with pytest.raises(ValueError):
        IPv6Header(src_ip=b"\x00" * 4)


def test_tcp_parse_and_round_trip():
    data = eth_ipv4_tcp()
    tcp = TcpHeader.from_bytes(data, 34)
    assert tcp.src_port == SRC_PORT
    assert tcp.dst_port == DST_PORT
    assert tcp.header_length == 20
    assert tcp.flags == 0x02
    assert tcp.window_size == 0x7210
    assert tcp.to_bytes() == data[34:54]


def test_tcp_too_short_raises():
    with pytest.raises(ValueError):
        TcpHeader.from_bytes(eth_ipv4_tcp()[:50], 34)


def test_udp_parse_and_round_trip():
    raw = struct.pack("!HHHH", 54321, 53, 12, 0) + b"DATA"
    udp = UdpHeader.from_bytes(raw)
    assert (udp.src_port, udp.dst_port, udp.length) == (54321, 53, 12)
    assert udp.to_bytes() == raw[:8]
    assert IPPROTO_UDP == 17


def test_arp_round_trip():
    arp = ArpHeader(
        opcode=1,
        sender_mac=MacAddress(SRC_MAC),
        sender_ip=int(SRC_IPV4),
        target_ip=int(DST_IPV4),
    )
    raw = arp.to_bytes()
    assert len(raw) == ArpHeader.SIZE == 28
    assert ArpHeader.from_bytes(raw) == arp
    assert raw[14:18] == SRC_IPV4.packed


def test_icmp_round_trip():
    icmp = IcmpHeader(IcmpHeader.TYPE_ECHO_REQUEST, 0, 0, 7, 3)
    raw = icmp.to_bytes()
    assert raw[0] == 8
    assert IcmpHeader.from_bytes(raw) == icmp
    assert len(raw) == IcmpHeader.MIN_SIZE


def test_negative_offset_raises():
    with pytest.raises(ValueError):
        UdpHeader.from_bytes(bytes(16), -1)