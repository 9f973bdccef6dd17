"""A mutable Ethernet frame with typed access to the headers it carries."""

from __future__ import annotations

import struct
from typing import Optional, Type, TypeVar, Union

from netflowpp.headers import (
    ETHERTYPE_ARP,
    ETHERTYPE_IPV4,
    ETHERTYPE_IPV6,
    ETHERTYPE_VLAN,
    IPPROTO_ICMP,
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

Buffer = Union[bytes, bytearray, memoryview]
H = TypeVar("H")

_TCP_CHECKSUM_OFFSET = 16
_UDP_CHECKSUM_OFFSET = 6
_ICMP_CHECKSUM_OFFSET = 2
_IPV4_CHECKSUM_OFFSET = 10


class Packet:
    """An Ethernet frame held in a byte buffer of bounded capacity.

    Header accessors return a parsed copy of the header, or ``None`` when the
    frame does not carry it or is too short to hold it. Changes go through the
    manipulation methods, which edit the underlying bytes.
    """

    def __init__(self, data: Buffer = b"", capacity: Optional[int] = None) -> None:
        self._buf = bytearray(data)
        if capacity is not None and capacity < len(self._buf):
            raise ValueError(
                f"capacity {capacity} is smaller than the frame length {len(self._buf)}"
            )
        self._capacity = capacity

    @property
    def data(self) -> bytes:
        """The frame's bytes as they stand."""
        return bytes(self._buf)

    @property
    def capacity(self) -> Optional[int]:
        """The largest length the frame may grow to, or ``None`` for no limit."""
        return self._capacity

    def __len__(self) -> int:
        return len(self._buf)

    def __repr__(self) -> str:
        return f"Packet({len(self._buf)} bytes)"

    def get_header(self, header_type: Type[H], offset: int = 0) -> Optional[H]:
        """Parse ``header_type`` at ``offset``, or return ``None`` if it does not fit."""
        try:
            return header_type.from_bytes(self._buf, offset)  # type: ignore[attr-defined]
        except ValueError:
            return None

    # --- L2 -----------------------------------------------------------------

    def ethernet(self) -> Optional[EthernetHeader]:
        return self.get_header(EthernetHeader, 0)

    def vlan(self) -> Optional[VlanHeader]:
        eth = self.ethernet()
        if eth is not None and eth.ethertype == ETHERTYPE_VLAN:
            return self.get_header(VlanHeader, EthernetHeader.SIZE)
        return None

    def has_vlan(self) -> bool:
        eth = self.ethernet()
        return eth is not None and eth.ethertype == ETHERTYPE_VLAN

    def vlan_id(self) -> Optional[int]:
        tag = self.vlan()
        return tag.vlan_id if tag is not None else None

    def vlan_priority(self) -> Optional[int]:
        tag = self.vlan()
        return tag.priority if tag is not None else None

    def src_mac(self) -> Optional[MacAddress]:
        eth = self.ethernet()
        return eth.src_mac if eth is not None else None

    def dst_mac(self) -> Optional[MacAddress]:
        eth = self.ethernet()
        return eth.dst_mac if eth is not None else None

    def _l2_size(self) -> int:
        if self.has_vlan():
            return EthernetHeader.SIZE + VlanHeader.SIZE
        return EthernetHeader.SIZE

    def _effective_ethertype(self) -> Optional[int]:
        """The EtherType of the payload, looking past one VLAN tag."""
        eth = self.ethernet()
        if eth is None:
            return None
        if eth.ethertype == ETHERTYPE_VLAN:
            tag = self.get_header(VlanHeader, EthernetHeader.SIZE)
            return tag.ethertype if tag is not None else None
        return eth.ethertype

    # --- L3 / L4 ------------------------------------------------------------

    def ipv4(self) -> Optional[IPv4Header]:
        if self._effective_ethertype() == ETHERTYPE_IPV4:
            return self.get_header(IPv4Header, self._l2_size())
        return None

    def ipv6(self) -> Optional[IPv6Header]:
        if self._effective_ethertype() == ETHERTYPE_IPV6:
            return self.get_header(IPv6Header, self._l2_size())
        return None

    def arp(self) -> Optional[ArpHeader]:
        if self._effective_ethertype() == ETHERTYPE_ARP:
            return self.get_header(ArpHeader, self._l2_size())
        return None

    def _l4_offset(self, protocol: int, allow_ipv6: bool = True) -> Optional[int]:
        """Offset of the transport header when the IP layer carries ``protocol``."""
        ethertype = self._effective_ethertype()
        l2 = self._l2_size()
        if ethertype == ETHERTYPE_IPV4:
            ip4 = self.get_header(IPv4Header, l2)
            if ip4 is not None and ip4.protocol == protocol:
                return l2 + ip4.header_length
        elif ethertype == ETHERTYPE_IPV6 and allow_ipv6:
            ip6 = self.get_header(IPv6Header, l2)
            if ip6 is not None and ip6.next_header == protocol:
                return l2 + IPv6Header.SIZE
        return None

    def tcp(self) -> Optional[TcpHeader]:
        offset = self._l4_offset(IPPROTO_TCP)
        return self.get_header(TcpHeader, offset) if offset is not None else None

    def udp(self) -> Optional[UdpHeader]:
        offset = self._l4_offset(IPPROTO_UDP)
        return self.get_header(UdpHeader, offset) if offset is not None else None

    def icmp(self) -> Optional[IcmpHeader]:
        # Only ICMPv4: ICMPv6 has its own protocol number and layout.
        offset = self._l4_offset(IPPROTO_ICMP, allow_ipv6=False)
        return self.get_header(IcmpHeader, offset) if offset is not None else None

    # --- manipulation -------------------------------------------------------

    def set_dst_mac(self, mac: MacAddress) -> bool:
        """Overwrite the destination MAC; ``False`` if there is no Ethernet header."""
        if self.ethernet() is None:
            return False
        self._buf[0:6] = mac.octets
        return True

    def push_vlan(self, vlan_id: int, priority: int = 0) -> bool:
        """Tag the frame, or retag it if it already carries a VLAN tag.

        Returns ``False`` when the frame is too short to hold an Ethernet
        header or when inserting a tag would exceed the capacity.
        """
        if len(self._buf) < EthernetHeader.SIZE:
            return False
        if self.has_vlan():
            tag = self.get_header(VlanHeader, EthernetHeader.SIZE)
            if tag is None:
                return False
            retagged = tag.with_tag(vlan_id, priority)
            self._buf[EthernetHeader.SIZE:EthernetHeader.SIZE + VlanHeader.SIZE] = (
                retagged.to_bytes()
            )
        else:
            if (
                self._capacity is not None
                and len(self._buf) + VlanHeader.SIZE > self._capacity
            ):
                return False
            original_ethertype = self._buf[12:14]
            inner_ethertype = struct.unpack("!H", original_ethertype)[0]
            tag = VlanHeader(0, inner_ethertype).with_tag(vlan_id, priority)
            self._buf[12:14] = struct.pack("!H", ETHERTYPE_VLAN)
            self._buf[EthernetHeader.SIZE:EthernetHeader.SIZE] = tag.to_bytes()
        self.update_checksums()
        return True

    def pop_vlan(self) -> bool:
        """Strip the outer VLAN tag; ``False`` if the frame carries none."""
        if not self.has_vlan():
            return False
        if len(self._buf) < EthernetHeader.SIZE + VlanHeader.SIZE:
            return False
        # The tag's inner EtherType takes the place of the outer one.
        inner_ethertype = self._buf[16:18]
        del self._buf[12:16]
        self._buf[12:14] = inner_ethertype
        self.update_checksums()
        return True

    def _write_u16(self, offset: int, value: int) -> None:
        struct.pack_into("!H", self._buf, offset, value)

    def update_checksums(self) -> None:
        """Recompute the IPv4 header checksum and the TCP, UDP or ICMP checksum."""
        l2 = self._l2_size()
        ip4 = self.get_header(IPv4Header, l2)
        ip6: Optional[IPv6Header] = None

        if ip4 is not None and ip4.version == 4:
            protocol = ip4.protocol
            l3_length = ip4.header_length
            l4_offset = l2 + l3_length
            if l3_length < IPv4Header.MIN_SIZE or l4_offset > len(self._buf):
                return
            self._write_u16(l2 + _IPV4_CHECKSUM_OFFSET, 0)
            self._write_u16(
                l2 + _IPV4_CHECKSUM_OFFSET,
                internet_checksum(self._buf[l2:l4_offset]),
            )
        else:
            ip4 = None
            if self._effective_ethertype() != ETHERTYPE_IPV6:
                return
            ip6 = self.get_header(IPv6Header, l2)
            if ip6 is None or ip6.version != 6:
                return
            protocol = ip6.next_header
            l3_length = IPv6Header.SIZE
            l4_offset = l2 + l3_length

        if protocol == IPPROTO_TCP:
            tcp = self.get_header(TcpHeader, l4_offset)
            if tcp is None:
                return
            if ip4 is not None:
                if ip4.total_length < l3_length:
                    return
                segment_length = (ip4.total_length - l3_length) & 0xFFFF
            else:
                segment_length = ip6.payload_length  # type: ignore[union-attr]
            if segment_length < tcp.header_length:
                return
            if l4_offset + segment_length > len(self._buf):
                return
            self._write_u16(l4_offset + _TCP_CHECKSUM_OFFSET, 0)
            pseudo = _pseudo_header(ip4, ip6, protocol, segment_length)
            segment = bytes(self._buf[l4_offset:l4_offset + segment_length])
            self._write_u16(
                l4_offset + _TCP_CHECKSUM_OFFSET, internet_checksum(pseudo + segment)
            )
        elif protocol == IPPROTO_UDP:
            udp = self.get_header(UdpHeader, l4_offset)
            if udp is None:
                return
            if udp.length < UdpHeader.SIZE:
                return
            if l4_offset + udp.length > len(self._buf):
                return
            self._write_u16(l4_offset + _UDP_CHECKSUM_OFFSET, 0)
            pseudo = _pseudo_header(ip4, ip6, protocol, udp.length)
            segment = bytes(self._buf[l4_offset:l4_offset + udp.length])
            # A computed zero is sent as all ones; zero means "no checksum".
            checksum = internet_checksum(pseudo + segment) or 0xFFFF
            self._write_u16(l4_offset + _UDP_CHECKSUM_OFFSET, checksum)
        elif protocol == IPPROTO_ICMP and ip4 is not None:
            if self.get_header(IcmpHeader, l4_offset) is None:
                return
            if ip4.total_length < l3_length:
                return
            message_length = ip4.total_length - l3_length
            if l4_offset + message_length > len(self._buf):
                return
            if message_length < IcmpHeader.MIN_SIZE:
                return
            self._write_u16(l4_offset + _ICMP_CHECKSUM_OFFSET, 0)
            self._write_u16(
                l4_offset + _ICMP_CHECKSUM_OFFSET,
                internet_checksum(self._buf[l4_offset:l4_offset + message_length]),
            )


def _pseudo_header(
    ip4: Optional[IPv4Header], ip6: Optional[IPv6Header], protocol: int, length: int
) -> bytes:
    """The pseudo header that TCP and UDP checksums cover."""
    if ip4 is not None:
        return struct.pack("!IIBBH", ip4.src_ip, ip4.dst_ip, 0, protocol, length & 0xFFFF)
    assert ip6 is not None
    return ip6.src_ip + ip6.dst_ip + struct.pack("!I3xB", length, ip6.next_header)