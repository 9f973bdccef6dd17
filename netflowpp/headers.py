"""Wire formats of the link, network and transport headers a switch inspects.

Every header is an immutable value holding its fields in host order.
``from_bytes`` reads the fixed part of a header out of a buffer and
``to_bytes`` packs it back into network byte order.
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field
from typing import ClassVar, Union

Buffer = Union[bytes, bytearray, memoryview]

ETHERTYPE_IPV4 = 0x0800
ETHERTYPE_ARP = 0x0806
ETHERTYPE_VLAN = 0x8100
ETHERTYPE_IPV6 = 0x86DD

IPPROTO_ICMP = 1
IPPROTO_TCP = 6
IPPROTO_UDP = 17

_MAC_PART = re.compile(r"[0-9A-Fa-f]{2}")


def _unpack(layout: struct.Struct, data: Buffer, offset: int, name: str) -> tuple:
    if offset < 0 or offset + layout.size > len(data):
        raise ValueError(
            f"{name} needs {layout.size} bytes at offset {offset}, "
            f"buffer holds {len(data)}"
        )
    return layout.unpack_from(data, offset)


def internet_checksum(data: Buffer) -> int:
    """Return the RFC 1071 ones'-complement checksum of ``data``."""
    raw = bytes(data)
    if len(raw) % 2:
        raw += b"\x00"
    total = sum(word for (word,) in struct.iter_unpack("!H", raw))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


@dataclass(frozen=True, order=True)
class MacAddress:
    """A 48-bit Ethernet hardware address."""

    octets: bytes = bytes(6)

    def __post_init__(self) -> None:
        if not isinstance(self.octets, (bytes, bytearray, memoryview)):
            raise TypeError("MAC address octets must be bytes")
        octets = bytes(self.octets)
        if len(octets) != 6:
            raise ValueError(f"MAC address needs 6 octets, got {len(octets)}")
        object.__setattr__(self, "octets", octets)

    @classmethod
    def from_string(cls, text: str) -> MacAddress:
        """Parse ``aa:bb:cc:dd:ee:ff`` (or with ``-`` separators)."""
        parts = re.split(r"[:-]", text.strip())
        if len(parts) != 6 or not all(_MAC_PART.fullmatch(p) for p in parts):
            raise ValueError(f"invalid MAC address: {text!r}")
        return cls(bytes.fromhex("".join(parts)))

    def is_zero(self) -> bool:
        return not any(self.octets)

    def __bytes__(self) -> bytes:
        return self.octets

    def __str__(self) -> str:
        return ":".join(f"{b:02x}" for b in self.octets)


_ETHERNET = struct.Struct("!6s6sH")


@dataclass(frozen=True)
class EthernetHeader:
    dst_mac: MacAddress = field(default_factory=MacAddress)
    src_mac: MacAddress = field(default_factory=MacAddress)
    ethertype: int = 0

    SIZE: ClassVar[int] = _ETHERNET.size

    @classmethod
    def from_bytes(cls, data: Buffer, offset: int = 0) -> EthernetHeader:
        dst, src, ethertype = _unpack(_ETHERNET, data, offset, cls.__name__)
        return cls(MacAddress(dst), MacAddress(src), ethertype)

    def to_bytes(self) -> bytes:
        return _ETHERNET.pack(self.dst_mac.octets, self.src_mac.octets, self.ethertype)


_VLAN = struct.Struct("!HH")


@dataclass(frozen=True)
class VlanHeader:
    """An 802.1Q tag: TCI (PCP 3 bits, DEI 1 bit, VID 12 bits) and inner EtherType."""

    tci: int = 0
    ethertype: int = 0

    SIZE: ClassVar[int] = _VLAN.size

    @classmethod
    def from_bytes(cls, data: Buffer, offset: int = 0) -> VlanHeader:
        return cls(*_unpack(_VLAN, data, offset, cls.__name__))

    def to_bytes(self) -> bytes:
        return _VLAN.pack(self.tci, self.ethertype)

    @property
    def vlan_id(self) -> int:
        return self.tci & 0x0FFF

    @property
    def priority(self) -> int:
        return (self.tci >> 13) & 0x07

    def with_tag(self, vlan_id: int, priority: int = 0) -> VlanHeader:
        """Return a copy with a new VLAN ID and priority; the DEI bit is kept."""
        tci = (self.tci & 0xF000) | (vlan_id & 0x0FFF)
        tci = (tci & 0x1FFF) | ((priority & 0x07) << 13)
        return VlanHeader(tci, self.ethertype)


_IPV4 = struct.Struct("!BBHHHBBHII")


@dataclass(frozen=True)
class IPv4Header:
    """The fixed 20-byte part of an IPv4 header; addresses are host-order ints."""

    version_ihl: int = 0x45
    dscp_ecn: int = 0
    total_length: int = 0
    identification: int = 0
    flags_fragment_offset: int = 0
    ttl: int = 0
    protocol: int = 0
    header_checksum: int = 0
    src_ip: int = 0
    dst_ip: int = 0

    SIZE: ClassVar[int] = _IPV4.size
    MIN_SIZE: ClassVar[int] = _IPV4.size

    @classmethod
    def from_bytes(cls, data: Buffer, offset: int = 0) -> IPv4Header:
        return cls(*_unpack(_IPV4, data, offset, cls.__name__))

    def to_bytes(self) -> bytes:
        return _IPV4.pack(
            self.version_ihl,
            self.dscp_ecn,
            self.total_length,
            self.identification,
            self.flags_fragment_offset,
            self.ttl,
            self.protocol,
            self.header_checksum,
            self.src_ip,
            self.dst_ip,
        )

    @property
    def version(self) -> int:
        return (self.version_ihl & 0xF0) >> 4

    @property
    def header_length(self) -> int:
        """Header length in bytes, options included, as given by the IHL field."""
        return (self.version_ihl & 0x0F) * 4


_IPV6 = struct.Struct("!IHBB16s16s")


@dataclass(frozen=True)
class IPv6Header:
    version_tc_flowlabel: int = 0x60000000
    payload_length: int = 0
    next_header: int = 0
    hop_limit: int = 0
    src_ip: bytes = bytes(16)
    dst_ip: bytes = bytes(16)

    SIZE: ClassVar[int] = _IPV6.size

    def __post_init__(self) -> None:
        for name in ("src_ip", "dst_ip"):
            value = bytes(getattr(self, name))
            if len(value) != 16:
                raise ValueError(f"IPv6 {name} needs 16 bytes, got {len(value)}")
            object.__setattr__(self, name, value)

    @classmethod
    def from_bytes(cls, data: Buffer, offset: int = 0) -> IPv6Header:
        return cls(*_unpack(_IPV6, data, offset, cls.__name__))

    def to_bytes(self) -> bytes:
        return _IPV6.pack(
            self.version_tc_flowlabel,
            self.payload_length,
            self.next_header,
            self.hop_limit,
            self.src_ip,
            self.dst_ip,
        )

    @property
    def version(self) -> int:
        return (self.version_tc_flowlabel >> 28) & 0x0F


_TCP = struct.Struct("!HHIIBBHHH")


@dataclass(frozen=True)
class TcpHeader:
    """The fixed 20-byte part of a TCP header."""

    src_port: int = 0
    dst_port: int = 0
    seq_number: int = 0
    ack_number: int = 0
    offset_reserved: int = 0x50
    flags: int = 0
    window_size: int = 0
    checksum: int = 0
    urgent_pointer: int = 0

    SIZE: ClassVar[int] = _TCP.size
    MIN_SIZE: ClassVar[int] = _TCP.size

    @classmethod
    def from_bytes(cls, data: Buffer, offset: int = 0) -> TcpHeader:
        return cls(*_unpack(_TCP, data, offset, cls.__name__))

    def to_bytes(self) -> bytes:
        return _TCP.pack(
            self.src_port,
            self.dst_port,
            self.seq_number,
            self.ack_number,
            self.offset_reserved,
            self.flags,
            self.window_size,
            self.checksum,
            self.urgent_pointer,
        )

    @property
    def header_length(self) -> int:
        """Header length in bytes, as given by the data offset field."""
        return ((self.offset_reserved & 0xF0) >> 4) * 4


_UDP = struct.Struct("!HHHH")


@dataclass(frozen=True)
class UdpHeader:
    src_port: int = 0
    dst_port: int = 0
    length: int = 0
    checksum: int = 0

    SIZE: ClassVar[int] = _UDP.size

    @classmethod
    def from_bytes(cls, data: Buffer, offset: int = 0) -> UdpHeader:
        return cls(*_unpack(_UDP, data, offset, cls.__name__))

    def to_bytes(self) -> bytes:
        return _UDP.pack(self.src_port, self.dst_port, self.length, self.checksum)


_ARP = struct.Struct("!HHBBH6sI6sI")


@dataclass(frozen=True)
class ArpHeader:
    """An ARP message for Ethernet/IPv4; addresses are host-order ints."""

    hardware_type: int = 1
    protocol_type: int = ETHERTYPE_IPV4
    hardware_addr_len: int = 6
    protocol_addr_len: int = 4
    opcode: int = 0
    sender_mac: MacAddress = field(default_factory=MacAddress)
    sender_ip: int = 0
    target_mac: MacAddress = field(default_factory=MacAddress)
    target_ip: int = 0

    SIZE: ClassVar[int] = _ARP.size

    @classmethod
    def from_bytes(cls, data: Buffer, offset: int = 0) -> ArpHeader:
        (htype, ptype, hlen, plen, opcode,
         sender_mac, sender_ip, target_mac, target_ip) = _unpack(
            _ARP, data, offset, cls.__name__
        )
        return cls(
            htype, ptype, hlen, plen, opcode,
            MacAddress(sender_mac), sender_ip, MacAddress(target_mac), target_ip,
        )

    def to_bytes(self) -> bytes:
        return _ARP.pack(
            self.hardware_type,
            self.protocol_type,
            self.hardware_addr_len,
            self.protocol_addr_len,
            self.opcode,
            self.sender_mac.octets,
            self.sender_ip,
            self.target_mac.octets,
            self.target_ip,
        )


_ICMP = struct.Struct("!BBHHH")


@dataclass(frozen=True)
class IcmpHeader:
    """An ICMPv4 header in its echo request/reply form."""

    icmp_type: int = 0
    code: int = 0
    checksum: int = 0
    identifier: int = 0
    sequence_number: int = 0

    TYPE_ECHO_REPLY: ClassVar[int] = 0
    TYPE_ECHO_REQUEST: ClassVar[int] = 8
    SIZE: ClassVar[int] = _ICMP.size
    MIN_SIZE: ClassVar[int] = _ICMP.size

    @classmethod
    def from_bytes(cls, data: Buffer, offset: int = 0) -> IcmpHeader:
        return cls(*_unpack(_ICMP, data, offset, cls.__name__))

    def to_bytes(self) -> bytes:
        return _ICMP.pack(
            self.icmp_type, self.code, self.checksum, self.identifier, self.sequence_number
        )