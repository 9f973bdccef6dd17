"""Spanning Tree Protocol state: BPDUs, per-port information and bridge identity."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, Optional, Union

Buffer = Union[bytes, bytearray, memoryview]

PROTOCOL_ID = 0x0000
VERSION_ID_STP = 0x00
BPDU_TYPE_CONFIG = 0x00

FLAG_TOPOLOGY_CHANGE = 0x01
FLAG_TOPOLOGY_CHANGE_ACK = 0x80

MAX_BRIDGE_ID = 0xFFFF_FFFF_FFFF_FFFF
INFINITE_PATH_COST = 0xFFFF_FFFF
MAC_MASK = 0x0000_FFFF_FFFF_FFFF

DEFAULT_PORT_PATH_COST = 19
DEFAULT_PORT_PRIORITY = 128
DEFAULT_BRIDGE_PRIORITY = 32768
DEFAULT_HELLO_TIME = 2
DEFAULT_FORWARD_DELAY = 15
DEFAULT_MAX_AGE = 20

# Timer values in BPDUs are carried in units of 1/256 second.
TIMER_UNITS_PER_SECOND = 256


class PortRole(Enum):
    ROOT = "root"
    DESIGNATED = "designated"
    ALTERNATE = "alternate"
    BACKUP = "backup"
    DISABLED = "disabled"
    UNKNOWN = "unknown"


class PortState(Enum):
    DISABLED = "disabled"
    BLOCKING = "blocking"
    LISTENING = "listening"
    LEARNING = "learning"
    FORWARDING = "forwarding"
    UNKNOWN = "unknown"


@dataclass
class ReceivedBpduInfo:
    """The priority vector and timers carried by a configuration BPDU, host order.

    Timer fields are in 1/256 second units, as on the wire.
    """

    root_id: int = MAX_BRIDGE_ID
    root_path_cost: int = INFINITE_PATH_COST
    sender_bridge_id: int = MAX_BRIDGE_ID
    sender_port_id: int = 0xFFFF
    message_age: int = 0
    max_age: int = 0
    hello_time: int = 0
    forward_delay: int = 0
    tc_flag: bool = False
    tca_flag: bool = False

    def _priority_vector(self) -> tuple:
        return (
            self.root_id,
            self.root_path_cost,
            self.sender_bridge_id,
            self.sender_port_id,
        )

    def is_superior_to(self, other: ReceivedBpduInfo) -> bool:
        """Whether this priority vector is strictly better than ``other``'s."""
        return self._priority_vector() < other._priority_vector()


_BPDU = struct.Struct("!HBBBQIQHHHHH")


@dataclass(frozen=True)
class ConfigBpdu:
    """An 802.1D configuration BPDU; fields are host-order integers."""

    protocol_id: int = PROTOCOL_ID
    version_id: int = VERSION_ID_STP
    bpdu_type: int = BPDU_TYPE_CONFIG
    flags: int = 0
    root_id: int = 0
    root_path_cost: int = 0
    bridge_id: int = 0
    port_id: int = 0
    message_age: int = 0
    max_age: int = 0
    hello_time: int = 0
    forward_delay: int = 0

    SIZE: ClassVar[int] = _BPDU.size

    @classmethod
    def from_bytes(cls, data: Buffer) -> ConfigBpdu:
        if len(data) < _BPDU.size:
            raise ValueError(
                f"configuration BPDU needs {_BPDU.size} bytes, got {len(data)}"
            )
        return cls(*_BPDU.unpack_from(data, 0))

    def to_bytes(self) -> bytes:
        return _BPDU.pack(
            self.protocol_id,
            self.version_id,
            self.bpdu_type,
            self.flags,
            self.root_id,
            self.root_path_cost,
            self.bridge_id,
            self.port_id,
            self.message_age,
            self.max_age,
            self.hello_time,
            self.forward_delay,
        )

    @classmethod
    def for_sending(
        cls,
        source_info: ReceivedBpduInfo,
        bridge_id: int,
        port_id: int,
        message_age: int,
        max_age: int,
        hello_time: int,
        forward_delay: int,
    ) -> ConfigBpdu:
        """Build the BPDU this bridge sends, relaying the root information given."""
        flags = (FLAG_TOPOLOGY_CHANGE if source_info.tc_flag else 0) | (
            FLAG_TOPOLOGY_CHANGE_ACK if source_info.tca_flag else 0
        )
        return cls(
            flags=flags,
            root_id=source_info.root_id,
            root_path_cost=source_info.root_path_cost,
            bridge_id=bridge_id,
            port_id=port_id,
            message_age=message_age,
            max_age=max_age,
            hello_time=hello_time,
            forward_delay=forward_delay,
        )

    def to_received_bpdu_info(self) -> ReceivedBpduInfo:
        return ReceivedBpduInfo(
            root_id=self.root_id,
            root_path_cost=self.root_path_cost,
            sender_bridge_id=self.bridge_id,
            sender_port_id=self.port_id,
            message_age=self.message_age,
            max_age=self.max_age,
            hello_time=self.hello_time,
            forward_delay=self.forward_delay,
            tc_flag=bool(self.flags & FLAG_TOPOLOGY_CHANGE),
            tca_flag=bool(self.flags & FLAG_TOPOLOGY_CHANGE_ACK),
        )


@dataclass
class StpPortInfo:
    """Spanning tree state of one switch port."""

    port_id: int
    role: PortRole = PortRole.DISABLED
    state: PortState = PortState.DISABLED
    path_cost_to_segment: int = DEFAULT_PORT_PATH_COST
    designated_bridge_id_for_segment: int = 0
    designated_port_id_for_segment: int = 0
    path_cost_from_designated_bridge_to_root: int = INFINITE_PATH_COST
    message_age_timer_seconds: int = 0
    forward_delay_timer_seconds: int = 0
    hello_timer_seconds: int = 0
    new_bpdu_received_flag: bool = False
    port_priority: int = DEFAULT_PORT_PRIORITY
    received_bpdu: ReceivedBpduInfo = field(default_factory=ReceivedBpduInfo)

    @property
    def stp_port_id(self) -> int:
        """The 16-bit STP port identifier: priority nibble over a 12-bit port number."""
        return (((self.port_priority >> 4) & 0x0F) << 12) | (self.port_id & 0x0FFF)

    def has_valid_bpdu_info(self) -> bool:
        """Whether stored BPDU information exists and has not aged out."""
        return (
            self.received_bpdu.sender_bridge_id != MAX_BRIDGE_ID
            and self.message_age_timer_seconds
            < self.received_bpdu.max_age // TIMER_UNITS_PER_SECOND
        )

    @property
    def total_path_cost_to_root(self) -> int:
        """Root path cost through this port, or the infinite cost if unknown."""
        if self.path_cost_from_designated_bridge_to_root == INFINITE_PATH_COST:
            return INFINITE_PATH_COST
        return self.path_cost_from_designated_bridge_to_root + self.path_cost_to_segment


@dataclass
class BridgeConfig:
    """This bridge's identity and timers, and the root information it advertises."""

    bridge_mac_address: int
    bridge_priority: int = DEFAULT_BRIDGE_PRIORITY
    hello_time_seconds: int = DEFAULT_HELLO_TIME
    forward_delay_seconds: int = DEFAULT_FORWARD_DELAY
    max_age_seconds: int = DEFAULT_MAX_AGE
    our_bpdu_info: ReceivedBpduInfo = field(init=False)
    root_port_id: Optional[int] = field(default=None, init=False)

    def __post_init__(self) -> None:
        own_id = self.bridge_id
        self.our_bpdu_info = ReceivedBpduInfo(
            root_id=own_id,
            root_path_cost=0,
            sender_bridge_id=own_id,
            sender_port_id=0,
            message_age=0,
            max_age=self.max_age_seconds * TIMER_UNITS_PER_SECOND,
            hello_time=self.hello_time_seconds * TIMER_UNITS_PER_SECOND,
            forward_delay=self.forward_delay_seconds * TIMER_UNITS_PER_SECOND,
        )

    @property
    def bridge_id(self) -> int:
        """The 64-bit bridge identifier: 16-bit priority over the 48-bit MAC."""
        return ((self.bridge_priority & 0xFFFF) << 48) | (
            self.bridge_mac_address & MAC_MASK
        )

    def is_root_bridge(self) -> bool:
        return self.our_bpdu_info.root_id == self.bridge_id


class StpManager:
    """Per-port spanning tree state for one bridge."""

    def __init__(
        self,
        num_ports: int,
        switch_mac_address: int,
        switch_priority: int = DEFAULT_BRIDGE_PRIORITY,
    ) -> None:
        self._bridge = BridgeConfig(switch_mac_address, switch_priority)
        self._ports: Dict[int, StpPortInfo] = {}
        self.initialize_ports(num_ports)

    def initialize_ports(self, num_ports: int) -> None:
        """Reset every port to blocking, each believing this bridge is root."""
        bridge_id = self._bridge.bridge_id
        ours = self._bridge.our_bpdu_info
        self._ports = {}
        for port_id in range(num_ports):
            info = StpPortInfo(port_id, role=PortRole.DISABLED, state=PortState.BLOCKING)
            info.designated_bridge_id_for_segment = bridge_id
            info.designated_port_id_for_segment = info.stp_port_id
            info.path_cost_from_designated_bridge_to_root = 0
            info.received_bpdu = ReceivedBpduInfo(
                root_id=bridge_id,
                root_path_cost=0,
                sender_bridge_id=bridge_id,
                sender_port_id=info.stp_port_id,
                message_age=0,
                max_age=ours.max_age,
                hello_time=ours.hello_time,
                forward_delay=ours.forward_delay,
            )
            self._ports[port_id] = info

    def get_port_stp_state(self, port_id: int) -> PortState:
        info = self._ports.get(port_id)
        return info.state if info is not None else PortState.UNKNOWN

    def get_port_stp_role(self, port_id: int) -> PortRole:
        info = self._ports.get(port_id)
        return info.role if info is not None else PortRole.UNKNOWN

    def should_learn(self, port_id: int) -> bool:
        return self.get_port_stp_state(port_id) in (
            PortState.LEARNING,
            PortState.FORWARDING,
        )

    def should_forward(self, port_id: int) -> bool:
        return self.get_port_stp_state(port_id) is PortState.FORWARDING

    def set_port_path_cost(self, port_id: int, cost: int) -> None:
        """Set a port's segment cost; unknown ports are ignored."""
        info = self._ports.get(port_id)
        if info is not None:
            info.path_cost_to_segment = cost

    def set_port_priority(self, port_id: int, priority: int) -> None:
        """Set a port's priority (0-255); unknown ports are ignored."""
        if not 0 <= priority <= 0xFF:
            raise ValueError(f"port priority must be 0-255, got {priority}")
        info = self._ports.get(port_id)
        if info is not None:
            info.port_priority = priority

    @property
    def bridge_config(self) -> BridgeConfig:
        return self._bridge

    def port_info(self, port_id: int) -> Optional[StpPortInfo]:
        return self._ports.get(port_id)