# netflowpp

Building blocks for a software Ethernet switch. The package is pure Python and
needs no third-party libraries.

## Modules

- `netflowpp.headers` holds frozen dataclasses for the Ethernet, 802.1Q VLAN,
  IPv4, IPv6, TCP, UDP, ARP and ICMP headers. Each one has `from_bytes(data,
  offset)` and `to_bytes()`. `from_bytes` raises `ValueError` when the buffer
  is too short. The module also has `MacAddress`, with `from_string`,
  `is_zero` and the `aa:bb:cc:dd:ee:ff` form from `str()`, and
  `internet_checksum`, the RFC 1071 checksum.
- `netflowpp.packet` provides `Packet`, a mutable frame. Its header
  accessors (`ethernet`, `vlan`, `ipv4`, `ipv6`, `tcp`, `udp`, `arp`,
  `icmp`) return `None` when the frame does not carry that header. Other
  methods are `has_vlan`, `vlan_id`, `vlan_priority`, `src_mac`, `dst_mac`,
  `set_dst_mac`, `push_vlan`, `pop_vlan` and `update_checksums`. The last
  one recomputes the IPv4 header checksum and the TCP, UDP or ICMP checksum.
  An optional `capacity` sets a limit on how far the frame may grow.
- `netflowpp.acl` provides `AclManager`, which holds `AclRule`s ordered by
  priority. The highest priority comes first, and ties go to the lower
  `rule_id`. `evaluate(pkt)` returns an `AclDecision`. The first rule that
  matches decides. A `REDIRECT` rule with no target port counts as `DENY`. A
  packet that matches no rule gets `PERMIT`. IPv4 addresses must match
  exactly.
- `netflowpp.classifier` provides `PacketClassifier`, with these methods:
  - `extract_flow_key` builds a `FlowKey`.
  - `hash_flow` gives a 32-bit XOR hash.
  - `classify` returns the `action_id` of the first `ClassificationRule` that
    matches under its mask, or 0 when none does.
- `netflowpp.hash_table` provides `HashTable`, a key/value table with
  `insert`, `insert_or_assign`, `lookup`, `remove`, `batch_lookup`, `clear`,
  `load_factor` and `stats()`. `stats()` returns a `HashTableStats`.
- `netflowpp.routing` provides `RoutingManager`, a thread-safe table of
  static IPv4 routes with longest-prefix-match `lookup_route`. Addresses may
  be ints, dotted strings or `ipaddress.IPv4Address`.
- `netflowpp.vlan` provides `VlanManager`, which holds a `PortConfig` for
  each port: access, trunk or hybrid. It has these methods:
  - `should_forward`
  - `process_ingress`, which tags untagged frames on access ports with the
    native VLAN.
  - `process_egress`, which strips the tag where the port sends that VLAN
    untagged.
- `netflowpp.stp` holds Spanning Tree data:
  - `ConfigBpdu` encodes and decodes configuration BPDUs.
  - `ReceivedBpduInfo` compares priority vectors.
  - `BridgeConfig` holds the bridge ID and timers.
  - `StpPortInfo` holds port state.
  - `StpManager` holds port state and role for each port. It has path cost
    and priority setters.
- `netflowpp.fdb` provides `ForwardingDatabase`, which maps (MAC, VLAN) to a
  port. It has `learn_mac`, `add_static_entry`, `lookup_port`,
  `age_entries`, `flush_port`, `flush_vlan`, `flush_all` and `remove_entry`.
  Static entries never age out.

## Example

```python
from netflowpp.headers import MacAddress
from netflowpp.packet import Packet
from netflowpp.vlan import VlanManager, PortConfig, PortType, PacketAction
from netflowpp.fdb import ForwardingDatabase

frame = bytes.fromhex(
    "02000000000a"  # destination MAC (made up)
    "02000000000b"  # source MAC (made up)
    "0806"          # EtherType: ARP
) + bytes(28)

pkt = Packet(frame)

vlans = VlanManager()
vlans.configure_port(1, PortConfig(type=PortType.ACCESS, native_vlan=10))
assert vlans.process_ingress(pkt, 1) is PacketAction.FORWARD
assert pkt.vlan_id() == 10

fdb = ForwardingDatabase()
fdb.learn_mac(pkt.src_mac(), 1, 10)
assert fdb.lookup_port(MacAddress.from_string("02:00:00:00:00:0b"), 10) == 1
```

## What it does not do

- It does not capture or send frames, and it has no command-line interface
  or management shell.
- `StpManager` stores spanning tree state but does not process received
  BPDUs, compute port roles or run timers. After `initialize_ports`, every
  port stays `BLOCKING` with role `DISABLED` until you change it.
- Routing and ACL IP matching cover IPv4 only.

## Installation and tests

```
pip install .
pip install .[test]
pytest
```