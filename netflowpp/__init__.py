"""Packet parsing and software switching building blocks: headers, packets, ACLs,
classification, hash table, routing, VLANs, spanning tree state and the MAC FDB."""

__version__ = "0.1.0"
__all__ = [
    "acl",
    "classifier",
    "fdb",
    "hash_table",
    "headers",
    "packet",
    "routing",
    "stp",
    "vlan",
]