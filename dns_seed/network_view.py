# dns_seed/network_view.py
# Version: 1.0.0
# Peer directory: node records and a snapshot-swapping in-memory view

"""
Network View

Holds the set of known nodes that the seed hands out. Readers (the DNS
dispatcher) never lock: they read whatever snapshot is current. Writers
build a new snapshot and swap it in under a lock, so a query always sees
an internally consistent view.
"""

import ipaddress
import logging
import random
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Union

from dns_seed.constants import MAX_PORT_NUMBER, MIN_PORT_NUMBER, NODE_TYPE_IPV6_BIT
from dns_seed.node_id import is_valid_node_id

logger = logging.getLogger(__name__)


class InvalidNodeError(ValueError):
    """Node record with inconsistent or out of range fields"""

    pass


class AddressFamily(Enum):
    """Address family a node declares through bit 0 of its type field"""

    IPV4 = 4
    IPV6 = 6

    @property
    def address_length(self) -> int:
        return 4 if self is AddressFamily.IPV4 else 16

    @classmethod
    def from_type_bits(cls, type_bits: int) -> "AddressFamily":
        return cls.IPV6 if type_bits & NODE_TYPE_IPV6_BIT else cls.IPV4


@dataclass(frozen=True)
class Node:
    """A single peer as published by the seed"""

    id: str
    address: bytes  # packed IPv4 (4 bytes) or IPv6 (16 bytes)
    port: int
    family: AddressFamily
    flags: int = 0  # type bits above bit 0, carried as-is

    def __post_init__(self):
        if not is_valid_node_id(self.id):
            raise InvalidNodeError(f"Invalid node id: {self.id!r}")
        if not MIN_PORT_NUMBER <= self.port <= MAX_PORT_NUMBER:
            raise InvalidNodeError(f"Port out of range for node {self.id}: {self.port}")
        if len(self.address) != self.family.address_length:
            raise InvalidNodeError(
                f"Node {self.id} declares {self.family.name} but has a "
                f"{len(self.address)}-byte address"
            )
        if self.flags & NODE_TYPE_IPV6_BIT:
            raise InvalidNodeError(f"Node {self.id} flags overlap the address family bit")

    @classmethod
    def from_type_bits(cls, node_id: str, address: bytes, port: int, type_bits: int) -> "Node":
        """Build a node from the raw bit-flag type field"""
        return cls(
            id=node_id,
            address=address,
            port=port,
            family=AddressFamily.from_type_bits(type_bits),
            flags=type_bits & ~NODE_TYPE_IPV6_BIT,
        )

    @classmethod
    def from_ip(
        cls, node_id: str, ip: Union[str, bytes], port: int, type_bits: Optional[int] = None
    ) -> "Node":
        """Build a node from a textual or packed IP, deriving the family when type_bits is None"""
        try:
            packed = ipaddress.ip_address(ip).packed
        except ValueError as e:
            raise InvalidNodeError(f"Invalid address for node {node_id}: {e}")

        if type_bits is None:
            type_bits = NODE_TYPE_IPV6_BIT if len(packed) == 16 else 0
        return cls.from_type_bits(node_id, packed, port, type_bits)

    @property
    def type_bits(self) -> int:
        family_bit = NODE_TYPE_IPV6_BIT if self.family is AddressFamily.IPV6 else 0
        return self.flags | family_bit

    @property
    def ip(self) -> str:
        """Address in presentation format"""
        return str(ipaddress.ip_address(self.address))

    def __str__(self):
        return f"{self.id}@{self.ip}:{self.port}"


class PeerDirectory(ABC):
    """What the DNS dispatcher needs from a peer directory"""

    @abstractmethod
    def random_sample(
        self, count: int, pool_size: int, family: Optional[AddressFamily] = None
    ) -> List[Node]:
        """Return at most count nodes drawn from a random pool of at most pool_size"""
        pass

    @abstractmethod
    def lookup(self, node_id: str) -> Optional[Node]:
        """Return the node with this id, or None"""
        pass


class NetworkView(PeerDirectory):
    """In-memory peer directory with lock-free reads"""

    def __init__(self, nodes: Iterable[Node] = ()):
        self._write_lock = threading.Lock()
        self._nodes: Mapping[str, Node] = MappingProxyType({})
        self.replace_nodes(nodes)

    def random_sample(
        self, count: int, pool_size: int, family: Optional[AddressFamily] = None
    ) -> List[Node]:
        if count <= 0 or pool_size <= 0:
            return []

        snapshot = self._nodes
        if family is None:
            candidates = list(snapshot.values())
        else:
            candidates = [n for n in snapshot.values() if n.family is family]

        pool = random.sample(candidates, min(pool_size, len(candidates)))
        return pool[:count]

    def lookup(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def nodes(self) -> List[Node]:
        """All nodes of the current snapshot"""
        return list(self._nodes.values())

    def add_node(self, node: Node):
        """Add or update a single node"""
        with self._write_lock:
            updated = dict(self._nodes)
            updated[node.id] = node
            self._nodes = MappingProxyType(updated)

    def remove_node(self, node_id: str) -> bool:
        """Remove a node, returning whether it was known"""
        with self._write_lock:
            if node_id not in self._nodes:
                return False
            updated = dict(self._nodes)
            del updated[node_id]
            self._nodes = MappingProxyType(updated)
            return True

    def replace_nodes(self, nodes: Iterable[Node]):
        """Swap in a complete new set of nodes"""
        fresh: Dict[str, Node] = {}
        for node in nodes:
            fresh[node.id] = node

        with self._write_lock:
            self._nodes = MappingProxyType(fresh)

        logger.debug(f"Network view now holds {len(fresh)} nodes")

    def stats(self) -> Dict[str, int]:
        """Node counts by address family"""
        snapshot = self._nodes
        ipv6 = sum(1 for n in snapshot.values() if n.family is AddressFamily.IPV6)
        return {"nodes": len(snapshot), "ipv4": len(snapshot) - ipv6, "ipv6": ipv6}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes
