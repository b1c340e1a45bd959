# dns_seed/peer_loader.py
# Version: 1.0.0
# Populates the network view from a JSON peers file

"""
Peer File Loader

The seed does not crawl the network itself. Whatever keeps track of live
nodes writes them to a JSON file:

    [
        {"id": "02ab...", "address": "203.0.113.7", "port": 9735},
        {"id": "03cd...", "address": "2001:db8::1", "port": 9735, "type": 1}
    ]

"type" is the raw bit-flag field; when it is missing the address family is
derived from the address. The file is reloaded periodically and the view
swapped in one step.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from twisted.internet import task

from dns_seed.constants import PEERS_RELOAD_INTERVAL
from dns_seed.network_view import InvalidNodeError, NetworkView, Node

logger = logging.getLogger(__name__)


class PeerFileError(Exception):
    """Peers file missing, unreadable or not a JSON list"""

    pass


def parse_peer(entry: Dict[str, Any]) -> Node:
    """
    Build a node from one peers file entry

    Raises:
        InvalidNodeError: If the entry is incomplete or inconsistent
    """
    if not isinstance(entry, dict):
        raise InvalidNodeError(f"Peer entry is not an object: {entry!r}")

    try:
        node_id = str(entry["id"]).lower()
        address = entry["address"]
        port = int(entry["port"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidNodeError(f"Incomplete peer entry {entry!r}: {e}")

    type_bits = entry.get("type")
    if type_bits is not None:
        try:
            type_bits = int(type_bits)
        except (TypeError, ValueError):
            raise InvalidNodeError(f"Invalid type field for node {node_id}: {type_bits!r}")

    return Node.from_ip(node_id, address, port, type_bits)


def read_peers_file(path: str) -> List[Node]:
    """
    Read all valid nodes from a peers file, skipping invalid entries

    Raises:
        PeerFileError: If the file cannot be read or is not a JSON list
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            entries = json.load(f)
    except (OSError, ValueError) as e:
        raise PeerFileError(f"Could not read peers file {path}: {e}")

    if not isinstance(entries, list):
        raise PeerFileError(f"Peers file {path} must contain a JSON list")

    nodes = []
    for entry in entries:
        try:
            nodes.append(parse_peer(entry))
        except InvalidNodeError as e:
            logger.warning(f"Skipping peer: {e}")

    skipped = len(entries) - len(nodes)
    if skipped:
        logger.info(f"Skipped {skipped} invalid entries in {path}")
    return nodes


class PeerFileLoader:
    """Keeps a network view in sync with a peers file"""

    def __init__(
        self,
        network_view: NetworkView,
        path: str,
        interval: float = PEERS_RELOAD_INTERVAL,
        metrics=None,
        clock=None,
    ):
        self.network_view = network_view
        self.path = path
        self.interval = interval
        self.metrics = metrics
        self.clock = clock  # IReactorTime, the global reactor when None
        self._loop: Optional[task.LoopingCall] = None
        self._last_mtime: Optional[float] = None

    def reload(self, force: bool = False) -> bool:
        """
        Re-read the peers file into the view

        Keeps the current view when the file is unchanged or unreadable.

        Returns:
            True if a new set of nodes was swapped in
        """
        try:
            mtime = os.path.getmtime(self.path)
        except OSError as e:
            logger.warning(f"Peers file {self.path} not available: {e}")
            return False

        if not force and mtime == self._last_mtime:
            logger.debug(f"Peers file {self.path} unchanged")
            return False

        try:
            nodes = read_peers_file(self.path)
        except PeerFileError as e:
            logger.error(f"{e}, keeping {len(self.network_view)} known nodes")
            return False

        self.network_view.replace_nodes(nodes)
        self._last_mtime = mtime

        stats = self.network_view.stats()
        logger.info(
            f"Loaded {stats['nodes']} nodes from {self.path} "
            f"({stats['ipv4']} IPv4, {stats['ipv6']} IPv6)"
        )
        if self.metrics:
            self.metrics.update_known_nodes(stats["nodes"])
        return True

    def start(self):
        """Load now and then every interval seconds"""
        if self._loop and self._loop.running:
            logger.warning("Peer file loader already started")
            return

        self._loop = task.LoopingCall(self.reload)
        if self.clock is not None:
            self._loop.clock = self.clock
        self._loop.start(self.interval, now=True)
        logger.info(f"Reloading peers from {self.path} every {self.interval}s")

    def stop(self):
        """Stop periodic reloads"""
        if self._loop and self._loop.running:
            self._loop.stop()
            logger.info("Stopped peer file reloads")
