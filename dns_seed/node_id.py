# dns_seed/node_id.py
# Version: 1.0.0
# Node identifier <-> DNS label codec

"""
Node Identifier Codec

A node id is a 66 character hex string, which does not fit into a single
DNS label (63 octets max). Per-node names therefore carry the id in two
labels:

    <id[1:64]>.<id[64:]>.<apex>

The leading character of the id is always "0" for compressed public keys,
so it is dropped on encode and restored on decode.
"""

import logging
import string
from typing import Optional, Tuple

from dns_seed.constants import (
    MAX_DNS_LABEL_LENGTH,
    NODE_ID_LENGTH,
    NODE_ID_PREFIX,
    NODE_ID_SPLIT_LENGTH,
)

logger = logging.getLogger(__name__)

HEX_DIGITS = frozenset(string.hexdigits.lower())


class InvalidNodeIdError(ValueError):
    """Node id that cannot be represented as a pair of DNS labels"""

    pass


def normalize_name(name: str) -> str:
    """Lowercase a domain name and strip the trailing root dot"""
    if isinstance(name, bytes):
        name = name.decode("ascii", errors="replace")
    return name.lower().rstrip(".")


def _is_hex(value: str) -> bool:
    return all(c in HEX_DIGITS for c in value)


def is_valid_node_id(node_id: str) -> bool:
    """Check the fixed length, the reserved prefix and the hex alphabet"""
    return (
        isinstance(node_id, str)
        and len(node_id) == NODE_ID_LENGTH
        and node_id.startswith(NODE_ID_PREFIX)
        and _is_hex(node_id)
    )


def encode(node_id: str) -> Tuple[str, str]:
    """
    Split a node id into two DNS-label-safe substrings

    Args:
        node_id: Lowercase hex node id

    Returns:
        (label1, label2) where label1 is as long as a label may be

    Raises:
        InvalidNodeIdError: If node_id is not a valid node id
    """
    if not is_valid_node_id(node_id):
        raise InvalidNodeIdError(f"Not a valid node id: {node_id!r}")

    body = node_id[len(NODE_ID_PREFIX):]
    return body[:MAX_DNS_LABEL_LENGTH], body[MAX_DNS_LABEL_LENGTH:]


def node_name(node_id: str, apex: str) -> str:
    """Build the per-node domain name for node_id under apex"""
    label1, label2 = encode(node_id)
    return f"{label1}.{label2}.{normalize_name(apex)}"


def decode(name: str, apex: str) -> Optional[str]:
    """
    Recover a node id from a per-node domain name

    Returns None when the name is not structurally a per-node name:
    wrong number of components, a suffix other than the apex, or labels
    whose combined length differs from the split length.
    """
    splits = normalize_name(name).split(".", 2)
    if len(splits) != 3:
        return None

    label1, label2, suffix = splits
    if suffix != normalize_name(apex):
        return None

    if len(label1) + len(label2) != NODE_ID_SPLIT_LENGTH:
        return None

    if not (_is_hex(label1) and _is_hex(label2)):
        return None

    return f"{NODE_ID_PREFIX}{label1}{label2}"
