# dns_seed/records.py
# Version: 1.0.0
# Resource record construction for seed replies

"""Builders for the A, AAAA and SRV records the seed hands out"""

from twisted.names import dns

from dns_seed.constants import RECORD_TTL, SRV_PRIORITY, SRV_WEIGHT
from dns_seed.network_view import AddressFamily, Node


def record_type_for(family: AddressFamily) -> int:
    """DNS record type carrying addresses of the given family"""
    return dns.AAAA if family is AddressFamily.IPV6 else dns.A


def build_address_record(node: Node, owner_name: str, ttl: int = RECORD_TTL) -> dns.RRHeader:
    """A or AAAA record for node, picked by the length of its address"""
    if len(node.address) == 16:
        record_type = dns.AAAA
        payload = dns.Record_AAAA(address=node.ip, ttl=ttl)
    else:
        record_type = dns.A
        payload = dns.Record_A(address=node.ip, ttl=ttl)

    return dns.RRHeader(
        name=owner_name,
        type=record_type,
        cls=dns.IN,
        ttl=ttl,
        payload=payload,
    )


def build_service_record(
    node: Node, target_name: str, service_name: str, ttl: int = RECORD_TTL
) -> dns.RRHeader:
    """SRV record pointing service_name at target_name on the node's port"""
    payload = dns.Record_SRV(
        priority=SRV_PRIORITY,
        weight=SRV_WEIGHT,
        port=node.port,
        target=target_name,
        ttl=ttl,
    )
    return dns.RRHeader(
        name=service_name,
        type=dns.SRV,
        cls=dns.IN,
        ttl=ttl,
        payload=payload,
    )
