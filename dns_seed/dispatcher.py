# dns_seed/dispatcher.py
# Version: 1.0.0
# Query classification and reply assembly for the DNS seed

"""
Seed Query Dispatcher

Turns a parsed DNS query into a reply built from the peer directory:

    <apex>            A / AAAA  -> random sample of nodes in Answer
    <apex>            SRV       -> SRV per sampled node in Answer, plus the
                                   node's address record in Additional
    <service>.<apex>  SRV       -> same as the apex SRV reply
    <l1>.<l2>.<apex>  A / AAAA  -> the node's address record, in Answer when
                                   its family matches the query type and in
                                   Additional otherwise

Every failure is confined to the reply of the query that caused it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from twisted.names import dns

from dns_seed import node_id as node_id_codec
from dns_seed.constants import (
    DEFAULT_SERVICE_LABEL,
    RECORD_TTL,
    SAMPLE_A_COUNT,
    SAMPLE_AAAA_COUNT,
    SAMPLE_POOL_SIZE,
    SAMPLE_SRV_COUNT,
)
from dns_seed.network_view import AddressFamily, PeerDirectory
from dns_seed.records import build_address_record, build_service_record, record_type_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SamplingPolicy:
    """How many nodes each apex query type hands out"""

    a_count: int = SAMPLE_A_COUNT
    aaaa_count: int = SAMPLE_AAAA_COUNT
    srv_count: int = SAMPLE_SRV_COUNT
    pool_size: int = SAMPLE_POOL_SIZE


# Query outcomes, used for logging and metrics labels
RESULT_SAMPLE = "sample"
RESULT_NODE = "node"
RESULT_MISS = "miss"
RESULT_MALFORMED = "malformed"
RESULT_REFUSED = "refused"
RESULT_UNSUPPORTED = "unsupported"


class SeedDispatcher:
    """Answers seed queries from a peer directory"""

    def __init__(
        self,
        network_view: PeerDirectory,
        apex: str,
        policy: Optional[SamplingPolicy] = None,
        service_label: str = DEFAULT_SERVICE_LABEL,
        ttl: int = RECORD_TTL,
        metrics=None,
    ):
        self.network_view = network_view
        self.apex = node_id_codec.normalize_name(apex)
        self.policy = policy or SamplingPolicy()
        self.service_name = f"{node_id_codec.normalize_name(service_label)}.{self.apex}"
        self.ttl = ttl
        self.metrics = metrics

    def handle(self, request: dns.Message) -> dns.Message:
        """Build the reply for a parsed request"""
        reply = self._make_reply(request)

        if not request.queries:
            logger.debug("Request without a question")
            reply.rCode = dns.EFORMAT
            return reply

        query = request.queries[0]
        query_name = str(query.name)
        query_type = query.type
        type_name = dns.QUERY_TYPES.get(query_type, str(query_type))
        name = node_id_codec.normalize_name(query_name)

        logger.debug(f"Incoming request: {query_name} ({type_name})")

        if query.cls != dns.IN:
            result = RESULT_UNSUPPORTED
        elif name == self.apex:
            result = self._handle_apex(query_name, query_type, reply)
        elif name == self.service_name:
            result = self._handle_service(query_type, reply)
        elif self.service_name.endswith("." + name) and name.endswith("." + self.apex):
            # Empty non-terminal above the service name
            result = RESULT_UNSUPPORTED
        elif name.endswith("." + self.apex):
            result = self._handle_node(query_name, query_type, reply)
        else:
            logger.debug(f"Refusing query outside of {self.apex}: {query_name}")
            reply.rCode = dns.EREFUSED
            result = RESULT_REFUSED

        if self.metrics:
            self.metrics.record_query(type_name, result)
            self.metrics.record_records(len(reply.answers), len(reply.additional))

        return reply

    def _make_reply(self, request: dns.Message) -> dns.Message:
        # maxSize=0: size limits are the transport's business, see encode_for_udp
        reply = dns.Message(
            id=request.id,
            answer=1,
            opCode=request.opCode,
            recDes=request.recDes,
            maxSize=0,
        )
        reply.queries = list(request.queries)
        return reply

    def _handle_apex(self, query_name: str, query_type: int, reply: dns.Message) -> str:
        if query_type == dns.AAAA:
            self._answer_sample(
                query_name, self.policy.aaaa_count, AddressFamily.IPV6, reply
            )
        elif query_type == dns.A:
            self._answer_sample(query_name, self.policy.a_count, AddressFamily.IPV4, reply)
        elif query_type == dns.SRV:
            self._answer_srv(reply)
        else:
            return RESULT_UNSUPPORTED
        return RESULT_SAMPLE

    def _handle_service(self, query_type: int, reply: dns.Message) -> str:
        # Owner name of the SRV records handed out for the apex
        if query_type != dns.SRV:
            return RESULT_UNSUPPORTED
        self._answer_srv(reply)
        return RESULT_SAMPLE

    def _answer_sample(
        self, query_name: str, count: int, family: AddressFamily, reply: dns.Message
    ):
        nodes = self.network_view.random_sample(count, self.policy.pool_size, family)
        for node in nodes:
            reply.answers.append(build_address_record(node, query_name, self.ttl))

    def _answer_srv(self, reply: dns.Message):
        # Clients may be on either family, so hand out a mix and let them pick
        nodes = self.network_view.random_sample(self.policy.srv_count, self.policy.pool_size)
        for node in nodes:
            target = node_id_codec.node_name(node.id, self.apex)
            reply.answers.append(
                build_service_record(node, target, self.service_name, self.ttl)
            )
            reply.additional.append(build_address_record(node, target, self.ttl))

    def _handle_node(self, query_name: str, query_type: int, reply: dns.Message) -> str:
        node_id = node_id_codec.decode(query_name, self.apex)
        if node_id is None:
            logger.debug(f"Subdomain does not appear to be a valid node id: {query_name}")
            reply.rCode = dns.ENAME
            return RESULT_MALFORMED

        node = self.network_view.lookup(node_id)
        if node is None:
            logger.debug(f"Unable to find node with id {node_id}")
            return RESULT_MISS

        logger.debug(f"Found node matching id {node_id}: {node}")

        if query_type not in (dns.A, dns.AAAA):
            return RESULT_UNSUPPORTED

        # Only claim an answer of the type the node actually has. The
        # Additional record keeps the node's own type since an A record
        # cannot carry a 16-byte address.
        record = build_address_record(node, query_name, self.ttl)
        if record_type_for(node.family) == query_type:
            reply.answers.append(record)
        else:
            reply.additional.append(record)
        return RESULT_NODE
