# dns_seed/dns_server.py
# Version: 1.0.0
# UDP and TCP listeners feeding the seed dispatcher

import logging
import struct
from typing import Optional, Tuple

from twisted.internet import protocol
from twisted.names import dns

from dns_seed.constants import DNS_UDP_MAX_SIZE
from dns_seed.dispatcher import SeedDispatcher
from dns_seed.dns_validator import DNSValidationError, DNSValidator

logger = logging.getLogger(__name__)

RESULT_ERROR = "error"
RESULT_FORMERR = "formerr"


def answer_packet(
    dispatcher: SeedDispatcher, data: bytes, is_tcp: bool = False, source: str = "unknown"
) -> Optional[dns.Message]:
    """
    Turn one raw request into a reply message

    Returns None when the packet is not worth answering at all (too short
    to carry a header, or itself a response).
    """
    try:
        request = DNSValidator.validate_request(data, is_tcp)
    except DNSValidationError as e:
        logger.warning(f"Invalid DNS request from {source}: {e}")
        query_id = DNSValidator.reply_id_for(data)
        if query_id is None:
            return None
        if dispatcher.metrics:
            dispatcher.metrics.record_query("unknown", RESULT_FORMERR)
        return DNSValidator.create_error_response(query_id)

    try:
        response = dispatcher.handle(request)
    except Exception:
        query = request.queries[0]
        logger.exception(f"Failed to answer {query.name} for {source}")
        if dispatcher.metrics:
            dispatcher.metrics.record_query(
                dns.QUERY_TYPES.get(query.type, str(query.type)), RESULT_ERROR
            )
        return DNSValidator.create_error_response(request.id, query, dns.ESERVER)

    if not is_tcp:
        response.maxSize = DNSValidator.udp_payload_size(request)
    return response


def encode_for_udp(response: dns.Message, max_size: Optional[int] = None) -> bytes:
    """
    Serialize a reply, trimming records and setting TC until it fits

    The limit is max_size, else the size answer_packet took from the
    request's EDNS0 record, else 512 bytes.
    """
    max_size = max_size or response.maxSize or DNS_UDP_MAX_SIZE
    # Message would otherwise cut the raw body at maxSize mid-record
    response.maxSize = 0
    response_data = response.toStr()
    if len(response_data) <= max_size:
        return response_data

    logger.debug(f"Response too large for UDP ({len(response_data)} bytes), truncating")
    response.trunc = True

    # Additional records go first, they are only supplementary
    while len(response_data) > max_size and response.additional:
        response.additional.pop()
        response_data = response.toStr()

    while len(response_data) > max_size and response.answers:
        response.answers.pop()
        response_data = response.toStr()

    return response_data


class SeedDNSProtocol(protocol.DatagramProtocol):
    """UDP DNS seed protocol"""

    def __init__(self, dispatcher: SeedDispatcher):
        self.dispatcher = dispatcher

    def datagramReceived(self, data: bytes, addr: Tuple[str, int]):
        """Handle incoming DNS query"""
        response = answer_packet(self.dispatcher, data, is_tcp=False, source=f"{addr}")
        if response is None:
            return

        try:
            response_data = encode_for_udp(response)
            self.transport.write(response_data, addr)
            logger.debug(f"Sent UDP response to {addr} ({len(response_data)} bytes)")
        except Exception as e:
            logger.error(f"Failed to send UDP response to {addr}: {e}")


class SeedTCPProtocol(protocol.Protocol):
    """TCP DNS seed protocol for clients retrying truncated replies"""

    def __init__(self, dispatcher: SeedDispatcher):
        self.dispatcher = dispatcher
        self.buffer = b""
        self.peer = None

    def connectionMade(self):
        """Called when TCP connection is established"""
        self.peer = self.transport.getPeer()
        logger.debug(f"TCP connection from {self.peer.host}:{self.peer.port}")

    def dataReceived(self, data: bytes):
        """Handle incoming TCP DNS data"""
        self.buffer += data

        # DNS over TCP has 2-byte length prefix
        while len(self.buffer) >= 2:
            msg_length = struct.unpack("!H", self.buffer[:2])[0]

            if len(self.buffer) < 2 + msg_length:
                break

            dns_data = self.buffer[2 : 2 + msg_length]
            self.buffer = self.buffer[2 + msg_length :]
            self._process_dns_message(dns_data)

    def _process_dns_message(self, dns_data: bytes):
        """Process a complete DNS message"""
        source = f"{self.peer.host}:{self.peer.port}" if self.peer else "tcp"
        response = answer_packet(self.dispatcher, dns_data, is_tcp=True, source=source)
        if response is None:
            logger.warning(f"Dropping connection from {source} after unanswerable message")
            self.transport.loseConnection()
            return

        try:
            response.maxSize = 0
            response_data = response.toStr()
            self.transport.write(struct.pack("!H", len(response_data)) + response_data)
            logger.debug(f"Sent TCP response to {source} ({len(response_data)} bytes)")
        except Exception as e:
            logger.error(f"Failed to send TCP response to {source}: {e}")
            self.transport.loseConnection()


class SeedTCPFactory(protocol.Factory):
    """Factory for creating TCP DNS protocol instances"""

    def __init__(self, dispatcher: SeedDispatcher):
        self.dispatcher = dispatcher

    def buildProtocol(self, addr):
        """Build a new TCP protocol instance"""
        return SeedTCPProtocol(self.dispatcher)
