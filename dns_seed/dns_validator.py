# dns_seed/dns_validator.py
# Version: 1.0.0
# DNS request validation before dispatch

"""
DNS Validator Module

Rejects requests the seed should never try to answer:
- packets too small or too large for the transport
- packets the wire parser cannot decode
- messages without a question, or with an unreasonable number of them
- names that break DNS length limits
"""

import logging
import struct
from typing import Optional

from twisted.names import dns

from dns_seed.constants import (
    DNS_UDP_MAX_SIZE,
    EDNS_MAX_UDP_SIZE,
    MAX_DNS_LABEL_LENGTH,
    MAX_DNS_NAME_LENGTH,
    MAX_DNS_PACKET_SIZE,
    MAX_DNS_QUESTIONS,
    MIN_DNS_PACKET_SIZE,
)

logger = logging.getLogger(__name__)


class DNSValidationError(Exception):
    """DNS validation error"""

    pass


class DNSValidator:
    """Validates incoming DNS requests"""

    @staticmethod
    def validate_packet_size(data: bytes, is_tcp: bool = False) -> None:
        """
        Validate DNS packet size

        Raises:
            DNSValidationError: If packet size is invalid
        """
        packet_size = len(data)

        if packet_size < MIN_DNS_PACKET_SIZE:
            raise DNSValidationError(
                f"DNS packet too small: {packet_size} bytes (minimum {MIN_DNS_PACKET_SIZE})"
            )

        max_size = MAX_DNS_PACKET_SIZE if is_tcp else DNS_UDP_MAX_SIZE
        if packet_size > max_size:
            raise DNSValidationError(
                f"DNS packet too large: {packet_size} bytes (maximum {max_size})"
            )

    @staticmethod
    def validate_dns_name(name: str) -> None:
        """
        Validate DNS name lengths

        Content of the labels is left to the dispatcher, which answers
        names it does not understand with a negative reply.

        Raises:
            DNSValidationError: If name is invalid
        """
        if len(name) > MAX_DNS_NAME_LENGTH:
            raise DNSValidationError(
                f"DNS name too long: {len(name)} characters (maximum {MAX_DNS_NAME_LENGTH})"
            )

        for label in name.rstrip(".").split("."):
            if len(label) > MAX_DNS_LABEL_LENGTH:
                raise DNSValidationError(
                    f"DNS label too long: '{label}' is {len(label)} characters "
                    f"(maximum {MAX_DNS_LABEL_LENGTH})"
                )

    @staticmethod
    def validate_message(message: dns.Message) -> None:
        """
        Validate parsed DNS request

        Raises:
            DNSValidationError: If message is invalid
        """
        if message.answer:
            raise DNSValidationError("DNS message is a response, not a query")

        queries = message.queries if message.queries else []
        if not queries:
            raise DNSValidationError("DNS request has no queries")

        if len(queries) > MAX_DNS_QUESTIONS:
            raise DNSValidationError(
                f"Too many questions in DNS query: {len(queries)} (maximum {MAX_DNS_QUESTIONS})"
            )

        for query in queries:
            try:
                name = query.name.name.decode("ascii")
            except UnicodeDecodeError:
                raise DNSValidationError(f"Query name is not ASCII: {query.name.name!r}")

            try:
                DNSValidator.validate_dns_name(name)
            except DNSValidationError as e:
                raise DNSValidationError(f"Invalid query name: {e}")

    @staticmethod
    def validate_request(data: bytes, is_tcp: bool = False) -> dns.Message:
        """
        Validate incoming DNS request

        Returns:
            Parsed and validated DNS message

        Raises:
            DNSValidationError: If request is invalid
        """
        DNSValidator.validate_packet_size(data, is_tcp)

        try:
            message = dns.Message()
            message.fromStr(data)
        except Exception as e:
            raise DNSValidationError(f"Failed to parse DNS message: {e}")

        DNSValidator.validate_message(message)

        return message

    @staticmethod
    def udp_payload_size(message: dns.Message) -> int:
        """
        Largest UDP reply the client accepts

        Read from the class field of an EDNS0 OPT record in the request,
        clamped to [512, 4096]. Plain DNS clients get 512.
        """
        for record in message.additional:
            if record.type == dns.OPT:
                return min(max(record.cls, DNS_UDP_MAX_SIZE), EDNS_MAX_UDP_SIZE)
        return DNS_UDP_MAX_SIZE

    @staticmethod
    def reply_id_for(data: bytes) -> Optional[int]:
        """
        Message id to use in an error reply to a raw packet

        Returns None for packets without a full header and for packets with
        the QR bit set, which must never be answered.
        """
        if len(data) < MIN_DNS_PACKET_SIZE:
            return None
        if data[2] & 0x80:
            return None
        return struct.unpack("!H", data[:2])[0]

    @staticmethod
    def create_error_response(
        query_id: int, query: Optional[dns.Query] = None, error_code: int = dns.EFORMAT
    ) -> dns.Message:
        """
        Create an error response for invalid requests

        Args:
            query_id: Original query ID
            query: Original query (if available)
            error_code: DNS error code to return
        """
        error_response = dns.Message()
        error_response.id = query_id
        error_response.answer = True
        error_response.rCode = error_code

        if query:
            error_response.queries = [query]

        return error_response
