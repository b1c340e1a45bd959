# dns_seed/metrics.py
# Version: 1.0.0
# Metrics collection for DNS seed monitoring

"""
DNS Seed Metrics Collection Module

Provides Prometheus-compatible metrics on query outcomes, emitted records
and the size of the peer directory.
"""

import logging
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Info
from prometheus_client.twisted import MetricsResource
from twisted.internet import reactor
from twisted.web import server
from twisted.web.resource import Resource

from .constants import METRICS_DEFAULT_ADDRESS, METRICS_DEFAULT_PORT

logger = logging.getLogger(__name__)

METRIC_NAMESPACE = "dns_seed"


class MetricsCollector:
    """Centralized metrics collection for the DNS seed"""

    def __init__(self, enabled: bool = True, registry: Optional[CollectorRegistry] = None):
        self.enabled = enabled

        if not self.enabled:
            logger.info("Metrics collection disabled")
            return

        # A private registry keeps several collectors (tests) from clashing
        self.registry = registry or CollectorRegistry()

        self.query_total = Counter(
            f"{METRIC_NAMESPACE}_query_total",
            "Total number of DNS queries answered",
            ["query_type", "result"],
            registry=self.registry,
        )

        self.records_total = Counter(
            f"{METRIC_NAMESPACE}_records_total",
            "Total number of resource records emitted",
            ["section"],
            registry=self.registry,
        )

        self.known_nodes = Gauge(
            f"{METRIC_NAMESPACE}_known_nodes",
            "Number of nodes in the peer directory",
            registry=self.registry,
        )

        self.info = Info(
            f"{METRIC_NAMESPACE}", "DNS seed version and configuration info", registry=self.registry
        )

        logger.info("Metrics collector initialized")

    def record_query(self, query_type: str, result: str):
        """Record an answered DNS query"""
        if not self.enabled:
            return
        self.query_total.labels(query_type=query_type, result=result).inc()

    def record_records(self, answers: int, additional: int):
        """Record emitted resource records by section"""
        if not self.enabled:
            return
        if answers:
            self.records_total.labels(section="answer").inc(answers)
        if additional:
            self.records_total.labels(section="additional").inc(additional)

    def update_known_nodes(self, count: int):
        """Update current directory size"""
        if self.enabled:
            self.known_nodes.set(count)

    def set_info(self, version: str, config: Dict[str, Any]):
        """Set version and configuration info"""
        if self.enabled:
            self.info.info(
                {
                    "version": version,
                    "apex_domain": str(config.get("apex_domain", "unknown")),
                    "pool_size": str(getattr(config.get("policy"), "pool_size", "unknown")),
                }
            )


class MetricsServer:
    """HTTP server for Prometheus metrics endpoint"""

    def __init__(
        self,
        collector: MetricsCollector,
        listen_address: str = METRICS_DEFAULT_ADDRESS,
        listen_port: int = METRICS_DEFAULT_PORT,
    ):
        self.collector = collector
        self.listen_address = listen_address
        self.listen_port = listen_port
        self.site = None

    def start(self):
        """Start metrics HTTP server"""
        if not self.collector.enabled:
            logger.info("Metrics server not started (metrics disabled)")
            return

        root = Resource()
        root.putChild(b"metrics", MetricsResource(registry=self.collector.registry))
        factory = server.Site(root)

        self.site = reactor.listenTCP(self.listen_port, factory, interface=self.listen_address)

        logger.info(f"Metrics server listening on {self.listen_address}:{self.listen_port}/metrics")

    def stop(self):
        """Stop metrics HTTP server"""
        if self.site:
            self.site.stopListening()
            logger.info("Metrics server stopped")
