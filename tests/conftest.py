"""
pytest configuration for dns-seed tests

This file ensures tests can find the dns_seed module and the shared
helpers in test_utils regardless of environment
"""

import sys
from pathlib import Path

import pytest

# Add parent directory to path so tests can import dns_seed
tests_dir = Path(__file__).parent
for path in (tests_dir.parent, tests_dir):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from dns_seed.network_view import NetworkView  # noqa: E402
from test_utils import make_ipv4_node, make_ipv6_node  # noqa: E402


@pytest.fixture
def ipv4_nodes():
    return [make_ipv4_node(i) for i in range(10)]


@pytest.fixture
def ipv6_nodes():
    return [make_ipv6_node(i) for i in range(10)]


@pytest.fixture
def network_view(ipv4_nodes, ipv6_nodes):
    return NetworkView(ipv4_nodes + ipv6_nodes)


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: starts the server in a subprocess")
