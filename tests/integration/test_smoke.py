#!/usr/bin/env python3
"""
Smoke test - verify the DNS seed starts, answers and stops

Runs the real entry point in a subprocess on a dynamic port.
"""

import json
import os
import socket
import subprocess
import sys
import time

import pytest
from twisted.names import dns

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

APEX = "seed.example.org"


def _write_config(directory, peers_file, **overrides):
    settings = {"listen-port": "0", "listen-address": "127.0.0.1", "apex-domain": APEX}
    settings.update(overrides)
    lines = ["[dns-seed]"] + [f"{k} = {v}" for k, v in settings.items()]
    lines += ["", "[peers]", f"peers-file = {peers_file}", ""]
    config_file = directory / "dns-seed.cfg"
    config_file.write_text("\n".join(lines))
    return config_file


def _write_peers(directory):
    peers = [
        {"id": f"02{n:064x}", "address": f"192.0.2.{n + 1}", "port": 9735} for n in range(5)
    ] + [
        {"id": f"03{n:064x}", "address": f"2001:db8::{n + 1:x}", "port": 9735} for n in range(5)
    ]
    peers_file = directory / "peers.json"
    peers_file.write_text(json.dumps(peers))
    return peers_file


def _wait_for_port(process, timeout=10):
    deadline = time.time() + timeout
    while time.time() < deadline:
        line = process.stdout.readline()
        if not line:
            return None
        if line.startswith("ACTUAL_PORT="):
            return int(line.strip().split("=", 1)[1])
    return None


def _query(port, name, query_type):
    request = dns.Message(id=1234, recDes=1)
    request.queries = [dns.Query(name, query_type, dns.IN)]

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.settimeout(5)
    try:
        sock.sendto(request.toStr(), ("127.0.0.1", port))
        data, _ = sock.recvfrom(4096)
    finally:
        sock.close()

    response = dns.Message()
    response.fromStr(data)
    return response


@pytest.mark.integration
class TestSmoke:
    """Basic smoke tests"""

    def test_server_answers_and_stops(self, tmp_path):
        """Server answers apex queries and exits cleanly on SIGTERM"""
        peers_file = _write_peers(tmp_path)
        config_file = _write_config(tmp_path, peers_file)

        cmd = [sys.executable, "-u", "-m", "dns_seed.main", "-c", str(config_file)]
        process = subprocess.Popen(
            cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True
        )

        try:
            port = _wait_for_port(process)
            if port is None:
                process.kill()
                output, _ = process.communicate()
                assert False, f"Server did not report its port\nOUTPUT:\n{output}"

            # Let the initial peers load run
            time.sleep(1)

            response = _query(port, APEX, dns.A)
            assert response.id == 1234
            assert response.rCode == dns.OK
            assert len(response.answers) == 2
            assert all(rr.type == dns.A for rr in response.answers)

            # Ten SRV records with full node names do not fit in 512 bytes
            response = _query(port, APEX, dns.SRV)
            assert response.trunc
            assert 0 < len(response.answers) < 10
            assert all(rr.type == dns.SRV for rr in response.answers)
            assert response.additional == []

            response = _query(port, "example.com", dns.A)
            assert response.rCode == dns.EREFUSED

            process.terminate()
            process.wait(timeout=5)
            assert process.returncode in (0, -15), f"Server exited with error: {process.returncode}"
        finally:
            if process.poll() is None:
                process.kill()
                process.wait()
            process.stdout.close()

    def test_invalid_config_fails_gracefully(self, tmp_path):
        """Server refuses to start with a non-positive TTL"""
        peers_file = _write_peers(tmp_path)
        config_file = _write_config(tmp_path, peers_file, ttl="0")

        cmd = [sys.executable, "-m", "dns_seed.main", "-c", str(config_file)]
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=10)

        assert result.returncode != 0, "Server started with invalid config"
        assert "TTL must be positive" in result.stdout
