#!/usr/bin/env python3
"""
Test the main.py helper functions
"""

import errno
import logging
import logging.handlers
import os
import sys
from unittest.mock import MagicMock, Mock, patch

import pytest

# Add the project directory to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dns_seed.dispatcher import SamplingPolicy, SeedDispatcher
from dns_seed.dns_server import SeedDNSProtocol, SeedTCPFactory
from dns_seed.main import (
    _bind_listeners,
    _get_logging_config,
    _get_seed_config,
    _handle_bind_error,
    _handle_version_check,
    _initialize_dispatcher,
    _load_configuration,
    _parse_arguments,
    _validate_config,
    _validate_port,
    setup_logging,
)
from dns_seed.peer_loader import PeerFileLoader


def make_seed_config(**overrides):
    seed_config = {
        "listen_port": 8053,
        "listen_address": "127.0.0.1",
        "enable_tcp": True,
        "apex_domain": "lseed.bitcoinstats.com",
        "service_label": "_lightning._tcp",
        "ttl": 60,
        "policy": SamplingPolicy(),
        "peers_file": "/tmp/peers.json",
        "reload_interval": 60.0,
        "metrics_enabled": False,
        "metrics_address": "127.0.0.1",
        "metrics_port": 9153,
    }
    seed_config.update(overrides)
    return seed_config


class TestMainHelpers:
    """Test main.py helper functions"""

    def test_parse_arguments(self):
        args = _parse_arguments(
            ["--config", "/test/config.cfg", "--port", "5353", "--address", "127.0.0.1",
             "--apex", "seed.example.org", "--peers-file", "/tmp/p.json"]
        )
        assert args.config == "/test/config.cfg"
        assert args.port == 5353
        assert args.address == "127.0.0.1"
        assert args.apex == "seed.example.org"
        assert args.peers_file == "/tmp/p.json"
        assert args.version is False

    def test_parse_arguments_defaults(self):
        with patch("sys.argv", ["dns-seed"]):
            args = _parse_arguments()
        assert args.config == "/etc/dns-seed/dns-seed.cfg"
        assert args.port is None
        assert args.loglevel is None

    def test_parse_arguments_rejects_bad_port(self):
        with pytest.raises(SystemExit):
            _parse_arguments(["--port", "70000"])

    @pytest.mark.parametrize("value, expected", [("1", 1), ("53", 53), ("65535", 65535)])
    def test_validate_port_accepts(self, value, expected):
        assert _validate_port(value) == expected

    @pytest.mark.parametrize("value", ["0", "65536", "-1", "abc"])
    def test_validate_port_rejects(self, value):
        import argparse

        with pytest.raises(argparse.ArgumentTypeError):
            _validate_port(value)

    def test_handle_version_check(self):
        mock_args = Mock()
        mock_args.version = False

        # Should not exit if version is False
        _handle_version_check(mock_args)

        mock_args.version = True
        with patch("sys.exit") as mock_exit:
            _handle_version_check(mock_args)
            mock_exit.assert_called_once_with(0)

    def test_load_configuration(self, tmp_path):
        config = _load_configuration(str(tmp_path / "missing.cfg"))
        assert config.getint("dns-seed", "listen-port") == 8053

    def test_get_logging_config(self):
        mock_config = Mock()
        mock_config.get.side_effect = lambda section, key, default=None: {
            ("log-file", "log-file"): "/var/log/dns-seed.log",
            ("log-file", "debug-level"): "WARNING",
        }.get((section, key), default)
        mock_config.getboolean.return_value = True

        mock_args = Mock()
        mock_args.logfile = None
        mock_args.loglevel = "DEBUG"

        log_file, log_level, syslog = _get_logging_config(mock_config, mock_args)
        assert log_file == "/var/log/dns-seed.log"
        assert log_level == "DEBUG"
        assert syslog is True

    def test_get_seed_config_prefers_arguments(self, tmp_path):
        config = _load_configuration(str(tmp_path / "missing.cfg"))
        args = _parse_arguments(
            ["--port", "5353", "--apex", "seed.example.org", "--peers-file", "/tmp/p.json"]
        )

        seed_config = _get_seed_config(config, args)
        assert seed_config["listen_port"] == 5353
        assert seed_config["listen_address"] == "0.0.0.0"
        assert seed_config["apex_domain"] == "seed.example.org"
        assert seed_config["peers_file"] == "/tmp/p.json"
        assert seed_config["enable_tcp"] is True
        assert seed_config["ttl"] == 60
        assert seed_config["policy"] == SamplingPolicy()
        assert seed_config["metrics_enabled"] is False
        assert seed_config["metrics_port"] == 9153

    def test_validate_config_accepts_defaults(self):
        _validate_config(make_seed_config(), logging.getLogger("test"))

    @pytest.mark.parametrize(
        "overrides",
        [{"apex_domain": ""}, {"ttl": 0}, {"reload_interval": 0}],
    )
    def test_validate_config_exits(self, overrides):
        with pytest.raises(SystemExit):
            _validate_config(make_seed_config(**overrides), logging.getLogger("test"))

    def test_initialize_dispatcher(self):
        metrics = Mock()
        dispatcher, loader = _initialize_dispatcher(
            make_seed_config(apex_domain="Seed.Example.org.", ttl=120), metrics
        )

        assert isinstance(dispatcher, SeedDispatcher)
        assert dispatcher.apex == "seed.example.org"
        assert dispatcher.service_name == "_lightning._tcp.seed.example.org"
        assert dispatcher.ttl == 120
        assert dispatcher.metrics is metrics

        assert isinstance(loader, PeerFileLoader)
        assert loader.network_view is dispatcher.network_view
        assert loader.path == "/tmp/peers.json"
        assert loader.interval == 60.0


class TestBinding:
    """Test listener binding and bind error handling"""

    def test_bind_udp_and_tcp(self):
        mock_reactor = MagicMock()
        mock_reactor.listenUDP.return_value.getHost.return_value.port = 8053
        dispatcher = Mock()

        udp, tcp = _bind_listeners(
            mock_reactor, 8053, "127.0.0.1", dispatcher, True, logging.getLogger("test")
        )

        udp_args, udp_kwargs = mock_reactor.listenUDP.call_args
        assert udp_args[0] == 8053
        assert isinstance(udp_args[1], SeedDNSProtocol)
        assert udp_kwargs["interface"] == "127.0.0.1"

        tcp_args, tcp_kwargs = mock_reactor.listenTCP.call_args
        assert tcp_args[0] == 8053
        assert isinstance(tcp_args[1], SeedTCPFactory)
        assert tcp is mock_reactor.listenTCP.return_value

    def test_bind_udp_only(self):
        mock_reactor = MagicMock()
        mock_reactor.listenUDP.return_value.getHost.return_value.port = 8053

        udp, tcp = _bind_listeners(
            mock_reactor, 8053, "127.0.0.1", Mock(), False, logging.getLogger("test")
        )
        assert tcp is None
        mock_reactor.listenTCP.assert_not_called()

    def test_dynamic_port_uses_actual_port_for_tcp(self, capsys):
        mock_reactor = MagicMock()
        mock_reactor.listenUDP.return_value.getHost.return_value.port = 40123

        _bind_listeners(mock_reactor, 0, "127.0.0.1", Mock(), True, logging.getLogger("test"))

        assert mock_reactor.listenTCP.call_args[0][0] == 40123
        assert "ACTUAL_PORT=40123" in capsys.readouterr().out

    def test_bind_failure_exits(self):
        mock_reactor = MagicMock()
        mock_reactor.listenUDP.side_effect = OSError(errno.EADDRINUSE, "Address already in use")

        with pytest.raises(SystemExit):
            _bind_listeners(mock_reactor, 53, "0.0.0.0", Mock(), True, logging.getLogger("test"))

    @pytest.mark.parametrize(
        "error, message",
        [
            (OSError(errno.EADDRINUSE, "Address already in use"), "already in use"),
            (OSError(errno.EACCES, "Permission denied"), "Permission denied"),
            (RuntimeError("something else"), "Failed to bind"),
        ],
    )
    def test_handle_bind_error(self, error, message):
        mock_logger = Mock()
        with pytest.raises(SystemExit) as exc_info:
            _handle_bind_error(error, 53, "0.0.0.0", mock_logger)

        assert exc_info.value.code == 1
        logged = " ".join(str(c.args[0]) for c in mock_logger.error.call_args_list)
        assert message in logged


class TestSetupLogging:
    """Test logging setup"""

    def teardown_method(self):
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            if type(handler) in (logging.StreamHandler, logging.handlers.RotatingFileHandler):
                root_logger.removeHandler(handler)
                handler.close()
        root_logger.setLevel(logging.WARNING)

    def test_console_only(self):
        setup_logging(None, "DEBUG")
        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "dns-seed.log"
        setup_logging(str(log_file), "WARNING")
        root_logger = logging.getLogger()
        assert root_logger.level == logging.WARNING
        assert len(root_logger.handlers) == 2

        logging.getLogger("dns_seed.test").warning("hello")
        assert "hello" in log_file.read_text()

    def test_none_disables_file_logging(self):
        setup_logging("none", "INFO")
        assert len(logging.getLogger().handlers) == 1
