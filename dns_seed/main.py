#!/usr/bin/env python3
"""
Main entry point for the DNS seed
Serves peer discovery queries over UDP and TCP
"""

import argparse
import errno
import logging
import logging.handlers
import signal
import sys

from dns_seed.constants import DNS_DEFAULT_PORT, MAX_PORT_NUMBER, MIN_PORT_NUMBER


def setup_logging(log_file=None, log_level="INFO", syslog=False):
    """Setup logging configuration"""
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file and log_file.lower() != "none":
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=10 * 1024 * 1024, backupCount=5
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            print(f"Warning: Could not setup file logging to {log_file}: {e}")

    if syslog:
        try:
            syslog_handler = logging.handlers.SysLogHandler(address="/dev/log")
            syslog_formatter = logging.Formatter(
                "dns-seed[%(process)d]: %(levelname)s - %(message)s"
            )
            syslog_handler.setFormatter(syslog_formatter)
            root_logger.addHandler(syslog_handler)
        except OSError as e:
            print(f"Warning: Could not setup syslog: {e}")


def _setup_signal_handlers(logger):
    """Setup signal handlers for graceful shutdown"""

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        from twisted.internet import reactor

        reactor.callFromThread(reactor.stop)  # type: ignore[attr-defined]

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)


def _handle_bind_error(error, port, address, logger):
    """Report a listener that could not be bound and exit"""
    socket_error = getattr(error, "socketError", error)
    error_number = getattr(socket_error, "errno", None)
    error_msg = str(error)

    if error_number == errno.EADDRINUSE or "Address already in use" in error_msg:
        logger.error(f"Port {port} is already in use on {address}")
        logger.error("Please check if another instance is running or use a different port")
    elif error_number == errno.EACCES or "Permission denied" in error_msg:
        logger.error(f"Permission denied to bind to port {port}")
        if port < 1024:
            logger.error("Ports below 1024 require root privileges, use a port >= 1024")
    else:
        logger.error(f"Failed to bind to {address}:{port}: {error}")

    sys.exit(1)


def _bind_listeners(reactor, listen_port, listen_address, dispatcher, enable_tcp, logger):
    """Bind the UDP listener and, if enabled, the TCP listener on the same port"""
    from dns_seed.dns_server import SeedDNSProtocol, SeedTCPFactory

    try:
        udp_server = reactor.listenUDP(
            listen_port, SeedDNSProtocol(dispatcher), interface=listen_address
        )
        actual_port = udp_server.getHost().port
        logger.info(f"DNS seed UDP server listening on {listen_address}:{actual_port}")

        tcp_server = None
        if enable_tcp:
            tcp_server = reactor.listenTCP(
                actual_port, SeedTCPFactory(dispatcher), interface=listen_address
            )
            logger.info(f"DNS seed TCP server listening on {listen_address}:{actual_port}")

        if listen_port == 0:
            logger.info(f"Dynamic port allocation: actual port is {actual_port}")
            print(f"ACTUAL_PORT={actual_port}")

        return udp_server, tcp_server
    except Exception as e:
        _handle_bind_error(e, listen_port, listen_address, logger)


def _validate_port(value):
    """Validate port number is in valid range"""
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid port number: {value}")
    if port < MIN_PORT_NUMBER or port > MAX_PORT_NUMBER:
        raise argparse.ArgumentTypeError(
            f"Port must be between {MIN_PORT_NUMBER} and {MAX_PORT_NUMBER}"
        )
    return port


def _parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="DNS seed handing out peers of a decentralized network "
        "as A, AAAA and SRV records.",
    )
    parser.add_argument(
        "-c", "--config", default="/etc/dns-seed/dns-seed.cfg", help="Configuration file path"
    )
    parser.add_argument("-l", "--logfile", help="Log file path (overrides config)")
    parser.add_argument(
        "-L", "--loglevel", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level"
    )
    parser.add_argument("-p", "--port", type=_validate_port, help="Listen port (overrides config)")
    parser.add_argument("-a", "--address", help="Listen address (overrides config)")
    parser.add_argument("--apex", help="Apex domain to serve (overrides config)")
    parser.add_argument("--peers-file", help="JSON peers file (overrides config)")
    parser.add_argument("-v", "--version", action="store_true", help="Show version")

    return parser.parse_args(argv)


def _handle_version_check(args):
    """Handle version check and exit if requested"""
    if args.version:
        from dns_seed import __version__

        print(f"DNS seed version {__version__}")
        sys.exit(0)


def _load_configuration(config_path):
    """Load configuration from file"""
    from dns_seed.config import DNSSeedConfig

    print(f"Loading configuration from: {config_path}")
    return DNSSeedConfig(config_path)


def _get_logging_config(config, args):
    """Get logging configuration from config and args"""
    log_file = args.logfile or config.get("log-file", "log-file")
    log_level = args.loglevel or config.get("log-file", "debug-level", "INFO")
    syslog = config.getboolean("log-file", "syslog", False)

    return log_file, log_level, syslog


def _get_seed_config(config, args):
    """Get seed configuration from config and args"""
    return {
        "listen_port": args.port or config.getint("dns-seed", "listen-port", DNS_DEFAULT_PORT),
        "listen_address": args.address or config.get("dns-seed", "listen-address", "0.0.0.0"),
        "enable_tcp": config.getboolean("dns-seed", "tcp", True),
        "apex_domain": args.apex or config.get("dns-seed", "apex-domain"),
        "service_label": config.get("dns-seed", "service-label"),
        "ttl": config.getint("dns-seed", "ttl"),
        "policy": config.get_sampling_policy(),
        "peers_file": args.peers_file or config.get("peers", "peers-file"),
        "reload_interval": config.getfloat("peers", "reload-interval"),
        "metrics_enabled": config.getboolean("metrics", "enabled", False),
        "metrics_address": config.get("metrics", "listen-address"),
        "metrics_port": config.getint("metrics", "listen-port"),
    }


def _validate_config(seed_config, logger):
    """Validate configuration and log settings"""
    if not seed_config["apex_domain"]:
        logger.error("No apex domain configured")
        sys.exit(1)

    if seed_config["ttl"] <= 0:
        logger.error(f"TTL must be positive, got {seed_config['ttl']}")
        sys.exit(1)

    if seed_config["reload_interval"] <= 0:
        logger.error(f"Peers reload interval must be positive, got {seed_config['reload_interval']}")
        sys.exit(1)

    policy = seed_config["policy"]
    logger.info("Configuration loaded:")
    logger.info(f"  Listen: {seed_config['listen_address']}:{seed_config['listen_port']}")
    logger.info(f"  Apex domain: {seed_config['apex_domain']}")
    logger.info(
        f"  Sampling: A={policy.a_count} AAAA={policy.aaaa_count} "
        f"SRV={policy.srv_count} pool={policy.pool_size}"
    )
    logger.info(f"  Peers file: {seed_config['peers_file']}")


def _initialize_dispatcher(seed_config, metrics):
    """Build the network view, its loader and the dispatcher"""
    from dns_seed.dispatcher import SeedDispatcher
    from dns_seed.network_view import NetworkView
    from dns_seed.peer_loader import PeerFileLoader

    network_view = NetworkView()
    loader = PeerFileLoader(
        network_view,
        seed_config["peers_file"],
        interval=seed_config["reload_interval"],
        metrics=metrics,
    )

    dispatcher = SeedDispatcher(
        network_view,
        seed_config["apex_domain"],
        policy=seed_config["policy"],
        service_label=seed_config["service_label"],
        ttl=seed_config["ttl"],
        metrics=metrics,
    )
    return dispatcher, loader


def start_dns_server(seed_config, dispatcher, loader, metrics, logger):
    """Bind the listeners and run the reactor until stopped"""
    from twisted.internet import reactor

    from dns_seed.metrics import MetricsServer

    _setup_signal_handlers(logger)

    _bind_listeners(
        reactor,
        seed_config["listen_port"],
        seed_config["listen_address"],
        dispatcher,
        seed_config["enable_tcp"],
        logger,
    )

    if metrics.enabled:
        metrics_server = MetricsServer(
            metrics, seed_config["metrics_address"], seed_config["metrics_port"]
        )
        try:
            metrics_server.start()
        except Exception as e:
            _handle_bind_error(
                e, seed_config["metrics_port"], seed_config["metrics_address"], logger
            )

    reactor.callWhenRunning(loader.start)  # type: ignore[attr-defined]

    logger.info("DNS seed started successfully")
    reactor.run(installSignalHandlers=False)  # type: ignore[attr-defined]

    loader.stop()
    logger.info("DNS seed stopped")


def main(argv=None):
    """Main entry point"""
    args = _parse_arguments(argv)

    _handle_version_check(args)

    try:
        config = _load_configuration(args.config)

        log_file, log_level, syslog = _get_logging_config(config, args)
        setup_logging(log_file, log_level, syslog)
        logger = logging.getLogger("dns_seed")

        logger.info("Starting DNS seed")

        seed_config = _get_seed_config(config, args)
        _validate_config(seed_config, logger)

        from dns_seed import __version__
        from dns_seed.metrics import MetricsCollector

        metrics = MetricsCollector(enabled=seed_config["metrics_enabled"])
        metrics.set_info(__version__, seed_config)

        dispatcher, loader = _initialize_dispatcher(seed_config, metrics)

        start_dns_server(seed_config, dispatcher, loader, metrics, logger)

    except SystemExit:
        raise
    except Exception as e:
        print(f"Error starting DNS seed: {e}", file=sys.stderr)
        import traceback

        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
