import configparser
import logging
import os
import sys
from typing import Any, Optional

from dns_seed.constants import (
    DEFAULT_APEX_DOMAIN,
    DEFAULT_PEERS_FILE,
    DEFAULT_SERVICE_LABEL,
    DNS_DEFAULT_PORT,
    METRICS_DEFAULT_ADDRESS,
    METRICS_DEFAULT_PORT,
    PEERS_RELOAD_INTERVAL,
    RECORD_TTL,
    SAMPLE_A_COUNT,
    SAMPLE_AAAA_COUNT,
    SAMPLE_POOL_SIZE,
    SAMPLE_SRV_COUNT,
)
from dns_seed.dispatcher import SamplingPolicy


class DNSSeedConfig:
    """Configuration manager for the DNS seed"""

    DEFAULT_CONFIG_PATH = "/etc/dns-seed/dns-seed.cfg"
    DEFAULT_CONFIG = {
        "dns-seed": {
            "listen-port": str(DNS_DEFAULT_PORT),
            "listen-address": "0.0.0.0",
            "apex-domain": DEFAULT_APEX_DOMAIN,
            "service-label": DEFAULT_SERVICE_LABEL,
            "ttl": str(RECORD_TTL),
            "tcp": "true",
        },
        "sampling": {
            "a-count": str(SAMPLE_A_COUNT),
            "aaaa-count": str(SAMPLE_AAAA_COUNT),
            "srv-count": str(SAMPLE_SRV_COUNT),
            "pool-size": str(SAMPLE_POOL_SIZE),
        },
        "peers": {
            "peers-file": DEFAULT_PEERS_FILE,
            "reload-interval": str(PEERS_RELOAD_INTERVAL),
        },
        "metrics": {
            "enabled": "false",
            "listen-address": METRICS_DEFAULT_ADDRESS,
            "listen-port": str(METRICS_DEFAULT_PORT),
        },
        "log-file": {
            "log-file": "none",
            "debug-level": "INFO",
            "syslog": "false",
        },
    }

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self.config = configparser.ConfigParser()
        self._load_defaults()
        self._load_config()

    def _load_defaults(self):
        """Load default configuration"""
        for section, options in self.DEFAULT_CONFIG.items():
            self.config.add_section(section)
            for key, value in options.items():
                self.config.set(section, key, value)

    def _load_config(self):
        """Load configuration from file"""
        if os.path.exists(self.config_path):
            try:
                self.config.read(self.config_path)
            except configparser.Error as e:
                print(f"Error reading config file {self.config_path}: {e}", file=sys.stderr)
                sys.exit(1)
        else:
            print(f"Warning: Config file {self.config_path} not found, using defaults")

    def get(self, section: str, option: str, fallback: Any = None) -> str:
        """Get configuration value"""
        try:
            return self.config.get(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback

    def getint(self, section: str, option: str, fallback: int = 0) -> int:
        """Get integer configuration value"""
        try:
            return self.config.getint(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getfloat(self, section: str, option: str, fallback: float = 0.0) -> float:
        """Get float configuration value"""
        try:
            return self.config.getfloat(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getboolean(self, section: str, option: str, fallback: bool = False) -> bool:
        """Get boolean configuration value"""
        try:
            return self.config.getboolean(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def _get_bounded_int(self, section: str, option: str, default: int, minimum: int) -> int:
        value = self.getint(section, option, default)
        if value < minimum:
            logging.warning(
                f"Invalid {section}/{option} = {value} (minimum {minimum}), using default {default}"
            )
            return default
        return value

    def get_sampling_policy(self) -> SamplingPolicy:
        """Sampling policy for apex queries

        Counts may be zero to disable a query type; the pool must hold at
        least one candidate.
        """
        return SamplingPolicy(
            a_count=self._get_bounded_int("sampling", "a-count", SAMPLE_A_COUNT, 0),
            aaaa_count=self._get_bounded_int("sampling", "aaaa-count", SAMPLE_AAAA_COUNT, 0),
            srv_count=self._get_bounded_int("sampling", "srv-count", SAMPLE_SRV_COUNT, 0),
            pool_size=self._get_bounded_int("sampling", "pool-size", SAMPLE_POOL_SIZE, 1),
        )
