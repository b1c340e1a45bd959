# dns_seed/constants.py
# Version: 1.0.0
# DNS seed constants - protocol values and configuration defaults

"""
DNS Seed Constants

Protocol limits and the defaults for every tunable value live here so the
config layer and the tests share a single source.
"""

# =============================================================================
# DNS PROTOCOL CONSTANTS
# =============================================================================
DNS_DEFAULT_PORT = 8053
DNS_UDP_MAX_SIZE = 512  # RFC 1035 standard UDP DNS message size
EDNS_MAX_UDP_SIZE = 4096  # Cap on the payload size a client may advertise via EDNS0
DNS_TCP_MAX_SIZE = 65535  # Maximum TCP DNS message size

MAX_DNS_NAME_LENGTH = 255  # Maximum length of a DNS name
MAX_DNS_LABEL_LENGTH = 63  # Maximum length of a single label
MIN_DNS_PACKET_SIZE = 12  # Minimum valid DNS packet (header only)
MAX_DNS_PACKET_SIZE = 65535  # Maximum DNS message size (TCP)
MAX_DNS_QUESTIONS = 10  # Reasonable limit on questions per query

MIN_PORT_NUMBER = 1
MAX_PORT_NUMBER = 65535

# =============================================================================
# SEED NAMING
# =============================================================================
DEFAULT_APEX_DOMAIN = "lseed.bitcoinstats.com"
DEFAULT_SERVICE_LABEL = "_lightning._tcp"  # SRV owner is <label>.<apex>

# Every emitted record carries this TTL
RECORD_TTL = 60

# SRV record fields
SRV_PRIORITY = 10
SRV_WEIGHT = 10

# =============================================================================
# NODE IDENTIFIERS
# =============================================================================
NODE_ID_LENGTH = 66  # 33-byte compressed public key, hex encoded
NODE_ID_PREFIX = "0"  # Leading character dropped on encode, restored on decode
# label1 takes the maximum label length, label2 the remainder
NODE_ID_SPLIT_LENGTH = NODE_ID_LENGTH - len(NODE_ID_PREFIX)  # 65

# Type bit 0 selects the address family
NODE_TYPE_IPV6_BIT = 0x01

# =============================================================================
# SAMPLING POLICY
# =============================================================================
SAMPLE_A_COUNT = 2  # IPv4 peers per apex A query
SAMPLE_AAAA_COUNT = 3  # IPv6 peers per apex AAAA query
SAMPLE_SRV_COUNT = 255  # Peers per apex SRV query
SAMPLE_POOL_SIZE = 25  # Candidate pool cap for every sample

# =============================================================================
# PEER DIRECTORY
# =============================================================================
DEFAULT_PEERS_FILE = "/var/lib/dns-seed/peers.json"
PEERS_RELOAD_INTERVAL = 60.0  # Seconds between peers file reloads

# =============================================================================
# METRICS
# =============================================================================
METRICS_DEFAULT_ADDRESS = "127.0.0.1"
METRICS_DEFAULT_PORT = 9153
