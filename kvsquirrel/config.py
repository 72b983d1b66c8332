import enum

from redis.cluster import ClusterNode

from .errors import ConfigError

# --- CONFIGURATION ---
DEFAULT_PORT = 6379
DEFAULT_SOURCE_ADDRS = "localhost:7000,localhost:7001"
DEFAULT_TARGET_ADDRS = "localhost:8000,localhost:8001"
DEFAULT_PATTERN = "*"
DEFAULT_OUTPUT_FILE = "redis-dump.json"
DEFAULT_BATCH_SIZE = 1000  # COUNT hint for each SCAN call

SOCKET_TIMEOUT = 30        # Seconds, per request
PROGRESS_EVERY = 100       # Log progress every N keys
RESTORE_CHUNK_SIZE = 1000  # Max elements per RPUSH/SADD/HSET/ZADD call


class Strategy(enum.Enum):
    """How a key's value is captured and replayed for one run."""

    DUMP = "dump"              # DUMP / RESTORE, engine-native payload
    DECOMPOSED = "decomposed"  # type-by-type reads and bulk writes

    @classmethod
    def from_flag(cls, use_dump):
        return cls.DUMP if use_dump else cls.DECOMPOSED


def split_list(value):
    """Splits a comma-separated flag value, dropping empty entries."""
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_address(addr):
    """Turns 'host:port' (or a bare host) into a ClusterNode."""
    host, sep, port = addr.rpartition(":")
    if not sep:
        return ClusterNode(addr, DEFAULT_PORT)
    if not host:
        raise ConfigError(f"Missing host in address '{addr}'")
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigError(f"Invalid port in address '{addr}'") from None
    if not 0 < port_num < 65536:
        raise ConfigError(f"Port out of range in address '{addr}'")
    return ClusterNode(host, port_num)


def parse_addresses(value):
    """Parses a comma-separated list of cluster startup nodes."""
    nodes = [parse_address(addr) for addr in split_list(value)]
    if not nodes:
        raise ConfigError("At least one cluster address is required")
    return nodes
