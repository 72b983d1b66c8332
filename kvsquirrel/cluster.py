import logging

from redis.cluster import RedisCluster
from redis.exceptions import RedisClusterException, RedisError

from .config import SOCKET_TIMEOUT
from .errors import ClusterConnectionError

logger = logging.getLogger(__name__)

# Everything the cluster client raises for a failed request
CLUSTER_ERRORS = (RedisError, RedisClusterException)


# --- CONNECTION SETUP ---
def connect_cluster(nodes, username=None, password=None, label="cluster"):
    """Connects to a Redis cluster through its startup nodes and pings it."""
    addrs = ", ".join(f"{node.host}:{node.port}" for node in nodes)
    logger.info("🚀 Connecting to %s cluster (%s)...", label, addrs)
    try:
        client = RedisCluster(
            startup_nodes=nodes,
            username=username or None,
            password=password or None,
            decode_responses=False,  # Keep keys/values as bytes for DUMP/RESTORE
            socket_timeout=SOCKET_TIMEOUT,
        )
        client.ping()
    except CLUSTER_ERRORS as e:
        raise ClusterConnectionError(f"Failed to connect to {label} cluster ({addrs}): {e}") from e

    logger.info("✅ Connected to %s cluster: %s", label, addrs)
    if username:
        logger.info("  Using username: %s", username)
    return client
