import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from .cluster import CLUSTER_ERRORS
from .config import DEFAULT_BATCH_SIZE, DEFAULT_PATTERN
from .errors import DiscoveryError

logger = logging.getLogger(__name__)


class KeySet:
    """Set of key names shared by all node scanners; first add wins."""

    def __init__(self):
        self._keys = set()
        self._lock = threading.Lock()

    def add(self, key):
        """Returns True only the first time a key is added."""
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def __len__(self):
        with self._lock:
            return len(self._keys)

    def __contains__(self, key):
        with self._lock:
            return key in self._keys

    def sorted_keys(self):
        with self._lock:
            return sorted(self._keys)


def scan_node(client, node, key_set, pattern=DEFAULT_PATTERN, batch_size=DEFAULT_BATCH_SIZE):
    """
    Walks one primary's keyspace with SCAN until its cursor returns to 0.

    Returns the number of keys this node added to key_set. Keys already seen
    (on this node or another one) are not counted.
    """
    conn = client.get_redis_connection(node)
    logger.info("Scanning master node: %s", node.name)

    added = 0
    cursor = 0
    while True:
        cursor, keys = conn.scan(cursor=cursor, match=pattern, count=batch_size)
        for key in keys:
            if key_set.add(key):
                added += 1
        if int(cursor) == 0:
            break

    logger.info("  Found %d keys on %s", added, node.name)
    return added


def discover_keys(client, pattern=DEFAULT_PATTERN, batch_size=DEFAULT_BATCH_SIZE):
    """
    Collects every key matching pattern across all primaries of the cluster.

    One scanning thread runs per primary; replicas are never scanned. If any
    node fails, DiscoveryError is raised naming every failed node, since a
    partial key list would silently produce a partial migration.
    """
    primaries = client.get_primaries()
    if not primaries:
        raise DiscoveryError([], "Cluster reports no primary nodes; refusing to export an empty keyspace")
    key_set = KeySet()

    failures = []
    with ThreadPoolExecutor(max_workers=len(primaries), thread_name_prefix="scan") as pool:
        futures = {
            pool.submit(scan_node, client, node, key_set, pattern, batch_size): node
            for node in primaries
        }
        for future, node in futures.items():
            try:
                future.result()
            except CLUSTER_ERRORS as e:
                logger.error("❌ Scan error on %s: %s", node.name, e)
                failures.append((node.name, e))

    if failures:
        raise DiscoveryError(failures)

    keys = key_set.sorted_keys()
    logger.info("✓ Total unique keys found: %d", len(keys))
    return keys
