import logging

from .cluster import CLUSTER_ERRORS
from .config import PROGRESS_EVERY, Strategy
from .errors import CaptureError, KeyVanishedError, UnsupportedTypeError
from .snapshot import KeySnapshot, KeyType, MigrationStats, ttl_from_pttl

logger = logging.getLogger(__name__)


def read_value(client, key, key_type):
    """Reads a key's value in its decomposed form, dispatched on type."""
    if key_type is KeyType.STRING:
        value = client.get(key)
    elif key_type is KeyType.LIST:
        value = client.lrange(key, 0, -1)
    elif key_type is KeyType.SET:
        value = sorted(client.smembers(key))
    elif key_type is KeyType.ZSET:
        value = [(member, float(score))
                 for member, score in client.zrange(key, 0, -1, withscores=True)]
    elif key_type is KeyType.HASH:
        value = client.hgetall(key)
    else:
        raise UnsupportedTypeError(key, key_type)

    # A missing key reads back as nil or as an empty collection
    if value is None or (key_type is not KeyType.STRING and not value):
        raise KeyVanishedError(key)
    return value


def capture_key(client, key, strategy):
    """
    Reads one key into a KeySnapshot: PTTL, then TYPE, then the payload.

    Raises CaptureError (or a subclass) when any step fails; the caller
    decides whether that is fatal.
    """
    try:
        pttl = client.pttl(key)
        # -2: key is gone; 0: it expires this very millisecond
        if pttl == -2 or pttl == 0:
            raise KeyVanishedError(key)

        type_name = client.type(key)
        key_type = KeyType.parse(type_name)
        if key_type is None:
            if type_name in (b"none", "none"):
                raise KeyVanishedError(key)
            raise UnsupportedTypeError(key, _text(type_name))

        if strategy is Strategy.DUMP:
            dump = client.dump(key)
            if dump is None:
                raise KeyVanishedError(key)
            return KeySnapshot(key=key, type=key_type, ttl=ttl_from_pttl(pttl), dump=dump)

        value = read_value(client, key, key_type)
        return KeySnapshot(key=key, type=key_type, ttl=ttl_from_pttl(pttl), value=value)
    except CLUSTER_ERRORS as e:
        raise CaptureError(key, str(e)) from e


def capture_keys(client, keys, strategy):
    """
    Captures every key in order, skipping the ones that fail.

    Returns (snapshots, stats). A failed key is logged and counted, never
    retried, and never aborts the batch.
    """
    stats = MigrationStats(phase="export")
    snapshots = []
    total = len(keys)

    logger.info("Exporting key data (%s strategy)...", strategy.value)
    for i, key in enumerate(keys, start=1):
        if i % PROGRESS_EVERY == 0:
            logger.info("  Progress: %d/%d keys", i, total)

        try:
            snapshots.append(capture_key(client, key, strategy))
        except CaptureError as e:
            logger.warning("  ⚠ Failed to export key %s", e)
            stats.record_failure(key)
            continue
        stats.record_success()

    return snapshots, stats


def _text(value):
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
