import logging

from .cluster import CLUSTER_ERRORS
from .config import PROGRESS_EVERY, RESTORE_CHUNK_SIZE, Strategy
from .errors import MalformedValueError, RestoreError
from .snapshot import KeyType, MigrationStats

logger = logging.getLogger(__name__)


def _chunks(items, size=RESTORE_CHUNK_SIZE):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _check_bytes(key, value, what):
    if not isinstance(value, bytes):
        raise MalformedValueError(key, f"invalid {what}: expected a string, got {type(value).__name__}")
    return value


def _check_elements(key, value, type_name):
    if not isinstance(value, list):
        raise MalformedValueError(key, f"invalid {type_name} value: expected an array")
    if not value:
        raise MalformedValueError(key, f"invalid {type_name} value: empty")
    return [_check_bytes(key, item, f"{type_name} element") for item in value]


def _check_score(key, score):
    # bool is an int subclass, and JSON true/false is never a score
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise MalformedValueError(key, f"invalid zset score: {score!r}")
    return float(score)


def _check_zset(key, value):
    if not isinstance(value, list):
        raise MalformedValueError(key, "invalid zset value: expected an array")
    if not value:
        raise MalformedValueError(key, "invalid zset value: empty")
    members = []
    for item in value:
        if not isinstance(item, tuple) or len(item) != 2:
            raise MalformedValueError(key, f"invalid zset entry: {item!r}")
        member, score = item
        members.append((_check_bytes(key, member, "zset member"), _check_score(key, score)))
    return members


def _check_hash(key, value):
    if not isinstance(value, dict):
        raise MalformedValueError(key, "invalid hash value: expected an object")
    if not value:
        raise MalformedValueError(key, "invalid hash value: empty")
    return {
        _check_bytes(key, field, "hash field"): _check_bytes(key, item, "hash value")
        for field, item in value.items()
    }


def _expire(client, key, ttl_ms):
    if ttl_ms > 0:
        client.pexpire(key, ttl_ms)


def write_value(client, snapshot):
    """
    Rebuilds a key from its decomposed value.

    Collections are deleted first and then filled in chunks, so a re-import
    replaces rather than appends. This is not atomic: a failure part way
    leaves a partial key without its expiration.
    """
    key = snapshot.key
    value = snapshot.value
    ttl_ms = snapshot.ttl_ms

    if snapshot.type is KeyType.STRING:
        client.set(key, _check_bytes(key, value, "string value"), px=ttl_ms or None)
        return

    if snapshot.type is KeyType.LIST:
        items = _check_elements(key, value, "list")
        client.delete(key)
        for chunk in _chunks(items):
            client.rpush(key, *chunk)
    elif snapshot.type is KeyType.SET:
        members = _check_elements(key, value, "set")
        client.delete(key)
        for chunk in _chunks(members):
            client.sadd(key, *chunk)
    elif snapshot.type is KeyType.ZSET:
        members = _check_zset(key, value)
        client.delete(key)
        for chunk in _chunks(members):
            client.zadd(key, dict(chunk))
    elif snapshot.type is KeyType.HASH:
        fields = list(_check_hash(key, value).items())
        client.delete(key)
        for chunk in _chunks(fields):
            client.hset(key, mapping=dict(chunk))
    else:
        raise RestoreError(key, f"unsupported type: {snapshot.type}")

    _expire(client, key, ttl_ms)


def restore_key(client, snapshot, strategy):
    """Writes one snapshot to the target with the run's strategy."""
    key = snapshot.key
    try:
        if strategy is Strategy.DUMP:
            if snapshot.dump is None:
                raise RestoreError(key, "no dump payload for dump strategy")
            # RESTORE ... REPLACE: 0 ttl means no expiration
            client.restore(key, snapshot.ttl_ms, snapshot.dump, replace=True)
        else:
            if snapshot.value is None:
                raise RestoreError(key, "no value for decomposed strategy")
            write_value(client, snapshot)
    except CLUSTER_ERRORS as e:
        raise RestoreError(key, str(e)) from e


def restore_snapshots(client, snapshots, strategy):
    """Restores every snapshot in order; failures are logged, counted and skipped."""
    stats = MigrationStats(phase="import")
    total = len(snapshots)

    logger.info("Importing keys (%s strategy)...", strategy.value)
    for i, snapshot in enumerate(snapshots, start=1):
        if i % PROGRESS_EVERY == 0:
            logger.info("  Progress: %d/%d keys", i, total)

        try:
            restore_key(client, snapshot, strategy)
        except RestoreError as e:
            logger.warning("  ⚠ Failed to import key %s", e)
            stats.record_failure(snapshot.key)
            continue
        stats.record_success()

    return stats
