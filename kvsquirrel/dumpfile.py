"""
Export sink and import source: the JSON dump file.

The file is one JSON array, one object per key:

    {"key": "user:1", "type": "hash", "ttl": 5000000000, "value": {...}}
    {"key": "user:1", "type": "hash", "ttl": 0, "dump": "<base64>"}

``ttl`` is in nanoseconds, 0 meaning no expiration. Byte strings are stored
as UTF-8 text; bytes that are not valid UTF-8 go through surrogateescape
and come out as \\udcXX escapes, so every key and value round-trips exactly.
"""

import base64
import binascii
import datetime
import json
import logging
import os

from .config import Strategy
from .errors import DumpFileError
from .snapshot import KeySnapshot, KeyType

logger = logging.getLogger(__name__)


def _to_text(value):
    return value.decode("utf-8", errors="surrogateescape")


def _to_bytes(value):
    return value.encode("utf-8", errors="surrogateescape")


def _maybe_bytes(value):
    return _to_bytes(value) if isinstance(value, str) else value


def ttl_to_ns(ttl):
    if ttl is None:
        return 0
    return (ttl // datetime.timedelta(microseconds=1)) * 1000


def ttl_from_ns(ns):
    if ns <= 0:
        return None
    # Round up so a sub-microsecond TTL still expires
    return datetime.timedelta(microseconds=-(-ns // 1000))


# --- EXPORT ---
def encode_value(key_type, value):
    if key_type is KeyType.STRING:
        return _to_text(value)
    if key_type is KeyType.LIST:
        return [_to_text(item) for item in value]
    if key_type is KeyType.SET:
        return [_to_text(item) for item in sorted(value)]
    if key_type is KeyType.ZSET:
        return [{"member": _to_text(member), "score": score} for member, score in value]
    if key_type is KeyType.HASH:
        return {_to_text(field): _to_text(item) for field, item in sorted(value.items())}
    raise DumpFileError(f"Cannot encode value of type {key_type}")


def snapshot_to_record(snapshot):
    record = {
        "key": _to_text(snapshot.key),
        "type": snapshot.type.value,
        "ttl": ttl_to_ns(snapshot.ttl),
    }
    if snapshot.dump is not None:
        record["dump"] = base64.b64encode(snapshot.dump).decode("ascii")
    else:
        record["value"] = encode_value(snapshot.type, snapshot.value)
    return record


def write_snapshots(path, snapshots):
    """Writes all snapshots to path as one JSON array. An empty list is valid."""
    records = [snapshot_to_record(snapshot) for snapshot in snapshots]
    tmp_path = f"{path}.tmp"
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)
            f.write("\n")
        os.replace(tmp_path, path)
    except OSError as e:
        raise DumpFileError(f"Failed to write {path}: {e}") from e
    logger.info("Wrote %d keys to %s", len(records), path)


# --- IMPORT ---
def decode_value(key_type, raw):
    """
    Converts a JSON value back to byte strings where the shape allows it.

    Shapes that do not match the type are passed through untouched so the
    restore step can report them against the key.
    """
    if key_type is KeyType.STRING:
        return _maybe_bytes(raw)
    if key_type in (KeyType.LIST, KeyType.SET):
        if isinstance(raw, list):
            return [_maybe_bytes(item) for item in raw]
        return raw
    if key_type is KeyType.ZSET:
        if isinstance(raw, list):
            return [_decode_zset_entry(item) for item in raw]
        return raw
    if key_type is KeyType.HASH:
        if isinstance(raw, dict):
            return {_to_bytes(field): _maybe_bytes(item) for field, item in raw.items()}
        return raw
    return raw


def _decode_zset_entry(item):
    if not isinstance(item, dict):
        return item
    # Capitalized field names are also accepted
    member = item.get("member", item.get("Member"))
    score = item.get("score", item.get("Score"))
    if member is None or score is None:
        return item
    return (_maybe_bytes(member), score)


def record_to_snapshot(record, strategy, index=0):
    """Validates one record and builds its KeySnapshot; raises DumpFileError."""
    where = f"record {index}"
    if not isinstance(record, dict):
        raise DumpFileError(f"{where}: expected an object")

    key = record.get("key")
    if not isinstance(key, str) or not key:
        raise DumpFileError(f"{where}: missing or empty key")
    where = f"record {index} ({key!r})"

    key_type = KeyType.parse(record.get("type")) if isinstance(record.get("type"), str) else None
    if key_type is None:
        raise DumpFileError(f"{where}: unsupported type {record.get('type')!r}")

    ttl_ns = record.get("ttl", 0)
    if isinstance(ttl_ns, bool) or not isinstance(ttl_ns, int):
        raise DumpFileError(f"{where}: ttl must be an integer, got {ttl_ns!r}")

    dump = record.get("dump")
    value = record.get("value")
    if strategy is Strategy.DUMP:
        if dump is None:
            raise DumpFileError(f"{where}: no dump payload; re-run import with --no-use-dump")
        if not isinstance(dump, str):
            raise DumpFileError(f"{where}: dump must be a base64 string")
        try:
            payload = base64.b64decode(dump, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DumpFileError(f"{where}: invalid base64 dump: {e}") from e
    elif value is None:
        raise DumpFileError(f"{where}: no value payload; re-run import with --use-dump")

    # Text that no byte string could have produced, e.g. a lone \ud800
    try:
        raw_key = _to_bytes(key)
        if strategy is Strategy.DUMP:
            return KeySnapshot(key=raw_key, type=key_type, ttl=ttl_from_ns(ttl_ns), dump=payload)
        return KeySnapshot(key=raw_key, type=key_type, ttl=ttl_from_ns(ttl_ns),
                           value=decode_value(key_type, value))
    except UnicodeEncodeError as e:
        raise DumpFileError(f"{where}: text cannot be converted back to bytes: {e}") from e


def read_snapshots(path, strategy):
    """
    Loads and validates every record in the dump file.

    The whole file is checked before anything is returned, so a malformed
    file fails the import before the first write to the target.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)
    except OSError as e:
        raise DumpFileError(f"Failed to open input file {path}: {e}") from e
    except ValueError as e:
        raise DumpFileError(f"Failed to parse JSON in {path}: {e}") from e

    if not isinstance(records, list):
        raise DumpFileError(f"{path}: expected a JSON array of keys")

    snapshots = [record_to_snapshot(record, strategy, i) for i, record in enumerate(records)]
    logger.info("✓ Loaded %d keys from %s", len(snapshots), path)
    return snapshots
