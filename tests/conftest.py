"""
Shared fixtures: an in-memory stand-in for redis.cluster.RedisCluster.

FakeCluster implements the handful of cluster capabilities kvsquirrel uses:
listing primaries, cursor SCAN on one node, and the keyed commands for
capture and restore. Keys are spread across primaries by CRC32 so each key
has exactly one owner unless a test adds overlap on purpose.
"""

import fnmatch
import pickle
import zlib

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

DUMP_MAGIC = b"\x00FAKEDUMP"


def _b(value):
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    return str(value).encode("utf-8")


def _canonical(value):
    # Sets and dicts are pickled in sorted order so equal values dump identically
    if isinstance(value, set):
        return sorted(value)
    if isinstance(value, dict):
        return sorted(value.items())
    return list(value) if isinstance(value, list) else value


def _from_canonical(key_type, payload):
    if key_type == "set":
        return set(payload)
    if key_type in ("hash", "zset"):
        return dict(payload)
    return payload


class FakeNode:
    def __init__(self, host, port, server_type="primary"):
        self.host = host
        self.port = port
        self.server_type = server_type
        self.name = f"{host}:{port}"


class FakeNodeConnection:
    """The per-node client returned by get_redis_connection."""

    def __init__(self, cluster, node):
        self.cluster = cluster
        self.node = node

    def scan(self, cursor=0, match=None, count=None):
        if self.node.name in self.cluster.failing_nodes:
            raise RedisConnectionError(f"Error connecting to {self.node.name}")
        self.cluster.scan_calls.append((self.node.name, cursor, match, count))

        keys = sorted(self.cluster.keys_on(self.node))
        count = count or 10
        batch = keys[cursor:cursor + count]
        next_cursor = cursor + count if cursor + count < len(keys) else 0
        if match is not None:
            pattern = _b(match)
            batch = [key for key in batch if fnmatch.fnmatchcase(key, pattern)]
        # A resizing cursor may hand back a key twice within one node
        if self.node.name in self.cluster.repeat_nodes and batch:
            batch = batch + batch[:1]
        return next_cursor, batch


class FakeCluster:
    def __init__(self, primaries=3, replicas_per_primary=1):
        self.primaries = [FakeNode("10.0.0.1", 7000 + i) for i in range(primaries)]
        self.replicas = [
            FakeNode("10.0.0.2", 7100 + i * replicas_per_primary + r, server_type="replica")
            for i in range(primaries)
            for r in range(replicas_per_primary)
        ]
        self.data = {}            # key -> [type, value, ttl_ms or None]
        self.failing_nodes = set()
        self.repeat_nodes = set()
        self.extra_keys = {}      # node name -> keys also visible from that node
        self.failing_keys = {}    # key -> command name that raises
        self.scan_calls = []
        self.writes = []
        self.closed = False

    # --- topology ---
    def owner(self, key):
        return self.primaries[zlib.crc32(key) % len(self.primaries)]

    def keys_on(self, node):
        keys = {key for key in self.data if self.owner(key) is node}
        keys.update(key for key in self.extra_keys.get(node.name, ()) if key in self.data)
        return keys

    def get_primaries(self):
        return list(self.primaries)

    def get_replicas(self):
        return list(self.replicas)

    def get_redis_connection(self, node):
        if node.server_type != "primary":
            raise AssertionError(f"replica {node.name} must not be scanned")
        return FakeNodeConnection(self, node)

    def ping(self):
        return True

    def close(self):
        self.closed = True

    # --- helpers ---
    def _check(self, command, key):
        if self.failing_keys.get(_b(key)) == command:
            raise RedisConnectionError(f"{command} failed for {key!r}")

    def _entry(self, key, expected):
        entry = self.data.get(key)
        if entry is None:
            return None
        if entry[0] != expected:
            raise ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")
        return entry

    def _write(self, command, key):
        self._check(command, key)
        self.writes.append((command, key))

    def put(self, key, key_type, value, ttl_ms=None):
        """Seeds a key directly, bypassing the command surface."""
        self.data[_b(key)] = [key_type, value, ttl_ms]

    # --- read commands ---
    def pttl(self, key):
        self._check("pttl", key)
        entry = self.data.get(key)
        if entry is None:
            return -2
        return -1 if entry[2] is None else entry[2]

    def ttl(self, key):
        pttl = self.pttl(key)
        return pttl if pttl < 0 else pttl // 1000

    def type(self, key):
        self._check("type", key)
        entry = self.data.get(key)
        return b"none" if entry is None else _b(entry[0])

    def exists(self, *keys):
        return sum(1 for key in keys if key in self.data)

    def dump(self, key):
        self._check("dump", key)
        entry = self.data.get(key)
        if entry is None:
            return None
        return DUMP_MAGIC + pickle.dumps((entry[0], _canonical(entry[1])))

    def get(self, key):
        self._check("get", key)
        entry = self._entry(key, "string")
        return None if entry is None else entry[1]

    def lrange(self, key, start, end):
        self._check("lrange", key)
        entry = self._entry(key, "list")
        if entry is None:
            return []
        items = entry[1]
        return list(items[start:] if end == -1 else items[start:end + 1])

    def smembers(self, key):
        self._check("smembers", key)
        entry = self._entry(key, "set")
        return set() if entry is None else set(entry[1])

    def zrange(self, key, start, end, withscores=False):
        self._check("zrange", key)
        entry = self._entry(key, "zset")
        if entry is None:
            return []
        ranked = sorted(entry[1].items(), key=lambda item: (item[1], item[0]))
        ranked = ranked[start:] if end == -1 else ranked[start:end + 1]
        if withscores:
            return [(member, float(score)) for member, score in ranked]
        return [member for member, _ in ranked]

    def hgetall(self, key):
        self._check("hgetall", key)
        entry = self._entry(key, "hash")
        return {} if entry is None else dict(entry[1])

    # --- write commands ---
    def restore(self, key, ttl, value, replace=False):
        self._write("restore", key)
        if key in self.data and not replace:
            raise ResponseError("BUSYKEY Target key name already exists.")
        if not value.startswith(DUMP_MAGIC):
            raise ResponseError("ERR DUMP payload version or checksum are wrong")
        key_type, payload = pickle.loads(value[len(DUMP_MAGIC):])
        self.data[key] = [key_type, _from_canonical(key_type, payload), ttl if ttl > 0 else None]
        return b"OK"

    def set(self, key, value, ex=None, px=None):
        self._write("set", key)
        ttl_ms = px if px else (ex * 1000 if ex else None)
        self.data[_b(key)] = ["string", _b(value), ttl_ms]
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            self._write("delete", key)
            if self.data.pop(_b(key), None) is not None:
                removed += 1
        return removed

    def rpush(self, key, *values):
        self._write("rpush", key)
        if not values:
            raise ResponseError("ERR wrong number of arguments for 'rpush' command")
        entry = self._entry(_b(key), "list") or self.data.setdefault(_b(key), ["list", [], None])
        entry[1].extend(_b(v) for v in values)
        return len(entry[1])

    def sadd(self, key, *values):
        self._write("sadd", key)
        if not values:
            raise ResponseError("ERR wrong number of arguments for 'sadd' command")
        entry = self._entry(_b(key), "set") or self.data.setdefault(_b(key), ["set", set(), None])
        before = len(entry[1])
        entry[1].update(_b(v) for v in values)
        return len(entry[1]) - before

    def hset(self, key, field=None, value=None, mapping=None):
        self._write("hset", key)
        items = dict(mapping or {})
        if field is not None:
            items[field] = value
        entry = self._entry(_b(key), "hash") or self.data.setdefault(_b(key), ["hash", {}, None])
        for f, v in items.items():
            entry[1][_b(f)] = _b(v)
        return len(items)

    def zadd(self, key, mapping):
        self._write("zadd", key)
        entry = self._entry(_b(key), "zset") or self.data.setdefault(_b(key), ["zset", {}, None])
        for member, score in mapping.items():
            if not isinstance(score, (int, float)):
                raise ResponseError("ERR value is not a valid float")
            entry[1][_b(member)] = float(score)
        return len(mapping)

    def pexpire(self, key, ms):
        self._write("pexpire", key)
        entry = self.data.get(_b(key))
        if entry is None:
            return False
        entry[2] = ms
        return True

    def expire(self, key, seconds):
        return self.pexpire(key, seconds * 1000)


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def target():
    return FakeCluster(primaries=2)


@pytest.fixture
def populated(cluster):
    """A source cluster holding one key of each supported type."""
    cluster.put("user:1", "string", b"alice")
    cluster.put("user:2", "hash", {b"name": b"bob", b"age": b"42", b"city": b"Paris"}, ttl_ms=60_000)
    cluster.put("queue:jobs", "list", [b"j3", b"j1", b"j2", b"j1"])
    cluster.put("tags:7", "set", {b"red", b"green", b"blue"}, ttl_ms=5_000)
    cluster.put("board", "zset", {b"carol": 10.0, b"dave": 2.5, b"erin": 7.0})
    cluster.put("order:1", "string", b"pending")
    return cluster
