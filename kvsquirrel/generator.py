"""
kv-random-gen: fill a cluster with realistic mixed-type test data.

Useful to rehearse an export/import before pointing kv-squirrel at
production. Keys are named <prefix>:<type>:<index>.
"""

import argparse
import json
import logging
import random
import string
import sys
import time

from . import config
from .cluster import CLUSTER_ERRORS, connect_cluster
from .errors import ConfigError, MigrationError

logger = logging.getLogger(__name__)

DATA_TYPES = ("string", "list", "set", "hash", "zset")
DEFAULT_ADDRS = "localhost:7000,localhost:7001,localhost:7002"

# Sample data for generating realistic test data
FIRST_NAMES = ["John", "Jane", "Alice", "Bob", "Charlie", "Diana", "Eve", "Frank", "Grace", "Henry"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Rodriguez", "Martinez"]
CITIES = ["NewYork", "London", "Tokyo", "Paris", "Berlin", "Sydney", "Toronto", "Mumbai", "Beijing", "Moscow"]
PRODUCTS = ["Laptop", "Phone", "Tablet", "Camera", "Headphones", "Watch", "Keyboard", "Mouse", "Monitor", "Speaker"]
STATUSES = ["active", "pending", "inactive", "suspended", "verified", "processing", "completed", "failed"]

CHARSET = string.ascii_letters + string.digits


def random_string(rng, length):
    return "".join(rng.choice(CHARSET) for _ in range(length))


def random_ttl(rng, opts):
    """Seconds to live, drawn from [min_ttl, max_ttl); 0 means no expiration."""
    if opts.max_ttl == 0:
        return 0
    ttl = opts.min_ttl
    if opts.max_ttl > opts.min_ttl:
        ttl += rng.randrange(opts.max_ttl - opts.min_ttl)
    return ttl


def _expire(client, key, ttl):
    if ttl > 0:
        client.expire(key, ttl)


def generate_string(client, opts, index, rng):
    key = f"{opts.prefix}:string:{index}"

    kind = rng.randrange(5)
    if kind == 0:  # User data
        value = json.dumps({
            "id": index,
            "name": f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
            "email": f"{random_string(rng, 8)}@example.com",
            "age": 20 + rng.randrange(50),
            "city": rng.choice(CITIES),
        })
    elif kind == 1:  # Session token
        value = f"session_{random_string(rng, 32)}_{int(time.time())}"
    elif kind == 2:  # Counter
        value = str(rng.randrange(10000))
    elif kind == 3:
        value = rng.choice(STATUSES)
    else:
        value = random_string(rng, opts.string_size)

    ttl = random_ttl(rng, opts)
    client.set(key, value, ex=ttl or None)
    return key


def generate_list(client, opts, index, rng):
    key = f"{opts.prefix}:list:{index}"
    items = [f"item_{i}_{random_string(rng, 10)}" for i in range(opts.list_size)]
    client.rpush(key, *items)
    _expire(client, key, random_ttl(rng, opts))
    return key


def generate_set(client, opts, index, rng):
    key = f"{opts.prefix}:set:{index}"
    members = [f"{rng.choice(PRODUCTS)}_{rng.randrange(1000)}" for _ in range(opts.set_size)]
    client.sadd(key, *members)
    _expire(client, key, random_ttl(rng, opts))
    return key


def generate_hash(client, opts, index, rng):
    key = f"{opts.prefix}:hash:{index}"

    kind = rng.randrange(3)
    if kind == 0:  # User profile
        fields = {
            "id": str(index),
            "username": f"{random_string(rng, 8)}{index}",
            "email": f"{random_string(rng, 10)}@example.com",
            "created_at": int(time.time()),
            "status": rng.choice(STATUSES),
            "login_count": rng.randrange(1000),
        }
    elif kind == 1:  # Product
        fields = {
            "product_id": f"PROD_{index}",
            "name": rng.choice(PRODUCTS),
            "price": f"{10.0 + rng.random() * 990.0:.2f}",
            "stock": rng.randrange(500),
            "category": f"cat_{rng.randrange(10)}",
        }
    else:
        fields = {f"field_{i}": random_string(rng, 20) for i in range(opts.hash_fields)}

    client.hset(key, mapping=fields)
    _expire(client, key, random_ttl(rng, opts))
    return key


def generate_zset(client, opts, index, rng):
    key = f"{opts.prefix}:zset:{index}"
    members = {f"{random_string(rng, 10)}:{i}": float(rng.randrange(1000)) for i in range(opts.zset_members)}
    client.zadd(key, members)
    _expire(client, key, random_ttl(rng, opts))
    return key


GENERATORS = {
    "string": generate_string,
    "list": generate_list,
    "set": generate_set,
    "hash": generate_hash,
    "zset": generate_zset,
}


def parse_types(value):
    types = config.split_list(value)
    unknown = [name for name in types if name not in GENERATORS]
    if unknown:
        raise ConfigError(f"Unknown data type(s): {', '.join(unknown)} (choose from {', '.join(DATA_TYPES)})")
    if not types:
        raise ConfigError("At least one data type is required")
    return types


def validate(opts):
    for name in ("list_size", "set_size", "hash_fields", "zset_members"):
        if getattr(opts, name) <= 0:
            raise ConfigError(f"--{name.replace('_', '-')} must be positive")
    if opts.min_ttl < 0 or opts.max_ttl < 0:
        raise ConfigError("TTL bounds must not be negative")
    if opts.max_ttl and opts.max_ttl < opts.min_ttl:
        raise ConfigError("--max-ttl must not be lower than --min-ttl")


def generate_keys(client, opts, rng=None):
    """Writes opts.count random keys. Returns (generated, failed)."""
    rng = rng or random.Random()
    types = parse_types(opts.types)
    validate(opts)

    logger.info("Generating %d keys with prefix '%s'", opts.count, opts.prefix)
    generated = 0
    failed = 0
    start = time.monotonic()

    for i in range(opts.count):
        if (i + 1) % config.PROGRESS_EVERY == 0:
            elapsed = time.monotonic() - start
            logger.info("Progress: %d/%d keys (%.0f keys/sec)", i + 1, opts.count, (i + 1) / max(elapsed, 1e-9))

        data_type = rng.choice(types)
        try:
            GENERATORS[data_type](client, opts, i, rng)
        except CLUSTER_ERRORS as e:
            logger.warning("⚠ Failed to generate key %d: %s", i, e)
            failed += 1
            continue
        generated += 1

    elapsed = time.monotonic() - start
    logger.info("✓ Generation completed in %.2fs", elapsed)
    logger.info("  Successfully generated: %d keys", generated)
    logger.info("  Failed: %d keys", failed)
    logger.info("  Average rate: %.0f keys/sec", generated / max(elapsed, 1e-9))
    return generated, failed


def build_parser():
    parser = argparse.ArgumentParser(prog="kv-random-gen", description="Generate random test data in a Redis cluster.")
    parser.add_argument("--addrs", default=DEFAULT_ADDRS, help="Redis cluster addresses (comma-separated)")
    parser.add_argument("--user", default="", help="Redis username (ACL)")
    parser.add_argument("--password", default="", help="Redis password")
    parser.add_argument("--prefix", default="test", help="Key prefix (e.g., 'user', 'session', 'product')")
    parser.add_argument("--count", type=int, default=1000, help="Number of keys to generate")
    parser.add_argument("--types", default=",".join(DATA_TYPES), help="Data types to generate (comma-separated)")
    parser.add_argument("--min-ttl", type=int, default=0, help="Minimum TTL in seconds (0 = no expiration)")
    parser.add_argument("--max-ttl", type=int, default=0, help="Maximum TTL in seconds (0 = no expiration)")
    parser.add_argument("--string-size", type=int, default=100, help="Size of string values in bytes")
    parser.add_argument("--list-size", type=int, default=10, help="Number of elements in lists")
    parser.add_argument("--set-size", type=int, default=10, help="Number of elements in sets")
    parser.add_argument("--hash-fields", type=int, default=5, help="Number of fields in hashes")
    parser.add_argument("--zset-members", type=int, default=10, help="Number of members in sorted sets")
    parser.add_argument("--seed", type=int, default=None, help="Random seed, for repeatable data")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging verbosity")
    return parser


def main(argv=None):
    opts = build_parser().parse_args(argv)
    logging.basicConfig(level=opts.log_level, format="%(asctime)s %(levelname)s %(message)s")

    try:
        parse_types(opts.types)
        validate(opts)
        client = connect_cluster(config.parse_addresses(opts.addrs), opts.user, opts.password)
        try:
            generate_keys(client, opts, random.Random(opts.seed))
        finally:
            client.close()
    except MigrationError as e:
        logger.error("❌ %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
