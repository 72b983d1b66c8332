"""
Data model shared by export and import.

A KeySnapshot is the unit of migration: one key, its type, its remaining
time-to-live and exactly one payload. The payload is either the opaque DUMP
bytes or the decomposed value, depending on the run's Strategy.

Decomposed value shapes (all byte strings, as read with
decode_responses=False):

    string  bytes
    list    list of bytes, in list order
    set     list of bytes, order irrelevant
    zset    list of (member, score) tuples, in rank order
    hash    dict of field -> value
"""

import datetime
import enum
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional


class KeyType(enum.Enum):
    STRING = "string"
    LIST = "list"
    SET = "set"
    ZSET = "zset"
    HASH = "hash"

    @classmethod
    def parse(cls, name):
        """Returns the KeyType for a TYPE reply or file tag, or None."""
        if isinstance(name, bytes):
            name = name.decode("ascii", errors="replace")
        try:
            return cls(name)
        except ValueError:
            return None


def ttl_from_pttl(pttl):
    """Converts a PTTL reply to a remaining TTL; negatives mean no expiration."""
    if pttl is None or pttl < 0:
        return None
    return datetime.timedelta(milliseconds=pttl)


def ttl_to_ms(ttl):
    """Converts a remaining TTL to milliseconds, rounding up; 0 means no expiration."""
    if ttl is None:
        return 0
    return max(math.ceil(ttl / datetime.timedelta(milliseconds=1)), 0)


@dataclass
class KeySnapshot:
    key: bytes
    type: KeyType
    ttl: Optional[datetime.timedelta] = None
    dump: Optional[bytes] = None
    value: Any = None

    def __post_init__(self):
        if not self.key:
            raise ValueError("snapshot key must not be empty")
        if not isinstance(self.type, KeyType):
            raise ValueError(f"invalid snapshot type: {self.type!r}")
        if (self.dump is None) == (self.value is None):
            raise ValueError("snapshot must carry exactly one of dump or value")
        if self.ttl is not None and self.ttl <= datetime.timedelta(0):
            self.ttl = None

    @property
    def is_opaque(self):
        return self.dump is not None

    @property
    def ttl_ms(self):
        return ttl_to_ms(self.ttl)


@dataclass
class MigrationStats:
    """Per-run tallies. Advisory only: nothing branches on them mid-run."""

    phase: str
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_keys: List[bytes] = field(default_factory=list)

    def record_success(self):
        self.attempted += 1
        self.succeeded += 1

    def record_failure(self, key):
        self.attempted += 1
        self.failed += 1
        self.failed_keys.append(key)

    def summary(self):
        return (f"{self.phase}: {self.attempted} attempted, "
                f"{self.succeeded} succeeded, {self.failed} failed")
