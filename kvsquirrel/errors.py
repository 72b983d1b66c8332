"""
Error taxonomy for a migration run.

Connection, discovery and dump-file errors abort the run. Capture and
restore errors belong to a single key: the batch loops catch them, count
them and move on to the next key.
"""


class MigrationError(Exception):
    """Base class for every error raised by kvsquirrel."""


class ConfigError(MigrationError):
    """An operator-supplied flag value cannot be used."""


class ClusterConnectionError(MigrationError):
    """A cluster endpoint could not be reached or authenticated."""


class DiscoveryError(MigrationError):
    """
    Scanning one or more primaries failed.

    Attributes:
        failures: list of (node_name, exception) pairs, one per failed node
    """

    def __init__(self, failures, message=None):
        self.failures = list(failures)
        if message is None:
            detail = "; ".join(f"{name}: {exc}" for name, exc in self.failures)
            message = f"Scan failed on {len(self.failures)} node(s): {detail}"
        super().__init__(message)

    @property
    def nodes(self):
        return [name for name, _ in self.failures]


class KeyOperationError(MigrationError):
    """Base for errors tied to one key."""

    def __init__(self, key, message):
        self.key = key
        self.message = message
        super().__init__(f"{_show(key)}: {message}")


class CaptureError(KeyOperationError):
    """Reading one key from the source failed."""


class UnsupportedTypeError(CaptureError):
    """The key holds a type outside string/list/set/zset/hash."""

    def __init__(self, key, key_type):
        self.key_type = key_type
        super().__init__(key, f"unsupported type: {key_type}")


class KeyVanishedError(CaptureError):
    """The key expired or was deleted between discovery and capture."""

    def __init__(self, key):
        super().__init__(key, "key no longer exists")


class RestoreError(KeyOperationError):
    """Writing one key to the target failed."""


class MalformedValueError(RestoreError):
    """A decomposed value does not have the shape its type requires."""


class DumpFileError(MigrationError):
    """The export file cannot be written, or cannot be read back."""


def _show(key):
    if isinstance(key, bytes):
        return key.decode("utf-8", errors="backslashreplace")
    return str(key)
