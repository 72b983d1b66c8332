import logging

from .capture import capture_keys
from .config import DEFAULT_BATCH_SIZE, DEFAULT_PATTERN
from .discovery import discover_keys
from .dumpfile import write_snapshots
from .restore import restore_snapshots

logger = logging.getLogger(__name__)


def report(stats):
    """Logs the end-of-run summary, with every failed key listed."""
    logger.info("\n--- %s COMPLETE ---", stats.phase.upper())
    logger.info("Total keys %sed: %d", stats.phase, stats.succeeded)
    if stats.failed:
        logger.warning("⚠ Failed to %s: %d keys", stats.phase, stats.failed)
        for key in stats.failed_keys:
            logger.warning("   [FAILED] %s", key.decode("utf-8", errors="backslashreplace"))
    logger.info(stats.summary())
    logger.info("--------------------------")


def export_keys(source, output_file, strategy, pattern=DEFAULT_PATTERN, batch_size=DEFAULT_BATCH_SIZE):
    """
    Runs one export: discover, capture, write.

    DiscoveryError propagates before anything is captured or written. A
    pattern matching nothing still writes a valid, empty file.
    """
    logger.info("\nScanning keys matching '%s' in chunks of %d...", pattern, batch_size)
    keys = discover_keys(source, pattern=pattern, batch_size=batch_size)
    if not keys:
        logger.warning("⚠ No keys found matching pattern. Writing an empty export.")

    snapshots, stats = capture_keys(source, keys, strategy)
    write_snapshots(output_file, snapshots)
    report(stats)
    return stats


def import_keys(target, snapshots, strategy):
    """Runs one import of already-loaded snapshots into the target cluster."""
    stats = restore_snapshots(target, snapshots, strategy)
    report(stats)
    return stats
