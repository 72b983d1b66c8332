import argparse
import logging
import sys

from . import config
from .cluster import connect_cluster
from .dumpfile import read_snapshots
from .errors import MigrationError
from .migrate import export_keys, import_keys

logger = logging.getLogger(__name__)


def positive_int(value):
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def build_parser():
    parser = argparse.ArgumentParser(
        prog="kv-squirrel",
        description="Export keys from a Redis cluster to a file, or import them into another cluster.",
    )
    source = parser.add_argument_group("source cluster")
    source.add_argument("--source-addrs", default=config.DEFAULT_SOURCE_ADDRS,
                        help="Source cluster addresses (comma-separated)")
    source.add_argument("--source-user", default="", help="Source cluster username (ACL)")
    source.add_argument("--source-pass", default="", help="Source cluster password")

    target = parser.add_argument_group("target cluster")
    target.add_argument("--target-addrs", default=config.DEFAULT_TARGET_ADDRS,
                        help="Target cluster addresses (comma-separated)")
    target.add_argument("--target-user", default="", help="Target cluster username (ACL)")
    target.add_argument("--target-pass", default="", help="Target cluster password")

    parser.add_argument("--pattern", default=config.DEFAULT_PATTERN, help="Key pattern to match (glob-style)")
    parser.add_argument("--output", default=config.DEFAULT_OUTPUT_FILE, help="Output file for export")
    parser.add_argument("--input", default="", help="Input file for import (if set, runs import mode)")
    parser.add_argument("--batch", type=positive_int, default=config.DEFAULT_BATCH_SIZE,
                        help="Batch size for scanning")
    parser.add_argument("--use-dump", action=argparse.BooleanOptionalAction, default=True,
                        help="Use DUMP/RESTORE commands (recommended); --no-use-dump reads and writes by type")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging verbosity")
    return parser


def run_export(args, strategy):
    logger.info("=== Export Mode ===")
    nodes = config.parse_addresses(args.source_addrs)
    source = connect_cluster(nodes, args.source_user, args.source_pass, label="source")
    try:
        export_keys(source, args.output, strategy, pattern=args.pattern, batch_size=args.batch)
    finally:
        source.close()
    logger.info("✓ Export completed successfully to %s", args.output)


def run_import(args, strategy):
    logger.info("=== Import Mode ===")
    nodes = config.parse_addresses(args.target_addrs)
    snapshots = read_snapshots(args.input, strategy)
    if not snapshots:
        logger.warning("⚠ No keys to import")
        return

    target = connect_cluster(nodes, args.target_user, args.target_pass, label="target")
    try:
        import_keys(target, snapshots, strategy)
    finally:
        target.close()
    logger.info("✓ Import completed successfully")


def main(argv=None):
    """Entry point for kv-squirrel. Returns the process exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(message)s")
    strategy = config.Strategy.from_flag(args.use_dump)

    try:
        if args.input:
            run_import(args, strategy)
        else:
            run_export(args, strategy)
    except MigrationError as e:
        logger.error("❌ %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
