"""CLI entrypoint for scansplit.

This file wires together:

- Job file loading
- Scan set encoding into a job configuration (submitter side)
- Scan set decoding and split aggregation (task side)
- Split manifest output

Both sides run in one process here, so the encoded configuration makes the
same trip through strings a real job submission would.
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import List, Optional

import yaml

from scansplit import __version__
from scansplit.aggregator import SplitAggregator, SplitContext, initialize_from_configuration
from scansplit.config import load_job
from scansplit.exceptions import ScanSplitError
from scansplit.logging_config import setup_logging
from scansplit.manifest import MANIFEST_FORMATS, summarize, write_manifest
from scansplit.partitioning import build_partitioning_service, list_partitioning_types

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Plan the input splits of a multi-scan job",
    )
    parser.add_argument(
        "--config",
        help="Path to the YAML job file",
    )
    parser.add_argument(
        "--output",
        help="Write the split manifest to this path",
    )
    parser.add_argument(
        "--format",
        choices=MANIFEST_FORMATS,
        default=None,
        help="Manifest format (default: inferred from --output suffix, else parquet)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Scans to look up concurrently (default: job file 'workers' or 1)",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print the encoded job configuration as YAML and exit",
    )
    parser.add_argument(
        "--list-partitioning",
        action="store_true",
        help="List available partitioning service types and exit",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG level) logging",
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Suppress all output except errors"
    )
    parser.add_argument(
        "--log-format",
        choices=["human", "json", "simple"],
        default=None,
        help="Log format (default: human). Can also set via SCANSPLIT_LOG_FORMAT env var",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"scansplit {__version__}",
        help="Show version and exit",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_partitioning:
        print("Available partitioning services:")
        for service_type in list_partitioning_types():
            print(f"  - {service_type}")
        return 0

    if not args.config:
        parser.error("--config is required")

    log_level = (
        logging.DEBUG if args.verbose else logging.ERROR if args.quiet else logging.INFO
    )
    setup_logging(level=log_level, format_type=args.log_format, use_colors=True)

    try:
        return run(args)
    except ScanSplitError as exc:
        logger.error("%s", exc)
        return 1


def run(args: argparse.Namespace) -> int:
    job = load_job(args.config)
    conf = job.to_configuration()

    if args.print_config:
        print(yaml.safe_dump(conf.as_dict(), sort_keys=True, default_flow_style=False), end="")
        return 0

    state = initialize_from_configuration(conf)
    context = SplitContext.from_configuration(conf)
    service = build_partitioning_service(job.partitioning, context.table)
    workers = args.workers if args.workers is not None else job.workers

    aggregator = SplitAggregator(service, max_workers=workers)
    splits = aggregator.compute_splits(state, context)

    for line in summarize(splits):
        logger.info(line)

    if args.output:
        write_manifest(splits, Path(args.output), fmt=args.format)
    else:
        for split in splits:
            print(split)

    return 0


if __name__ == "__main__":
    sys.exit(main())
