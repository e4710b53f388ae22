#!/usr/bin/env python3
"""
Run the account transfer: page the source table, enrich each row against the
lookup store, and upsert it into one of the two target tables.

Configuration comes from transfer_config/sets/transfer.yaml unless --config is
given. Database URLs come from the configuration (which may reference
environment variables) or from --main-url / --lookup-url. Without a lookup
URL the lookup table is read from the main store.

Usage:
    python3 scripts/run_transfer.py [options]

Examples:
    # Run with the shipped configuration
    TRANSFER_MAIN_DB_URL=oracle+oracledb://... TRANSFER_LOOKUP_DB_URL=oracle+oracledb://... \\
        python3 scripts/run_transfer.py

    # Smaller pages and batches, set the processed flag on transferred rows
    python3 scripts/run_transfer.py --page-size 2000 --batch-size 200 --mark-processed

    # Write into freshly provisioned *_TEST copies of the target tables
    python3 scripts/run_transfer.py --prepare-test-tables

Exit status: 0 after a completed run, 1 on a transfer error.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from uuid import uuid4

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the account transfer: read -> enrich -> route -> upsert.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the transfer YAML (default: transfer_config/sets/transfer.yaml).",
    )
    parser.add_argument("--main-url", default=None, help="SQLAlchemy URL of the main store (overrides config).")
    parser.add_argument("--lookup-url", default=None, help="SQLAlchemy URL of the lookup store (overrides config).")
    parser.add_argument("--page-size", type=int, default=None, help="Rows per source page (overrides config).")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per upsert batch (overrides config).")
    parser.add_argument(
        "--mark-processed",
        action="store_true",
        help="Set the processed flag on every transferred source row.",
    )
    parser.add_argument(
        "--prepare-test-tables",
        action="store_true",
        help="Copy the target tables under the test suffix and write into the copies.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug-level logging.")
    return parser.parse_args(argv)


def _print_summary(result) -> None:
    print(f"Transfer {result.run_id}: {result.state.value}")
    print(f"  Processed: {result.processed}  Pages: {result.pages}  Commits: {result.commits}")
    for variant, queued in result.queued.items():
        print(f"  Variant {variant}: queued {queued}, inserted {result.inserted.get(variant, 0)}")
    print(f"  Skipped: {result.total_skipped}")
    for reason, count in result.skipped.items():
        if count:
            print(f"    {reason}: {count}")
    if result.marked_processed:
        print(f"  Marked processed: {result.marked_processed}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from transfer_kernel.logging_config import LogContext, configure_logging

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    # One id for everything this invocation logs: config load, provisioning, the run
    with LogContext.bind(correlation_id=uuid4().hex):
        return _run(args)


def _run(args: argparse.Namespace) -> int:
    from transfer_config import ensure_valid, get_transfer_config
    from transfer_kernel.db.engine import LOOKUP, MAIN, get_engine, init_engine_from_url
    from transfer_kernel.exceptions import NotificationError, TransferError
    from transfer_pipeline.services.orchestrator import TransferOrchestrator
    from transfer_services.notification import MailNotifier
    from transfer_services.test_tables import TestTablePreparator

    try:
        config = get_transfer_config(args.config)
    except FileNotFoundError as e:
        print(f"ERROR: Configuration file not found: {e.filename}", file=sys.stderr)
        return 1
    except TransferError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    config = config.with_overrides(
        page_size=args.page_size,
        batch_size=args.batch_size,
        mark_processed=True if args.mark_processed else None,
    )
    if args.prepare_test_tables:
        config = replace(config, provisioning=replace(config.provisioning, enabled=True))

    main_url = args.main_url or config.main_db.url
    lookup_url = args.lookup_url or config.lookup_db.url
    if not main_url:
        print("ERROR: No main database URL (set --main-url or databases.main.url).", file=sys.stderr)
        return 1

    notifier = MailNotifier(config.notification, config_name=config.name)
    try:
        ensure_valid(config, source="command line")
        init_engine_from_url(main_url, MAIN, echo=config.main_db.echo, pool_size=config.main_db.pool_size)
        if lookup_url:
            init_engine_from_url(lookup_url, LOOKUP, echo=config.lookup_db.echo, pool_size=config.lookup_db.pool_size)

        if config.provisioning.enabled:
            config = TestTablePreparator(get_engine(MAIN)).prepare(config)
            print(f"Writing into test tables {config.target_zero.table}, {config.target_one.table}")

        with TransferOrchestrator.from_engines(config) as orchestrator:
            result = orchestrator.run()
    except TransferError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        try:
            notifier.send_failure(e)
        except NotificationError as ne:
            print(f"WARNING: {ne}", file=sys.stderr)
        return 1

    _print_summary(result)
    try:
        notifier.send_summary(result)
    except NotificationError as e:
        print(f"WARNING: {e}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
