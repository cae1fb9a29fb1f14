"""Command line interface for running a resumable crawl-and-extract batch."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import ConfigurationError, HarvesterSettings, load_configuration
from .factory import build_job_manager
from .models import JobState
from .progress import ProgressLedger

LOG_FORMAT = "%(asctime)s [%(levelname)s] - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_parser(prog: str | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Find company websites, crawl them and extract contact details",
    )
    parser.add_argument("input", help="Path to the input spreadsheet (CSV or XLSX) with a Company column")
    parser.add_argument("output", help="Path of the CSV file that receives one row per company")
    parser.add_argument(
        "--config",
        help="Path to an optional configuration file (YAML or JSON)",
    )
    parser.add_argument(
        "--ledger",
        help="Progress file used to skip companies finished by an earlier run (appends to OUTPUT)",
    )
    parser.add_argument(
        "--no-search",
        action="store_true",
        help="Do not look up missing websites; such rows are reported as not_found",
    )
    parser.add_argument(
        "--no-delay",
        action="store_true",
        help="Disable the courtesy delays between requests (testing only)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )

    try:
        config = load_configuration(args.config) if args.config else {}
        settings = HarvesterSettings.from_mapping(config)
        manager = build_job_manager(settings, use_search=not args.no_search, disable_delays=args.no_delay)
    except ConfigurationError as exc:
        logging.error("%s", exc)
        return 2

    ledger_path = args.ledger or settings.ledger_path
    ledger = ProgressLedger.load(ledger_path) if ledger_path else None

    status = manager.run_job(args.input, args.output, ledger=ledger)
    logging.info(
        "Job %s finished as %s: %s of %s records processed",
        status.job_id,
        status.state.value,
        status.processed,
        status.total,
    )
    logging.info("Results written to %s", Path(args.output).resolve())
    return 0 if status.state is JobState.COMPLETED else 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
