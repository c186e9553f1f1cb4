"""Command-line interface for the health factor monitor."""
from __future__ import annotations

import argparse
import asyncio
import sys

from .config import load_config
from .logging_setup import configure_logging
from .services import Monitor


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="hf-monitor",
        description="Liqwid loan health factor monitor",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("check", help="Run one monitoring cycle")
    sub.add_parser("report", help="Send a health factor report for every loan")

    monitor_parser = sub.add_parser("monitor", help="Continuous monitoring loop")
    monitor_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Check interval in minutes (overrides config)",
    )

    last_alert_parser = sub.add_parser(
        "last-alert", help="Show the last alert recorded for a loan"
    )
    last_alert_parser.add_argument("loan_id", help="Liqwid loan identifier")

    return parser


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command and return the exit code."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    monitor = Monitor.from_config(config)

    try:
        if args.command == "check":
            summary = await monitor.run_cycle()
            return 0 if summary.ok else 1
        if args.command == "report":
            await monitor.generate_report()
        elif args.command == "monitor":
            await monitor.run_continuous(args.interval)
        elif args.command == "last-alert":
            record = await monitor.last_alert(args.loan_id)
            if record is None:
                print(f"No alert recorded for loan {args.loan_id}")
            else:
                print(
                    f"{args.loan_id}: {record.level.value} alert for "
                    f"{record.asset_symbol} at {Monitor._iso_ms(record.timestamp)}"
                )
        else:
            build_parser().print_help()
            return 1
        return 0
    finally:
        await monitor.close()


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
