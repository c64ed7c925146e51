"""Timecard engine command line interface.

Usage:
    python -m timecard_engine.cli init-db
    python -m timecard_engine.cli pay-period --franchise-id 7 --for-date 2024-01-20
    python -m timecard_engine.cli pay-period --franchise-id 7 --previous
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date
from typing import Callable

from timecard_engine.config import configure_logging, get_settings
from timecard_engine.database import create_schema, dispose_db, get_session
from timecard_engine.services.pay_period_service import PayPeriodService


def parse_date(s: str) -> date:
    """Parse YYYY-MM-DD."""
    try:
        return date.fromisoformat(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {s!r}") from None


class TimecardCli:
    """Operational commands."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m timecard_engine.cli",
            description="Timecard engine operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create database tables")

        pay_period = subparsers.add_parser(
            "pay-period",
            help="Resolve a franchise pay period and print it as JSON",
        )
        pay_period.add_argument(
            "--franchise-id",
            type=int,
            required=True,
            help="Franchise to resolve for",
        )
        pay_period.add_argument(
            "--for-date",
            type=parse_date,
            help="Date inside the period (default: today in the franchise timezone)",
        )
        pay_period.add_argument(
            "--previous",
            action="store_true",
            help="Resolve the period before the one containing the date",
        )
        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(get_settings())

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "init-db": self._cmd_init_db,
            "pay-period": self._cmd_pay_period,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create all tables."""

        async def _run() -> None:
            try:
                await create_schema()
            finally:
                await dispose_db()

        asyncio.run(_run())
        print("Schema created.")
        return 0

    def _cmd_pay_period(self, args: argparse.Namespace) -> int:
        """Resolve and print a pay period."""

        async def _run() -> dict:
            try:
                async with get_session() as session:
                    service = PayPeriodService(session)
                    if args.previous:
                        period = await service.resolve_previous(args.franchise_id, args.for_date)
                    else:
                        period = await service.resolve(args.franchise_id, args.for_date)
                    return period.to_dict()
            finally:
                await dispose_db()

        print(json.dumps(asyncio.run(_run()), indent=2))
        return 0


def main() -> int:
    """CLI entry point."""
    cli = TimecardCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
