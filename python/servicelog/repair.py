"""
log_repair_action: record a repair performed on a device.

Logging a repair action closes every open serviceable event at the same
location code.

Exit status: 0 success or cancelled, 1 usage error, 2 servicelog could not
be opened, 3 the repair action could not be logged, 4 no confirmation read.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime
from typing import List, Optional

from servicelog.cli import ArgumentParser
from servicelog.db import Store, default_db_path, now_i
from servicelog.errors import StoreError, UsageError
from servicelog.models import RepairAction, ServiceEvent

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_OPEN = 2
EXIT_LOG = 3
EXIT_NO_INPUT = 4


def parse_repair_date(text: str) -> int:
    """
    Parse a -d argument into a Unix timestamp.

    Accepts epoch seconds (optionally prefixed with '@') or an ISO-8601
    date/time; naive times are local. The result must be a representable
    local date.
    """
    value = text.strip()
    digits = value[1:] if value.startswith("@") else value
    try:
        if digits.isdigit():
            stamp = int(digits)
            datetime.fromtimestamp(stamp)
            return stamp
        return int(datetime.fromisoformat(value).timestamp())
    except (OverflowError, OSError, ValueError):
        raise UsageError(f"Invalid date {text}") from None


def build_parser() -> ArgumentParser:
    ap = ArgumentParser(
        prog="log_repair_action",
        description="Log a repair action for serviceable events",
    )
    ap.add_argument("--db", default=None,
                    help="servicelog database (default: $SERVICELOG_DB or "
                         "/var/lib/servicelog/servicelog.db)")
    ap.add_argument("-l", "--location", required=True,
                    help="location code of the device that was repaired")
    ap.add_argument("-p", "--procedure",
                    help="repair procedure that was followed")
    ap.add_argument("-d", "--date",
                    help="date/time the procedure was performed "
                         "(epoch seconds or ISO-8601; default now)")
    ap.add_argument("-n", "--note", help="note to store with the repair action")
    ap.add_argument("-q", "--quiet", action="store_true",
                    help="log without prompting for confirmation")
    ap.add_argument("-t", "--type",
                    help="event type (accepted for compatibility; ignored)")
    ap.add_argument("-v", "--verbose", action="store_true",
                    help="Log diagnostics to stderr")
    return ap


def repair_from_args(args: argparse.Namespace) -> RepairAction:
    if not args.location:
        raise UsageError("A location code was not specified")
    procedure = args.procedure
    if procedure is None:
        logger.warning("A procedure was not specified. Defaulting to ''")
        procedure = ""
    return RepairAction(
        location=args.location,
        procedure=procedure,
        time_repair=parse_repair_date(args.date) if args.date else now_i(),
        notes=args.note,
    )


def confirm(action: RepairAction) -> Optional[bool]:
    """Ask the operator to confirm. None when no answer could be read."""
    print("Are you certain you wish to log the following repair action?")
    print(f"Date: {time.ctime(action.time_repair)}")
    print(f"Location: {action.location}")
    print(f"Procedure: {action.procedure}")
    try:
        answer = input("(y to continue, any other key to cancel): ")
    except EOFError:
        return None
    return answer.strip() == "y"


def format_event(event: ServiceEvent) -> str:
    return "\n".join([
        f"Servicelog ID:      {event.id}",
        f"Event Time:         {time.ctime(event.time_event)}",
        f"Severity:           {event.severity}",
        f"Location:           {event.location}",
        f"Reference Code:     {event.refcode}",
        f"Description:        {event.description}",
    ])


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    try:
        args = ap.parse_args(argv)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format="%(name)s: %(levelname)s: %(message)s",
        )
        action = repair_from_args(args)
    except UsageError as e:
        print(f"log_repair_action: {e}", file=sys.stderr)
        ap.print_usage(sys.stderr)
        return EXIT_USAGE

    if not args.quiet:
        confirmed = confirm(action)
        if confirmed is None:
            return EXIT_NO_INPUT
        if not confirmed:
            print("\nCancelled.")
            return EXIT_OK

    store = Store(args.db or default_db_path())
    try:
        store.open()
    except StoreError as e:
        if not args.quiet:
            print("log_repair_action: Could not open servicelog database to "
                  f"log the repair action.\n{e}", file=sys.stderr)
        return EXIT_OPEN

    try:
        logged, repaired = store.repair_log(action)
    except StoreError as e:
        if not args.quiet:
            print(f"log_repair_action: Could not log the repair action.\n{e}",
                  file=sys.stderr)
        return EXIT_LOG
    finally:
        store.close()

    if not args.quiet:
        print(f"log_repair_action: servicelog record ID = {logged.id}.")
        print("\nThe following events were repaired:\n")
        for event in repaired:
            print(format_event(event))
            print()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
