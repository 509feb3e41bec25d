"""
servicelog_notify: register, list, query and remove notification tools.

Exit status: 0 success, 1 usage error or nothing found, 2 store error.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Callable, Dict, List, Optional

from servicelog.actions import Action, resolve_actions
from servicelog.db import Store, default_db_path
from servicelog.errors import (
    NotFoundError,
    PartialRegistrationError,
    StoreError,
    UsageError,
)
from servicelog.lookup import remove, resolve, validate_lookup
from servicelog.models import NotificationRegistration, TargetKind
from servicelog.registrations import register, validate_add
from servicelog.request import NotifyRequest, build_request

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_STORE = 2

EPILOG = """\
Remove: one of --id or --command must be given.
List:   at most one of --id or --command may be given.
Query:  like --list, but --id or --command is required.

--type, --severity, --serviceable and --repair_action are kept for
compatibility with the older interface. When --match is also given it
replaces the filters built from --type, --severity and --serviceable for
event notifications; the two are not combined.
"""


class ArgumentParser(argparse.ArgumentParser):
    """argparse that reports bad input as UsageError instead of exiting 2."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def build_parser() -> ArgumentParser:
    ap = ArgumentParser(
        prog="servicelog_notify",
        description="Register and manage servicelog notification tools",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("--db", default=None,
                    help="servicelog database (default: $SERVICELOG_DB or "
                         "/var/lib/servicelog/servicelog.db)")
    ap.add_argument("-v", "--verbose", action="store_true",
                    help="Log diagnostics to stderr")

    actions = ap.add_argument_group("actions (exactly one)")
    for short, name in (("-a", Action.ADD), ("-r", Action.REMOVE),
                        ("-l", Action.LIST), ("-q", Action.QUERY)):
        actions.add_argument(short, f"--{name.value}", dest="actions",
                             action="append_const", const=name,
                             help=f"{name.value} notification tools")

    ap.add_argument("-i", "--id", dest="id_text", metavar="ID",
                    help="ID of the registered tool to list, query or remove")
    ap.add_argument("-c", "--command", metavar="CMD",
                    help="command to run when notified, or to look up")
    ap.add_argument("-m", "--match", metavar="QUERY",
                    help="notify on events matching QUERY (overrides "
                         "--type, --severity and --serviceable for events)")
    ap.add_argument("-M", "--method", metavar="METHOD",
                    help="num_stdin (default), num_arg, text_stdin or pairs_stdin")
    ap.add_argument("-t", "--type", dest="type_expr", metavar="TYPES",
                    help="EVENT or REPAIR, or event types "
                         "os|ppc64_rtas|ppc64_encl|ppc64_bmc joined with '|'")
    ap.add_argument("-E", "--severity", metavar="SEV",
                    help="notify only of events with at least severity SEV "
                         "(1 lowest to 7 fatal)")
    ap.add_argument("-S", "--serviceable", metavar="{yes,no,all}",
                    help="notify on serviceable events, others, or both")
    ap.add_argument("-R", "--repair_action", metavar="{yes,no,all}",
                    help="notify on repair actions, events, or both")
    return ap


def request_from_args(args: argparse.Namespace) -> NotifyRequest:
    """Validate parsed options into a NotifyRequest, checking the action first."""
    request = build_request(
        resolve_actions(args.actions or []),
        id_text=args.id_text,
        command=args.command,
        match=args.match,
        type_expr=args.type_expr,
        severity=args.severity,
        serviceable=args.serviceable,
        repair_action=args.repair_action,
        method=args.method,
    )
    if request.action is Action.ADD:
        validate_add(request)
    else:
        validate_lookup(request)
    return request


def format_registration(reg: NotificationRegistration) -> str:
    logged = time.ctime(reg.time_logged) if reg.time_logged else "-"
    return "\n".join([
        f"Servicelog ID:      {reg.id}",
        f"Logged:             {logged}",
        f"Command:            {reg.command}",
        f"Notify:             {reg.target.label}",
        f"Method:             {reg.method.option_name}",
        f"Match:              {reg.match}",
    ])


def print_registrations(regs: List[NotificationRegistration]) -> None:
    print("\n\n".join(format_registration(r) for r in regs))


def _success_line(reg: NotificationRegistration) -> str:
    kind = "Event" if reg.target is TargetKind.EVENTS else "Repair"
    return f"{kind} Notification Registration successful (id: {reg.id})"


def cmd_add(store: Store, request: NotifyRequest) -> int:
    try:
        created = register(store, request)
    except PartialRegistrationError as e:
        for reg in e.created:
            print(_success_line(reg))
        print(f"{e.failed.label} Notification Registration failed: {e.cause}",
              file=sys.stderr)
        return EXIT_STORE
    for reg in created:
        print(_success_line(reg))
    return EXIT_OK


def cmd_list(store: Store, request: NotifyRequest) -> int:
    print_registrations(resolve(store, request))
    return EXIT_OK


def cmd_remove(store: Store, request: NotifyRequest) -> int:
    for reg in remove(store, request):
        print(f"Notification tool {reg.id} removed ({reg.command}).")
    return EXIT_OK


COMMANDS: Dict[Action, Callable[[Store, NotifyRequest], int]] = {
    Action.ADD: cmd_add,
    Action.REMOVE: cmd_remove,
    Action.LIST: cmd_list,
    Action.QUERY: cmd_list,
}


def _usage_error(ap: ArgumentParser, err: UsageError) -> int:
    print(f"{err}\n", file=sys.stderr)
    ap.print_usage(sys.stderr)
    return EXIT_USAGE


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        ap.print_help()
        return EXIT_OK

    try:
        args = ap.parse_args(argv)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format="%(name)s: %(levelname)s: %(message)s",
        )
        request = request_from_args(args)
    except UsageError as e:
        return _usage_error(ap, e)

    try:
        with Store(args.db or default_db_path()) as store:
            return COMMANDS[request.action](store, request)
    except NotFoundError as e:
        print(e, file=sys.stderr)
        return EXIT_USAGE
    except StoreError as e:
        print(e, file=sys.stderr)
        return EXIT_STORE


if __name__ == "__main__":
    sys.exit(main())
