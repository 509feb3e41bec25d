"""
The validated servicelog_notify request.

All command-line input is checked here, before the store is opened, and
folded into one frozen NotifyRequest that the splitter and the lookup
resolver read from.
"""

from __future__ import annotations

import os
import re
import stat
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from servicelog.actions import Action, ActionSelection, require_action
from servicelog.errors import UsageError
from servicelog.eventtypes import parse_type_expression
from servicelog.models import DeliveryMethod, TargetKind, Tristate
from servicelog.predicate import LegacyFilters, parse_severity

_ID_RE = re.compile(r"[0-9]+")
MAX_ID = 2**63 - 1  # largest SQLite INTEGER


@dataclass(frozen=True)
class NotifyRequest:
    """Everything servicelog_notify was asked to do, already validated."""
    action: Action
    id: Optional[int] = None
    command: Optional[str] = None
    match: Optional[str] = None
    method: DeliveryMethod = DeliveryMethod.NUM_STDIN
    filters: LegacyFilters = field(default_factory=LegacyFilters)
    type_targets: FrozenSet[TargetKind] = frozenset()
    repair_action: Optional[Tristate] = None
    add_only_flags: Tuple[str, ...] = ()  # option names, for error messages


def parse_id(text: str) -> int:
    """Parse an --id argument: digits only, strictly positive, storable."""
    if not _ID_RE.fullmatch(text or "") or not 0 < int(text) <= MAX_ID:
        raise UsageError("--id argument invalid.")
    return int(text)


def command_path(command: str) -> str:
    """The executable part of a --command argument (text before the first space)."""
    return command.split(" ", 1)[0]


def check_command(command: str) -> str:
    """
    Verify that a --command argument names an existing regular file
    the owner may execute. Returns the command unchanged.
    """
    path = command_path(command)
    try:
        st = os.stat(path)
    except OSError:
        raise UsageError(f"Command '{path}' does not exist.") from None
    if not stat.S_ISREG(st.st_mode):
        raise UsageError(f"'{path}' is not a valid command.")
    if not st.st_mode & stat.S_IXUSR:
        raise UsageError(f"'{path}' does not have execute permission.")
    return command


def build_request(
    selection: ActionSelection,
    *,
    id_text: Optional[str] = None,
    command: Optional[str] = None,
    match: Optional[str] = None,
    type_expr: Optional[str] = None,
    severity: Optional[str] = None,
    serviceable: Optional[str] = None,
    repair_action: Optional[str] = None,
    method: Optional[str] = None,
) -> NotifyRequest:
    """Validate raw option values and build a NotifyRequest."""
    action = require_action(selection)

    add_only = []
    for name, value in (
        ("type", type_expr),
        ("match", match),
        ("method", method),
        ("severity", severity),
        ("serviceable", serviceable),
        ("repair_action", repair_action),
    ):
        if value is not None:
            add_only.append(name)

    type_sel = parse_type_expression(type_expr) if type_expr is not None else None
    filters = LegacyFilters(
        severity=parse_severity(severity) if severity is not None else None,
        serviceable=(
            Tristate.parse("serviceable", serviceable)
            if serviceable is not None else None
        ),
        type_bitmap=type_sel.bitmap if type_sel else 0,
    )

    return NotifyRequest(
        action=action,
        id=parse_id(id_text) if id_text is not None else None,
        command=check_command(command) if command is not None else None,
        match=match,
        method=(
            DeliveryMethod.parse(method) if method is not None
            else DeliveryMethod.NUM_STDIN
        ),
        filters=filters,
        type_targets=type_sel.targets if type_sel else frozenset(),
        repair_action=(
            Tristate.parse("repair_action", repair_action)
            if repair_action is not None else None
        ),
        add_only_flags=tuple(add_only),
    )
