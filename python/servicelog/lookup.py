"""
Resolve the notification tools targeted by --remove, --list and --query.

A target is given by --id or by --command, never both. --list with
neither lists every registered tool.
"""

from __future__ import annotations

import logging
from typing import List

from servicelog.actions import Action
from servicelog.db import Store
from servicelog.errors import NotFoundError, UsageError
from servicelog.models import NotificationRegistration
from servicelog.request import NotifyRequest

logger = logging.getLogger(__name__)

ALL_BY_ID = "id>0"


def command_predicate(command: str) -> str:
    """Predicate matching registrations for exactly `command`."""
    quoted = command.replace("'", "''")
    return f"command = '{quoted}'"


def validate_lookup(request: NotifyRequest) -> None:
    """Checks that apply to --remove, --list and --query."""
    option = f"--{request.action.value}"
    if request.id is not None and request.command is not None:
        raise UsageError(
            "Only one of the --command or --id flags may be specified "
            f"with the {option} option."
        )
    if request.add_only_flags:
        flags = ", ".join(f"--{name}" for name in request.add_only_flags)
        raise UsageError(f"{flags} may only be used with the --add option.")
    if request.action is not Action.LIST and (
        request.id is None and request.command is None
    ):
        raise UsageError(
            f"{option} must be accompanied by --command='command path' or --id."
        )


def resolve(store: Store, request: NotifyRequest) -> List[NotificationRegistration]:
    """
    Registrations targeted by the request. Raises NotFoundError when the
    store answers with nothing.
    """
    validate_lookup(request)
    if request.id is not None:
        reg = store.notify_get(request.id)
        if reg is None:
            raise NotFoundError(
                "Could not find a registered notification tool with the "
                f"specified id ({request.id})."
            )
        return [reg]
    if request.command is not None:
        regs = store.notify_query(command_predicate(request.command))
        if not regs:
            raise NotFoundError(
                "Could not find a registered notification tool with the "
                f"specified command ('{request.command}')."
            )
        return regs
    regs = store.notify_query(ALL_BY_ID)
    if not regs:
        raise NotFoundError("There are no registered notification tools.")
    return regs


def remove(store: Store, request: NotifyRequest) -> List[NotificationRegistration]:
    """Delete every targeted registration. Returns what was deleted."""
    regs = resolve(store, request)
    for reg in regs:
        store.notify_delete(reg.id)
        logger.info("removed notification tool %d (%s)", reg.id, reg.command)
    return regs
