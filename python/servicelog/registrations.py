"""
Add path for servicelog_notify.

A legacy add may ask for notification on events, on repair actions, or on
both. A stored registration has exactly one target, so a request for both
becomes two registrations, submitted events first. There is no
transaction across the two: if the second fails the first stays.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List

from servicelog.db import Store
from servicelog.errors import PartialRegistrationError, StoreError, UsageError
from servicelog.models import NotificationRegistration, TargetKind, Tristate
from servicelog.predicate import event_predicate
from servicelog.request import NotifyRequest

logger = logging.getLogger(__name__)

_REPAIR_ACTION_TARGETS = {
    Tristate.YES: {TargetKind.REPAIR_ACTIONS},
    Tristate.NO: {TargetKind.EVENTS},
    Tristate.ALL: {TargetKind.EVENTS, TargetKind.REPAIR_ACTIONS},
}


def validate_add(request: NotifyRequest) -> None:
    """Checks that apply only to --add."""
    if request.id is not None:
        raise UsageError("The --id flag may not be used with the --add option.")
    if request.command is None:
        raise UsageError(
            "The --command flag must be specified with the --add option."
        )


def target_kinds(request: NotifyRequest) -> List[TargetKind]:
    """
    Targets an add registers for, events first.

    --type=EVENT|REPAIR, --repair_action and --serviceable=yes|all each
    contribute targets; with none of them the add is for events only.
    """
    kinds = set(request.type_targets)
    if request.repair_action is not None:
        kinds |= _REPAIR_ACTION_TARGETS[request.repair_action]
    if request.filters.serviceable in (Tristate.YES, Tristate.ALL):
        kinds.add(TargetKind.EVENTS)
    if not kinds:
        kinds.add(TargetKind.EVENTS)
    return sorted(kinds)


def plan_registrations(request: NotifyRequest) -> List[NotificationRegistration]:
    """Build the registrations for an add, without touching the store."""
    validate_add(request)
    if request.match is not None and not request.filters.empty:
        logger.warning(
            "--match replaces the --type, --severity and --serviceable "
            "filters for event notifications"
        )
    planned = []
    for kind in target_kinds(request):
        if kind is TargetKind.EVENTS:
            match = event_predicate(request.filters, request.match)
        else:
            # type, severity and serviceable mean nothing for repair actions
            match = ""
            if request.match:
                logger.warning(
                    "--match is applied to event notifications only; "
                    "the repair action notification matches everything"
                )
        planned.append(NotificationRegistration(
            target=kind,
            command=request.command,
            match=match,
            method=request.method,
        ))
    return planned


def register(
    store: Store, request: NotifyRequest
) -> List[NotificationRegistration]:
    """
    Submit each planned registration in order. Returns them with their ids.

    Raises StoreError if the first submission fails and
    PartialRegistrationError if a later one does.
    """
    created: List[NotificationRegistration] = []
    for reg in plan_registrations(request):
        try:
            new_id = store.notify_create(reg)
        except StoreError as e:
            if not created:
                raise
            logger.error("%s registration failed after %d succeeded: %s",
                         reg.target.label, len(created), e)
            raise PartialRegistrationError(created, reg.target, e) from e
        created.append(replace(reg, id=new_id))
    return created
