"""
Action selection for servicelog_notify.

The action flags (--add, --remove, --list, --query) are folded into a
three-valued selection: nothing chosen, exactly one action, or too many.
Once too many have been chosen the selection never changes again.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from functools import reduce
from typing import Iterable, Optional

from servicelog.errors import UsageError


class Action(enum.Enum):
    ADD = "add"
    REMOVE = "remove"
    LIST = "list"
    QUERY = "query"


@dataclass(frozen=True)
class ActionSelection:
    """Resolved state of the action flags."""
    too_many: bool = False
    action: Optional[Action] = None

    @property
    def unspecified(self) -> bool:
        return not self.too_many and self.action is None


UNSPECIFIED = ActionSelection()
TOO_MANY = ActionSelection(too_many=True)


def exactly(action: Action) -> ActionSelection:
    return ActionSelection(action=action)


def select(state: ActionSelection, action: Action) -> ActionSelection:
    """Apply one more action flag to the current selection."""
    if state.unspecified:
        return exactly(action)
    return TOO_MANY


def resolve_actions(flags: Iterable[Action]) -> ActionSelection:
    """Fold action flags, in the order given, into a selection."""
    return reduce(select, flags, UNSPECIFIED)


def require_action(state: ActionSelection) -> Action:
    """Return the single selected action or raise UsageError."""
    if state.too_many:
        raise UsageError(
            "Only one of the --add, --remove, --list or --query options "
            "may be specified."
        )
    if state.action is None:
        raise UsageError(
            "One of --add, --remove, --query or --list is required."
        )
    return state.action
