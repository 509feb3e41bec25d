"""
Servicelog value types: notification registrations, events, repair actions.

These are the records handed across the store boundary. The core builds
and validates them; the store assigns ids and timestamps.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from servicelog.errors import UsageError


class TargetKind(enum.IntEnum):
    """What a notification registration fires on."""
    EVENTS = 1
    REPAIR_ACTIONS = 2

    @property
    def label(self) -> str:
        return "Events" if self is TargetKind.EVENTS else "Repair Actions"


class DeliveryMethod(enum.IntEnum):
    """How matched records are handed to the registered command."""
    NUM_STDIN = 0
    NUM_ARG = 1
    TEXT_STDIN = 2
    PAIRS_STDIN = 3

    @property
    def option_name(self) -> str:
        return _METHOD_NAMES[self]

    @classmethod
    def parse(cls, name: str) -> "DeliveryMethod":
        for method, method_name in _METHOD_NAMES.items():
            if name == method_name:
                return method
        raise UsageError(f"--method argument '{name}' is invalid")


_METHOD_NAMES = {
    DeliveryMethod.NUM_STDIN: "num_stdin",
    DeliveryMethod.NUM_ARG: "num_arg",
    DeliveryMethod.TEXT_STDIN: "text_stdin",
    DeliveryMethod.PAIRS_STDIN: "pairs_stdin",
}


class Tristate(enum.Enum):
    """yes / no / all argument used by the legacy filter flags."""
    YES = "yes"
    NO = "no"
    ALL = "all"

    @classmethod
    def parse(cls, option: str, value: str) -> "Tristate":
        try:
            return cls(value)
        except ValueError:
            raise UsageError(
                f'The "{value}" argument to --{option} is not valid '
                "(expected yes, no or all)"
            ) from None


@dataclass(frozen=True)
class NotificationRegistration:
    """A command registered to be run when matching records are logged."""
    target: TargetKind
    command: str
    match: str = ""  # empty matches everything
    method: DeliveryMethod = DeliveryMethod.NUM_STDIN
    id: Optional[int] = None
    time_logged: Optional[int] = None
    time_last_update: Optional[int] = None


@dataclass(frozen=True)
class ServiceEvent:
    """A serviceable event record."""
    time_event: int
    type: int
    severity: int
    description: str
    location: str = ""
    refcode: str = ""
    serviceable: bool = False
    closed: bool = False
    repair: Optional[int] = None
    id: Optional[int] = None
    time_logged: Optional[int] = None


@dataclass(frozen=True)
class RepairAction:
    """A repair performed against the device at `location`."""
    location: str
    procedure: str
    time_repair: int
    notes: Optional[str] = None
    id: Optional[int] = None
    time_logged: Optional[int] = None
