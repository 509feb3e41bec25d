"""
Servicelog error taxonomy.

Usage errors are raised before the store is opened. Store errors carry the
store's own message. Not-found is a successful lookup with no rows.
"""

from __future__ import annotations

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from servicelog.models import NotificationRegistration, TargetKind


class UsageError(ValueError):
    """Invalid or contradictory command-line input."""


class StoreError(RuntimeError):
    """The servicelog store could not complete an operation."""


class NotFoundError(LookupError):
    """A targeted lookup matched no registered notification tools."""


class PartialRegistrationError(StoreError):
    """
    A split add failed after at least one registration was persisted.

    The persisted registrations are not rolled back.
    """

    def __init__(
        self,
        created: List["NotificationRegistration"],
        failed: "TargetKind",
        cause: StoreError,
    ) -> None:
        super().__init__(str(cause))
        self.created = created
        self.failed = failed
        self.cause = cause
