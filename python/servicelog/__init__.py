"""
Servicelog: notification tools and repair actions for the servicelog store.

servicelog_notify accepts two generations of filtering options:
- The current --match predicate and --type=EVENT|REPAIR target
- The older --type, --severity, --serviceable and --repair_action flags

Older filters are translated into a single predicate. A request to be
notified of both events and repair actions is stored as two registrations.
"""

__version__ = "0.1.0"

from servicelog.actions import Action, resolve_actions
from servicelog.db import Store
from servicelog.errors import (
    NotFoundError,
    PartialRegistrationError,
    StoreError,
    UsageError,
)
from servicelog.models import (
    DeliveryMethod,
    NotificationRegistration,
    TargetKind,
    Tristate,
)
from servicelog.predicate import LegacyFilters, build_predicate
from servicelog.request import NotifyRequest, build_request

__all__ = [
    "Action",
    "resolve_actions",
    "Store",
    "NotFoundError",
    "PartialRegistrationError",
    "StoreError",
    "UsageError",
    "DeliveryMethod",
    "NotificationRegistration",
    "TargetKind",
    "Tristate",
    "LegacyFilters",
    "build_predicate",
    "NotifyRequest",
    "build_request",
]
