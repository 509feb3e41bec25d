"""
Legacy event-type names and their bitmap encoding.

The old interface filtered on a bitmap of event types (one bit per type,
numbered in the legacy type space). The current store numbers types
differently. The two are related only through the table below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, List

from servicelog.errors import UsageError
from servicelog.models import TargetKind

TYPE_DELIMITER = "|"
ALL_TYPES = "all"


@dataclass(frozen=True)
class EventType:
    """An event type known to both interfaces."""
    name: str
    legacy_bit: int  # bit position in the legacy bitmap
    store_type: int  # value of the store's `type` field


EVENT_TYPES = (
    EventType("os", legacy_bit=1, store_type=1),
    EventType("ppc64_rtas", legacy_bit=3, store_type=2),
    EventType("ppc64_encl", legacy_bit=4, store_type=3),
    EventType("ppc64_bmc", legacy_bit=5, store_type=4),
)

_BY_NAME = {t.name: t for t in EVENT_TYPES}

# --type also accepts the notification target in place of type names
TARGET_TOKENS = {
    "EVENT": TargetKind.EVENTS,
    "REPAIR": TargetKind.REPAIR_ACTIONS,
}


@dataclass(frozen=True)
class TypeSelection:
    """Parsed --type argument."""
    bitmap: int = 0
    targets: FrozenSet[TargetKind] = frozenset()


def parse_type_expression(expr: str) -> TypeSelection:
    """
    Parse a `|`-separated --type argument.

    Each recognised type name sets its legacy bit; `all` clears the bits
    accumulated so far; EVENT and REPAIR select notification targets.
    Any other token is a usage error.
    """
    bitmap = 0
    targets = set()
    for raw in expr.split(TYPE_DELIMITER):
        token = raw.strip()
        if token == ALL_TYPES:
            bitmap = 0
        elif token in TARGET_TOKENS:
            targets.add(TARGET_TOKENS[token])
        elif token in _BY_NAME:
            bitmap |= 1 << _BY_NAME[token].legacy_bit
        else:
            valid = ", ".join(t.name for t in EVENT_TYPES)
            raise UsageError(
                f"Unrecognized event type '{token}' in --type "
                f"(valid types: {valid}, all, EVENT, REPAIR)"
            )
    return TypeSelection(bitmap=bitmap, targets=frozenset(targets))


def bitmap_types(bitmap: int) -> List[EventType]:
    """Event types whose bits are set, in table order."""
    return [t for t in EVENT_TYPES if bitmap & (1 << t.legacy_bit)]
