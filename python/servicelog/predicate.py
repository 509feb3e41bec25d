"""
Build match predicates from the legacy filter flags.

Clauses are joined with " and " in a fixed order: severity, serviceable,
type. No filters means an empty predicate, which matches everything.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from servicelog.errors import UsageError
from servicelog.eventtypes import bitmap_types
from servicelog.models import Tristate

MIN_SEVERITY = 1
MAX_SEVERITY = 7
CONNECTIVE = " and "


@dataclass(frozen=True)
class LegacyFilters:
    """Filters given with --severity, --serviceable and --type."""
    severity: Optional[int] = None
    serviceable: Optional[Tristate] = None
    type_bitmap: int = 0

    @property
    def empty(self) -> bool:
        return (
            self.severity is None
            and self.serviceable in (None, Tristate.ALL)
            and not self.type_bitmap
        )


def parse_severity(text: str) -> int:
    """Parse a --severity argument (1 lowest to 7 fatal)."""
    try:
        severity = int(text, 10)
    except ValueError:
        severity = None
    if severity is None or not MIN_SEVERITY <= severity <= MAX_SEVERITY:
        raise UsageError(
            f"--severity argument '{text}' is invalid "
            f"(range {MIN_SEVERITY} (lowest) to {MAX_SEVERITY} (fatal))"
        )
    return severity


def severity_clause(severity: Optional[int]) -> str:
    if severity is None:
        return ""
    return f"severity>={severity}"


def serviceable_clause(serviceable: Optional[Tristate]) -> str:
    # ALL is the absence of a filter, not an always-true clause
    if serviceable is Tristate.YES:
        return "serviceable=1"
    if serviceable is Tristate.NO:
        return "serviceable=0"
    return ""


def type_clause(bitmap: int) -> str:
    """Translate a legacy type bitmap into a clause on the store's type field."""
    terms = [f"type={t.store_type}" for t in bitmap_types(bitmap)]
    if not terms:
        return ""
    if len(terms) == 1:
        return terms[0]
    return "(" + " or ".join(terms) + ")"


def build_predicate(filters: LegacyFilters) -> str:
    """Build the canonical predicate for a set of legacy filters."""
    clauses: List[str] = [
        severity_clause(filters.severity),
        serviceable_clause(filters.serviceable),
        type_clause(filters.type_bitmap),
    ]
    return CONNECTIVE.join(c for c in clauses if c)


def event_predicate(filters: LegacyFilters, match: Optional[str]) -> str:
    """
    Predicate for an event registration.

    An explicit --match string replaces the legacy-derived predicate
    entirely; the two are never merged.
    """
    if match is not None:
        return match
    return build_predicate(filters)
