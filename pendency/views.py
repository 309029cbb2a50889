"""List filters and counters over normalized records.

Unit-linked users only see records of their facility: destination-linked
users their delivery unit, otherwise origin-linked users their collection
unit. Records under search are the exception and are visible to everyone.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional

from .models import PaymentType, PendencyRecord, PendencyStatus, User
from .parsers import parse_date
from .utils import normalize_text


class ListCategory(Enum):
    """Which list a view shows"""

    ALL = "ALL"  # open pendencies: neither critical nor under search
    CRITICAL = "CRITICAL"
    SEARCH = "SEARCH"


class Direction(Enum):
    """Which side of a unit user's traffic to show"""

    INCOMING = "INCOMING"
    OUTGOING = "OUTGOING"
    BOTH = "BOTH"


@dataclass
class SidebarCounts:
    pending: int = 0
    critical: int = 0
    search: int = 0


def scope_records(records: Iterable[PendencyRecord], user: Optional[User]) -> List[PendencyRecord]:
    """Restrict records to the user's linked unit (admins see everything)."""
    records = list(records)
    if user is None:
        return records
    if user.linked_dest_unit:
        unit = normalize_text(user.linked_dest_unit)
        return [r for r in records if normalize_text(r.delivery_unit) == unit]
    if user.linked_origin_unit:
        unit = normalize_text(user.linked_origin_unit)
        return [r for r in records if normalize_text(r.collection_unit) == unit]
    return records


def is_open_critical(record: PendencyRecord) -> bool:
    return record.status is PendencyStatus.CRITICAL and not record.is_search


def sidebar_counts(
    records: Iterable[PendencyRecord], scoped: Iterable[PendencyRecord]
) -> SidebarCounts:
    """Badge counters: pending and critical within scope, search globally."""
    scoped = list(scoped)
    return SidebarCounts(
        pending=sum(
            1 for r in scoped if r.status is not PendencyStatus.CRITICAL and not r.is_search
        ),
        critical=sum(1 for r in scoped if is_open_critical(r)),
        search=sum(1 for r in records if r.is_search),
    )


def delivery_units(records: Iterable[PendencyRecord]) -> List[str]:
    return sorted({r.delivery_unit for r in records if r.delivery_unit})


def _matches_unit_user(record: PendencyRecord, user: User, direction: Direction) -> bool:
    matches_dest = normalize_text(record.delivery_unit) == normalize_text(
        user.linked_dest_unit
    )
    matches_origin = normalize_text(record.collection_unit) == normalize_text(
        user.linked_origin_unit
    )
    if direction is Direction.INCOMING:
        return matches_dest
    if direction is Direction.OUTGOING:
        return matches_origin
    return matches_dest or matches_origin


def _matches_search(record: PendencyRecord, term: str) -> bool:
    return (
        term in record.document_number.lower()
        or term in record.recipient.lower()
        or term in record.collection_unit.lower()
        or term in record.delivery_unit.lower()
    )


def _limit_sort_key(record: PendencyRecord) -> date:
    return parse_date(record.limit_date) or date.min


def filter_records(
    records: Iterable[PendencyRecord],
    category: ListCategory = ListCategory.ALL,
    user: Optional[User] = None,
    direction: Direction = Direction.BOTH,
    unit: Optional[str] = None,
    status: Optional[PendencyStatus] = None,
    payment_type: Optional[PaymentType] = None,
    search_term: Optional[str] = None,
) -> List[PendencyRecord]:
    """Build a pendency list.

    Args:
        records: Normalized records
        category: ALL (open, non-critical), CRITICAL or SEARCH
        user: Viewer; unit-linked users are restricted to their unit
        direction: For unit users, incoming/outgoing/both
        unit: For other users, an optional delivery unit filter
        status: Optional status sub-filter
        payment_type: Optional payment type sub-filter
        search_term: Optional free-text filter

    Returns:
        Matching records ordered by limit date (undated first)
    """
    if category is ListCategory.CRITICAL:
        result = [r for r in records if is_open_critical(r)]
    elif category is ListCategory.SEARCH:
        result = [r for r in records if r.is_search]
    else:
        result = [
            r for r in records if r.status is not PendencyStatus.CRITICAL and not r.is_search
        ]

    if category is not ListCategory.SEARCH:
        if user is not None and user.is_unit_user:
            result = [r for r in result if _matches_unit_user(r, user, direction)]
        elif unit:
            wanted = normalize_text(unit)
            result = [r for r in result if normalize_text(r.delivery_unit) == wanted]

    if status is not None:
        result = [r for r in result if r.status is status]
    if payment_type is not None:
        result = [r for r in result if r.payment_type is payment_type]

    if search_term:
        term = search_term.strip().lower()
        result = [r for r in result if _matches_search(r, term)]

    return sorted(result, key=_limit_sort_key)
