"""
Customer Query Engine

Pure filter / sort / paginate over a ledger snapshot. Nothing here touches
storage, so the same function backs the admin API and any offline report.

Rules:
    - search: case-insensitive substring of the name, or plain substring of
      the contact number; empty matches everything
    - date_from / date_to: inclusive calendar dates compared against
      created_at in the local timezone
    - sort_by: unknown fields fall back to created_at
    - sorting is stable in both directions, so records with equal keys keep
      the order they had in the snapshot
    - total_pages is never below 1, even for an empty result
"""

import math
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Callable, Optional, Sequence

from guestlog.services.ledger import CustomerRecord

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT_BY = "createdAt"
DEFAULT_SORT_ORDER = "desc"

# API field name -> record attribute
SORT_FIELDS = {
    "name": "name",
    "contactNumber": "contact_number",
    "visitCount": "visit_count",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
STRING_FIELDS = {"name", "contact_number"}
DATE_FIELDS = {"created_at", "updated_at"}


def collation_key(value: str) -> tuple[str, str, str]:
    """
    Sort key approximating a locale-aware comparison.

    Primary: letters without accents, case folded. Secondary: accents kept,
    case folded. Tertiary: the raw string.
    """
    decomposed = unicodedata.normalize("NFKD", value)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return base.casefold(), unicodedata.normalize("NFC", value).casefold(), value


@dataclass(frozen=True)
class CustomerQuery:
    """
    Parameters of one customer list request.

    Attributes:
        search: Free text matched against name and contact number
        date_from: Earliest first-visit date (inclusive)
        date_to: Latest first-visit date (inclusive)
        sort_by: One of SORT_FIELDS
        sort_order: "asc" or "desc"
        page: 1-based page number
        limit: Page size
    """
    search: str = ""
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def sort_attribute(self) -> str:
        return SORT_FIELDS.get(self.sort_by, SORT_FIELDS[DEFAULT_SORT_BY])

    @property
    def descending(self) -> bool:
        return self.sort_order != "asc"


@dataclass
class CustomerPage:
    """One page of query results plus counts over the whole filtered set."""
    items: list[CustomerRecord] = field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    total_pages: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "customers": [record.to_dict() for record in self.items],
            "total": self.total,
            "page": self.page,
            "totalPages": self.total_pages,
        }


def local_date(value: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of a timestamp in ``tz``; naive values are taken as local already."""
    if tz is not None and value.tzinfo is not None:
        value = value.astimezone(tz)
    return value.date()


def matches_search(record: CustomerRecord, search: str) -> bool:
    if not search:
        return True
    return search.lower() in record.name.lower() or search in record.contact_number


def matches_date_range(
    record: CustomerRecord,
    date_from: Optional[date],
    date_to: Optional[date],
    tz: Optional[tzinfo] = None,
) -> bool:
    if date_from is None and date_to is None:
        return True
    visited = local_date(record.created_at, tz)
    if date_from is not None and visited < date_from:
        return False
    if date_to is not None and visited > date_to:
        return False
    return True


def _comparable_time(value: datetime, tz: Optional[tzinfo]) -> datetime:
    # naive and aware datetimes do not compare
    if value.tzinfo is None:
        return value.replace(tzinfo=tz or timezone.utc)
    return value


def _sort_key(attribute: str, tz: Optional[tzinfo] = None) -> Callable[[CustomerRecord], Any]:
    if attribute in STRING_FIELDS:
        return lambda record: collation_key(getattr(record, attribute))
    if attribute in DATE_FIELDS:
        return lambda record: _comparable_time(getattr(record, attribute), tz)
    return lambda record: getattr(record, attribute)


def query_customers(
    records: Sequence[CustomerRecord],
    query: CustomerQuery,
    tz: Optional[tzinfo] = None,
) -> CustomerPage:
    """
    Filter, sort and paginate a snapshot of customer records.

    Args:
        records: Ledger snapshot; not modified
        query: Search, date range, sort and paging parameters
        tz: Timezone that defines calendar dates for the date filter

    Returns:
        CustomerPage with the requested slice and counts over all matches

    Example:
        >>> page = query_customers(records, CustomerQuery(sort_by="visitCount", limit=2))
        >>> page.total, page.total_pages
        (3, 2)
    """
    page = query.page if query.page >= 1 else DEFAULT_PAGE
    limit = query.limit if query.limit >= 1 else DEFAULT_LIMIT

    filtered = [
        record for record in records
        if matches_search(record, query.search)
        and matches_date_range(record, query.date_from, query.date_to, tz)
    ]

    # sorted() stays stable with reverse=True
    ordered = sorted(
        filtered,
        key=_sort_key(query.sort_attribute, tz),
        reverse=query.descending,
    )

    total = len(ordered)
    total_pages = max(1, math.ceil(total / limit))
    start = (page - 1) * limit

    return CustomerPage(
        items=ordered[start:start + limit],
        total=total,
        page=page,
        total_pages=total_pages,
    )
