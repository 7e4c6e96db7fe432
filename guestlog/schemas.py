"""
Pydantic Schemas for Request/Response Validation

JSON field names are camelCase to match the web client
(contactNumber, visitCount, createdAt, ...).
"""

from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from guestlog.core.exceptions import ValidationError
from guestlog.services.ledger import CustomerRecord, normalize_contact_number, normalize_name
from guestlog.services.query_engine import (
    CustomerQuery,
    DEFAULT_PAGE,
    DEFAULT_SORT_BY,
    DEFAULT_SORT_ORDER,
    SORT_FIELDS,
)


class CamelModel(BaseModel):
    """Base model serializing snake_case attributes as camelCase."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CustomerCreate(CamelModel):
    """Request schema for registering a visit."""

    name: str = Field(..., examples=["Priya Singh"])
    contact_number: str = Field(..., examples=["9876543210"])

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> str:
        try:
            return normalize_name(v)
        except ValidationError as e:
            raise ValueError(e.message)

    @field_validator("contact_number", mode="before")
    @classmethod
    def validate_contact_number(cls, v: Any) -> str:
        try:
            return normalize_contact_number(v)
        except ValidationError as e:
            raise ValueError(e.message)


class CustomerQueryParams(BaseModel):
    """
    Raw query string of the admin customer list.

    Paging values that are missing, non-numeric or below 1 fall back to the
    defaults; an unknown sortBy falls back to createdAt. Only a malformed
    date is rejected.
    """

    search: str = ""
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER
    page: int = DEFAULT_PAGE
    limit: int = 0

    @field_validator("search", mode="before")
    @classmethod
    def default_search(cls, v: Any) -> str:
        return v or ""

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def blank_date(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("sort_by", mode="before")
    @classmethod
    def known_sort_field(cls, v: Any) -> str:
        return v if v in SORT_FIELDS else DEFAULT_SORT_BY

    @field_validator("sort_order", mode="before")
    @classmethod
    def known_sort_order(cls, v: Any) -> str:
        return "asc" if v == "asc" else "desc"

    @field_validator("page", "limit", mode="before")
    @classmethod
    def lenient_int(cls, v: Any) -> int:
        # 0 means "use the default"; resolved in to_query()
        try:
            value = int(v)
        except (TypeError, ValueError):
            return 0
        return value if value >= 1 else 0

    def to_query(self, default_limit: int = 10, max_limit: int = 100) -> CustomerQuery:
        """Build the engine query, applying the configured page-size bounds."""
        limit = self.limit or default_limit
        return CustomerQuery(
            search=self.search,
            date_from=self.date_from,
            date_to=self.date_to,
            sort_by=self.sort_by,
            sort_order=self.sort_order,
            page=self.page or DEFAULT_PAGE,
            limit=min(limit, max_limit),
        )


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class CustomerResponse(CamelModel):
    """Response schema for a single customer record."""
    id: int
    name: str
    contact_number: str
    visit_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: CustomerRecord) -> "CustomerResponse":
        return cls.model_validate(record)


class CustomerUpsertResponse(CamelModel):
    """Response after registering a visit."""
    customer: CustomerResponse
    is_new: bool


class CustomerListResponse(CamelModel):
    """Response for the admin customer list."""
    customers: List[CustomerResponse]
    total: int
    page: int
    total_pages: int


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    timestamp: datetime
