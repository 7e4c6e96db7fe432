"""
Customer Ledger

Owns the set of customer records. A visitor is identified by their
10-digit contact number: the first submission creates a record, every
later one refreshes the name, bumps the visit counter and moves
``updated_at`` forward.

Usage:
    ledger = CustomerLedger(session)
    record, is_new = await ledger.upsert("Alice", "5551234567")
    snapshot = await ledger.list()
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guestlog.core.exceptions import StorageError, ValidationError
from guestlog.models import Customer
from guestlog.services.locks import KeyedLock

logger = logging.getLogger(__name__)

CONTACT_NUMBER_LENGTH = 10
NAME_MAX_LENGTH = 100

_PHONE_SEPARATORS = re.compile(r"[\s\-.()]")
_TEN_DIGITS = re.compile(r"^[0-9]{10}$")

# Shared by every ledger instance in this process
contact_locks = KeyedLock()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_contact_number(value: Any) -> str:
    """
    Reduce a phone number to its 10 digits.

    Spaces, dashes, dots and parentheses are accepted as separators;
    anything else makes the number invalid.

    Raises:
        ValidationError: If the result is not exactly 10 digits
    """
    if not isinstance(value, str):
        raise ValidationError("Contact number must be a string of 10 digits")
    digits = _PHONE_SEPARATORS.sub("", value)
    if not _TEN_DIGITS.match(digits):
        raise ValidationError("Contact number must be exactly 10 digits")
    return digits


def normalize_name(value: Any) -> str:
    """
    Trim a display name.

    Raises:
        ValidationError: If the name is missing, blank or too long
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Name is required")
    name = value.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Name must be at most {NAME_MAX_LENGTH} characters")
    return name


@dataclass(frozen=True)
class CustomerRecord:
    """
    Read-only snapshot of one customer row.

    Attributes:
        id: Immutable identifier assigned at creation
        name: Latest submitted display name
        contact_number: 10-digit identity key
        visit_count: Number of upserts that matched this number
        created_at: First visit (UTC)
        updated_at: Latest visit (UTC)
    """
    id: int
    name: str
    contact_number: str
    visit_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, customer: Customer) -> "CustomerRecord":
        return cls(
            id=customer.id,
            name=customer.name,
            contact_number=customer.contact_number,
            visit_count=customer.visit_count,
            created_at=as_utc(customer.created_at),
            updated_at=as_utc(customer.updated_at),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase JSON shape."""
        return {
            "id": self.id,
            "name": self.name,
            "contactNumber": self.contact_number,
            "visitCount": self.visit_count,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class CustomerLedger:
    """
    Insert-or-update store of customer records.

    Same-number upserts are serialized by a per-number lock inside this
    process. Across processes the UNIQUE index on contact_number decides:
    the losing insert is rolled back and retried as an update.

    Attributes:
        session: Async SQLAlchemy session used for all reads and writes
        clock: Callable returning the current aware datetime
    """

    MAX_ATTEMPTS = 2

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        locks: Optional[KeyedLock] = None,
    ):
        self.session = session
        self.clock = clock
        self.locks = locks if locks is not None else contact_locks

    async def upsert(self, name: str, contact_number: str) -> tuple[CustomerRecord, bool]:
        """
        Record a visit.

        Args:
            name: Display name; replaces the stored one on repeat visits
            contact_number: Phone number identifying the visitor

        Returns:
            (record, is_new) where is_new is True only for a first visit

        Raises:
            ValidationError: If name or number is malformed (nothing is written)
            StorageError: If the database fails
        """
        name = normalize_name(name)
        contact_number = normalize_contact_number(contact_number)

        async with self.locks.hold(contact_number):
            for attempt in range(1, self.MAX_ATTEMPTS + 1):
                try:
                    return await self._upsert_once(name, contact_number)
                except IntegrityError as e:
                    await self.session.rollback()
                    if attempt == self.MAX_ATTEMPTS:
                        logger.error(f"Upsert for {contact_number} kept conflicting: {e}")
                        raise StorageError("Could not save customer", detail=str(e.orig)) from e
                    logger.warning(
                        f"Concurrent insert for {contact_number}, retrying as update"
                    )
                except SQLAlchemyError as e:
                    await self.session.rollback()
                    logger.exception(f"Storage failure while saving {contact_number}")
                    raise StorageError("Could not save customer") from e

    async def _upsert_once(self, name: str, contact_number: str) -> tuple[CustomerRecord, bool]:
        now = self.clock()
        result = await self.session.execute(
            select(Customer).where(Customer.contact_number == contact_number)
        )
        customer = result.scalar_one_or_none()

        if customer is None:
            customer = Customer(
                name=name,
                contact_number=contact_number,
                visit_count=1,
                created_at=now,
                updated_at=now,
            )
            self.session.add(customer)
            is_new = True
        else:
            customer.name = name
            # Evaluated by the database so no increment is lost between workers
            customer.visit_count = Customer.visit_count + 1
            customer.updated_at = max(now, as_utc(customer.created_at))
            is_new = False

        await self.session.flush()
        await self.session.refresh(customer)
        record = CustomerRecord.from_model(customer)
        await self.session.commit()

        if is_new:
            logger.info(f"New customer #{record.id} ({contact_number})")
        else:
            logger.info(
                f"Returning customer #{record.id} ({contact_number}), visit {record.visit_count}"
            )
        return record, is_new

    async def list(self) -> list[CustomerRecord]:
        """
        Read every customer record.

        Records come back in creation order so that stable sorting
        downstream gives reproducible pages.

        Raises:
            StorageError: If the database fails
        """
        try:
            result = await self.session.execute(select(Customer).order_by(Customer.id))
            customers = result.scalars().all()
        except SQLAlchemyError as e:
            logger.exception("Storage failure while listing customers")
            raise StorageError("Could not load customers") from e
        return [CustomerRecord.from_model(c) for c in customers]
