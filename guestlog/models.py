"""
SQLAlchemy Database Models

One row per walk-in customer, keyed by contact number.
"""

from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from guestlog.database import Base


class Customer(Base):
    """
    Customer ledger table.

    contact_number is the identity of a visitor: a repeat visit updates the
    existing row instead of inserting a new one.
    """
    __tablename__ = "customers"
    __table_args__ = (
        CheckConstraint("visit_count >= 1", name="ck_customers_visit_count_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    name = Column(String(100), nullable=False)
    contact_number = Column(String(10), nullable=False, unique=True, index=True)
    visit_count = Column(Integer, nullable=False, default=1)

    # Set by the ledger, not the database, so both stay in step with the
    # visit that caused them
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Customer #{self.id} - {self.name} - {self.contact_number} - visits={self.visit_count}>"
