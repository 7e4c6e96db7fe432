"""
                        Services Module

Business logic of the customer ledger.

Services:
    - ledger: insert-or-update of customer records by contact number
    - query_engine: filter / sort / paginate over a ledger snapshot
    - locks: per-key async locks serializing same-number upserts
    - excel_manager: file-locked Excel visit log
"""

from guestlog.services.ledger import CustomerLedger, CustomerRecord
from guestlog.services.query_engine import CustomerQuery, CustomerPage, query_customers

__all__ = [
    "CustomerLedger",
    "CustomerRecord",
    "CustomerQuery",
    "CustomerPage",
    "query_customers",
]
