"""
                Restaurant Guest Ledger

Walk-in customer registry for a restaurant: deduplicates visitors by
phone number, counts their visits and serves an admin customer list.
"""

__version__ = "1.0.0"
