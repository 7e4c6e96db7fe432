"""
Visit Log Verification Script

Checks the Excel visit log written by the Celery worker.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from guestlog.services.excel_manager import ExcelManager


def verify_visit_log() -> bool:
    """Verify visit log integrity."""
    manager = ExcelManager()

    print("=" * 60)
    print("VISIT LOG VERIFICATION REPORT")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"File: {manager.visits_file}")
    print("=" * 60)

    rows = manager.get_all_visits()
    if not rows:
        print("\nVisit log is empty or missing.")
        print("   Register a few visits and start the Celery worker first.")
        return False

    df = pd.DataFrame(rows)

    print(f"\nSTATISTICS:")
    print(f"   Visits logged: {len(df)}")
    print(f"   Distinct guests: {df['contact_number'].nunique()}")
    print(f"   New guests: {int(df['is_new'].astype(bool).sum())}")

    ok = True

    # Each guest should be "new" exactly once
    new_per_guest = df[df["is_new"].astype(bool)].groupby("contact_number").size()
    repeated_new = new_per_guest[new_per_guest > 1]
    if not repeated_new.empty:
        ok = False
        print(f"\n{len(repeated_new)} guests were logged as new more than once:")
        print(repeated_new.to_string())
    else:
        print("\nNo guest logged as new twice")

    # Visit numbers per guest should not repeat
    repeated_counts = df.duplicated(subset=["contact_number", "visit_count"]).sum()
    if repeated_counts:
        ok = False
        print(f"{repeated_counts} repeated (guest, visit number) rows found")
    else:
        print("No repeated visit numbers")

    print(f"\nMOST FREQUENT GUESTS:")
    print("-" * 60)
    top = (
        df.sort_values("visit_count")
        .groupby("contact_number")
        .tail(1)
        .nlargest(5, "visit_count")[["name", "contact_number", "visit_count"]]
    )
    print(top.to_string(index=False))

    print("\n" + "=" * 60)
    print("VERIFICATION COMPLETE" if ok else "VERIFICATION FOUND PROBLEMS")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_visit_log() else 1)
