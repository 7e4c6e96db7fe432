"""
Visitor Rush Simulation

Fires many concurrent visit registrations at a running server, reusing a
small pool of phone numbers so the same customer arrives several times at
once, then checks the admin list for duplicates and lost visits.

Run from project root: python scripts/simulate.py --token <ADMIN_API_TOKEN>
"""

import argparse
import asyncio
import random
import sys
import time
from collections import Counter
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

API_BASE_URL = "http://localhost:8001"
TOTAL_VISITS = 50
DISTINCT_GUESTS = 10

FIRST_NAMES = ["Priya", "Raj", "Asha", "Vikram", "Meera", "Arjun", "Kavya", "Rohan", "Isha", "Dev"]
LAST_NAMES = ["Singh", "Sharma", "Patel", "Iyer", "Khan", "Das", "Nair", "Gupta", "Rao", "Bose"]


def generate_guest_pool(size: int) -> list[dict[str, str]]:
    """Generate guests with unique 10-digit numbers."""
    numbers = random.sample(range(10 ** 9, 10 ** 10), size)
    return [
        {
            "name": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
            "contactNumber": str(number),
        }
        for number in numbers
    ]


async def send_visit(
    client: httpx.AsyncClient,
    visit_num: int,
    guest: dict[str, str],
) -> dict[str, Any]:
    """Register one visit."""
    start_time = time.time()
    try:
        response = await client.post(f"{API_BASE_URL}/customers", json=guest, timeout=30.0)
    except httpx.HTTPError as e:
        return {
            "visit_num": visit_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }

    elapsed = round(time.time() - start_time, 3)
    if response.status_code != 200:
        return {
            "visit_num": visit_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }

    data = response.json()
    return {
        "visit_num": visit_num,
        "success": True,
        "contact_number": guest["contactNumber"],
        "is_new": data["isNew"],
        "time": elapsed,
    }


async def fetch_all_customers(client: httpx.AsyncClient, token: str) -> list[dict[str, Any]]:
    """Walk every page of the admin customer list."""
    customers = []
    page = 1
    while True:
        response = await client.get(
            f"{API_BASE_URL}/customers",
            params={"page": page, "limit": 100, "sortBy": "contactNumber", "sortOrder": "asc"},
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        data = response.json()
        customers.extend(data["customers"])
        if page >= data["totalPages"]:
            return customers
        page += 1


async def run_simulation(token: str, num_visits: int, num_guests: int) -> bool:
    """
    Run the visitor rush and verify the ledger afterwards.

    Returns:
        True if every guest has exactly one record and no visit was lost
    """
    print("=" * 70)
    print("VISITOR RUSH SIMULATION")
    print("=" * 70)
    print(f"Visits: {num_visits}  Guests: {num_guests}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    guests = generate_guest_pool(num_guests)
    start_time = time.time()

    async with httpx.AsyncClient() as client:
        before = {c["contactNumber"]: c["visitCount"] for c in await fetch_all_customers(client, token)}

        jobs = [send_visit(client, i + 1, random.choice(guests)) for i in range(num_visits)]
        results = await asyncio.gather(*jobs)

        after = await fetch_all_customers(client, token)

    total_time = round(time.time() - start_time, 2)
    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"\nSuccessful visits: {len(successful)}/{num_visits}")
    print(f"Failed visits: {len(failed)}/{num_visits}")
    print(f"Total time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"Average response: {avg_time}s")

    for f in failed[:5]:
        print(f"   Visit #{f['visit_num']}: {f['error']}")

    # Verification
    expected = Counter(r["contact_number"] for r in successful)
    records = Counter(c["contactNumber"] for c in after)
    visits = {c["contactNumber"]: c["visitCount"] for c in after}

    duplicates = [number for number, count in records.items() if count > 1]
    lost = [
        number for number, count in expected.items()
        if visits.get(number, 0) - before.get(number, 0) != count
    ]
    new_flags = Counter(r["contact_number"] for r in successful if r["is_new"])
    double_new = [number for number, count in new_flags.items() if count > 1]

    print("\n" + "=" * 70)
    print("VERIFICATION")
    print("=" * 70)
    print(f"Duplicate records: {duplicates or 'none'}")
    print(f"Numbers with lost visits: {lost or 'none'}")
    print(f"Numbers reported new twice: {double_new or 'none'}")
    print("=" * 70)

    return not (duplicates or lost or double_new)


async def preflight_checks() -> bool:
    """Check the server is up before the rush."""
    async with httpx.AsyncClient() as client:
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code != 200:
            print(f"Health check failed: {response.text}")
            return False
        data = response.json()
        print(f"Status: {data.get('status')}  Database: {data.get('database')}  Redis: {data.get('redis')}")
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Visitor Rush Simulation")
    parser.add_argument("--token", required=True, help="Admin API token")
    parser.add_argument("--visits", type=int, default=TOTAL_VISITS, help="Number of visits")
    parser.add_argument("--guests", type=int, default=DISTINCT_GUESTS, help="Number of distinct guests")
    parser.add_argument("--skip-checks", action="store_true", help="Skip the health check")
    args = parser.parse_args()

    if not args.skip_checks and not asyncio.run(preflight_checks()):
        sys.exit(1)

    ok = asyncio.run(run_simulation(args.token, args.visits, args.guests))
    sys.exit(0 if ok else 1)
