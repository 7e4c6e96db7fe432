"""Tests for customer search, date filtering, sorting and pagination."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import make_record
from guestlog.services.query_engine import CustomerQuery, collation_key, query_customers


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def ledger_snapshot():
    """A(Jan 1, 1 visit), B(Jan 2, 3 visits), C(Jan 3, 2 visits)."""
    return [
        make_record(1, "Asha", "5550000001", visit_count=1, created_at=utc(2024, 1, 1, 9)),
        make_record(2, "Ben", "5550000002", visit_count=3, created_at=utc(2024, 1, 2, 9)),
        make_record(3, "Chen", "5550000003", visit_count=2, created_at=utc(2024, 1, 3, 9)),
    ]


def test_visit_count_desc_first_page(ledger_snapshot):
    page = query_customers(
        ledger_snapshot,
        CustomerQuery(sort_by="visitCount", sort_order="desc", page=1, limit=2),
    )

    assert [r.name for r in page.items] == ["Ben", "Chen"]
    assert page.total == 3
    assert page.total_pages == 2
    assert page.page == 1


def test_defaults_sort_newest_first(ledger_snapshot):
    page = query_customers(ledger_snapshot, CustomerQuery())

    assert [r.name for r in page.items] == ["Chen", "Ben", "Asha"]
    assert page.total_pages == 1


def test_unknown_sort_field_falls_back_to_created_at(ledger_snapshot):
    page = query_customers(ledger_snapshot, CustomerQuery(sort_by="password", sort_order="asc"))

    assert [r.name for r in page.items] == ["Asha", "Ben", "Chen"]


def test_unknown_sort_order_is_descending(ledger_snapshot):
    page = query_customers(ledger_snapshot, CustomerQuery(sort_by="visitCount", sort_order="sideways"))

    assert [r.visit_count for r in page.items] == [3, 2, 1]


@pytest.mark.parametrize("search, expected", [
    ("priya", [1]),
    ("PRIYA", [1]),
    ("9876", [1]),
    ("xyz", []),
    ("", [1, 2]),
    ("singh", [1, 2]),
])
def test_search_name_case_insensitive_and_phone_substring(search, expected):
    records = [
        make_record(1, "Priya Singh", "9876543210"),
        make_record(2, "Raj Singh", "5551234567"),
    ]

    page = query_customers(records, CustomerQuery(search=search, sort_by="name", sort_order="asc"))

    assert [r.id for r in page.items] == expected


def test_search_on_phone_is_not_fuzzy():
    records = [make_record(1, "Priya", "9876543210")]

    assert query_customers(records, CustomerQuery(search="987-654")).total == 0


def test_date_filter_includes_end_of_day():
    records = [make_record(1, created_at=datetime(2024, 3, 10, 23, 59, 59))]

    same_day = CustomerQuery(date_from=date(2024, 3, 10), date_to=date(2024, 3, 10))
    day_before = CustomerQuery(date_to=date(2024, 3, 9))

    assert query_customers(records, same_day).total == 1
    assert query_customers(records, day_before).total == 0


def test_date_filter_uses_local_timezone():
    # 02:30 UTC on the 11th is still the 10th in New York
    records = [make_record(1, created_at=utc(2024, 3, 11, 2, 30))]
    query = CustomerQuery(date_from=date(2024, 3, 10), date_to=date(2024, 3, 10))

    assert query_customers(records, query, tz=ZoneInfo("America/New_York")).total == 1
    assert query_customers(records, query, tz=timezone.utc).total == 0


def test_date_filter_open_ended_bounds(ledger_snapshot):
    from_only = query_customers(ledger_snapshot, CustomerQuery(date_from=date(2024, 1, 2)))
    to_only = query_customers(ledger_snapshot, CustomerQuery(date_to=date(2024, 1, 2)))

    assert {r.name for r in from_only.items} == {"Ben", "Chen"}
    assert {r.name for r in to_only.items} == {"Asha", "Ben"}


def test_search_and_date_filter_combine(ledger_snapshot):
    page = query_customers(
        ledger_snapshot,
        CustomerQuery(search="555000000", date_from=date(2024, 1, 3)),
    )

    assert [r.name for r in page.items] == ["Chen"]


@pytest.mark.parametrize("sort_order", ["asc", "desc"])
def test_equal_keys_keep_snapshot_order(sort_order):
    records = [
        make_record(1, "Dana", "5550000001", visit_count=2),
        make_record(2, "Eli", "5550000002", visit_count=5),
        make_record(3, "Fay", "5550000003", visit_count=2),
        make_record(4, "Gus", "5550000004", visit_count=2),
    ]

    page = query_customers(records, CustomerQuery(sort_by="visitCount", sort_order=sort_order))
    tied = [r.id for r in page.items if r.visit_count == 2]

    assert tied == [1, 3, 4]


def test_name_sort_ignores_case_and_accents():
    records = [
        make_record(1, "zoe"),
        make_record(2, "Émile"),
        make_record(3, "adam"),
        make_record(4, "Bea"),
    ]

    page = query_customers(records, CustomerQuery(sort_by="name", sort_order="asc"))

    assert [r.name for r in page.items] == ["adam", "Bea", "Émile", "zoe"]


def test_collation_key_orders_plain_before_accented():
    assert collation_key("resume") < collation_key("résumé")
    assert collation_key("Émile")[0] == "emile"


def test_contact_number_and_updated_at_sorts():
    records = [
        make_record(1, contact_number="5550000002", updated_at=utc(2024, 2, 1)),
        make_record(2, contact_number="5550000001", updated_at=utc(2024, 3, 1)),
    ]

    by_number = query_customers(records, CustomerQuery(sort_by="contactNumber", sort_order="asc"))
    by_updated = query_customers(records, CustomerQuery(sort_by="updatedAt", sort_order="desc"))

    assert [r.id for r in by_number.items] == [2, 1]
    assert [r.id for r in by_updated.items] == [2, 1]


def test_page_past_end_is_empty_with_full_counts(ledger_snapshot):
    page = query_customers(ledger_snapshot, CustomerQuery(page=5, limit=2))

    assert page.items == []
    assert page.total == 3
    assert page.total_pages == 2
    assert page.page == 5


@pytest.mark.parametrize("limit", [1, 2, 3, 10])
def test_total_is_independent_of_paging(ledger_snapshot, limit):
    for page_number in (1, 2, 3):
        page = query_customers(ledger_snapshot, CustomerQuery(page=page_number, limit=limit))
        assert page.total == 3
        assert len(page.items) <= limit


def test_pages_cover_every_record_once(ledger_snapshot):
    seen = []
    for page_number in (1, 2):
        page = query_customers(ledger_snapshot, CustomerQuery(page=page_number, limit=2))
        seen.extend(r.id for r in page.items)

    assert sorted(seen) == [1, 2, 3]


def test_empty_result_reports_one_page():
    page = query_customers([], CustomerQuery())

    assert page.items == []
    assert page.total == 0
    assert page.total_pages == 1


def test_non_positive_paging_uses_defaults(ledger_snapshot):
    page = query_customers(ledger_snapshot, CustomerQuery(page=0, limit=-3))

    assert page.page == 1
    assert len(page.items) == 3
    assert page.total_pages == 1


def test_query_does_not_mutate_snapshot(ledger_snapshot):
    before = list(ledger_snapshot)

    query_customers(ledger_snapshot, CustomerQuery(sort_by="name", sort_order="asc", limit=1))

    assert ledger_snapshot == before


def test_page_to_dict_uses_api_field_names(ledger_snapshot):
    body = query_customers(ledger_snapshot, CustomerQuery(limit=1)).to_dict()

    assert set(body) == {"customers", "total", "page", "totalPages"}
    assert set(body["customers"][0]) == {
        "id", "name", "contactNumber", "visitCount", "createdAt", "updatedAt",
    }


@pytest.mark.parametrize("sort_by", ["createdAt", "updatedAt"])
def test_sort_by_time_mixes_naive_and_aware(sort_by):
    records = [
        make_record(1, "Naive", "5550000001", created_at=datetime(2024, 1, 1, 9)),
        make_record(2, "Aware", "5550000002", created_at=utc(2024, 1, 2, 9)),
    ]

    page = query_customers(records, CustomerQuery(sort_by=sort_by, sort_order="asc"))

    assert [r.name for r in page.items] == ["Naive", "Aware"]


def test_naive_times_sort_in_the_local_timezone():
    kolkata = ZoneInfo("Asia/Kolkata")
    records = [
        # 10:00 in Kolkata is 04:30 UTC
        make_record(1, "Local", "5550000001", created_at=datetime(2024, 1, 1, 10)),
        make_record(2, "Utc", "5550000002", created_at=utc(2024, 1, 1, 5)),
    ]

    page = query_customers(records, CustomerQuery(sort_order="asc"), tz=kolkata)

    assert [r.name for r in page.items] == ["Local", "Utc"]
