"""Listing query: validation, keyset pagination against SQL, suggestions."""

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from islandpros.cursor import encode_cursor
from islandpros.errors import ListingValidationError, StoreError
from islandpros.listing import ListingRequest, list_providers, parse_listing_request
from islandpros.models import (
    ARCHIVED,
    BUSY_LIMITED,
    EMERGENCY_READY,
    GOV_APPROVED,
    INACTIVE,
    NOT_TAKING_WORK,
    OPEN_NOW,
    PLAN_PREMIUM,
    ActivityEvent,
    Provider,
    ProviderBadge,
    SOURCE_ADMIN,
    SOURCE_TRIAL,
    VERIFIED,
)
from islandpros.ranking import EMERGENCY, STANDARD, ranking_record

from conftest import NOW, days_ago


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "kwargs, code, field",
    [
        ({"status": "OPEN"}, "INVALID_STATUS", "status"),
        ({"island": "STZ"}, "INVALID_ISLAND", "island"),
        ({"island": "stt"}, "INVALID_ISLAND", "island"),
        ({"category_id": "plumbing"}, "INVALID_CATEGORY", "categoryId"),
        ({"category_id": "0"}, "INVALID_CATEGORY", "categoryId"),
        ({"area_id": "-3"}, "INVALID_AREA", "areaId"),
        ({"area_id": "1.5"}, "INVALID_AREA", "areaId"),
        ({"category_id": str(2**70)}, "INVALID_CATEGORY", "categoryId"),
        ({"area_id": "2147483648"}, "INVALID_AREA", "areaId"),
        ({"limit": "0"}, "INVALID_LIMIT", "limit"),
        ({"limit": "-5"}, "INVALID_LIMIT", "limit"),
        ({"limit": "ten"}, "INVALID_LIMIT", "limit"),
        ({"cursor": "@@"}, "INVALID_CURSOR", "cursor"),
    ],
)
def test_invalid_inputs_are_typed_errors(kwargs, code, field):
    with pytest.raises(ListingValidationError) as err:
        parse_listing_request(STANDARD, **kwargs)
    assert err.value.code == code
    assert err.value.field == field
    assert err.value.body()["error"]["fieldErrors"] == {field: err.value.message}


def test_defaults_and_limit_clamp():
    assert parse_listing_request(STANDARD) == ListingRequest(limit=20)
    assert parse_listing_request(STANDARD, limit="500").limit == 50
    assert parse_listing_request(STANDARD, limit="50").limit == 50
    assert parse_listing_request(STANDARD, limit="1").limit == 1


def test_blank_filters_mean_no_filter():
    assert parse_listing_request(STANDARD, status="", island=" ", cursor="") == ListingRequest()


def test_valid_filters_are_parsed():
    request = parse_listing_request(STANDARD, status=BUSY_LIMITED, island="STX", category_id="4", area_id="12", limit="7")
    assert request == ListingRequest(status=BUSY_LIMITED, island="STX", category_id=4, area_id=12, limit=7)


# ---------------------------------------------------------------------------
# Ordering and pagination
# ---------------------------------------------------------------------------

@pytest.fixture
def population(make_provider):
    """A mixed population with deliberate ties on every key but id."""
    tie_at = days_ago(2)
    return [
        make_provider("gov-free", badges=[GOV_APPROVED], activity=[("LOGIN", days_ago(20))]),
        make_provider("verified-premium", badges=[VERIFIED], plan=PLAN_PREMIUM, plan_source=SOURCE_ADMIN,
                      activity=[("LOGIN", days_ago(0.5))]),
        make_provider("ready-premium", badges=[VERIFIED, EMERGENCY_READY], plan=PLAN_PREMIUM,
                      plan_source=SOURCE_TRIAL, trial_end_at=NOW + timedelta(days=10),
                      activity=[("LOGIN", days_ago(9))]),
        make_provider("ready-expired", badges=[EMERGENCY_READY], plan=PLAN_PREMIUM,
                      plan_source=SOURCE_TRIAL, trial_end_at=days_ago(1)),
        make_provider("inactive", lifecycle_status=INACTIVE, activity=[("LOGIN", days_ago(0.1))]),
        make_provider("never-active"),
        make_provider("tie-a", status_last_updated_at=tie_at, activity=[("LOGIN", tie_at)]),
        make_provider("tie-b", status_last_updated_at=tie_at, activity=[("LOGIN", tie_at)]),
        make_provider("tie-c", status_last_updated_at=tie_at, activity=[("LOGIN", tie_at)]),
        make_provider("busy", status=BUSY_LIMITED, island="STX", activity=[("PROFILE_VIEW", days_ago(3))]),
        make_provider("archived", lifecycle_status=ARCHIVED, badges=[GOV_APPROVED]),
    ]


def _expected_order(db, mode, providers):
    records = []
    for p in providers:
        if p.lifecycle_status == ARCHIVED:
            continue
        badges = db.scalars(select(ProviderBadge.badge).where(ProviderBadge.provider_id == p.id)).all()
        last = db.scalar(select(ActivityEvent.created_at).where(ActivityEvent.provider_id == p.id)
                         .order_by(ActivityEvent.created_at.desc()).limit(1))
        records.append(ranking_record(p, badges, last, NOW))
    return [r["id"] for r in mode.rank(records)]


def _walk(db, mode, limit, **filters):
    seen, cursor, pages = [], None, 0
    while True:
        request = ListingRequest(limit=limit, cursor=cursor, **filters)
        page = list_providers(db, request, mode, NOW)
        pages += 1
        assert len(page.providers) <= limit
        seen.extend(card.id for card in page.providers)
        if page.next_cursor is None:
            return seen, pages
        cursor = parse_listing_request(mode, cursor=page.next_cursor).cursor


@pytest.mark.parametrize("mode", [STANDARD, EMERGENCY], ids=["standard", "emergency"])
@pytest.mark.parametrize("limit", [1, 3, 4, 50])
def test_pages_cover_every_provider_once_in_comparator_order(db, population, mode, limit):
    seen, pages = _walk(db, mode, limit)
    assert seen == _expected_order(db, mode, population)
    assert len(seen) == len(set(seen)) == 10
    assert pages == max(1, -(-10 // limit))


def test_sql_order_matches_the_documented_scenarios(db, population):
    names = {p.id: p.name for p in population}
    standard = [names[i] for i in _walk(db, STANDARD, 50)[0]]
    emergency = [names[i] for i in _walk(db, EMERGENCY, 50)[0]]

    assert standard[0] == "gov-free"
    assert standard[1:3] == ["verified-premium", "ready-premium"]
    assert emergency[1:3] == ["ready-premium", "verified-premium"]
    assert standard[3:] == emergency[3:]
    assert standard[3:6] == ["tie-a", "tie-b", "tie-c"]
    assert standard.index("never-active") > standard.index("ready-expired")
    assert standard[-1] == "inactive"
    assert "archived" not in standard


def test_cursor_resumes_after_new_activity_without_repeats(db, population, make_provider):
    first = list_providers(db, ListingRequest(limit=4), STANDARD, NOW)
    served = [card.id for card in first.providers]

    # a provider jumps to the top between page requests
    make_provider("newcomer", badges=[GOV_APPROVED], activity=[("LOGIN", NOW)])

    cursor = parse_listing_request(STANDARD, cursor=first.next_cursor).cursor
    rest = list_providers(db, ListingRequest(limit=50, cursor=cursor), STANDARD, NOW)
    remaining = [card.id for card in rest.providers]
    assert not set(served) & set(remaining)
    assert len(served) + len(remaining) == 10


def test_cards_expose_ranking_fields(db, population):
    page = list_providers(db, ListingRequest(limit=50), EMERGENCY, NOW)
    cards = {card.name: card for card in page.providers}

    ready = cards["ready-premium"]
    assert ready.trust_tier == 2
    assert ready.is_premium_active is True
    assert ready.emergency_boost_eligible is True
    assert ready.badges == sorted([VERIFIED, EMERGENCY_READY])
    assert ready.last_active_at == days_ago(9)

    assert cards["ready-expired"].is_premium_active is False
    assert cards["ready-expired"].emergency_boost_eligible is False
    assert cards["never-active"].last_active_at is None

    standard = list_providers(db, ListingRequest(limit=50), STANDARD, NOW)
    assert all(card.emergency_boost_eligible is None for card in standard.providers)


def test_last_page_has_no_cursor(db, population):
    page = list_providers(db, ListingRequest(limit=10), STANDARD, NOW)
    assert len(page.providers) == 10
    assert page.next_cursor is None


def test_next_cursor_encodes_last_row(db, population):
    page = list_providers(db, ListingRequest(limit=2), STANDARD, NOW)
    last = page.providers[-1]
    expected = (last.trust_tier, last.is_premium_active, last.lifecycle_status == "ACTIVE",
                last.last_active_at, last.status_last_updated_at, last.id)
    assert page.next_cursor == encode_cursor(STANDARD, expected)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

def test_filters_narrow_results(db, make_provider, catalog):
    stt = make_provider("stt-plumber", category_ids=[catalog["plumbing"]], area_ids=[catalog["STT"]])
    make_provider("stt-cleaner", category_ids=[catalog["cleaning"]], area_ids=[catalog["STT"]])
    stx = make_provider("stx-plumber", island="STX", status=NOT_TAKING_WORK,
                        category_ids=[catalog["plumbing"]], area_ids=[catalog["STX"]])

    def ids(**filters):
        return [c.id for c in list_providers(db, ListingRequest(**filters), STANDARD, NOW).providers]

    assert set(ids(category_id=catalog["plumbing"])) == {stt.id, stx.id}
    assert ids(island="STX") == [stx.id]
    assert ids(status=NOT_TAKING_WORK) == [stx.id]
    assert ids(area_id=catalog["STT"], category_id=catalog["plumbing"]) == [stt.id]


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------

def test_empty_result_suggests_relaxations(db, make_provider):
    make_provider("busy-stx", island="STX", status=BUSY_LIMITED)
    page = list_providers(db, ListingRequest(status=OPEN_NOW, island="STJ", area_id=99), STANDARD, NOW)

    assert page.providers == []
    assert page.next_cursor is None
    patches = {s.id: s.patch for s in page.suggestions}
    assert patches == {
        "include_busy": {"status": BUSY_LIMITED},
        "all_areas": {"areaId": None},
        "nearby_islands": {"island": None},
    }
    assert "suggestions" in page.to_response()


def test_busy_filter_suggests_any_status(db):
    page = list_providers(db, ListingRequest(status=BUSY_LIMITED, category_id=3), STANDARD, NOW)
    assert [s.id for s in page.suggestions] == ["any_status", "any_category"]


def test_no_suggestions_when_results_exist(db, make_provider):
    make_provider("open")
    page = list_providers(db, ListingRequest(status=OPEN_NOW), STANDARD, NOW)
    assert page.suggestions == []
    assert "suggestions" not in page.to_response()


def test_no_suggestions_past_the_last_page(db, make_provider):
    make_provider("only")
    first = list_providers(db, ListingRequest(limit=1), STANDARD, NOW)
    request = ListingRequest(limit=1, cursor=STANDARD.key_tuple({
        "trust_tier": 1, "is_premium_active": False, "lifecycle_active": False,
        "last_active_at": None, "status_last_updated_at": days_ago(999), "id": 10_000,
    }))
    past = list_providers(db, request, STANDARD, NOW)
    assert len(first.providers) == 1
    assert past.providers == [] and past.suggestions == []


# ---------------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------------

def test_store_failure_surfaces_as_store_error(db, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    monkeypatch.setattr(db, "execute", broken)
    with pytest.raises(StoreError) as err:
        list_providers(db, ListingRequest(), STANDARD, NOW)
    assert err.value.status_code == 500
    assert err.value.body() == {"error": {"code": "INTERNAL", "message": "Internal server error"}}
