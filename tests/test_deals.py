from datetime import datetime, timezone

import pytest

from src.lootguide.errors import ValidationError
from src.lootguide.models.domain import Deal, Partition
from src.lootguide.services.deals.aggregator import DealAggregator, count_deals_by_type, process_deals
from src.lootguide.services.vendors.cache import VendorCache

ORIGIN = {"lat": 61.2181, "lng": -149.9003}
# Monday 16 June 2025, noon UTC
MONDAY_NOON = datetime(2025, 6, 16, 12, 0, tzinfo=timezone.utc)


def _vendor(vendor_id: str, lat_offset: float, *, partner: bool = False, status: str = "Active-Operating", deals=None) -> dict:
    return {
        "id": vendor_id,
        "name": f"Vendor {vendor_id}",
        "status": status,
        "location": {
            "address": "123 Main St, Anchorage, AK 99501",
            "coordinates": {"latitude": 61.2181 + lat_offset, "longitude": -149.9003},
        },
        "isPartner": partner,
        "deals": deals or {"daily": {}, "special": []},
    }


def _deal(deal_id: str, *, partner: bool = False, distance=None, **overrides) -> Deal:
    values = dict(
        id=deal_id,
        title=deal_id,
        description="desc",
        discount="10%",
        deal_type="daily",
        vendor_id=deal_id.split("-")[0],
        vendor_name="Vendor",
        vendor_is_partner=partner,
        vendor_distance=distance,
    )
    values.update(overrides)
    return Deal(**values)


async def _aggregator(vendor_source, blob_store, clock, now=MONDAY_NOON, featured_source=None) -> DealAggregator:
    cache = VendorCache(vendor_source, blob_store, clock=clock)
    assert await cache.load() is True
    return DealAggregator(cache, featured_source, clock=lambda: now)


def test_partner_deal_comes_first_regardless_of_distance() -> None:
    deals = [_deal("a-daily", distance=5.0), _deal("b-daily", partner=True, distance=10.0)]

    assert [deal.id for deal in process_deals(deals)] == ["b-daily", "a-daily"]


def test_deals_without_distance_keep_their_position() -> None:
    deals = [
        _deal("a-1", distance=4.0),
        _deal("b-1"),
        _deal("c-1", distance=1.0),
        _deal("d-1", partner=True),
        _deal("e-1", distance=2.0),
    ]

    ranked = process_deals(deals)

    assert [deal.id for deal in ranked] == ["d-1", "c-1", "b-1", "e-1", "a-1"]


def test_process_deals_filters() -> None:
    deals = [
        _deal("a-1", distance=1.0, category="edibles"),
        _deal("b-1", distance=9.0, category="edibles"),
        _deal("c-1", category="edibles"),
        _deal("d-1", distance=0.5, category="flower"),
        _deal("e-1", distance=0.2, category="edibles", is_active=False),
    ]

    assert [d.id for d in process_deals(deals, category="edibles", max_distance=5.0)] == ["a-1", "c-1"]
    assert [d.id for d in process_deals(deals, {"activeOnly": False, "limit": 2})] == ["e-1", "d-1"]
    with pytest.raises(ValidationError):
        process_deals(deals, max_distance=-1)


def test_count_deals_by_type() -> None:
    deals = [_deal("a-1"), _deal("b-1"), _deal("c-1", deal_type="special")]

    assert count_deals_by_type(deals) == {"birthday": 0, "daily": 2, "everyday": 0, "special": 1}


@pytest.mark.asyncio
async def test_monday_deals_put_partner_first(vendor_source, blob_store, clock) -> None:
    vendor_source.add(
        _vendor("v1", 0.0174, partner=True, deals={"daily": {"monday": [{"description": "Monday BOGO", "discount": "BOGO"}]}}),
        Partition.ACTIVE,
    )
    vendor_source.add(
        _vendor("v2", 0.0116, deals={"daily": {"monday": [{"description": "Munchie Monday", "discount": "20%"}]}}),
        Partition.ACTIVE,
    )
    aggregator = await _aggregator(vendor_source, blob_store, clock)

    deals = aggregator.get_daily_deals("monday", user_location=ORIGIN)

    assert [deal.description for deal in deals] == ["Monday BOGO", "Munchie Monday"]
    assert deals[0].vendor_distance == pytest.approx(1.2, abs=0.02)
    assert deals[1].vendor_distance == pytest.approx(0.8, abs=0.02)
    assert deals[0].id == "v1-daily-monday-0"
    assert deals[0].title == "Monday BOGO"
    assert deals[0].redemption_frequency == "once_per_day"


@pytest.mark.asyncio
async def test_daily_defaults_to_today_and_folds_in_everyday(vendor_source, blob_store, clock) -> None:
    vendor_source.add(
        _vendor(
            "v1",
            0.0,
            deals={
                "daily": {
                    "Monday": [{"description": "Monday BOGO", "discount": "BOGO"}, {"description": "no discount"}],
                    "tuesday": [{"description": "Tuesday tins", "discount": "$5"}],
                },
                "everyday": [{"description": "Veterans", "discount": "10%"}],
            },
        )
    )
    aggregator = await _aggregator(vendor_source, blob_store, clock)

    daily = aggregator.get_daily_deals()
    everyday = aggregator.get_everyday_deals()

    assert aggregator.current_day() == "monday"
    assert [(d.deal_type, d.day) for d in daily] == [("daily", "monday"), ("everyday", "everyday")]
    assert [d.id for d in everyday] == ["v1-everyday-0"]
    assert [d.description for d in aggregator.get_daily_deals("TUESDAY")] == ["Tuesday tins", "Veterans"]


@pytest.mark.asyncio
async def test_birthday_deals_require_active_operating(vendor_source, blob_store, clock) -> None:
    birthday = {"daily": {}, "birthday": {"description": "Free pre-roll", "discount": "100%"}}
    vendor_source.add(_vendor("open", 0.0, deals=birthday))
    vendor_source.add(_vendor("closed", 0.0, status="Temporarily-Closed", deals=birthday))
    vendor_source.add(_vendor("partial", 0.0, deals={"birthday": {"description": "Missing discount"}}))
    aggregator = await _aggregator(vendor_source, blob_store, clock)

    deals = aggregator.get_birthday_deals()

    assert [deal.id for deal in deals] == ["open-birthday"]
    assert deals[0].redemption_frequency == "once_per_year"


@pytest.mark.asyncio
async def test_special_deals_respect_the_date_window(vendor_source, blob_store, clock) -> None:
    specials = {
        "special": [
            {"title": "Expired", "description": "old", "discount": "5%", "endDate": "2025-06-01T00:00:00Z"},
            {"title": "Running", "description": "now", "discount": "15%", "endDate": "2025-07-01T00:00:00Z"},
            {"title": "Upcoming", "description": "soon", "discount": "20%", "startDate": "2025-08-01"},
            {"description": "no title", "discount": "50%"},
        ]
    }
    vendor_source.add(_vendor("v1", 0.0, deals=specials))
    aggregator = await _aggregator(vendor_source, blob_store, clock)

    assert [d.title for d in aggregator.get_special_deals(active_only=True)] == ["Running"]
    assert [d.title for d in aggregator.get_special_deals()] == ["Running"]

    everything = aggregator.get_special_deals(active_only=False)
    assert [(d.title, d.is_active) for d in everything] == [
        ("Expired", False),
        ("Running", True),
        ("Upcoming", False),
    ]
    assert everything[1].id == "v1-special-1"
    assert everything[1].redemption_frequency == "unlimited"


@pytest.mark.asyncio
async def test_get_deals_without_type_collects_everything(vendor_source, blob_store, clock) -> None:
    vendor_source.add(
        _vendor(
            "v1",
            0.0,
            deals={
                "birthday": {"description": "Free gift", "discount": "100%"},
                "daily": {"monday": [{"description": "Monday BOGO", "discount": "BOGO"}]},
                "everyday": [{"description": "Veterans", "discount": "10%"}],
                "special": [{"title": "Summer", "description": "sale", "discount": "20%"}],
            },
        )
    )
    vendor_source.add(_vendor("v2", 0.0, deals={"everyday": [{"description": "Seniors", "discount": "10%"}]}))
    aggregator = await _aggregator(vendor_source, blob_store, clock)

    deals = aggregator.get_deals()

    assert count_deals_by_type(deals) == {"birthday": 1, "daily": 1, "everyday": 2, "special": 1}
    assert {d.vendor_id for d in aggregator.get_deals_for_vendor("v2")} == {"v2"}
    assert aggregator.get_deals(limit=2) == deals[:2]


@pytest.mark.asyncio
async def test_invalid_type_or_day_is_rejected(vendor_source, blob_store, clock) -> None:
    vendor_source.add(_vendor("v1", 0.0))
    aggregator = await _aggregator(vendor_source, blob_store, clock)

    with pytest.raises(ValidationError):
        aggregator.get_deals("weekly")
    with pytest.raises(ValidationError):
        aggregator.get_daily_deals("funday")


@pytest.mark.asyncio
async def test_read_failures_degrade_to_empty(vendor_source, blob_store, clock, monkeypatch) -> None:
    vendor_source.add(_vendor("v1", 0.0, deals={"everyday": [{"description": "Seniors", "discount": "10%"}]}))
    aggregator = await _aggregator(vendor_source, blob_store, clock)

    def broken_query(*args, **kwargs):
        raise RuntimeError("index corrupted")

    monkeypatch.setattr(aggregator.cache, "query", broken_query)

    assert aggregator.get_everyday_deals() == []


class FakeFeaturedSource:
    def __init__(self, records, specials) -> None:
        self.records = records
        self.specials = specials
        self.requested_limit = None

    async def list_featured(self, limit=None):
        self.requested_limit = limit
        return list(self.records)

    async def fetch_special_deal(self, deal_id):
        if deal_id == "boom":
            raise RuntimeError("special deal lookup failed")
        return self.specials.get(deal_id)


@pytest.mark.asyncio
async def test_featured_deals_are_resolved_and_ordered(vendor_source, blob_store, clock) -> None:
    vendor_source.add(
        _vendor(
            "v1",
            0.0,
            deals={
                "birthday": {"description": "Free gift", "discount": "100%"},
                "daily": {"friday": [{"description": "Friday flower", "discount": "15%"}]},
                "everyday": [{"description": "Veterans", "discount": "10%"}, {"description": "Seniors", "discount": "5%"}],
            },
        )
    )
    records = [
        {"id": "f1", "dealType": "birthday", "vendorId": "v1", "priority": 1, "createdAt": "2025-06-10T00:00:00Z"},
        {"id": "f2", "dealType": "special", "dealRef": "s1", "priority": 5, "createdAt": "2025-06-01T00:00:00Z",
         "expiresAt": "2025-06-30T00:00:00Z", "imageUrl": "https://cdn.example/s1.png"},
        {"id": "f3", "dealType": "daily", "vendorId": "v1", "day": "Friday", "priority": 1, "createdAt": "2025-06-12T00:00:00Z"},
        {"id": "f4", "dealType": "everyday", "vendorId": "v1", "index": 1, "priority": 3},
        {"id": "f5", "dealType": "birthday", "vendorId": "ghost", "priority": 9},
        {"id": "f6", "dealType": "special", "dealRef": "boom", "priority": 9},
        {"id": "f7", "dealType": "coupon", "vendorId": "v1", "priority": 9},
    ]
    specials = {"s1": {"id": "s1", "vendorId": "v1", "title": "Summer", "description": "sale", "discount": "20%"}}
    source = FakeFeaturedSource(records, specials)
    aggregator = await _aggregator(vendor_source, blob_store, clock, featured_source=source)

    result = await aggregator.get_featured()

    assert source.requested_limit == 5
    assert result.errors == 3
    assert [deal.featured_id for deal in result.deals] == ["f2", "f4", "f3", "f1"]
    assert all(deal.featured for deal in result.deals)
    special = result.deals[0]
    assert special.featured_priority == 5
    assert special.featured_expires_at == "2025-06-30T00:00:00Z"
    assert special.image_url == "https://cdn.example/s1.png"
    assert special.vendor_name == "Vendor v1"
    assert result.deals[1].description == "Seniors"


@pytest.mark.asyncio
async def test_featured_without_source_is_empty(vendor_source, blob_store, clock) -> None:
    vendor_source.add(_vendor("v1", 0.0))
    aggregator = await _aggregator(vendor_source, blob_store, clock)

    result = await aggregator.get_featured(limit=3)

    assert result.deals == []
    assert result.errors == 0
