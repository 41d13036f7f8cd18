from types import SimpleNamespace

import pytest

from src.lootguide.data.sources import Predicate
from src.lootguide.data.supabase_source import (
    SupabaseFeaturedDealSource,
    SupabaseRegionSource,
    SupabaseVendorSource,
)
from src.lootguide.errors import SourceUnavailable
from src.lootguide.models.domain import Partition


class DummyQuery:
    def __init__(self, client: "DummyClient", table: str) -> None:
        self.client = client
        self.table = table
        self.filters: list[tuple[str, object]] = []
        self.action = "select"
        self.payload = None

    def select(self, *_):
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.client.orders.append((column, desc))
        return self

    def limit(self, count):
        self.client.limits.append(count)
        return self

    def upsert(self, payload):
        self.action, self.payload = "upsert", payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def execute(self):
        if self.client.fail:
            raise RuntimeError("connection reset")
        rows = self.client.tables.setdefault(self.table, [])
        if self.action == "upsert":
            rows[:] = [row for row in rows if row["id"] != self.payload["id"]] + [self.payload]
            return SimpleNamespace(data=[self.payload])
        matching = [row for row in rows if all(row.get(col) == val for col, val in self.filters)]
        if self.action == "delete":
            rows[:] = [row for row in rows if row not in matching]
        return SimpleNamespace(data=matching)


class DummyClient:
    def __init__(self, tables=None) -> None:
        self.tables = tables or {}
        self.orders: list[tuple[str, bool]] = []
        self.limits: list[int] = []
        self.fail = False

    def table(self, name):
        return DummyQuery(self, name)


def test_predicate_matches_nested_fields() -> None:
    document = {"status": "Active-Operating", "location": {"zipCode": "99501"}, "rating": 4}

    assert Predicate("status", "==", "Active-Operating").matches(document)
    assert Predicate("location.zipCode", "!=", "99701").matches(document)
    assert Predicate("rating", ">=", 4).matches(document)
    assert not Predicate("rating", "<", 4).matches(document)
    assert not Predicate("missing.field", "!=", "x").matches(document)
    assert not Predicate("rating", ">", "four").matches(document)


@pytest.mark.asyncio
async def test_vendor_source_reads_partitions_in_order() -> None:
    client = DummyClient(
        {
            "active_vendors": [{"id": "v1", "data": {"name": "One", "status": "Active-Operating"}}],
            "priority_vendors": [{"id": "v2", "data": {"name": "Two", "status": "Closed"}}],
            "other_vendors": [{"id": "v1", "data": {"name": "Stale copy"}}],
        }
    )
    source = SupabaseVendorSource(client)

    documents = await source.fetch_all()
    filtered = await source.fetch_all([Predicate("status", "==", "Closed")])

    assert [(doc["id"], doc["name"]) for doc in documents] == [("v1", "One"), ("v2", "Two")]
    assert [doc["id"] for doc in filtered] == ["v2"]
    assert (await source.fetch_by_id("v2"))["name"] == "Two"
    assert await source.fetch_by_id("nope") is None


@pytest.mark.asyncio
async def test_vendor_source_moves_documents() -> None:
    client = DummyClient({"other_vendors": [{"id": "v1", "data": {"name": "One"}}]})
    source = SupabaseVendorSource(client)

    await source.put(Partition.ACTIVE, "v1", {"id": "v1", "name": "One"})
    await source.delete(Partition.OTHER, "v1")

    assert client.tables["other_vendors"] == []
    assert client.tables["active_vendors"] == [{"id": "v1", "data": {"id": "v1", "name": "One"}}]


@pytest.mark.asyncio
async def test_transport_errors_become_source_unavailable() -> None:
    client = DummyClient()
    client.fail = True

    with pytest.raises(SourceUnavailable):
        await SupabaseVendorSource(client).fetch_partition(Partition.ACTIVE)


@pytest.mark.asyncio
async def test_unconfigured_client_is_unavailable(monkeypatch) -> None:
    from src.lootguide.data import supabase_source

    monkeypatch.setattr(supabase_source, "get_supabase_client", lambda: None)

    with pytest.raises(SourceUnavailable):
        await SupabaseRegionSource().list_active()


@pytest.mark.asyncio
async def test_region_and_featured_sources() -> None:
    client = DummyClient(
        {
            "regions": [
                {"id": "anc", "name": "Anchorage", "is_active": True, "is_priority": True, "zip_codes": ["99501"]},
                {"id": "fai", "name": "Fairbanks", "is_active": False, "is_priority": True, "zip_codes": "99701"},
            ],
            "featured_deals": [{"id": "f1", "dealType": "birthday", "vendorId": "v1"}],
            "special_deals": [{"id": "s1", "title": "Summer"}],
        }
    )

    active = await SupabaseRegionSource(client).list_active()
    priority = await SupabaseRegionSource(client).list_priority()
    featured = SupabaseFeaturedDealSource(client)

    assert [region.id for region in active] == ["anc"]
    assert [region.id for region in priority] == ["anc", "fai"]
    assert priority[1].zip_codes == ["99701"]
    assert await featured.list_featured(5) == [{"id": "f1", "dealType": "birthday", "vendorId": "v1"}]
    assert client.orders == [("priority", True), ("created_at", True)]
    assert client.limits == [5]
    assert (await featured.fetch_special_deal("s1"))["title"] == "Summer"
    assert await featured.fetch_special_deal("s2") is None
