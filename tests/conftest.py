import asyncio
import copy
from typing import Any, Optional

import pytest

from src.lootguide.errors import SourceUnavailable
from src.lootguide.models.domain import Partition, Region


class FakeVendorSource:
    """In-memory stand-in for the three remote vendor partitions."""

    def __init__(self) -> None:
        self.partitions: dict[Partition, dict[str, dict]] = {partition: {} for partition in Partition}
        self.fetch_calls = 0
        self.fail = False
        self.fail_ids: set[str] = set()
        self.gate: Optional[asyncio.Event] = None
        self.puts: list[tuple[Partition, str]] = []
        self.deletes: list[tuple[Partition, str]] = []

    def add(self, document: dict, partition: Partition = Partition.OTHER) -> None:
        self.partitions[partition][str(document["id"])] = copy.deepcopy(document)

    def placement(self, vendor_id: str) -> list[Partition]:
        return [partition for partition, docs in self.partitions.items() if vendor_id in docs]

    async def fetch_all(self, predicates=None) -> list[dict]:
        self.fetch_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise SourceUnavailable("vendor source offline")
        seen: dict[str, dict] = {}
        for partition in Partition:
            for vendor_id, document in self.partitions[partition].items():
                seen.setdefault(vendor_id, copy.deepcopy(document))
        documents = list(seen.values())
        if predicates:
            documents = [doc for doc in documents if all(pred.matches(doc) for pred in predicates)]
        return documents

    async def fetch_by_id(self, vendor_id: str) -> Optional[dict]:
        for partition in Partition:
            if vendor_id in self.partitions[partition]:
                return copy.deepcopy(self.partitions[partition][vendor_id])
        return None

    async def fetch_partition(self, partition: Partition) -> list[dict]:
        return [copy.deepcopy(doc) for doc in self.partitions[Partition(partition)].values()]

    async def put(self, partition: Partition, vendor_id: str, document: dict) -> None:
        if vendor_id in self.fail_ids:
            raise SourceUnavailable(f"write of {vendor_id} rejected")
        self.puts.append((partition, vendor_id))
        self.partitions[Partition(partition)][vendor_id] = copy.deepcopy(document)

    async def delete(self, partition: Partition, vendor_id: str) -> None:
        if vendor_id in self.fail_ids:
            raise SourceUnavailable(f"delete of {vendor_id} rejected")
        self.deletes.append((partition, vendor_id))
        self.partitions[Partition(partition)].pop(vendor_id, None)


class FakeRegionSource:
    def __init__(self, active: Optional[list[Region]] = None, priority: Optional[list[Region]] = None) -> None:
        self.active = active or []
        self.priority = priority or []
        self.fail = False

    async def list_active(self) -> list[Region]:
        if self.fail:
            raise RuntimeError("regions unavailable")
        return list(self.active)

    async def list_priority(self) -> list[Region]:
        if self.fail:
            raise RuntimeError("regions unavailable")
        return list(self.priority)


class MemoryBlobStore:
    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.fail_writes = False

    async def get(self, key: str) -> Optional[bytes]:
        return self.blobs.get(key)

    async def set(self, key: str, value: bytes) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.blobs[key] = value

    async def remove(self, key: str) -> None:
        self.blobs.pop(key, None)


class FakeClock:
    def __init__(self, now: float = 1_750_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def vendor_source() -> FakeVendorSource:
    return FakeVendorSource()


@pytest.fixture
def region_source() -> FakeRegionSource:
    return FakeRegionSource()


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def raw_vendor(vendor_id: str, **overrides: Any) -> dict:
    document = {
        "id": vendor_id,
        "name": f"Vendor {vendor_id}",
        "status": "Active-Operating",
        "location": {
            "address": "123 Main St, Anchorage, AK 99501",
            "coordinates": {"latitude": 61.2181, "longitude": -149.9003},
        },
        "isPartner": False,
        "deals": {"daily": {}, "special": []},
    }
    document.update(overrides)
    return document


@pytest.fixture
def make_vendor():
    return raw_vendor
