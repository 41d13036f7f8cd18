"""In-memory vendor cache with durable snapshots.

The cache is the single source of truth for vendor data inside the engine.
Only :meth:`VendorCache.refresh` (and snapshot hydration in
:meth:`VendorCache.load`) replace the vendor collection; every rebuild
constructs a fresh :class:`_Snapshot` and swaps it in with one assignment,
so readers see either the previous or the next complete set of indices.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import math
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from ...config import settings
from ...data.sources import DurableBlobStore, RemoteRegionSource, RemoteVendorSource
from ...errors import SourceUnavailable
from ...models.domain import Vendor
from ...schemas.common import parse_options
from ...schemas.vendors import VendorQuery
from ..geospatial import haversine_miles
from ..regions.classifier import annotate, partition_from_region_info
from .normalizer import normalize_vendor, vendor_to_document

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(frozen=True, slots=True)
class CacheEvent:
    type: str
    count: int


Subscriber = Callable[[CacheEvent], Any]


@dataclass(slots=True)
class _Snapshot:
    vendors: tuple[Vendor, ...]
    by_id: dict[str, Vendor] = field(default_factory=dict)
    by_region: dict[str, list[Vendor]] = field(default_factory=dict)
    by_status: dict[str, list[Vendor]] = field(default_factory=dict)


def _build_snapshot(vendors: Sequence[Vendor]) -> _Snapshot:
    snapshot = _Snapshot(vendors=tuple(vendors))
    for vendor in snapshot.vendors:
        if vendor.id:
            snapshot.by_id[vendor.id] = vendor
        region_keys = list(vendor.regions)
        if vendor.region_info.region_id and vendor.region_info.region_id not in region_keys:
            region_keys.append(vendor.region_info.region_id)
        for region_id in region_keys:
            snapshot.by_region.setdefault(region_id, []).append(vendor)
        if vendor.status:
            snapshot.by_status.setdefault(vendor.status, []).append(vendor)
    return snapshot


def _in_region(vendor: Vendor, region_id: str) -> bool:
    return region_id in vendor.regions or vendor.region_info.region_id == region_id


class VendorCache:
    """Indexed vendor collection with a single-flight refresh."""

    def __init__(
        self,
        vendor_source: RemoteVendorSource,
        blob_store: DurableBlobStore,
        *,
        region_source: Optional[RemoteRegionSource] = None,
        clock: Callable[[], float] = time.time,
        expiration_seconds: float | None = None,
        cache_key: str | None = None,
        timestamp_key: str | None = None,
    ) -> None:
        self.vendor_source = vendor_source
        self.blob_store = blob_store
        self.region_source = region_source
        self.clock = clock
        self.expiration_seconds = expiration_seconds or settings.cache_expiration_seconds
        self.cache_key = cache_key or settings.vendor_cache_key
        self.timestamp_key = timestamp_key or settings.vendor_cache_timestamp_key

        self._subscribers: list[Subscriber] = []
        self._refreshing = False
        self._background_task: asyncio.Task | None = None
        self.reset()

    # -- lifecycle -----------------------------------------------------------------

    def reset(self) -> None:
        """Drop cached data; subscribers and configuration are kept."""

        self._snapshot: _Snapshot | None = None
        self._state = CacheState.EMPTY
        self._last_cache_update: datetime | None = None

    async def teardown(self) -> None:
        task = self._background_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._background_task = None
        self._subscribers.clear()
        self.reset()

    async def invalidate(self) -> None:
        """Forget the persisted snapshot and the in-memory data."""

        await self.blob_store.remove(self.timestamp_key)
        await self.blob_store.remove(self.cache_key)
        self.reset()
        logger.info("Vendor cache invalidated")

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    @property
    def last_cache_update(self) -> datetime | None:
        return self._last_cache_update

    # -- subscribers ---------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change listener; returns a function that unregisters it."""

        if not callable(callback):
            logger.warning("Invalid vendor cache subscriber callback")
            return lambda: None

        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, event: CacheEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in vendor cache subscriber: {e}")

    # -- loading -------------------------------------------------------------------

    def _install(self, vendors: Sequence[Vendor], event_type: str) -> None:
        self._snapshot = _build_snapshot(vendors)
        self._state = CacheState.LOADED
        self._last_cache_update = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
        self._notify(CacheEvent(type=event_type, count=len(vendors)))
        logger.info(f"Set {len(vendors)} vendors in cache ({event_type})")

    async def _read_snapshot(self) -> tuple[list[Vendor], float]:
        """Returns the persisted vendors and the snapshot age in seconds (inf when unknown)."""

        blob = await self.blob_store.get(self.cache_key)
        if not blob:
            return [], math.inf
        try:
            documents = json.loads(blob)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable vendor snapshot: {e}")
            return [], math.inf
        if not isinstance(documents, list) or not documents:
            return [], math.inf

        age = math.inf
        raw_timestamp = await self.blob_store.get(self.timestamp_key)
        if raw_timestamp:
            try:
                saved_ms = int(raw_timestamp.decode("utf-8").strip())
                age = max(0.0, self.clock() - saved_ms / 1000.0)
            except (ValueError, UnicodeDecodeError):
                logger.warning("Vendor snapshot timestamp is unreadable, treating snapshot as expired")

        vendors = [normalize_vendor(document) for document in documents]
        logger.info(f"Loaded {len(vendors)} vendors from snapshot")
        return vendors, age

    async def _write_snapshot(self, vendors: Sequence[Vendor]) -> None:
        payload = json.dumps([vendor_to_document(vendor) for vendor in vendors]).encode("utf-8")
        timestamp = str(int(self.clock() * 1000)).encode("utf-8")
        # the timestamp goes first and comes back last, so a torn write reads as expired
        await self.blob_store.remove(self.timestamp_key)
        await self.blob_store.set(self.cache_key, payload)
        await self.blob_store.set(self.timestamp_key, timestamp)

    def _schedule_background_refresh(self) -> None:
        if self._refreshing:
            return
        self._background_task = asyncio.create_task(self.refresh(background=True))

    async def join_background_refresh(self) -> None:
        """Wait for a scheduled background refresh, if any, to settle."""

        task = self._background_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def load(self, *, force: bool = False, background: bool = False) -> bool:
        """Populate the cache, preferring the persisted snapshot.

        A fresh snapshot is served as-is; an expired one is served immediately
        while a background refresh runs. Without a usable snapshot (or with
        ``force``) the remote source is read synchronously.
        """

        if self._refreshing:
            if self._snapshot is not None and not force:
                logger.info("Vendor cache refresh in progress, serving current data")
                return True
            logger.warning("Vendor cache refresh already in progress, load rejected")
            return False
        try:
            logger.info(f"Loading vendor cache (force={force}, background={background})")
            if not force:
                vendors, age = await self._read_snapshot()
                if vendors:
                    self._install(vendors, "init")
                    if age >= self.expiration_seconds:
                        logger.info("Vendor cache expired, refreshing in background")
                        self._schedule_background_refresh()
                    return True
            return await self.refresh(background=background)
        except Exception as e:
            logger.error(f"Error loading vendor cache: {e}")
            return False

    async def _annotate(self, vendors: list[Vendor]) -> list[Vendor]:
        if self.region_source is None:
            return vendors
        try:
            active_regions = await self.region_source.list_active()
            priority_regions = await self.region_source.list_priority()
        except Exception as e:
            logger.warning(f"Region definitions unavailable, keeping stored region info: {e}")
            return vendors
        return [annotate(vendor, active_regions, priority_regions) for vendor in vendors]

    async def refresh(self, background: bool = False) -> bool:
        """Re-read every vendor from the remote source.

        Rejected (returns False) while another refresh is running. A failed
        background refresh keeps serving the previous data and reports
        success; a failed foreground refresh reports False.
        """

        if self._refreshing:
            logger.warning("Vendor cache refresh already in progress, request rejected")
            return False
        self._refreshing = True
        self._state = CacheState.LOADING
        try:
            documents = await self.vendor_source.fetch_all()
            if not documents:
                raise SourceUnavailable("Remote vendor source returned no vendors")

            vendors = await self._annotate([normalize_vendor(document) for document in documents])
            self._install(vendors, "update")
            try:
                await self._write_snapshot(vendors)
            except Exception as e:
                logger.warning(f"Vendor snapshot could not be persisted: {e}")
            logger.info(f"Cached {len(vendors)} vendors successfully")
            return True
        except Exception as e:
            logger.error(f"Error refreshing vendor cache: {e}")
            if self._snapshot is not None:
                self._state = CacheState.LOADED
                return background
            self._state = CacheState.EMPTY
            return False
        finally:
            self._refreshing = False

    async def force_refresh(self) -> bool:
        return await self.refresh(background=False)

    # -- reads -----------------------------------------------------------------------

    def query(self, options: VendorQuery | dict[str, Any] | None = None, **overrides: Any) -> list[Vendor]:
        """Filtered, sorted copy of the cached vendors; empty until the cache is loaded."""

        query = parse_options(VendorQuery, options, **overrides)
        snapshot = self._snapshot
        if snapshot is None:
            logger.warning("Vendor cache not loaded, returning empty list")
            return []

        try:
            vendors: list[Vendor] = list(snapshot.vendors)
            if query.status:
                vendors = [vendor for vendor in vendors if vendor.status == query.status]
            if query.region:
                vendors = [vendor for vendor in vendors if _in_region(vendor, query.region)]
            if query.partition:
                vendors = [
                    vendor for vendor in vendors
                    if partition_from_region_info(vendor.region_info).value == query.partition
                ]
            if query.is_partner is not None:
                vendors = [vendor for vendor in vendors if vendor.is_partner is query.is_partner]
            if query.active_regions_only:
                vendors = [vendor for vendor in vendors if vendor.is_active_operating]

            vendors = [copy.deepcopy(vendor) for vendor in vendors]

            if query.user_location is not None:
                origin = query.user_location
                vendors = [
                    replace(
                        vendor,
                        distance=haversine_miles(
                            origin.latitude,
                            origin.longitude,
                            vendor.location.coordinates.latitude,
                            vendor.location.coordinates.longitude,
                        ),
                    )
                    for vendor in vendors
                ]
                if query.max_distance and not query.ignore_distance:
                    vendors = [vendor for vendor in vendors if vendor.distance <= query.max_distance]
                if not query.ignore_distance:
                    vendors.sort(key=lambda vendor: (not vendor.is_partner, vendor.distance))

            if query.limit:
                vendors = vendors[: query.limit]
            return vendors
        except Exception as e:
            logger.error(f"Error filtering vendors: {e}")
            return []

    def get_all_vendors(self, **options: Any) -> list[Vendor]:
        return self.query(None, **options)

    def get_by_id(self, vendor_id: Any) -> Optional[Vendor]:
        snapshot = self._snapshot
        if snapshot is None:
            logger.warning("Vendor cache not loaded, returning None")
            return None
        vendor = snapshot.by_id.get(str(vendor_id).strip())
        return copy.deepcopy(vendor) if vendor is not None else None

    def get_by_region(self, region_id: str) -> list[Vendor]:
        snapshot = self._snapshot
        if snapshot is None:
            return []
        return [copy.deepcopy(vendor) for vendor in snapshot.by_region.get(region_id, [])]

    def get_by_status(self, status: str) -> list[Vendor]:
        snapshot = self._snapshot
        if snapshot is None:
            return []
        return [copy.deepcopy(vendor) for vendor in snapshot.by_status.get(status, [])]

    def __len__(self) -> int:
        snapshot = self._snapshot
        return len(snapshot.vendors) if snapshot else 0
