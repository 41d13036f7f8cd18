"""Explicit wiring of the deal engine's collaborators.

Nothing in the package keeps module-level mutable state: an :class:`Engine`
owns one :class:`VendorCache` and hands it to the services built on top of
it, so tests (or a host application) can run several independent engines.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .data.sources import (
    CheckInRecorder,
    DurableBlobStore,
    FeaturedDealSource,
    RemoteRegionSource,
    RemoteVendorSource,
)
from .services.checkin import CheckInService
from .services.deals.aggregator import DealAggregator
from .services.regions.redistribution import RedistributionReport, RegionRedistributor
from .services.routing.builder import RouteBuilder
from .services.vendors.cache import VendorCache

logger = logging.getLogger(__name__)


class Engine:
    def __init__(
        self,
        vendor_source: RemoteVendorSource,
        blob_store: DurableBlobStore,
        *,
        region_source: Optional[RemoteRegionSource] = None,
        featured_source: Optional[FeaturedDealSource] = None,
        check_in_recorder: Optional[CheckInRecorder] = None,
    ) -> None:
        self.vendor_source = vendor_source
        self.region_source = region_source
        self.cache = VendorCache(vendor_source, blob_store, region_source=region_source)
        self.deals = DealAggregator(self.cache, featured_source)
        self.routes = RouteBuilder(self.cache, vendor_source=vendor_source)
        self.check_ins = (
            CheckInService(self.cache, check_in_recorder, vendor_source=vendor_source)
            if check_in_recorder is not None
            else None
        )

    @classmethod
    def from_settings(
        cls,
        *,
        data_root: Path | None = None,
        check_in_recorder: Optional[CheckInRecorder] = None,
    ) -> "Engine":
        """Engine backed by the Supabase tables and a file snapshot store."""

        from .data.supabase_source import (
            SupabaseFeaturedDealSource,
            SupabaseRegionSource,
            SupabaseVendorSource,
        )
        from .persistence.filesystem import FileBlobStore

        return cls(
            SupabaseVendorSource(),
            FileBlobStore(data_root),
            region_source=SupabaseRegionSource(),
            featured_source=SupabaseFeaturedDealSource(),
            check_in_recorder=check_in_recorder,
        )

    async def start(self, *, force: bool = False) -> bool:
        loaded = await self.cache.load(force=force)
        if loaded:
            logger.info(f"Engine started with {len(self.cache)} vendors")
        else:
            logger.warning("Engine started without vendor data")
        return loaded

    def reset(self) -> None:
        self.cache.reset()

    async def teardown(self) -> None:
        await self.cache.teardown()
        logger.info("Engine torn down")

    async def redistribute(self) -> RedistributionReport:
        """Reclassify stored vendors, then reload the cache if anything moved."""

        if self.region_source is None:
            raise RuntimeError("Redistribution needs a region source")
        report = await RegionRedistributor(self.vendor_source, self.region_source).redistribute_all()
        if report.moved:
            await self.cache.force_refresh()
        return report
