"""Multi-stop route assembly from selected deal ids."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from ...config import settings
from ...data.sources import RemoteVendorSource
from ...errors import NoVendorsResolved
from ...models.domain import Coordinates, Vendor
from ...schemas.common import parse_options
from ...schemas.routing import RouteOptions
from ..geospatial import haversine_miles
from ..vendors.cache import VendorCache
from ..vendors.normalizer import normalize_vendor
from .models import Route, RouteLeg

logger = logging.getLogger(__name__)


def vendor_ids_from_deal_ids(deal_ids: Sequence[str]) -> list[str]:
    """Owning vendor ids (the part before the first ``-``), de-duplicated in first-seen order."""

    vendor_ids: list[str] = []
    for deal_id in deal_ids:
        vendor_id = str(deal_id or "").split("-", 1)[0].strip()
        if vendor_id and vendor_id not in vendor_ids:
            vendor_ids.append(vendor_id)
    return vendor_ids


def _miles_between(a: Coordinates, b: Coordinates) -> float:
    return haversine_miles(a.latitude, a.longitude, b.latitude, b.longitude)


def _chain(start: Coordinates, vendors: Sequence[Vendor]) -> list[RouteLeg]:
    legs: list[RouteLeg] = []
    previous = start
    for sequence, vendor in enumerate(vendors, start=1):
        coordinates = vendor.location.coordinates
        legs.append(
            RouteLeg(
                vendor_id=vendor.id,
                sequence=sequence,
                distance_from_prev_miles=_miles_between(previous, coordinates),
            )
        )
        previous = coordinates
    return legs


class RouteBuilder:
    """Orders the vendors behind a set of deals and estimates the trip.

    Vendors are ranked once by their distance from the start point and the
    total is the chained distance along that order. This is not a shortest
    path search.
    """

    def __init__(
        self,
        cache: VendorCache,
        *,
        vendor_source: Optional[RemoteVendorSource] = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cache = cache
        self.vendor_source = vendor_source
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def _resolve(self, vendor_id: str) -> Optional[Vendor]:
        vendor = self.cache.get_by_id(vendor_id)
        if vendor is not None or self.vendor_source is None:
            return vendor
        document = await self.vendor_source.fetch_by_id(vendor_id)
        if document is None:
            return None
        logger.info(f"Vendor {vendor_id} resolved from remote source")
        return normalize_vendor(document)

    async def create_route(
        self,
        deal_ids: Sequence[str],
        options: RouteOptions | dict[str, Any] | None = None,
        **overrides: Any,
    ) -> Route:
        route_options = parse_options(RouteOptions, options, **overrides)
        vendor_ids = vendor_ids_from_deal_ids(deal_ids)
        if not vendor_ids:
            logger.error("Cannot create route: no vendor ids in deal ids")
            raise NoVendorsResolved("No vendor ids could be extracted from the deal ids")

        try:
            vendors = [vendor for vendor in [await self._resolve(vid) for vid in vendor_ids] if vendor is not None]
        except Exception as e:
            logger.error(f"Error resolving route vendors: {e}")
            raise
        if not vendors:
            logger.error(f"Cannot create route: none of {len(vendor_ids)} vendors found")
            raise NoVendorsResolved(f"No vendors found for deal ids {list(deal_ids)}")

        start: Optional[Coordinates] = None
        legs: list[RouteLeg] = []
        total_distance = 0.0

        if route_options.user_location is not None:
            start = Coordinates(
                latitude=route_options.user_location.latitude,
                longitude=route_options.user_location.longitude,
            )
            vendors = [replace(vendor, distance=_miles_between(start, vendor.location.coordinates)) for vendor in vendors]
            vendors.sort(key=lambda vendor: vendor.distance)
            if route_options.max_vendors:
                vendors = vendors[: route_options.max_vendors]
            legs = _chain(start, vendors)
            total_distance = sum(leg.distance_from_prev_miles for leg in legs)
        elif route_options.max_vendors:
            vendors = vendors[: route_options.max_vendors]

        estimated_time = math.ceil(total_distance * settings.minutes_per_mile) + len(vendors) * settings.minutes_per_stop
        route = Route(
            vendors=vendors,
            total_distance=total_distance,
            estimated_time=estimated_time,
            deal_ids=list(deal_ids),
            created_at=self.clock(),
            deal_type=route_options.deal_type or "mixed",
            start_location=start,
            legs=legs,
        )
        logger.info(
            f"Created route with {route.stop_count} stops, {total_distance:.2f} miles, ~{estimated_time} minutes"
        )
        return route
