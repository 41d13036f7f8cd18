"""Deal extraction and ranking over the cached vendor collection.

Deals are never stored: every call flattens the embedded deal specs of the
vendors currently held by the :class:`VendorCache` and runs them through
:func:`process_deals`.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from ...config import settings
from ...data.sources import FeaturedDealSource
from ...errors import ValidationError
from ...models.domain import DAYS_OF_WEEK, Deal, DealType, Vendor
from ...schemas.common import parse_options
from ...schemas.deals import DealQuery
from ..vendors.cache import VendorCache
from .extraction import birthday_deal, daily_deals, everyday_deals, special_deals
from .featured import FeaturedDealResolver, FeaturedResult

logger = logging.getLogger(__name__)

_DEAL_TYPES = tuple(deal_type.value for deal_type in DealType)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _stable_rank(deals: list[Deal]) -> list[Deal]:
    """Partner deals first; within each group deals carrying a distance are
    ordered ascending among the positions they already hold, and deals
    without a distance never move."""

    ranked: list[Deal] = []
    for partner in (True, False):
        group = [deal for deal in deals if bool(deal.vendor_is_partner) is partner]
        slots = [index for index, deal in enumerate(group) if deal.vendor_distance is not None]
        by_distance = sorted((group[index] for index in slots), key=lambda deal: deal.vendor_distance)
        for index, deal in zip(slots, by_distance):
            group[index] = deal
        ranked.extend(group)
    return ranked


def process_deals(deals: Iterable[Deal], options: DealQuery | dict[str, Any] | None = None, **overrides: Any) -> list[Deal]:
    """Filter, rank and truncate a list of deals.

    Order of operations: category, max distance (deals without a distance
    pass), active flag (skipped only when ``active_only`` is explicitly
    False), partner/distance ranking, limit.
    """

    query = parse_options(DealQuery, options, **overrides)
    result = list(deals)

    if query.category:
        result = [deal for deal in result if deal.category == query.category]
    if query.max_distance:
        result = [
            deal for deal in result
            if deal.vendor_distance is None or deal.vendor_distance <= query.max_distance
        ]
    if query.active_only is not False:
        result = [deal for deal in result if deal.is_active is not False]

    result = _stable_rank(result)

    if query.limit:
        result = result[: query.limit]
    return result


def count_deals_by_type(deals: Iterable[Deal]) -> dict[str, int]:
    counts = Counter(deal.deal_type for deal in deals)
    return {deal_type: counts.get(deal_type, 0) for deal_type in _DEAL_TYPES}


class DealAggregator:
    """Builds deal lists from the vendor cache and featured-deal pointers."""

    def __init__(
        self,
        cache: VendorCache,
        featured_source: Optional[FeaturedDealSource] = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cache = cache
        self.featured_source = featured_source
        self.clock = clock or _utcnow

    # -- helpers -------------------------------------------------------------------

    def _now(self) -> datetime:
        now = self.clock()
        return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)

    def current_day(self) -> str:
        """Lower-case day name of the current instant in the local calendar."""

        return DAYS_OF_WEEK[self._now().astimezone().weekday()]

    @staticmethod
    def _validate(deal_type: Optional[str], day: Optional[str]) -> tuple[Optional[str], Optional[str]]:
        if deal_type is not None:
            deal_type = str(deal_type).strip().lower()
            if deal_type not in _DEAL_TYPES:
                raise ValidationError(f"Unknown deal type '{deal_type}', expected one of {', '.join(_DEAL_TYPES)}")
        if day is not None:
            day = str(day).strip().lower()
            if day not in DAYS_OF_WEEK:
                raise ValidationError(f"Unknown day '{day}', expected one of {', '.join(DAYS_OF_WEEK)}")
        return deal_type, day

    def _vendors(self, query: DealQuery) -> list[Vendor]:
        vendors = self.cache.query(user_location=query.user_location)
        if query.vendor_id:
            vendors = [vendor for vendor in vendors if vendor.id == str(query.vendor_id)]
        return vendors

    def _extract(self, vendors: list[Vendor], deal_type: Optional[str], day: str, query: DealQuery) -> list[Deal]:
        now_iso = self._now().isoformat()
        active_only = query.active_only is True
        deals: list[Deal] = []

        for vendor in vendors:
            if deal_type in (None, DealType.BIRTHDAY.value):
                deal = birthday_deal(vendor)
                if deal is not None:
                    deals.append(deal)
            if deal_type in (None, DealType.DAILY.value):
                deals.extend(daily_deals(vendor, day))
            if deal_type in (None, DealType.DAILY.value, DealType.EVERYDAY.value):
                deals.extend(everyday_deals(vendor))
            if deal_type in (None, DealType.SPECIAL.value):
                deals.extend(special_deals(vendor, now_iso, active_only=active_only))
        return deals

    # -- public API ----------------------------------------------------------------

    def get_deals(
        self,
        deal_type: Optional[str] = None,
        day: Optional[str] = None,
        options: DealQuery | dict[str, Any] | None = None,
        **overrides: Any,
    ) -> list[Deal]:
        """Deals of one type (or all types) from the cached vendors.

        Unknown types, days, or option values raise :class:`ValidationError`
        before any data is read; any later failure is logged and yields an
        empty list.
        """

        deal_type, day = self._validate(deal_type, day)
        query = parse_options(DealQuery, options, **overrides)

        try:
            vendors = self._vendors(query)
            deals = self._extract(vendors, deal_type, day or self.current_day(), query)
            result = process_deals(deals, query)
            logger.info(f"Found {len(result)} {deal_type or 'all'} deals from {len(vendors)} vendors")
            return result
        except Exception as e:
            logger.error(f"Error getting {deal_type or 'all'} deals: {e}")
            return []

    def get_birthday_deals(self, **options: Any) -> list[Deal]:
        return self.get_deals(DealType.BIRTHDAY.value, **options)

    def get_daily_deals(self, day: Optional[str] = None, **options: Any) -> list[Deal]:
        return self.get_deals(DealType.DAILY.value, day, **options)

    def get_everyday_deals(self, **options: Any) -> list[Deal]:
        return self.get_deals(DealType.EVERYDAY.value, **options)

    def get_special_deals(self, **options: Any) -> list[Deal]:
        return self.get_deals(DealType.SPECIAL.value, **options)

    def get_deals_for_vendor(self, vendor_id: str, day: Optional[str] = None, **options: Any) -> list[Deal]:
        """Every deal one vendor offers today (or on ``day``)."""

        return self.get_deals(None, day, vendor_id=str(vendor_id), **options)

    async def get_featured(self, limit: Optional[int] = None, **options: Any) -> FeaturedResult:
        """Featured deals, highest priority and newest first, then post-processed.

        Entries that fail to resolve are dropped and counted in
        :attr:`FeaturedResult.errors`.
        """

        query = parse_options(DealQuery, None, **options)
        if self.featured_source is None:
            logger.warning("No featured deal source configured, returning no featured deals")
            return FeaturedResult()

        try:
            vendors = {vendor.id: vendor for vendor in self.cache.query(user_location=query.user_location)}
            resolver = FeaturedDealResolver(self.featured_source)
            result = await resolver.resolve(
                vendors,
                self._now().isoformat(),
                limit if limit is not None else settings.featured_default_limit,
            )
        except Exception as e:
            logger.error(f"Error getting featured deals: {e}")
            return FeaturedResult()

        result.deals = process_deals(result.deals, query)
        logger.info(f"Found {len(result.deals)} featured deals")
        return result
