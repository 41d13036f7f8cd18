"""Resolution of featured-deal pointer records into concrete deals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from ...data.sources import FeaturedDealSource, RawDocument
from ...models.domain import DEFAULT_REDEMPTION_FREQUENCY, DAYS_OF_WEEK, Deal, DealType, Vendor
from ..vendors.normalizer import normalize_deal_spec
from .extraction import birthday_deal, daily_deals, everyday_deals, within_window

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FeaturedResult:
    deals: list[Deal] = field(default_factory=list)
    errors: int = 0


def _field(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _as_iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    isoformat = getattr(value, "isoformat", None)
    return isoformat() if callable(isoformat) else str(value)


class FeaturedDealResolver:
    """Turns ``featured_deals`` pointer records into :class:`Deal` objects."""

    def __init__(self, source: FeaturedDealSource) -> None:
        self.source = source

    async def _resolve_special(self, record: Mapping[str, Any], vendors: Mapping[str, Vendor], now_iso: str) -> Optional[Deal]:
        deal_ref = _field(record, "dealRef", "deal_ref", "dealId", "deal_id")
        if not deal_ref:
            raise ValueError("special featured deal has no deal reference")
        document = await self.source.fetch_special_deal(str(deal_ref))
        if document is None:
            return None
        spec = normalize_deal_spec(document)
        if spec is None or not (spec.title and spec.description and spec.discount):
            raise ValueError(f"special deal {deal_ref} is missing title, description or discount")

        vendor_id = str(_field(document, "vendorId", "vendor_id") or "")
        vendor = vendors.get(vendor_id)
        return Deal(
            id=str(document.get("id") or deal_ref),
            title=spec.title,
            description=spec.description,
            discount=spec.discount,
            restrictions=list(spec.restrictions),
            deal_type=DealType.SPECIAL.value,
            vendor_id=vendor_id,
            vendor_name=vendor.name if vendor else str(_field(document, "vendorName", "vendor_name") or "Unknown Vendor"),
            vendor_distance=vendor.distance if vendor else None,
            vendor_is_partner=vendor.is_partner if vendor else False,
            is_active=spec.is_active is not False and within_window(spec, now_iso),
            redemption_frequency=spec.redemption_frequency or DEFAULT_REDEMPTION_FREQUENCY[DealType.SPECIAL.value],
            category=spec.category,
            start_date=spec.start_date,
            end_date=spec.end_date,
        )

    @staticmethod
    def _resolve_vendor_deal(record: Mapping[str, Any], deal_type: str, vendors: Mapping[str, Vendor]) -> Optional[Deal]:
        vendor_id = _field(record, "vendorId", "vendor_id", "vendorRef", "vendor_ref")
        if not vendor_id:
            raise ValueError(f"{deal_type} featured deal has no vendor reference")
        vendor = vendors.get(str(vendor_id))
        if vendor is None:
            return None

        match deal_type:
            case DealType.BIRTHDAY.value:
                return birthday_deal(vendor)
            case DealType.DAILY.value:
                day = str(_field(record, "day") or "").lower()
                if day not in DAYS_OF_WEEK:
                    raise ValueError(f"daily featured deal has invalid day '{day}'")
                deals = daily_deals(vendor, day)
                return deals[0] if deals else None
            case DealType.EVERYDAY.value:
                index = int(_field(record, "index") or 0)
                deals = [deal for deal in everyday_deals(vendor) if deal.id == f"{vendor.id}-everyday-{index}"]
                return deals[0] if deals else None
            case _:
                raise ValueError(f"unsupported featured deal type '{deal_type}'")

    async def resolve(self, vendors: Mapping[str, Vendor], now_iso: str, limit: Optional[int] = None) -> FeaturedResult:
        """Resolve every featured record; failures are logged, counted, and dropped."""

        records: list[RawDocument] = await self.source.list_featured(limit)
        result = FeaturedResult()
        resolved: list[tuple[int, str, Deal]] = []

        for record in records:
            featured_id = str(_field(record, "id") or "")
            deal_type = str(_field(record, "dealType", "deal_type") or "").lower()
            try:
                if deal_type == DealType.SPECIAL.value:
                    deal = await self._resolve_special(record, vendors, now_iso)
                else:
                    deal = self._resolve_vendor_deal(record, deal_type, vendors)
            except Exception as e:
                result.errors += 1
                logger.error(f"Error processing featured deal {featured_id}: {e}")
                continue
            if deal is None:
                result.errors += 1
                logger.warning(f"Featured deal {featured_id} did not resolve to a live deal")
                continue

            priority = int(_field(record, "priority") or 0)
            resolved.append(
                (
                    priority,
                    _as_iso(_field(record, "createdAt", "created_at")) or "",
                    replace(
                        deal,
                        featured=True,
                        featured_id=featured_id or None,
                        featured_priority=priority,
                        featured_expires_at=_as_iso(_field(record, "expiresAt", "expires_at")),
                        image_url=_field(record, "imageUrl", "image_url"),
                    ),
                )
            )

        resolved.sort(key=lambda item: (item[0], item[1]), reverse=True)
        result.deals = [deal for _, _, deal in resolved]
        if result.errors:
            logger.warning(f"Resolved {len(result.deals)} featured deals with {result.errors} failures")
        return result
