"""Per-vendor extraction of flat :class:`Deal` records from embedded deal specs."""

from __future__ import annotations

from typing import Optional

from ...models.domain import (
    DEFAULT_REDEMPTION_FREQUENCY,
    Deal,
    DealSpec,
    DealType,
    Vendor,
)


def _has_required(spec: DealSpec, *, need_title: bool = False) -> bool:
    if not spec.description or not spec.discount:
        return False
    return bool(spec.title) if need_title else True


def within_window(spec: DealSpec, now_iso: str) -> bool:
    """ISO string comparison of the deal's start/end dates against ``now_iso``."""

    if spec.start_date and spec.start_date > now_iso:
        return False
    if spec.end_date and spec.end_date < now_iso:
        return False
    return True


def _deal_from_spec(
    vendor: Vendor,
    spec: DealSpec,
    *,
    deal_id: str,
    deal_type: DealType,
    day: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Deal:
    return Deal(
        id=deal_id,
        title=spec.title or spec.description or "",
        description=spec.description or "",
        discount=spec.discount or "",
        restrictions=list(spec.restrictions),
        deal_type=deal_type.value,
        day=day,
        vendor_id=vendor.id,
        vendor_name=vendor.name,
        vendor_distance=vendor.distance,
        vendor_is_partner=vendor.is_partner,
        is_active=(spec.is_active is not False) if is_active is None else is_active,
        redemption_frequency=spec.redemption_frequency or DEFAULT_REDEMPTION_FREQUENCY[deal_type.value],
        category=spec.category,
        start_date=spec.start_date,
        end_date=spec.end_date,
    )


def birthday_deal(vendor: Vendor) -> Optional[Deal]:
    spec = vendor.deals.birthday
    if spec is None or not vendor.is_active_operating or not _has_required(spec):
        return None
    return _deal_from_spec(vendor, spec, deal_id=f"{vendor.id}-birthday", deal_type=DealType.BIRTHDAY)


def daily_deals(vendor: Vendor, day: str) -> list[Deal]:
    deals: list[Deal] = []
    for index, spec in enumerate(vendor.deals.daily.get(day, [])):
        if not _has_required(spec):
            continue
        deals.append(
            _deal_from_spec(
                vendor,
                spec,
                deal_id=f"{vendor.id}-daily-{day}-{index}",
                deal_type=DealType.DAILY,
                day=day,
            )
        )
    return deals


def everyday_deals(vendor: Vendor) -> list[Deal]:
    deals: list[Deal] = []
    for index, spec in enumerate(vendor.deals.everyday):
        if not _has_required(spec):
            continue
        deals.append(
            _deal_from_spec(
                vendor,
                spec,
                deal_id=f"{vendor.id}-everyday-{index}",
                deal_type=DealType.EVERYDAY,
                day="everyday",
            )
        )
    return deals


def special_deals(vendor: Vendor, now_iso: str, *, active_only: bool = False) -> list[Deal]:
    deals: list[Deal] = []
    for index, spec in enumerate(vendor.deals.special):
        if not _has_required(spec, need_title=True):
            continue
        in_window = within_window(spec, now_iso)
        if active_only and not in_window:
            continue
        deals.append(
            _deal_from_spec(
                vendor,
                spec,
                deal_id=f"{vendor.id}-special-{index}",
                deal_type=DealType.SPECIAL,
                is_active=spec.is_active is not False and in_window,
            )
        )
    return deals
