"""Conversion of raw vendor documents into the canonical :class:`Vendor` shape.

Remote vendor documents arrive in several shapes: coordinates nested under
``location.coordinates`` or flat on ``location``, daily deals as a list or a
single mapping, camelCase or snake_case keys, contact blocks with or without
social handles. Everything downstream of this module relies on the defaults
filled in here, so this is the only place that repairs a document.
"""

from __future__ import annotations

import copy
import logging
import re
from datetime import date, datetime
from typing import Any, Mapping, Optional

from ...config import settings
from ...models.domain import (
    Coordinates,
    DealSpec,
    Region,
    RegionInfo,
    SocialLinks,
    Vendor,
    VendorContact,
    VendorDeals,
    VendorLocation,
)

logger = logging.getLogger(__name__)

_ZIP_PATTERN = re.compile(r"\b(\d{5})(?:-\d{4})?\b")

_KNOWN_KEYS = frozenset(
    {
        "id",
        "name",
        "status",
        "location",
        "contact",
        "hours",
        "deals",
        "regionInfo",
        "region_info",
        "isPartner",
        "is_partner",
        "regions",
        "distance",
    }
)


def extract_zip_code_from_address(address: Optional[str]) -> Optional[str]:
    """Return the first five-digit postal code found in ``address``, or None."""

    if not address or not isinstance(address, str):
        return None
    match = _ZIP_PATTERN.search(address)
    return match.group(1) if match else None


def _pick(source: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in source and source[key] is not None:
            return source[key]
    return default


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()


def _as_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _normalize_coordinates(location: Mapping[str, Any]) -> Coordinates:
    nested = _as_mapping(location.get("coordinates"))
    lat = _as_float(_pick(nested, "latitude", "lat", "_latitude"))
    lon = _as_float(_pick(nested, "longitude", "lng", "lon", "_longitude"))
    if lat is None or lon is None:
        # second known source shape: coordinates flat on the location block
        lat = _as_float(_pick(location, "latitude", "lat"))
        lon = _as_float(_pick(location, "longitude", "lng", "lon"))
    if lat is None or lon is None:
        return Coordinates(latitude=settings.fallback_latitude, longitude=settings.fallback_longitude)
    return Coordinates(latitude=lat, longitude=lon)


def _normalize_location(value: Any) -> VendorLocation:
    if isinstance(value, str):
        location: Mapping[str, Any] = {"address": value}
    else:
        location = _as_mapping(value)
    address = _as_str(location.get("address"))
    zip_code = _as_optional_str(_pick(location, "zipCode", "zip_code", "zip"))
    if zip_code is None:
        zip_code = extract_zip_code_from_address(address)
    return VendorLocation(address=address, zip_code=zip_code, coordinates=_normalize_coordinates(location))


def _normalize_contact(value: Any) -> VendorContact:
    contact = _as_mapping(value)
    social = _as_mapping(contact.get("social"))
    return VendorContact(
        phone=_as_str(contact.get("phone")),
        email=_as_str(contact.get("email")),
        social=SocialLinks(
            instagram=_as_str(social.get("instagram")),
            facebook=_as_str(social.get("facebook")),
        ),
    )


def _normalize_restrictions(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return []


def normalize_deal_spec(value: Any) -> Optional[DealSpec]:
    """Normalize one embedded deal; anything that is not a mapping yields None."""

    if isinstance(value, DealSpec):
        return copy.deepcopy(value)
    if not isinstance(value, Mapping):
        return None
    return DealSpec(
        description=_as_optional_str(value.get("description")),
        discount=_as_optional_str(value.get("discount")),
        title=_as_optional_str(value.get("title")),
        restrictions=_normalize_restrictions(value.get("restrictions")),
        redemption_frequency=_as_optional_str(_pick(value, "redemptionFrequency", "redemption_frequency")),
        is_active=_as_bool(_pick(value, "isActive", "is_active")),
        start_date=_as_optional_str(_pick(value, "startDate", "start_date")),
        end_date=_as_optional_str(_pick(value, "endDate", "end_date")),
        category=_as_optional_str(value.get("category")),
    )


def _normalize_deal_list(value: Any) -> list[DealSpec]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        # a single deal stored without a wrapping list
        if "description" in value or "discount" in value or "title" in value:
            items: list[Any] = [value]
        else:
            items = list(value.values())
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        return []
    specs = [normalize_deal_spec(item) for item in items]
    return [spec for spec in specs if spec is not None]


def _normalize_deals(value: Any) -> VendorDeals:
    deals = _as_mapping(value)
    daily: dict[str, list[DealSpec]] = {}
    for day, entries in _as_mapping(deals.get("daily")).items():
        day_key = str(day).strip().lower()
        if not day_key:
            continue
        daily.setdefault(day_key, []).extend(_normalize_deal_list(entries))
    return VendorDeals(
        birthday=normalize_deal_spec(deals.get("birthday")),
        daily=daily,
        everyday=_normalize_deal_list(deals.get("everyday")),
        special=_normalize_deal_list(deals.get("special")),
    )


def _normalize_region_info(value: Any, zip_code: Optional[str]) -> RegionInfo:
    info = _as_mapping(value)
    in_active = bool(_as_bool(_pick(info, "inActiveRegion", "in_active_region")))
    in_priority = bool(_as_bool(_pick(info, "inPriorityRegion", "in_priority_region"))) or in_active
    return RegionInfo(
        in_active_region=in_active,
        in_priority_region=in_priority,
        region_id=_as_optional_str(_pick(info, "regionId", "region_id")),
        region_name=_as_optional_str(_pick(info, "regionName", "region_name")),
        zip_code=_as_optional_str(_pick(info, "zipCode", "zip_code")) or zip_code,
    )


def _normalize_regions(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return []


def normalize_vendor(raw: Any) -> Vendor:
    """Map a raw vendor document to a canonical :class:`Vendor`.

    Never raises for malformed input and never mutates ``raw``.
    """

    document = _as_mapping(raw)
    location = _normalize_location(document.get("location"))
    extra = {key: copy.deepcopy(val) for key, val in document.items() if key not in _KNOWN_KEYS}
    hours = document.get("hours")

    return Vendor(
        id=_as_str(document.get("id")),
        name=_as_str(document.get("name")),
        status=_as_str(document.get("status")),
        location=location,
        contact=_normalize_contact(document.get("contact")),
        hours=copy.deepcopy(dict(hours)) if isinstance(hours, Mapping) else {},
        deals=_normalize_deals(document.get("deals")),
        region_info=_normalize_region_info(_pick(document, "regionInfo", "region_info"), location.zip_code),
        is_partner=bool(_as_bool(_pick(document, "isPartner", "is_partner"))),
        regions=_normalize_regions(document.get("regions")),
        extra=extra,
    )


def normalize_region(raw: Any) -> Optional[Region]:
    """Normalize a region definition; returns None when it has no id."""

    document = _as_mapping(raw)
    region_id = _as_optional_str(document.get("id"))
    if region_id is None:
        logger.warning("Skipping region definition without an id")
        return None
    zip_codes = document.get("zipCodes", document.get("zip_codes")) or []
    if isinstance(zip_codes, str):
        zip_codes = [item.strip() for item in zip_codes.split(",")]
    return Region(
        id=region_id,
        name=_as_str(document.get("name")),
        is_active=bool(_as_bool(_pick(document, "isActive", "is_active"))),
        is_priority=bool(_as_bool(_pick(document, "isPriority", "is_priority"))),
        zip_codes=[str(code).strip() for code in zip_codes if str(code).strip()],
    )


def _deal_spec_to_document(spec: DealSpec) -> dict[str, Any]:
    document: dict[str, Any] = {
        "description": spec.description,
        "discount": spec.discount,
        "restrictions": list(spec.restrictions),
    }
    optional = {
        "title": spec.title,
        "redemptionFrequency": spec.redemption_frequency,
        "isActive": spec.is_active,
        "startDate": spec.start_date,
        "endDate": spec.end_date,
        "category": spec.category,
    }
    document.update({key: value for key, value in optional.items() if value is not None})
    return document


def vendor_to_document(vendor: Vendor) -> dict[str, Any]:
    """Serialize a vendor back to the document shape ``normalize_vendor`` accepts.

    The transient ``distance`` field is not written.
    """

    document: dict[str, Any] = copy.deepcopy(vendor.extra)
    document.update(
        {
            "id": vendor.id,
            "name": vendor.name,
            "status": vendor.status,
            "location": {
                "address": vendor.location.address,
                "zipCode": vendor.location.zip_code,
                "coordinates": {
                    "latitude": vendor.location.coordinates.latitude,
                    "longitude": vendor.location.coordinates.longitude,
                },
            },
            "contact": {
                "phone": vendor.contact.phone,
                "email": vendor.contact.email,
                "social": {
                    "instagram": vendor.contact.social.instagram,
                    "facebook": vendor.contact.social.facebook,
                },
            },
            "hours": copy.deepcopy(vendor.hours),
            "deals": {
                "birthday": _deal_spec_to_document(vendor.deals.birthday) if vendor.deals.birthday else None,
                "daily": {
                    day: [_deal_spec_to_document(spec) for spec in specs]
                    for day, specs in vendor.deals.daily.items()
                },
                "everyday": [_deal_spec_to_document(spec) for spec in vendor.deals.everyday],
                "special": [_deal_spec_to_document(spec) for spec in vendor.deals.special],
            },
            "regionInfo": {
                "inActiveRegion": vendor.region_info.in_active_region,
                "inPriorityRegion": vendor.region_info.in_priority_region,
                "regionId": vendor.region_info.region_id,
                "regionName": vendor.region_info.region_name,
                "zipCode": vendor.region_info.zip_code,
            },
            "isPartner": vendor.is_partner,
            "regions": list(vendor.regions),
        }
    )
    return document
