"""Check-in handoff: resolves the vendor and passes it to an external recorder."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..config import settings
from ..data.sources import CheckInRecorder, RemoteVendorSource
from ..errors import NotFoundError, ValidationError
from ..models.domain import Vendor
from .vendors.cache import VendorCache
from .vendors.normalizer import normalize_vendor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CheckInOptions:
    points_earned: int = 10
    check_in_type: str = "qr"
    is_journey_check_in: bool = False


@dataclass(slots=True)
class CheckInResult:
    check_in_id: str
    timestamp: datetime
    vendor: Vendor
    points_earned: int
    message: str = ""


def build_options(**options: Any) -> CheckInOptions:
    points = options.get("points_earned", options.get("pointsEarned"))
    check_in_type = options.get("check_in_type", options.get("checkInType"))
    journey = options.get("is_journey_check_in", options.get("isJourneyCheckIn"))
    try:
        points_earned = int(points) if points else settings.default_points_per_check_in
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid points value '{points}'") from exc
    return CheckInOptions(
        points_earned=points_earned,
        check_in_type=str(check_in_type or "qr"),
        is_journey_check_in=bool(journey),
    )


class CheckInService:
    def __init__(
        self,
        cache: VendorCache,
        recorder: CheckInRecorder,
        *,
        vendor_source: Optional[RemoteVendorSource] = None,
    ) -> None:
        self.cache = cache
        self.recorder = recorder
        self.vendor_source = vendor_source

    async def _resolve(self, vendor_id: str) -> Optional[Vendor]:
        vendor = self.cache.get_by_id(vendor_id)
        if vendor is not None or self.vendor_source is None:
            return vendor
        document = await self.vendor_source.fetch_by_id(vendor_id)
        return normalize_vendor(document) if document is not None else None

    async def check_in(self, vendor_id: str, user_id: Optional[str], **options: Any) -> CheckInResult:
        """Record a visit to ``vendor_id``.

        Raises :class:`NotFoundError` when the vendor is unknown; recorder
        failures are logged and re-raised.
        """

        check_in_options = build_options(**options)
        logger.info(f"Checking in at vendor {vendor_id} (user={user_id}, type={check_in_options.check_in_type})")

        try:
            vendor = await self._resolve(str(vendor_id))
            if vendor is None:
                raise NotFoundError(f"Vendor with ID {vendor_id} not found")
            result = await self.recorder.record(vendor, user_id, check_in_options)
        except Exception as e:
            logger.error(f"Error checking in at vendor {vendor_id}: {e}")
            raise

        logger.info(f"Check-in {result.check_in_id} recorded, {result.points_earned} points earned")
        return result
