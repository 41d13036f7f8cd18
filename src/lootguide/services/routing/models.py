"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ...models.domain import Coordinates, Vendor


@dataclass(slots=True)
class RouteLeg:
    vendor_id: str
    sequence: int
    distance_from_prev_miles: float


@dataclass(slots=True)
class Route:
    vendors: List[Vendor]
    total_distance: float
    estimated_time: int
    deal_ids: List[str]
    created_at: datetime
    deal_type: str = "mixed"
    start_location: Optional[Coordinates] = None
    legs: List[RouteLeg] = field(default_factory=list)

    @property
    def stop_count(self) -> int:
        return len(self.vendors)
