"""Deal aggregation options."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .common import GeoPoint


class DealQuery(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    category: Optional[str] = None
    max_distance: Optional[float] = Field(default=None, gt=0, description="Miles; deals without a distance pass.")
    active_only: Optional[bool] = Field(
        default=None,
        description="None filters out inactive deals; True additionally applies the special-deal date window; "
        "False keeps inactive deals.",
    )
    limit: Optional[int] = Field(default=None, ge=0)
    user_location: Optional[GeoPoint] = None
    vendor_id: Optional[str] = None
