"""Vendor cache query options."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .common import GeoPoint


class VendorQuery(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    status: Optional[str] = None
    region: Optional[str] = Field(default=None, description="Region id the vendor must be tagged with.")
    partition: Optional[Literal["active", "priority", "other"]] = None
    is_partner: Optional[bool] = None
    active_regions_only: bool = False
    user_location: Optional[GeoPoint] = None
    max_distance: Optional[float] = Field(default=None, gt=0, description="Miles from user_location.")
    ignore_distance: bool = False
    limit: Optional[int] = Field(default=None, ge=0)
