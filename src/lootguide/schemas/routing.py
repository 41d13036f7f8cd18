"""Route construction options."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .common import GeoPoint


class RouteOptions(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    user_location: Optional[GeoPoint] = None
    deal_type: Optional[str] = Field(default=None, description="Label stored on the route; 'mixed' when omitted.")
    max_vendors: Optional[int] = Field(default=None, ge=1, description="Keep only the first N stops after ordering.")
