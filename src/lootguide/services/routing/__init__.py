"""Route assembly."""

from .builder import RouteBuilder, vendor_ids_from_deal_ids
from .models import Route, RouteLeg

__all__ = ["RouteBuilder", "Route", "RouteLeg", "vendor_ids_from_deal_ids"]
