"""Deal extraction, ranking and featured-deal resolution."""

from .aggregator import DealAggregator, count_deals_by_type, process_deals
from .featured import FeaturedDealResolver, FeaturedResult

__all__ = [
    "DealAggregator",
    "FeaturedDealResolver",
    "FeaturedResult",
    "count_deals_by_type",
    "process_deals",
]
