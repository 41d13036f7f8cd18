"""Vendor normalization and caching."""

from .cache import CacheEvent, CacheState, VendorCache
from .normalizer import (
    extract_zip_code_from_address,
    normalize_region,
    normalize_vendor,
    vendor_to_document,
)

__all__ = [
    "VendorCache",
    "CacheEvent",
    "CacheState",
    "normalize_vendor",
    "normalize_region",
    "vendor_to_document",
    "extract_zip_code_from_address",
]
