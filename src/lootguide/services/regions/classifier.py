"""Postal-code based partition assignment for vendors."""

from __future__ import annotations

import dataclasses
from typing import Optional, Sequence

from ...models.domain import Partition, Region, RegionInfo, Vendor
from ..vendors.normalizer import extract_zip_code_from_address


def vendor_zip_code(vendor: Vendor) -> Optional[str]:
    """Zip code used for classification: always derived from the address."""

    return extract_zip_code_from_address(vendor.location.address)


def _find_region(zip_code: str, regions: Sequence[Region]) -> Optional[Region]:
    for region in regions:
        if zip_code in region.zip_codes:
            return region
    return None


def _match(vendor: Vendor, active_regions: Sequence[Region], priority_regions: Sequence[Region]) -> tuple[Partition, Optional[Region], Optional[str]]:
    zip_code = vendor_zip_code(vendor)
    if zip_code is None:
        return Partition.OTHER, None, None
    region = _find_region(zip_code, active_regions)
    if region is not None:
        return Partition.ACTIVE, region, zip_code
    region = _find_region(zip_code, priority_regions)
    if region is not None:
        return Partition.PRIORITY, region, zip_code
    return Partition.OTHER, None, zip_code


def classify(vendor: Vendor, active_regions: Sequence[Region], priority_regions: Sequence[Region]) -> Partition:
    """Return the partition ``vendor`` belongs in for the given region sets."""

    partition, _, _ = _match(vendor, active_regions, priority_regions)
    return partition


def annotate(vendor: Vendor, active_regions: Sequence[Region], priority_regions: Sequence[Region]) -> Vendor:
    """Return a copy of ``vendor`` with ``region_info`` recomputed.

    Active regions are treated as a superset of priority regions, so a vendor
    in an active region is always flagged as priority too.
    """

    partition, region, zip_code = _match(vendor, active_regions, priority_regions)
    in_active = partition is Partition.ACTIVE
    region_info = RegionInfo(
        in_active_region=in_active,
        in_priority_region=in_active or partition is Partition.PRIORITY,
        region_id=region.id if region else None,
        region_name=region.name if region else None,
        zip_code=zip_code,
    )
    return dataclasses.replace(vendor, region_info=region_info)


def partition_from_region_info(info: RegionInfo) -> Partition:
    if info.in_active_region:
        return Partition.ACTIVE
    if info.in_priority_region:
        return Partition.PRIORITY
    return Partition.OTHER
