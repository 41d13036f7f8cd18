"""Move vendors between remote partitions after region definitions change."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from ...config import settings
from ...data.sources import RawDocument, RemoteRegionSource, RemoteVendorSource
from ...errors import SourceUnavailable
from ...models.domain import Partition, Region
from ..vendors.normalizer import normalize_vendor, vendor_to_document
from .classifier import annotate, classify

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RedistributionReport:
    processed: int = 0
    moved_to_active: int = 0
    moved_to_priority: int = 0
    moved_to_other: int = 0
    errors: int = 0

    @property
    def moved(self) -> int:
        return self.moved_to_active + self.moved_to_priority + self.moved_to_other

    def record_move(self, target: Partition) -> None:
        match target:
            case Partition.ACTIVE:
                self.moved_to_active += 1
            case Partition.PRIORITY:
                self.moved_to_priority += 1
            case Partition.OTHER:
                self.moved_to_other += 1


@dataclass(slots=True)
class _Placement:
    vendor_id: str
    document: RawDocument
    partitions: list[Partition]


class RegionRedistributor:
    """Reclassifies every stored vendor and moves it to its target partition."""

    def __init__(
        self,
        vendor_source: RemoteVendorSource,
        region_source: RemoteRegionSource,
        *,
        batch_size: int | None = None,
    ) -> None:
        self.vendor_source = vendor_source
        self.region_source = region_source
        self.batch_size = batch_size or settings.redistribution_batch_size

    async def _load_regions(self) -> tuple[list[Region], list[Region]]:
        try:
            active = await self.region_source.list_active()
            priority = await self.region_source.list_priority()
        except SourceUnavailable:
            raise
        except Exception as e:
            logger.error(f"Failed to load region definitions: {e}")
            raise SourceUnavailable(f"Failed to load region definitions: {e}") from e
        return list(active), list(priority)

    async def _load_placements(self) -> list[_Placement]:
        placements: dict[str, _Placement] = {}
        for partition in Partition:
            try:
                documents = await self.vendor_source.fetch_partition(partition)
            except SourceUnavailable:
                raise
            except Exception as e:
                logger.error(f"Failed to read vendor partition '{partition.value}': {e}")
                raise SourceUnavailable(f"Failed to read vendor partition '{partition.value}': {e}") from e
            for document in documents:
                vendor_id = str(document.get("id", "")).strip()
                if not vendor_id:
                    logger.warning(f"Skipping vendor without id in partition '{partition.value}'")
                    continue
                placement = placements.setdefault(vendor_id, _Placement(vendor_id, document, []))
                placement.partitions.append(partition)
        return list(placements.values())

    async def _move_one(
        self,
        placement: _Placement,
        active_regions: Sequence[Region],
        priority_regions: Sequence[Region],
    ) -> Partition | None:
        """Returns the target partition when the vendor was moved, None when already in place."""

        vendor = normalize_vendor(placement.document)
        target = classify(vendor, active_regions, priority_regions)
        annotated = annotate(vendor, active_regions, priority_regions)
        document = {**placement.document, **vendor_to_document(annotated)}

        if placement.partitions == [target]:
            if annotated.region_info != vendor.region_info:
                # same partition, but the region it matched was renamed or replaced
                await self.vendor_source.put(target, placement.vendor_id, document)
            return None

        # the target copy may be a stale duplicate, so it is always rewritten
        await self.vendor_source.put(target, placement.vendor_id, document)
        for current in placement.partitions:
            if current is not target:
                await self.vendor_source.delete(current, placement.vendor_id)
        logger.debug(
            f"Moved vendor {placement.vendor_id} from {[p.value for p in placement.partitions]} to {target.value}"
        )
        return target

    async def redistribute_all(self) -> RedistributionReport:
        """Reclassify every vendor in every partition.

        Per-vendor failures are counted in the report and never abort the run.
        Region definitions or partitions that cannot be read raise
        :class:`SourceUnavailable`.
        """

        active_regions, priority_regions = await self._load_regions()
        placements = await self._load_placements()
        logger.info(
            f"Redistributing {len(placements)} vendors across {len(active_regions)} active "
            f"and {len(priority_regions)} priority regions"
        )

        report = RedistributionReport()
        for start in range(0, len(placements), self.batch_size):
            batch = placements[start:start + self.batch_size]
            results = await asyncio.gather(
                *(self._move_one(placement, active_regions, priority_regions) for placement in batch),
                return_exceptions=True,
            )
            for placement, result in zip(batch, results):
                report.processed += 1
                if isinstance(result, BaseException):
                    report.errors += 1
                    logger.error(f"Failed to redistribute vendor {placement.vendor_id}: {result}")
                elif result is not None:
                    report.record_move(result)

        logger.info(
            f"Redistribution finished: processed={report.processed} active={report.moved_to_active} "
            f"priority={report.moved_to_priority} other={report.moved_to_other} errors={report.errors}"
        )
        return report
