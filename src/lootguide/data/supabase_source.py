"""Supabase-backed implementations of the remote source protocols.

Vendor partitions live in three tables (``active_vendors``,
``priority_vendors``, ``other_vendors``) with an ``id`` text column and the
vendor document in a ``data`` jsonb column. The supabase client is
synchronous, so every call is pushed onto a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Sequence

from supabase import Client

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import SourceUnavailable
from ..models.domain import Partition, Region
from ..services.vendors.normalizer import normalize_region
from .sources import Predicate, RawDocument

logger = logging.getLogger(__name__)


class _SupabaseTableAccess:
    def __init__(self, client: Client | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Client:
        client = self._client or get_supabase_client()
        if client is None:
            raise SourceUnavailable("Supabase is not configured (set LOOT_SUPABASE_URL and LOOT_SUPABASE_KEY).")
        return client

    async def _run(self, description: str, operation: Callable[[Client], Any]) -> Any:
        client = self.client
        try:
            response = await asyncio.to_thread(operation, client)
        except SourceUnavailable:
            raise
        except Exception as e:
            logger.error(f"Supabase {description} failed: {e}")
            raise SourceUnavailable(f"Supabase {description} failed: {e}") from e
        return response.data if response is not None else None


def _row_to_document(row: dict[str, Any]) -> RawDocument:
    document = dict(row.get("data") or {})
    document.setdefault("id", row.get("id"))
    return document


class SupabaseVendorSource(_SupabaseTableAccess):
    """Vendor documents spread across the three partition tables."""

    async def fetch_partition(self, partition: Partition) -> list[RawDocument]:
        table = settings.table_for_partition(Partition(partition).value)
        rows = await self._run(
            f"select from '{table}'",
            lambda client: client.table(table).select("*").execute(),
        )
        return [_row_to_document(row) for row in rows or []]

    async def fetch_all(self, predicates: Optional[Sequence[Predicate]] = None) -> list[RawDocument]:
        documents: list[RawDocument] = []
        seen: set[str] = set()
        for partition_name in settings.partition_order:
            for document in await self.fetch_partition(Partition(partition_name)):
                vendor_id = str(document.get("id"))
                if vendor_id in seen:
                    logger.warning(f"Vendor {vendor_id} present in more than one partition, keeping first copy")
                    continue
                seen.add(vendor_id)
                documents.append(document)
        if predicates:
            # the dataset is small enough to filter client-side
            documents = [doc for doc in documents if all(pred.matches(doc) for pred in predicates)]
        logger.info(f"Fetched {len(documents)} vendor documents from Supabase")
        return documents

    async def fetch_by_id(self, vendor_id: str) -> Optional[RawDocument]:
        for partition_name in settings.partition_order:
            table = settings.table_for_partition(partition_name)
            rows = await self._run(
                f"lookup of vendor {vendor_id} in '{table}'",
                lambda client, table=table: client.table(table).select("*").eq("id", vendor_id).limit(1).execute(),
            )
            if rows:
                return _row_to_document(rows[0])
        return None

    async def put(self, partition: Partition, vendor_id: str, document: RawDocument) -> None:
        table = settings.table_for_partition(Partition(partition).value)
        payload = {"id": vendor_id, "data": document}
        await self._run(
            f"upsert of vendor {vendor_id} into '{table}'",
            lambda client: client.table(table).upsert(payload).execute(),
        )

    async def delete(self, partition: Partition, vendor_id: str) -> None:
        table = settings.table_for_partition(Partition(partition).value)
        await self._run(
            f"delete of vendor {vendor_id} from '{table}'",
            lambda client: client.table(table).delete().eq("id", vendor_id).execute(),
        )


class SupabaseRegionSource(_SupabaseTableAccess):
    async def _list(self, flag_column: str) -> list[Region]:
        table = settings.regions_table
        rows = await self._run(
            f"select of regions by '{flag_column}'",
            lambda client: client.table(table).select("*").eq(flag_column, True).execute(),
        )
        regions = [normalize_region(row) for row in rows or []]
        return [region for region in regions if region is not None]

    async def list_active(self) -> list[Region]:
        return await self._list("is_active")

    async def list_priority(self) -> list[Region]:
        return await self._list("is_priority")


class SupabaseFeaturedDealSource(_SupabaseTableAccess):
    async def list_featured(self, limit: Optional[int] = None) -> list[RawDocument]:
        table = settings.featured_deals_table

        def _query(client: Client) -> Any:
            builder = client.table(table).select("*").order("priority", desc=True).order("created_at", desc=True)
            if limit:
                builder = builder.limit(limit)
            return builder.execute()

        rows = await self._run("select of featured deals", _query)
        return list(rows or [])

    async def fetch_special_deal(self, deal_id: str) -> Optional[RawDocument]:
        table = settings.special_deals_table
        rows = await self._run(
            f"lookup of special deal {deal_id}",
            lambda client: client.table(table).select("*").eq("id", deal_id).limit(1).execute(),
        )
        return dict(rows[0]) if rows else None
