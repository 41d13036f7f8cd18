"""Interfaces of the external collaborators the engine consumes.

The engine never talks to a concrete document store or key-value store
directly; everything goes through these narrow protocols so callers can plug
in Supabase, local files, or in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional, Protocol, Sequence, runtime_checkable

from ..models.domain import Partition, Region, Vendor

RawDocument = dict[str, Any]

PredicateOp = Literal["==", "!=", "<", "<=", ">", ">="]


@dataclass(frozen=True, slots=True)
class Predicate:
    """Simple equality/range condition on a (possibly dotted) document field."""

    field: str
    op: PredicateOp
    value: Any

    def matches(self, document: RawDocument) -> bool:
        current: Any = document
        for part in self.field.split("."):
            if not isinstance(current, dict) or part not in current:
                return False
            current = current[part]
        try:
            match self.op:
                case "==":
                    return current == self.value
                case "!=":
                    return current != self.value
                case "<":
                    return current < self.value
                case "<=":
                    return current <= self.value
                case ">":
                    return current > self.value
                case ">=":
                    return current >= self.value
        except TypeError:
            return False
        return False


@runtime_checkable
class RemoteVendorSource(Protocol):
    async def fetch_all(self, predicates: Optional[Sequence[Predicate]] = None) -> list[RawDocument]:
        ...

    async def fetch_by_id(self, vendor_id: str) -> Optional[RawDocument]:
        ...

    async def fetch_partition(self, partition: Partition) -> list[RawDocument]:
        ...

    async def put(self, partition: Partition, vendor_id: str, document: RawDocument) -> None:
        ...

    async def delete(self, partition: Partition, vendor_id: str) -> None:
        ...


@runtime_checkable
class RemoteRegionSource(Protocol):
    async def list_active(self) -> list[Region]:
        ...

    async def list_priority(self) -> list[Region]:
        ...


@runtime_checkable
class FeaturedDealSource(Protocol):
    async def list_featured(self, limit: Optional[int] = None) -> list[RawDocument]:
        ...

    async def fetch_special_deal(self, deal_id: str) -> Optional[RawDocument]:
        ...


@runtime_checkable
class DurableBlobStore(Protocol):
    async def get(self, key: str) -> Optional[bytes]:
        ...

    async def set(self, key: str, value: bytes) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


@runtime_checkable
class CheckInRecorder(Protocol):
    """Records a visit; owns points and analytics bookkeeping."""

    async def record(self, vendor: Vendor, user_id: Optional[str], options: Any) -> Any:
        ...
