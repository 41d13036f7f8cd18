"""File-based durable blob store used for vendor cache snapshots."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

from ..config import settings

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class FileBlobStore:
    """Thin wrapper around the data root storing one file per key."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.cache_root = self.root / "cache"
        self.cache_root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        safe_key = _UNSAFE_KEY_CHARS.sub("_", key)
        if not safe_key.strip("._"):
            raise ValueError(f"Invalid blob key '{key}'.")
        return self.cache_root / f"{safe_key}.blob"

    def _read(self, key: str) -> bytes | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        with path.open("rb") as handle:
            return handle.read()

    def _write(self, key: str, payload: bytes) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # write-then-rename so a reader never sees a half-written blob
        tmp_path = path.with_suffix(".tmp")
        with tmp_path.open("wb") as handle:
            handle.write(payload)
        tmp_path.replace(path)

    def _remove(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    async def get(self, key: str) -> bytes | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)
