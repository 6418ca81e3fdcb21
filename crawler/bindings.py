"""Persisted record of which channel each player plays in."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional

from .repository import PersistenceError, read_json_document, write_json_atomic

__all__ = ["ContextBindingStore"]

log = logging.getLogger(__name__)


class ContextBindingStore:
    """Concurrency-safe mapping of player id to their authorised channel id."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path
        self._lock = asyncio.Lock()
        self._loaded = False
        self._cache: Dict[str, int] = {}

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        if not self._storage_path.exists():
            self._cache = {}
            self._loaded = True
            return
        try:
            raw = await asyncio.to_thread(read_json_document, self._storage_path)
        except (OSError, ValueError) as exc:
            raise PersistenceError(
                f"Unable to read channel bindings: {exc}", path=self._storage_path
            ) from exc
        cache: Dict[str, int] = {}
        for player_id, channel_id in raw.items():
            if not isinstance(channel_id, int):
                log.debug("Ignoring malformed binding for player %s", player_id)
                continue
            cache[str(player_id)] = channel_id
        self._cache = cache
        self._loaded = True

    async def _persist(self) -> None:
        try:
            await asyncio.to_thread(write_json_atomic, self._storage_path, dict(self._cache))
        except OSError as exc:
            raise PersistenceError(
                f"Unable to write channel bindings: {exc}", path=self._storage_path
            ) from exc

    async def get(self, player_id: int) -> Optional[int]:
        async with self._lock:
            await self._ensure_loaded()
            return self._cache.get(str(player_id))

    async def bind(self, player_id: int, channel_id: int) -> None:
        key = str(player_id)
        async with self._lock:
            await self._ensure_loaded()
            previous = self._cache.get(key)
            if previous == channel_id:
                return
            self._cache[key] = channel_id
            try:
                await self._persist()
            except PersistenceError:
                if previous is None:
                    del self._cache[key]
                else:
                    self._cache[key] = previous
                raise

    async def clear(self, player_id: int) -> bool:
        key = str(player_id)
        async with self._lock:
            await self._ensure_loaded()
            previous = self._cache.pop(key, None)
            if previous is None:
                return False
            try:
                await self._persist()
            except PersistenceError:
                self._cache[key] = previous
                raise
            return True
