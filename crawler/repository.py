"""Concurrency-safe persistence for game state snapshots."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Optional

__all__ = ["GameStateRepository", "PersistenceError", "read_json_document", "write_json_atomic"]

log = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Raised when stored data cannot be read or written."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        if path is not None:
            message = f"{message} (storage: {path})"
        super().__init__(message)
        self.path = path


def write_json_atomic(path: Path, payload: Mapping[str, object]) -> None:
    """Replace ``path`` with ``payload`` without leaving a partial file behind."""

    text = json.dumps(payload, indent=2, sort_keys=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, delete=False, suffix=".tmp"
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
        temp_path = None
    finally:
        if temp_path is not None:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass


def read_json_document(path: Path) -> Dict[str, object]:
    """Read a JSON object from ``path``. An empty file is an empty document."""

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("top-level JSON value must be an object")
    return raw


class GameStateRepository:
    """Store one snapshot per player in a JSON document on disk."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path
        self._lock = asyncio.Lock()
        self._cache: Dict[str, Dict[str, object]] = {}
        self._loaded = False
        self._storage_serial: Optional[tuple[int, int]] = None

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    async def _ensure_loaded(self) -> None:
        current_serial = await self._current_storage_serial()
        if self._loaded and self._storage_serial == current_serial:
            return
        if current_serial is None:
            self._cache = {}
            self._loaded = True
            self._storage_serial = None
            return
        try:
            raw = await asyncio.to_thread(read_json_document, self._storage_path)
        except (OSError, ValueError) as exc:
            self._loaded = False
            raise PersistenceError(
                f"Unable to read saved games: {exc}", path=self._storage_path
            ) from exc
        self._cache = {
            str(player_id): dict(snapshot)
            for player_id, snapshot in raw.items()
            if isinstance(snapshot, dict)
        }
        self._loaded = True
        self._storage_serial = current_serial

    async def _persist(self) -> None:
        try:
            await asyncio.to_thread(write_json_atomic, self._storage_path, self._cache)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(
                f"Unable to write saved games: {exc}", path=self._storage_path
            ) from exc
        self._storage_serial = await self._current_storage_serial()
        self._loaded = True

    async def _current_storage_serial(self) -> Optional[tuple[int, int]]:
        try:
            stat_result = await asyncio.to_thread(self._storage_path.stat)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(
                f"Unable to inspect saved games: {exc}", path=self._storage_path
            ) from exc
        mtime_ns = getattr(stat_result, "st_mtime_ns", None) or int(
            stat_result.st_mtime * 1_000_000_000
        )
        return (mtime_ns, stat_result.st_size)

    async def load(self, player_id: int) -> Optional[Dict[str, object]]:
        async with self._lock:
            await self._ensure_loaded()
            snapshot = self._cache.get(str(player_id))
            return copy.deepcopy(snapshot) if snapshot is not None else None

    async def exists(self, player_id: int) -> bool:
        async with self._lock:
            await self._ensure_loaded()
            return str(player_id) in self._cache

    async def save(self, player_id: int, snapshot: Mapping[str, object]) -> None:
        key = str(player_id)
        async with self._lock:
            await self._ensure_loaded()
            previous = self._cache.get(key)
            self._cache[key] = copy.deepcopy(dict(snapshot))
            try:
                await self._persist()
            except PersistenceError:
                if previous is None:
                    del self._cache[key]
                else:
                    self._cache[key] = previous
                raise
        log.debug("Saved game state for player %s", player_id)

    async def delete(self, player_id: int) -> bool:
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
