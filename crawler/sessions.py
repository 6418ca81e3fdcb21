"""In-memory registry of the adventures currently being played."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Generic, Optional, Tuple, TypeVar

__all__ = ["SessionRegistry"]

log = logging.getLogger(__name__)

T = TypeVar("T")


class SessionRegistry(Generic[T]):
    """Track the live session of each player.

    ``get``, ``set`` and ``remove`` are serialised through an internal
    :class:`asyncio.Lock`. Compound operations that must observe and then
    replace a player's entry (conflict detection followed by registration)
    run under :meth:`hold`, a per-player lock, so two attempts for the same
    player cannot interleave while different players never wait on each
    other. A player's lock lives only while it has a session or a holder.
    """

    __slots__ = ("_sessions", "_lock", "_player_locks", "_holders")

    def __init__(self) -> None:
        self._sessions: Dict[int, T] = {}
        self._lock = asyncio.Lock()
        self._player_locks: Dict[int, asyncio.Lock] = {}
        self._holders: Dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, player_id: int) -> AsyncIterator[None]:
        """Run the body exclusively for ``player_id``."""

        lock = self._player_locks.get(player_id)
        if lock is None:
            lock = self._player_locks[player_id] = asyncio.Lock()
        self._holders[player_id] = self._holders.get(player_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[player_id] - 1
            if remaining:
                self._holders[player_id] = remaining
            else:
                del self._holders[player_id]
                if player_id not in self._sessions:
                    self._player_locks.pop(player_id, None)

    def is_held(self, player_id: int) -> bool:
        return player_id in self._holders

    def _forget_lock(self, player_id: int) -> None:
        if player_id not in self._holders:
            self._player_locks.pop(player_id, None)

    async def get(self, player_id: int) -> Optional[T]:
        async with self._lock:
            return self._sessions.get(player_id)

    async def set(self, player_id: int, session: T) -> T:
        async with self._lock:
            self._sessions[player_id] = session
        log.debug("Registered session for player %s", player_id)
        return session

    async def remove(self, player_id: int) -> Optional[T]:
        async with self._lock:
            session = self._sessions.pop(player_id, None)
            self._forget_lock(player_id)
        if session is not None:
            log.debug("Removed session for player %s", player_id)
        return session

    async def contains(self, player_id: int) -> bool:
        async with self._lock:
            return player_id in self._sessions

    async def count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    async def expire(self, predicate: Callable[[T], bool]) -> Tuple[Tuple[int, T], ...]:
        """Remove every session for which ``predicate`` returns ``True``.

        Players with a compound operation in flight or waiting are skipped.
        The predicate runs while holding the internal lock and must be
        synchronous.
        """

        async with self._lock:
            expired = [
                (player_id, session)
                for player_id, session in self._sessions.items()
                if not self.is_held(player_id) and predicate(session)
            ]
            for player_id, _ in expired:
                del self._sessions[player_id]
                self._forget_lock(player_id)
        return tuple(expired)
