"""Starting, resuming, saving and ending adventure sessions.

A resume request walks a fixed sequence: look for a live session (and
prompt on conflict), check the request comes from the player's own
channel, load the stored snapshot, rebuild the game state, register it,
acknowledge, and finally re-open the stored screen after a short delay.
Expected outcomes come back as :class:`ResumeOutcome` values; only the
deferred screen step runs after the caller has been answered.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal, Optional, Set

from .audit import AuditLog
from .bindings import ContextBindingStore
from .repository import GameStateRepository, PersistenceError
from .screens import PlayerContext, ScreenRouter
from .sessions import SessionRegistry
from .state import GameState, SnapshotError

__all__ = [
    "ConflictChoice",
    "ResumeOutcome",
    "SaveOutcome",
    "SessionLifecycle",
]

log = logging.getLogger(__name__)

ConflictChoice = Literal["continue", "load_saved", "cancel"]

DEFAULT_RESUME_DELAY = 2.0
DEFAULT_SESSION_TIMEOUT = timedelta(minutes=30)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ResumeOutcome:
    status: Literal[
        "conflict",
        "no_saved_game",
        "load_failed",
        "wrong_context",
        "resumed",
        "continued",
        "cancelled",
    ]
    state: Optional[GameState] = None
    resume_task: Optional["asyncio.Task[None]"] = None
    error: Optional[Exception] = None


@dataclass
class SaveOutcome:
    status: Literal["saved", "no_active_game", "wrong_context", "save_failed"]
    state: Optional[GameState] = None
    error: Optional[Exception] = None


class SessionLifecycle:
    """Own the rules for creating, restoring and discarding live sessions."""

    def __init__(
        self,
        registry: SessionRegistry[GameState],
        repository: GameStateRepository,
        router: ScreenRouter,
        *,
        bindings: Optional[ContextBindingStore] = None,
        audit: Optional[AuditLog] = None,
        resume_delay: float = DEFAULT_RESUME_DELAY,
        session_timeout: timedelta = DEFAULT_SESSION_TIMEOUT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.registry = registry
        self.repository = repository
        self.router = router
        self.bindings = bindings
        self.audit = audit or AuditLog()
        self.resume_delay = resume_delay
        self.session_timeout = session_timeout
        self._clock = clock
        self._pending: Set["asyncio.Task[None]"] = set()

    # ------------------------------------------------------------------
    async def active_session(self, player_id: int) -> Optional[GameState]:
        return await self.registry.get(player_id)

    async def request_resume(self, context: PlayerContext) -> ResumeOutcome:
        player_id = context.player_id
        async with self.registry.hold(player_id):
            active = await self.registry.get(player_id)
            if active is not None:
                self.audit.record(
                    "LOAD_CONFLICT",
                    f"Player {player_id} asked to load while a game is active",
                    {"floor": active.current_floor, "screen": active.current_screen},
                )
                return ResumeOutcome(status="conflict", state=active)
            outcome = await self._load_and_register(context, replacing=None)
        return self._with_resume_task(context, outcome)

    async def resolve_conflict(
        self, context: PlayerContext, choice: ConflictChoice
    ) -> ResumeOutcome:
        player_id = context.player_id
        if choice == "cancel":
            return ResumeOutcome(status="cancelled", state=await self.registry.get(player_id))
        if choice == "continue":
            active = await self.registry.get(player_id)
            if active is None:
                # The live session ended while the prompt was open.
                return await self.request_resume(context)
            outcome = ResumeOutcome(status="continued", state=active)
            return self._with_resume_task(context, outcome)
        if choice != "load_saved":
            raise ValueError(f"Unknown conflict choice {choice!r}")
        async with self.registry.hold(player_id):
            active = await self.registry.get(player_id)
            outcome = await self._load_and_register(context, replacing=active)
        return self._with_resume_task(context, outcome)

    async def start_fresh(
        self,
        player_id: int,
        economy_type: str = "gold",
        *,
        player_name: str = "Player",
        channel_id: Optional[int] = None,
    ) -> GameState:
        state, _ = await self._start(
            player_id,
            economy_type,
            player_name=player_name,
            channel_id=channel_id,
            replace_active=True,
        )
        return state

    async def start_unless_active(
        self,
        player_id: int,
        economy_type: str = "gold",
        *,
        player_name: str = "Player",
        channel_id: Optional[int] = None,
    ) -> tuple[GameState, bool]:
        """Start a new game only if none is live.

        Returns the registered state and whether it was created by this call.
        """

        return await self._start(
            player_id,
            economy_type,
            player_name=player_name,
            channel_id=channel_id,
            replace_active=False,
        )

    async def _start(
        self,
        player_id: int,
        economy_type: str,
        *,
        player_name: str,
        channel_id: Optional[int],
        replace_active: bool,
    ) -> tuple[GameState, bool]:
        async with self.registry.hold(player_id):
            previous = await self.registry.get(player_id)
            if previous is not None:
                if not replace_active:
                    return previous, False
                log.warning("Replacing live session of player %s with a new game", player_id)
            state = GameState.new(
                player_id,
                economy_type,
                player_name=player_name,
                channel_id=channel_id,
                now=self._clock(),
            )
            await self.registry.set(player_id, state)
        if channel_id is not None and self.bindings is not None:
            try:
                await self.bindings.bind(player_id, channel_id)
            except PersistenceError as exc:
                log.warning("Could not bind player %s to channel %s: %s", player_id, channel_id, exc)
        self.audit.record(
            "GAME_START",
            f"Player {player_id} ({player_name}) started a new game",
            {"economy": economy_type, "channel": channel_id},
        )
        log.info("Started new game for player %s", player_id)
        return state, True

    async def end_session(self, player_id: int) -> Optional[GameState]:
        async with self.registry.hold(player_id):
            state = await self.registry.remove(player_id)
        if state is not None:
            self.audit.record(
                "GAME_END",
                f"Player {player_id} ended their game",
                {"floor": state.current_floor, "screen": state.current_screen},
            )
        return state

    async def save_session(self, context: PlayerContext) -> SaveOutcome:
        player_id = context.player_id
        async with self.registry.hold(player_id):
            state = await self.registry.get(player_id)
            if state is None:
                return SaveOutcome(status="no_active_game")
            try:
                allowed = await self._context_allowed(context)
            except PersistenceError as exc:
                return self._save_failed(state, exc)
            if not allowed:
                self._record_wrong_context(context, "save")
                return SaveOutcome(status="wrong_context", state=state)
            saved_at = self._clock()
            snapshot = state.to_dict()
            session_payload = dict(snapshot["session"])  # type: ignore[arg-type]
            session_payload["last_saved_at"] = saved_at.isoformat()
            snapshot["session"] = session_payload
            try:
                await self.repository.save(player_id, snapshot)
            except PersistenceError as exc:
                return self._save_failed(state, exc)
            state.session.last_saved_at = saved_at
        self.audit.record(
            "GAME_SAVE",
            f"Player {player_id} saved their game",
            {
                "floor": state.current_floor,
                "screen": state.current_screen,
                "hp": state.hero_health()[0],
            },
        )
        log.info("Game saved for player %s", player_id)
        return SaveOutcome(status="saved", state=state)

    async def expire_idle(self, now: Optional[datetime] = None) -> tuple[int, ...]:
        cutoff = (now or self._clock()) - self.session_timeout
        expired = await self.registry.expire(
            lambda state: state.session.last_activity_at <= cutoff
        )
        for player_id, state in expired:
            self.audit.record(
                "GAME_EXPIRED",
                f"Session of player {player_id} timed out",
                {"floor": state.current_floor, "screen": state.current_screen},
            )
        if expired:
            log.info("Cleaned up %s idle sessions", len(expired))
        return tuple(player_id for player_id, _ in expired)

    async def wait_pending(self) -> None:
        if self._pending:
            await asyncio.gather(*tuple(self._pending), return_exceptions=True)

    def cancel_pending(self) -> None:
        for task in tuple(self._pending):
            task.cancel()

    # ------------------------------------------------------------------
    async def _context_allowed(self, context: PlayerContext) -> bool:
        if self.bindings is None:
            return True
        bound_channel = await self.bindings.get(context.player_id)
        if bound_channel is None:
            return True
        return context.channel_id == bound_channel

    def _record_wrong_context(self, context: PlayerContext, action: str) -> None:
        self.audit.record(
            "WRONG_CONTEXT",
            f"Player {context.player_id} tried to {action} from channel {context.channel_id}",
        )

    def _save_failed(self, state: GameState, exc: Exception) -> SaveOutcome:
        log.warning("Saving game for player %s failed: %s", state.player_id, exc)
        self.audit.record("SAVE_FAILED", f"Save failed for player {state.player_id}", {"error": str(exc)})
        return SaveOutcome(status="save_failed", state=state, error=exc)

    def _load_failed(self, context: PlayerContext, exc: Exception) -> ResumeOutcome:
        log.warning("Loading game for player %s failed: %s", context.player_id, exc)
        self.audit.record(
            "LOAD_FAILED", f"Load failed for player {context.player_id}", {"error": str(exc)}
        )
        return ResumeOutcome(status="load_failed", error=exc)

    async def _load_and_register(
        self, context: PlayerContext, *, replacing: Optional[GameState]
    ) -> ResumeOutcome:
        """Load, rebuild and register. Must run under ``registry.hold``."""

        player_id = context.player_id
        try:
            allowed = await self._context_allowed(context)
        except PersistenceError as exc:
            return self._load_failed(context, exc)
        if not allowed:
            self._record_wrong_context(context, "load")
            return ResumeOutcome(status="wrong_context", state=replacing)

        try:
            snapshot = await self.repository.load(player_id)
        except PersistenceError as exc:
            return self._load_failed(context, exc)
        if snapshot is None:
            return ResumeOutcome(status="no_saved_game", state=replacing)

        try:
            state = GameState.from_dict(snapshot)
        except SnapshotError as exc:
            return self._load_failed(context, exc)
        if state.player_id != player_id:
            return self._load_failed(
                context, SnapshotError(f"Snapshot belongs to player {state.player_id}")
            )
        state.session.channel_id = context.channel_id
        state.touch(self._clock())

        await self.registry.set(player_id, state)
        event = "GAME_LOAD" if replacing is None else "GAME_LOAD_OVERWRITE"
        last_saved = state.session.last_saved_at
        self.audit.record(
            event,
            f"Player {player_id} ({context.player_name}) loaded a saved game",
            {
                "floor": state.current_floor,
                "screen": state.current_screen,
                "save_time": last_saved.isoformat() if last_saved else "unknown",
            },
        )
        log.info("Game loaded for player %s (%s)", player_id, context.player_name)
        return ResumeOutcome(status="resumed", state=state)

    def _with_resume_task(self, context: PlayerContext, outcome: ResumeOutcome) -> ResumeOutcome:
        if outcome.status in ("resumed", "continued") and outcome.state is not None:
            outcome.resume_task = self._schedule_resume(context, outcome.state)
        return outcome

    def _schedule_resume(self, context: PlayerContext, state: GameState) -> "asyncio.Task[None]":
        task = asyncio.create_task(
            self._resume_screen(context, state),
            name=f"resume-screen-{context.player_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _resume_screen(self, context: PlayerContext, state: GameState) -> None:
        if self.resume_delay > 0:
            await asyncio.sleep(self.resume_delay)
        try:
            await self.router.dispatch(state.current_screen, context, state)
        except Exception:
            log.exception(
                "Error resuming screen %r for player %s", state.current_screen, context.player_id
            )
            self.audit.record(
                "RESUME_FALLBACK",
                f"Falling back to the start menu for player {context.player_id}",
                {"screen": state.current_screen},
            )
            try:
                await self.router.fallback(context, state)
            except Exception:  # pragma: no cover
                log.exception("Start menu fallback failed for player %s", context.player_id)
