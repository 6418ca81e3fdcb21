"""Routing of stored screen tags to the handlers that render them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Literal, Mapping, Optional, Protocol, runtime_checkable

from .state import GameState, Screen

__all__ = [
    "PlayerContext",
    "ResumableScreenHandler",
    "ScreenHandler",
    "ScreenRoute",
    "ScreenRouter",
]

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerContext:
    """Who is asking, and where replies should be delivered."""

    player_id: int
    channel_id: Optional[int]
    player_name: str = "Player"
    interaction: Any = None

    def with_interaction(self, interaction: Any) -> "PlayerContext":
        return replace(self, interaction=interaction)


@runtime_checkable
class ScreenHandler(Protocol):
    async def show(self, context: PlayerContext, state: GameState) -> None: ...


@runtime_checkable
class ResumableScreenHandler(ScreenHandler, Protocol):
    async def resume(self, context: PlayerContext, state: GameState) -> None: ...


@dataclass(frozen=True)
class ScreenRoute:
    screen: Screen
    handler: ScreenHandler
    entry: Literal["show", "resume"] = "show"

    async def invoke(self, context: PlayerContext, state: GameState) -> None:
        await getattr(self.handler, self.entry)(context, state)


class ScreenRouter:
    """Static dispatch table with a mandatory start menu fallback."""

    def __init__(self, routes: Mapping[Screen, ScreenRoute]) -> None:
        if Screen.START_MENU not in routes:
            raise ValueError("A start_menu route is required")
        for screen, route in routes.items():
            if route.entry == "resume" and not isinstance(route.handler, ResumableScreenHandler):
                raise ValueError(f"Handler for {screen.value} cannot resume")
        self._routes = dict(routes)

    @classmethod
    def build(
        cls,
        *,
        start_menu: ScreenHandler,
        hero_selection: ScreenHandler,
        exploration: ScreenHandler,
        battle: ResumableScreenHandler,
        inventory: ScreenHandler,
    ) -> "ScreenRouter":
        return cls(
            {
                Screen.START_MENU: ScreenRoute(Screen.START_MENU, start_menu),
                Screen.HERO_SELECTION: ScreenRoute(Screen.HERO_SELECTION, hero_selection),
                Screen.EXPLORATION: ScreenRoute(Screen.EXPLORATION, exploration),
                Screen.BATTLE: ScreenRoute(Screen.BATTLE, battle, entry="resume"),
                Screen.INVENTORY: ScreenRoute(Screen.INVENTORY, inventory),
            }
        )

    @property
    def screens(self) -> tuple[Screen, ...]:
        return tuple(self._routes)

    def resolve(self, screen: object) -> ScreenRoute:
        parsed = Screen.parse(screen)
        route = self._routes.get(parsed) if parsed is not None else None
        if route is None:
            log.info("No route for screen %r, using start menu", screen)
            return self._routes[Screen.START_MENU]
        return route

    async def dispatch(self, screen: object, context: PlayerContext, state: GameState) -> ScreenRoute:
        route = self.resolve(screen)
        await route.invoke(context, state)
        return route

    async def fallback(self, context: PlayerContext, state: GameState) -> ScreenRoute:
        route = self._routes[Screen.START_MENU]
        await route.invoke(context, state)
        return route
