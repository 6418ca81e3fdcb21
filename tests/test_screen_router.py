import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from crawler import GameState, PlayerContext, Screen, ScreenRoute, ScreenRouter


class RecordingHandler:
    def __init__(self, name: str, calls: list) -> None:
        self.name = name
        self.calls = calls

    async def show(self, context: PlayerContext, state: GameState) -> None:
        self.calls.append((self.name, "show"))

    async def resume(self, context: PlayerContext, state: GameState) -> None:
        self.calls.append((self.name, "resume"))


class ShowOnlyHandler:
    async def show(self, context: PlayerContext, state: GameState) -> None:
        return None


def _router(calls: list) -> ScreenRouter:
    return ScreenRouter.build(
        start_menu=RecordingHandler("start_menu", calls),
        hero_selection=RecordingHandler("hero_selection", calls),
        exploration=RecordingHandler("exploration", calls),
        battle=RecordingHandler("battle", calls),
        inventory=RecordingHandler("inventory", calls),
    )


def test_battle_is_resumed_not_shown() -> None:
    async def scenario() -> None:
        calls: list = []
        router = _router(calls)
        state = GameState.new(1)

        route = await router.dispatch("battle", PlayerContext(1, 2), state)

        assert route.screen is Screen.BATTLE
        assert calls == [("battle", "resume")]

    asyncio.run(scenario())


@pytest.mark.parametrize("tag", ["legacy_shop", "", "hero_confirmation", "BATTLE", "None"])
def test_unknown_tags_fall_back_to_start_menu(tag: str) -> None:
    async def scenario() -> None:
        calls: list = []
        router = _router(calls)

        route = await router.dispatch(tag, PlayerContext(1, 2), GameState.new(1))

        assert route.screen is Screen.START_MENU
        assert calls == [("start_menu", "show")]

    asyncio.run(scenario())


def test_known_screens_use_show() -> None:
    async def scenario() -> None:
        calls: list = []
        router = _router(calls)
        context = PlayerContext(1, 2)

        for tag in ("start_menu", "hero_selection", "exploration", "inventory"):
            await router.dispatch(tag, context, GameState.new(1))

        assert calls == [
            ("start_menu", "show"),
            ("hero_selection", "show"),
            ("exploration", "show"),
            ("inventory", "show"),
        ]

    asyncio.run(scenario())


def test_router_requires_start_menu_and_resumable_battle() -> None:
    calls: list = []
    with pytest.raises(ValueError):
        ScreenRouter({Screen.BATTLE: ScreenRoute(Screen.BATTLE, RecordingHandler("b", calls))})

    with pytest.raises(ValueError):
        ScreenRouter(
            {
                Screen.START_MENU: ScreenRoute(Screen.START_MENU, ShowOnlyHandler()),
                Screen.BATTLE: ScreenRoute(Screen.BATTLE, ShowOnlyHandler(), entry="resume"),
            }
        )
