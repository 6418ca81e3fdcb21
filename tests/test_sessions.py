import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from crawler import SessionRegistry


def test_registry_tracks_one_session_per_player() -> None:
    async def scenario() -> None:
        registry: SessionRegistry[str] = SessionRegistry()

        await registry.set(1, "first")
        await registry.set(1, "second")
        await registry.set(2, "other")

        assert await registry.get(1) == "second"
        assert await registry.count() == 2
        assert await registry.remove(1) == "second"
        assert await registry.remove(1) is None
        assert not await registry.contains(1)

    asyncio.run(scenario())


def test_hold_serialises_work_for_one_player() -> None:
    async def scenario() -> None:
        registry: SessionRegistry[str] = SessionRegistry()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with registry.hold(1):
                events.append(f"{name}-in")
                await asyncio.sleep(0)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-in", "a-out", "b-in", "b-out"]

    asyncio.run(scenario())


def test_player_locks_are_released_with_their_sessions() -> None:
    async def scenario() -> None:
        registry: SessionRegistry[int] = SessionRegistry()

        async with registry.hold(1):
            assert registry.is_held(1)
        assert not registry.is_held(1)
        assert registry._player_locks == {}

        async with registry.hold(2):
            await registry.set(2, 20)
        assert 2 in registry._player_locks

        await registry.remove(2)
        assert registry._player_locks == {}

        async with registry.hold(3):
            await registry.set(3, 30)
        await registry.expire(lambda value: True)
        assert registry._player_locks == {}

    asyncio.run(scenario())


def test_expire_skips_players_with_work_in_flight() -> None:
    async def scenario() -> None:
        registry: SessionRegistry[int] = SessionRegistry()
        await registry.set(1, 10)
        await registry.set(2, 20)
        await registry.set(3, 5)

        async with registry.hold(2):
            expired = await registry.expire(lambda value: value >= 10)

        assert expired == ((1, 10),)
        assert await registry.get(2) == 20
        assert await registry.get(3) == 5

    asyncio.run(scenario())
