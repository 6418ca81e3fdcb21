import asyncio
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from crawler import GameState, GameStateRepository, PersistenceError
from crawler import repository as repository_module


def test_saved_snapshot_reconstructs_equal_state(tmp_path) -> None:
    async def scenario() -> None:
        repo = GameStateRepository(tmp_path / "game_states.json")
        state = GameState.new(11, "eth", player_name="Bob", channel_id=5)
        state.advance_floor()
        state.move_to("battle")

        await repo.save(11, state.to_dict())
        snapshot = await repo.load(11)

        assert snapshot is not None
        assert GameState.from_dict(snapshot) == state

    asyncio.run(scenario())


def test_missing_player_and_missing_file_load_as_none(tmp_path) -> None:
    async def scenario() -> None:
        repo = GameStateRepository(tmp_path / "nested" / "game_states.json")

        assert await repo.load(1) is None
        assert await repo.exists(1) is False
        assert await repo.delete(1) is False

    asyncio.run(scenario())


def test_loaded_snapshot_is_a_copy(tmp_path) -> None:
    async def scenario() -> None:
        repo = GameStateRepository(tmp_path / "game_states.json")
        await repo.save(1, GameState.new(1).to_dict())

        snapshot = await repo.load(1)
        snapshot["current_floor"] = 99

        assert (await repo.load(1))["current_floor"] == 1

    asyncio.run(scenario())


def test_corrupt_storage_raises_persistence_error(tmp_path) -> None:
    async def scenario() -> None:
        storage = tmp_path / "game_states.json"
        storage.write_text("{not json", encoding="utf-8")
        repo = GameStateRepository(storage)

        with pytest.raises(PersistenceError) as excinfo:
            await repo.load(1)
        assert excinfo.value.path == storage

    asyncio.run(scenario())


def test_failed_write_keeps_previous_file(tmp_path, monkeypatch) -> None:
    async def scenario() -> None:
        storage = tmp_path / "game_states.json"
        repo = GameStateRepository(storage)
        await repo.save(1, GameState.new(1).to_dict())
        before = storage.read_bytes()

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(repository_module.os, "replace", broken_replace)

        changed = GameState.new(1)
        changed.advance_floor()
        with pytest.raises(PersistenceError):
            await repo.save(1, changed.to_dict())

        assert storage.read_bytes() == before
        assert list(tmp_path.glob("*.tmp")) == []
        assert (await repo.load(1))["current_floor"] == 1

    asyncio.run(scenario())


def test_repository_detects_external_updates(tmp_path) -> None:
    async def scenario() -> None:
        storage = tmp_path / "game_states.json"
        repo_one = GameStateRepository(storage)
        repo_two = GameStateRepository(storage)

        assert not await repo_two.exists(3)

        await repo_one.save(3, GameState.new(3).to_dict())
        assert await repo_two.exists(3)

        await repo_one.delete(3)
        assert not await repo_two.exists(3)

        payload = json.loads(storage.read_text(encoding="utf-8"))
        assert payload == {}

    asyncio.run(scenario())
