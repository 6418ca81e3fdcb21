import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from crawler import GameState, HeroCatalog, Screen, SnapshotError, instantiate


def _hero_state() -> GameState:
    catalog = HeroCatalog.load_default()
    state = GameState.new(42, "tokens", player_name="Alice", channel_id=7)
    state.selected_hero = instantiate(catalog.get("grim_stonebeard"))
    state.selected_hero.current_health = 4
    state.current_floor = 5
    state.current_floor_explorations = 2
    state.move_to(Screen.BATTLE)
    state.battle.active = True
    state.battle.monster = "Goblin"
    state.battle.turn_count = 3
    state.progress.record_floor(5)
    state.progress.unlock_heroes(["grim_stonebeard"])
    state.inventory.add_weapon("hammer")
    state.inventory.add_consumable("potion", 2)
    state.inventory.add_keys(3)
    return state


def test_snapshot_round_trip_preserves_every_field() -> None:
    state = _hero_state()

    restored = GameState.from_dict(state.to_dict())

    assert restored == state
    assert restored.selected_hero is not state.selected_hero
    assert restored.selected_hero.current_health == 4


def test_template_selection_survives_round_trip() -> None:
    catalog = HeroCatalog.load_default()
    state = GameState.new(1)
    state.selected_hero = catalog.get("grim_stonebeard")

    restored = GameState.from_dict(state.to_dict())

    assert restored.selected_hero == state.selected_hero
    assert type(restored.selected_hero) is type(state.selected_hero)


def test_unknown_screen_tag_is_kept_as_data() -> None:
    payload = GameState.new(9).to_dict()
    payload["current_screen"] = "legacy_shop"

    state = GameState.from_dict(payload)

    assert state.current_screen == "legacy_shop"
    assert state.screen is None


def test_touch_never_moves_backwards() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    state = GameState.new(3, now=start)

    later = state.touch(start + timedelta(minutes=5))
    earlier = state.touch(start - timedelta(minutes=5))

    assert later == start + timedelta(minutes=5)
    assert earlier == later


def test_progress_only_grows() -> None:
    state = GameState.new(3)

    assert state.advance_floor() == 2
    assert state.progress.highest_floor_reached == 2
    state.reset_floor()

    assert state.current_floor == 1
    assert state.progress.highest_floor_reached == 2
    assert state.progress.record_floor(1) is False
    assert state.progress.unlock_heroes(["a", "b"]) == {"a", "b"}
    assert state.progress.unlock_heroes(["a"]) == set()


@pytest.mark.parametrize(
    "floor, expected",
    [(1, 3), (9, 3), (10, 5), (20, 5), (29, 5), (30, 6), (70, 10), (500, 10)],
)
def test_exploration_allowance_scales_with_floor(floor: int, expected: int) -> None:
    state = GameState.new(1)
    state.current_floor = floor

    assert state.max_explorations() == expected


def test_exploration_stops_at_allowance() -> None:
    state = GameState.new(1)

    assert all(state.record_exploration() for _ in range(3))
    assert state.record_exploration() is False
    assert state.current_floor_explorations == 3

    state.advance_floor()
    assert state.can_explore() is True


def test_inventory_limits() -> None:
    state = GameState.new(1)

    assert state.inventory.add_weapon("sword") is True
    assert state.inventory.add_weapon("sword") is False
    assert state.inventory.add_keys(250) == 100


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValueError):
        GameState.new(1, "doubloons")
    with pytest.raises(ValueError):
        GameState(player_id=1, current_floor=0)


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"player_id": "not-a-number"},
        {"player_id": 1, "economy_type": "doubloons"},
        {"player_id": 1, "selected_hero": "grim"},
        {"player_id": 1, "selected_hero": {"kind": "template", "key": "x"}},
        {"player_id": 1, "session": {"started_at": "yesterday"}},
    ],
)
def test_corrupt_snapshots_raise_snapshot_error(payload: dict) -> None:
    with pytest.raises(SnapshotError):
        GameState.from_dict(payload)
