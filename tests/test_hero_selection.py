import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from crawler import GameState, HeroCatalog, HeroInstance, HeroSelectionFlow, HeroTemplate, Screen
from crawler.hero_selection import CONFIRM, GO_BACK


def _flow() -> HeroSelectionFlow:
    return HeroSelectionFlow(HeroCatalog.load_default())


def test_offer_lists_eligible_heroes_and_unlocks_them() -> None:
    flow = _flow()
    state = GameState.new(1)
    state.progress.record_floor(15)

    result = flow.offer(state)

    assert result.status == "offered"
    assert [hero.key for hero in result.heroes] == ["grim_stonebeard", "grenthaia_loastrum"]
    assert state.progress.unlocked_hero_ids == {"grim_stonebeard", "grenthaia_loastrum"}
    assert state.screen is Screen.HERO_SELECTION


def test_offer_with_no_eligible_heroes_changes_nothing() -> None:
    flow = HeroSelectionFlow(
        HeroCatalog([HeroTemplate(key="late", name="Late", health=5, mana=5, unlock_floor=10)])
    )
    state = GameState.new(1)

    result = flow.offer(state)

    assert result.status == "none_eligible"
    assert not result.ok
    assert state.screen is Screen.START_MENU
    assert state.progress.unlocked_hero_ids == set()


def test_locked_choice_reports_required_floor_without_mutation() -> None:
    flow = _flow()
    state = GameState.new(1)
    flow.offer(state)

    result = flow.choose(state, "arcanus_nexus")

    assert result.status == "locked"
    assert result.required_floor == 40
    assert state.selected_hero is None
    assert state.screen is Screen.HERO_SELECTION


def test_unknown_choice_is_reported() -> None:
    flow = _flow()
    state = GameState.new(1)

    assert flow.choose(state, "nobody").status == "unknown_hero"
    assert state.selected_hero is None


def test_confirm_creates_instance_and_grants_weapons() -> None:
    flow = _flow()
    state = GameState.new(1)
    flow.offer(state)

    chosen = flow.choose(state, "grim_stonebeard")
    assert chosen.status == "selected"
    assert state.screen is Screen.HERO_CONFIRMATION

    confirmed = flow.confirm(state, CONFIRM)

    assert confirmed.status == "confirmed"
    assert isinstance(state.selected_hero, HeroInstance)
    assert state.selected_hero.current_health == state.selected_hero.max_health == 10
    assert state.inventory.weapons == ["hammer", "sword"]


def test_go_back_clears_selection() -> None:
    flow = _flow()
    state = GameState.new(1)
    flow.offer(state)
    flow.choose(state, "grim_stonebeard")

    assert flow.confirm(state, GO_BACK).status == "returned"
    assert state.selected_hero is None
    assert state.screen is Screen.HERO_SELECTION
    assert flow.confirm(state, CONFIRM).status == "nothing_selected"
    assert flow.confirm(state, "maybe").status == "unknown_option"
