"""Hero selection and confirmation steps of a new adventure."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional, Union

from .heroes import HeroCatalog, HeroInstance, HeroTemplate, instantiate, is_hero_eligible
from .state import GameState, Screen

__all__ = ["CONFIRM", "GO_BACK", "HeroSelectionFlow", "SelectionResult"]

log = logging.getLogger(__name__)

CONFIRM = "confirm"
GO_BACK = "back_to_selection"


@dataclass
class SelectionResult:
    """Outcome of one step of the selection flow."""

    status: Literal[
        "offered",
        "none_eligible",
        "unknown_hero",
        "locked",
        "selected",
        "confirmed",
        "returned",
        "nothing_selected",
        "unknown_option",
    ]
    heroes: tuple[HeroTemplate, ...] = ()
    hero: Union[HeroTemplate, HeroInstance, None] = None
    required_floor: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status in ("offered", "selected", "confirmed", "returned")


class HeroSelectionFlow:
    def __init__(self, catalog: HeroCatalog) -> None:
        self.catalog = catalog

    def eligible_heroes(self, state: GameState) -> tuple[HeroTemplate, ...]:
        return self.catalog.list_unlocked_at_or_below(state.progress.highest_floor_reached)

    def offer(self, state: GameState, *, now: Optional[datetime] = None) -> SelectionResult:
        heroes = self.eligible_heroes(state)
        if not heroes:
            return SelectionResult(status="none_eligible")
        state.progress.unlock_heroes(hero.key for hero in heroes)
        state.move_to(Screen.HERO_SELECTION, now=now)
        return SelectionResult(status="offered", heroes=heroes)

    def choose(
        self, state: GameState, hero_id: str, *, now: Optional[datetime] = None
    ) -> SelectionResult:
        hero = self.catalog.get_by_id(hero_id)
        if hero is None:
            log.warning("Player %s picked unknown hero %r", state.player_id, hero_id)
            return SelectionResult(status="unknown_hero")
        # The offer may be stale, so eligibility is checked again here.
        if not is_hero_eligible(hero, state.progress.highest_floor_reached):
            return SelectionResult(status="locked", hero=hero, required_floor=hero.unlock_floor)
        state.selected_hero = hero
        state.move_to(Screen.HERO_CONFIRMATION, now=now)
        log.info("Player %s selected hero %s", state.player_id, hero.key)
        return SelectionResult(status="selected", hero=hero)

    def confirm(
        self, state: GameState, choice: str, *, now: Optional[datetime] = None
    ) -> SelectionResult:
        if choice == CONFIRM:
            template = state.selected_hero
            if not isinstance(template, HeroTemplate):
                return SelectionResult(status="nothing_selected")
            hero = instantiate(template)
            state.selected_hero = hero
            for weapon in hero.weapons:
                state.inventory.add_weapon(weapon)
            state.touch(now)
            log.info("Player %s confirmed hero %s", state.player_id, hero.key)
            return SelectionResult(status="confirmed", hero=hero)
        if choice == GO_BACK:
            state.selected_hero = None
            state.move_to(Screen.HERO_SELECTION, now=now)
            return SelectionResult(status="returned")
        log.warning("Unknown hero confirmation option %r", choice)
        return SelectionResult(status="unknown_option")
