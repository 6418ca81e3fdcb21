"""Serializable snapshot of one player's adventure."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Union

from .heroes import HeroInstance, HeroLoadError, HeroTemplate

__all__ = [
    "BattleState",
    "ECONOMY_TYPES",
    "GameState",
    "Inventory",
    "Progress",
    "Screen",
    "SessionInfo",
    "SnapshotError",
]

ECONOMY_TYPES: tuple[str, ...] = ("gold", "tokens", "dng", "hero", "eth")

MAX_CARRIED_WEAPONS = 20
MAX_CARRIED_ARMOR = 20
MAX_CONSUMABLE_STACKS = 20
MAX_KEYS = 100

SelectedHero = Union[HeroTemplate, HeroInstance, None]


class SnapshotError(ValueError):
    """Raised when a stored snapshot cannot be turned back into a game state."""


class Screen(str, Enum):
    """Screens known to this build. Stored tags are not limited to these."""

    START_MENU = "start_menu"
    HERO_SELECTION = "hero_selection"
    HERO_CONFIRMATION = "hero_confirmation"
    EXPLORATION = "exploration"
    BATTLE = "battle"
    INVENTORY = "inventory"

    @classmethod
    def parse(cls, value: object) -> Optional["Screen"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: object) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Progress:
    """Long-lived progression. Both fields only ever grow."""

    highest_floor_reached: int = 0
    unlocked_hero_ids: set[str] = field(default_factory=set)

    def record_floor(self, floor: int) -> bool:
        if floor <= self.highest_floor_reached:
            return False
        self.highest_floor_reached = floor
        return True

    def unlock_heroes(self, hero_ids: Iterable[str]) -> set[str]:
        added = {str(hero_id) for hero_id in hero_ids} - self.unlocked_hero_ids
        self.unlocked_hero_ids.update(added)
        return added

    def to_dict(self) -> Dict[str, object]:
        return {
            "highest_floor_reached": self.highest_floor_reached,
            "unlocked_hero_ids": sorted(self.unlocked_hero_ids),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Progress":
        return cls(
            highest_floor_reached=int(data.get("highest_floor_reached", 0)),
            unlocked_hero_ids={str(value) for value in data.get("unlocked_hero_ids", [])},
        )


@dataclass
class SessionInfo:
    """Delivery context and activity timestamps."""

    channel_id: Optional[int] = None
    started_at: datetime = field(default_factory=_utcnow)
    last_activity_at: datetime = field(default_factory=_utcnow)
    last_saved_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "started_at": _format_datetime(self.started_at),
            "last_activity_at": _format_datetime(self.last_activity_at),
        }
        if self.channel_id is not None:
            data["channel_id"] = self.channel_id
        if self.last_saved_at is not None:
            data["last_saved_at"] = _format_datetime(self.last_saved_at)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "SessionInfo":
        channel_id = data.get("channel_id")
        started_at = _parse_datetime(data.get("started_at")) or _utcnow()
        last_activity_at = _parse_datetime(data.get("last_activity_at")) or started_at
        return cls(
            channel_id=int(channel_id) if channel_id is not None else None,
            started_at=started_at,
            last_activity_at=last_activity_at,
            last_saved_at=_parse_datetime(data.get("last_saved_at")),
        )


@dataclass
class Inventory:
    weapons: list[str] = field(default_factory=list)
    armor: list[str] = field(default_factory=list)
    consumables: Dict[str, int] = field(default_factory=dict)
    keys: int = 0
    gold: int = 0

    def add_weapon(self, weapon_id: str) -> bool:
        if weapon_id in self.weapons or len(self.weapons) >= MAX_CARRIED_WEAPONS:
            return False
        self.weapons.append(weapon_id)
        return True

    def add_armor(self, armor_id: str) -> bool:
        if len(self.armor) >= MAX_CARRIED_ARMOR:
            return False
        self.armor.append(armor_id)
        return True

    def add_consumable(self, name: str, quantity: int = 1) -> bool:
        if name not in self.consumables and len(self.consumables) >= MAX_CONSUMABLE_STACKS:
            return False
        self.consumables[name] = self.consumables.get(name, 0) + quantity
        return True

    def add_keys(self, quantity: int) -> int:
        self.keys = min(MAX_KEYS, self.keys + quantity)
        return self.keys

    def to_dict(self) -> Dict[str, object]:
        return {
            "weapons": list(self.weapons),
            "armor": list(self.armor),
            "consumables": dict(self.consumables),
            "keys": self.keys,
            "gold": self.gold,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Inventory":
        consumables = data.get("consumables") or {}
        return cls(
            weapons=[str(value) for value in data.get("weapons", [])],
            armor=[str(value) for value in data.get("armor", [])],
            consumables={str(name): int(count) for name, count in dict(consumables).items()},
            keys=int(data.get("keys", 0)),
            gold=int(data.get("gold", 0)),
        )


@dataclass
class BattleState:
    """Turn state of an in-progress fight, kept so battles can be resumed."""

    active: bool = False
    monster: Optional[str] = None
    turn_count: int = 0
    player_last_move: Optional[str] = None
    monster_last_move: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "active": self.active,
            "monster": self.monster,
            "turn_count": self.turn_count,
            "player_last_move": self.player_last_move,
            "monster_last_move": self.monster_last_move,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "BattleState":
        def _optional(name: str) -> Optional[str]:
            value = data.get(name)
            return str(value) if value is not None else None

        return cls(
            active=bool(data.get("active", False)),
            monster=_optional("monster"),
            turn_count=int(data.get("turn_count", 0)),
            player_last_move=_optional("player_last_move"),
            monster_last_move=_optional("monster_last_move"),
        )


def _hero_to_dict(hero: SelectedHero) -> Optional[Dict[str, object]]:
    if hero is None:
        return None
    kind = "instance" if isinstance(hero, HeroInstance) else "template"
    return {"kind": kind, **hero.to_dict()}


def _hero_from_dict(data: object) -> SelectedHero:
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise SnapshotError("selected_hero must be a mapping")
    if data.get("kind") == "instance":
        return HeroInstance.from_dict(data)
    return HeroTemplate.from_dict(data)


@dataclass
class GameState:
    """Everything needed to resume one player's adventure."""

    player_id: int
    economy_type: str = "gold"
    player_name: str = "Player"
    current_screen: str = Screen.START_MENU.value
    current_floor: int = 1
    current_floor_explorations: int = 0
    selected_hero: SelectedHero = None
    progress: Progress = field(default_factory=Progress)
    inventory: Inventory = field(default_factory=Inventory)
    battle: BattleState = field(default_factory=BattleState)
    session: SessionInfo = field(default_factory=SessionInfo)

    def __post_init__(self) -> None:
        if self.economy_type not in ECONOMY_TYPES:
            raise ValueError(f"Unknown economy type '{self.economy_type}'")
        if self.current_floor < 1:
            raise ValueError("current_floor must be at least 1")
        if isinstance(self.current_screen, Screen):
            self.current_screen = self.current_screen.value

    @classmethod
    def new(
        cls,
        player_id: int,
        economy_type: str = "gold",
        *,
        player_name: str = "Player",
        channel_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> "GameState":
        timestamp = now or _utcnow()
        return cls(
            player_id=player_id,
            economy_type=economy_type,
            player_name=player_name,
            session=SessionInfo(
                channel_id=channel_id,
                started_at=timestamp,
                last_activity_at=timestamp,
            ),
        )

    @property
    def screen(self) -> Optional[Screen]:
        return Screen.parse(self.current_screen)

    def touch(self, now: Optional[datetime] = None) -> datetime:
        """Mark the state as active, never moving the timestamp backwards."""

        timestamp = now or _utcnow()
        if timestamp > self.session.last_activity_at:
            self.session.last_activity_at = timestamp
        return self.session.last_activity_at

    def move_to(self, screen: Union[Screen, str], *, now: Optional[datetime] = None) -> None:
        self.current_screen = screen.value if isinstance(screen, Screen) else str(screen)
        self.touch(now)

    def max_explorations(self) -> int:
        floor = self.current_floor
        if floor <= 9:
            return 3
        if floor <= 20:
            return 5
        return min(10, 5 + (floor - 20) // 10)

    def can_explore(self) -> bool:
        return self.current_floor_explorations < self.max_explorations()

    def record_exploration(self, *, now: Optional[datetime] = None) -> bool:
        if not self.can_explore():
            return False
        self.current_floor_explorations += 1
        self.touch(now)
        return True

    def advance_floor(self, *, now: Optional[datetime] = None) -> int:
        self.current_floor += 1
        self.current_floor_explorations = 0
        self.progress.record_floor(self.current_floor)
        self.touch(now)
        return self.current_floor

    def reset_floor(self, *, now: Optional[datetime] = None) -> None:
        self.current_floor = 1
        self.current_floor_explorations = 0
        self.battle = BattleState()
        self.touch(now)

    @property
    def hero_name(self) -> Optional[str]:
        return self.selected_hero.name if self.selected_hero is not None else None

    def hero_health(self) -> tuple[int, int]:
        hero = self.selected_hero
        if isinstance(hero, HeroInstance):
            return hero.current_health, hero.max_health
        if isinstance(hero, HeroTemplate):
            return hero.health, hero.health
        return 0, 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "player_id": self.player_id,
            "player_name": self.player_name,
            "economy_type": self.economy_type,
            "current_screen": self.current_screen,
            "current_floor": self.current_floor,
            "current_floor_explorations": self.current_floor_explorations,
            "selected_hero": _hero_to_dict(self.selected_hero),
            "progress": self.progress.to_dict(),
            "inventory": self.inventory.to_dict(),
            "battle": self.battle.to_dict(),
            "session": self.session.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "GameState":
        if not isinstance(data, Mapping):
            raise SnapshotError("Snapshot must be a mapping")
        try:
            return cls(
                player_id=int(data["player_id"]),
                player_name=str(data.get("player_name") or "Player"),
                economy_type=str(data.get("economy_type", "gold")),
                current_screen=str(data.get("current_screen") or Screen.START_MENU.value),
                current_floor=int(data.get("current_floor", 1)),
                current_floor_explorations=int(data.get("current_floor_explorations", 0)),
                selected_hero=_hero_from_dict(data.get("selected_hero")),
                progress=Progress.from_dict(dict(data.get("progress") or {})),
                inventory=Inventory.from_dict(dict(data.get("inventory") or {})),
                battle=BattleState.from_dict(dict(data.get("battle") or {})),
                session=SessionInfo.from_dict(dict(data.get("session") or {})),
            )
        except SnapshotError:
            raise
        except (KeyError, TypeError, ValueError, HeroLoadError) as exc:
            raise SnapshotError(f"Invalid snapshot: {exc}") from exc
