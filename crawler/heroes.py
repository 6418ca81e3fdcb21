"""Hero templates, runtime hero instances and the hero catalog."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, Mapping, MutableMapping, Optional, Sequence

import yaml

__all__ = [
    "HeroCatalog",
    "HeroInstance",
    "HeroLoadError",
    "HeroTemplate",
    "StatusEffect",
    "instantiate",
    "is_hero_eligible",
]

_DEFAULT_CATALOG_PATH = Path(__file__).with_name("data") / "heroes.yaml"


class HeroLoadError(RuntimeError):
    """Raised when hero data could not be loaded or validated."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        if path is not None:
            message = f"{message} (source: {path})"
        super().__init__(message)
        self.path = path


def _require_mapping(name: str, value: object) -> MutableMapping[str, object]:
    if isinstance(value, MutableMapping):
        return value
    if isinstance(value, Mapping):
        return dict(value)
    raise HeroLoadError(f"{name} must be a mapping")


def _string_tuple(name: str, value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return tuple(str(entry) for entry in value)
    raise HeroLoadError(f"{name} must be a sequence")


@dataclass(frozen=True)
class HeroTemplate:
    """Immutable catalog definition of a playable hero."""

    key: str
    name: str
    health: int
    mana: int
    armor: int = 0
    crit_chance: int = 0
    weapons: tuple[str, ...] = field(default_factory=tuple)
    abilities: tuple[str, ...] = field(default_factory=tuple)
    description: str = ""
    unlock_floor: int = 0
    emoji: str | None = None

    @classmethod
    def from_mapping(cls, key: str, data: Mapping[str, object]) -> "HeroTemplate":
        mapping = _require_mapping(f"hero {key}", data)
        try:
            health = int(mapping["health"])
            mana = int(mapping["mana"])
        except KeyError as exc:
            raise HeroLoadError(f"Hero '{key}' is missing {exc.args[0]}") from exc
        except (TypeError, ValueError) as exc:
            raise HeroLoadError(f"Hero '{key}' has non-numeric stats") from exc
        emoji = mapping.get("emoji")
        return cls(
            key=str(key).lower(),
            name=str(mapping.get("name") or key),
            health=health,
            mana=mana,
            armor=int(mapping.get("armor", 0)),
            crit_chance=int(mapping.get("crit_chance", 0)),
            weapons=_string_tuple(f"{key}.weapons", mapping.get("weapons")),
            abilities=_string_tuple(f"{key}.abilities", mapping.get("abilities")),
            description=str(mapping.get("description", "")),
            unlock_floor=int(mapping.get("unlock_floor", 0)),
            emoji=str(emoji) if emoji else None,
        )

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "key": self.key,
            "name": self.name,
            "health": self.health,
            "mana": self.mana,
            "armor": self.armor,
            "crit_chance": self.crit_chance,
            "weapons": list(self.weapons),
            "abilities": list(self.abilities),
            "description": self.description,
            "unlock_floor": self.unlock_floor,
        }
        if self.emoji:
            data["emoji"] = self.emoji
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "HeroTemplate":
        return cls.from_mapping(str(data["key"]), data)


@dataclass
class StatusEffect:
    """An effect currently applied to a hero."""

    type: str
    duration: int
    value: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.type, "duration": self.duration, "value": self.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "StatusEffect":
        return cls(
            type=str(data["type"]),
            duration=int(data.get("duration", 0)),
            value=int(data.get("value", 0)),
        )


@dataclass
class HeroInstance:
    """Mutable per-session copy of a hero created on confirmation."""

    key: str
    name: str
    health: int
    mana: int
    armor: int
    crit_chance: int
    weapons: list[str]
    abilities: list[str]
    description: str
    unlock_floor: int
    max_health: int
    max_mana: int
    current_health: int
    current_mana: int
    effects: list[StatusEffect] = field(default_factory=list)
    emoji: str | None = None

    @property
    def is_defeated(self) -> bool:
        return self.current_health <= 0

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "key": self.key,
            "name": self.name,
            "health": self.health,
            "mana": self.mana,
            "armor": self.armor,
            "crit_chance": self.crit_chance,
            "weapons": list(self.weapons),
            "abilities": list(self.abilities),
            "description": self.description,
            "unlock_floor": self.unlock_floor,
            "max_health": self.max_health,
            "max_mana": self.max_mana,
            "current_health": self.current_health,
            "current_mana": self.current_mana,
            "effects": [effect.to_dict() for effect in self.effects],
        }
        if self.emoji:
            data["emoji"] = self.emoji
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "HeroInstance":
        health = int(data["health"])
        mana = int(data["mana"])
        emoji = data.get("emoji")
        return cls(
            key=str(data["key"]),
            name=str(data.get("name") or data["key"]),
            health=health,
            mana=mana,
            armor=int(data.get("armor", 0)),
            crit_chance=int(data.get("crit_chance", 0)),
            weapons=[str(value) for value in data.get("weapons", [])],
            abilities=[str(value) for value in data.get("abilities", [])],
            description=str(data.get("description", "")),
            unlock_floor=int(data.get("unlock_floor", 0)),
            max_health=int(data.get("max_health", health)),
            max_mana=int(data.get("max_mana", mana)),
            current_health=int(data.get("current_health", health)),
            current_mana=int(data.get("current_mana", mana)),
            effects=[StatusEffect.from_dict(entry) for entry in data.get("effects", [])],
            emoji=str(emoji) if emoji else None,
        )


def instantiate(template: HeroTemplate) -> HeroInstance:
    """Create the runtime copy of ``template`` used during an adventure."""

    return HeroInstance(
        key=template.key,
        name=template.name,
        health=template.health,
        mana=template.mana,
        armor=template.armor,
        crit_chance=template.crit_chance,
        weapons=list(template.weapons),
        abilities=list(template.abilities),
        description=template.description,
        unlock_floor=template.unlock_floor,
        max_health=template.health,
        max_mana=template.mana,
        current_health=template.health,
        current_mana=template.mana,
        effects=[],
        emoji=template.emoji,
    )


def is_hero_eligible(hero: HeroTemplate, highest_floor: int) -> bool:
    return hero.unlock_floor <= highest_floor


class HeroCatalog:
    """Read-only registry of hero templates keyed by id."""

    def __init__(self, heroes: Iterable[HeroTemplate] = ()) -> None:
        self._entries: Dict[str, HeroTemplate] = {}
        self._aliases: Dict[str, str] = {}
        for hero in heroes:
            self.register(hero)

    @staticmethod
    def _normalise(value: str) -> str:
        return value.strip().lower()

    def register(self, hero: HeroTemplate, *, aliases: Iterable[str] = ()) -> None:
        identifier = self._normalise(hero.key)
        if identifier in self._entries:
            raise ValueError(f"Duplicate hero '{hero.key}'")
        self._entries[identifier] = hero
        self._aliases[identifier] = identifier
        for alias in (*aliases, hero.name):
            self._aliases.setdefault(self._normalise(alias), identifier)

    def get(self, name: str) -> HeroTemplate:
        if not name:
            raise KeyError("Name must be provided")
        identifier = self._normalise(name)
        target = self._aliases.get(identifier, identifier)
        try:
            return self._entries[target]
        except KeyError as exc:
            raise KeyError(f"Unknown hero '{name}'") from exc

    def get_by_id(self, hero_id: str) -> Optional[HeroTemplate]:
        try:
            return self.get(hero_id)
        except KeyError:
            return None

    def list_unlocked_at_or_below(self, floor: int) -> tuple[HeroTemplate, ...]:
        eligible = [hero for hero in self._entries.values() if is_hero_eligible(hero, floor)]
        eligible.sort(key=lambda hero: (hero.unlock_floor, hero.name.casefold()))
        return tuple(eligible)

    def values(self) -> Sequence[HeroTemplate]:
        return tuple(self._entries.values())

    def __iter__(self) -> Iterator[HeroTemplate]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def load_from_path(cls, path: Path) -> "HeroCatalog":
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise HeroLoadError("Unable to read hero data", path=path) from exc
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise HeroLoadError("Failed to parse hero data", path=path) from exc
        if not isinstance(raw, Mapping):
            raise HeroLoadError("Hero data must contain a 'heroes' mapping", path=path)
        try:
            entries = _require_mapping("heroes", raw.get("heroes", {}))
        except HeroLoadError as exc:
            raise HeroLoadError(str(exc), path=path) from exc
        catalog = cls()
        for key, payload in entries.items():
            try:
                catalog.register(HeroTemplate.from_mapping(str(key), payload))
            except HeroLoadError as exc:
                raise HeroLoadError(str(exc), path=path) from exc
            except ValueError as exc:
                raise HeroLoadError(str(exc), path=path) from exc
        return catalog

    @classmethod
    def load_default(cls) -> "HeroCatalog":
        return cls.load_from_path(_DEFAULT_CATALOG_PATH)
