"""Adventure session models, persistence and lifecycle."""

from .audit import AuditEntry, AuditLog
from .bindings import ContextBindingStore
from .config import Settings
from .hero_selection import HeroSelectionFlow, SelectionResult
from .heroes import (
    HeroCatalog,
    HeroInstance,
    HeroLoadError,
    HeroTemplate,
    StatusEffect,
    instantiate,
    is_hero_eligible,
)
from .lifecycle import ConflictChoice, ResumeOutcome, SaveOutcome, SessionLifecycle
from .repository import GameStateRepository, PersistenceError
from .screens import PlayerContext, ResumableScreenHandler, ScreenHandler, ScreenRoute, ScreenRouter
from .sessions import SessionRegistry
from .state import (
    ECONOMY_TYPES,
    BattleState,
    GameState,
    Inventory,
    Progress,
    Screen,
    SessionInfo,
    SnapshotError,
)

__all__ = [
    "AuditEntry",
    "AuditLog",
    "BattleState",
    "ConflictChoice",
    "ContextBindingStore",
    "ECONOMY_TYPES",
    "GameState",
    "GameStateRepository",
    "HeroCatalog",
    "HeroInstance",
    "HeroLoadError",
    "HeroSelectionFlow",
    "HeroTemplate",
    "Inventory",
    "PersistenceError",
    "PlayerContext",
    "Progress",
    "ResumableScreenHandler",
    "ResumeOutcome",
    "SaveOutcome",
    "Screen",
    "ScreenHandler",
    "ScreenRoute",
    "ScreenRouter",
    "SelectionResult",
    "SessionInfo",
    "SessionLifecycle",
    "SessionRegistry",
    "Settings",
    "SnapshotError",
    "StatusEffect",
    "instantiate",
    "is_hero_eligible",
]
