"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from .state import ECONOMY_TYPES

__all__ = ["Settings"]


def _env_number(name: str, default: str, kind: type) -> float | int:
    raw = os.getenv(name, default)
    try:
        return kind(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be a number, got {raw!r}") from exc


@dataclass(slots=True)
class Settings:
    token: str = ""
    data_dir: Path = Path("data")
    resume_delay: float = 2.0
    session_timeout: timedelta = timedelta(minutes=30)
    audit_log_size: int = 1000
    default_economy: str = "gold"

    @property
    def game_state_path(self) -> Path:
        return self.data_dir / "game_states.json"

    @property
    def binding_path(self) -> Path:
        return self.data_dir / "context_bindings.json"

    @classmethod
    def from_env(cls) -> "Settings":
        token = os.getenv("DISCORD_TOKEN", "")
        data_dir = Path(os.getenv("CRAWLER_DATA_DIR", "data")).expanduser()
        resume_delay = max(0.0, float(_env_number("CRAWLER_RESUME_DELAY", "2.0", float)))
        timeout_minutes = max(1, int(_env_number("CRAWLER_SESSION_TIMEOUT_MINUTES", "30", int)))
        audit_log_size = max(1, int(_env_number("CRAWLER_AUDIT_LOG_SIZE", "1000", int)))
        default_economy = os.getenv("CRAWLER_DEFAULT_ECONOMY", "gold").strip().lower()
        if default_economy not in ECONOMY_TYPES:
            raise RuntimeError(
                f"CRAWLER_DEFAULT_ECONOMY must be one of {', '.join(ECONOMY_TYPES)}"
            )
        return cls(
            token=token,
            data_dir=data_dir,
            resume_delay=resume_delay,
            session_timeout=timedelta(minutes=timeout_minutes),
            audit_log_size=audit_log_size,
            default_economy=default_economy,
        )
