import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from bot import get_cog_module_names, load_environment
from crawler import Settings

ENV_NAMES = (
    "DISCORD_TOKEN",
    "CRAWLER_DATA_DIR",
    "CRAWLER_RESUME_DELAY",
    "CRAWLER_SESSION_TIMEOUT_MINUTES",
    "CRAWLER_AUDIT_LOG_SIZE",
    "CRAWLER_DEFAULT_ECONOMY",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment() -> None:
    settings = Settings.from_env()

    assert settings.token == ""
    assert settings.resume_delay == 2.0
    assert settings.session_timeout == timedelta(minutes=30)
    assert settings.audit_log_size == 1000
    assert settings.game_state_path == Path("data") / "game_states.json"


def test_environment_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "secret")
    monkeypatch.setenv("CRAWLER_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("CRAWLER_RESUME_DELAY", "-4")
    monkeypatch.setenv("CRAWLER_SESSION_TIMEOUT_MINUTES", "45")
    monkeypatch.setenv("CRAWLER_DEFAULT_ECONOMY", "ETH")

    settings = Settings.from_env()

    assert settings.token == "secret"
    assert settings.binding_path == tmp_path / "context_bindings.json"
    assert settings.resume_delay == 0.0
    assert settings.session_timeout == timedelta(minutes=45)
    assert settings.default_economy == "eth"


@pytest.mark.parametrize(
    "name, value",
    [
        ("CRAWLER_RESUME_DELAY", "soon"),
        ("CRAWLER_AUDIT_LOG_SIZE", "1.5"),
        ("CRAWLER_DEFAULT_ECONOMY", "doubloons"),
    ],
)
def test_invalid_values_raise(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(RuntimeError):
        Settings.from_env()


def test_load_environment_requires_token(monkeypatch) -> None:
    monkeypatch.setattr("bot.load_dotenv", lambda: False)

    with pytest.raises(RuntimeError):
        load_environment()


def test_cog_discovery_skips_package_files(tmp_path) -> None:
    (tmp_path / "__init__.py").write_text("", encoding="utf-8")
    (tmp_path / "adventure.py").write_text("", encoding="utf-8")

    assert get_cog_module_names(tmp_path) == ["cogs.adventure"]
