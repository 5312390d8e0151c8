from __future__ import annotations

from pathlib import Path

import pytest

from sandguard_v1.config import DEFAULT_AUTO_PING_CRON, MENTION_RETENTION_SEC, Settings

KEYS = (
    "DISCORD_TOKEN",
    "OWNER_ID",
    "ALLOWLIST_GUILD_ID",
    "SANDBOX_CHANNEL_ID",
    "LOG_CHANNEL_ID",
    "OPTIN_ROLE_ID",
    "AUTO_PING_CRON",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in KEYS:
        monkeypatch.delenv(key, raising=False)


def _write_env(tmp_path: Path, text: str) -> Path:
    path = tmp_path / ".env"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_reads_dotenv_file(tmp_path: Path) -> None:
    path = _write_env(
        tmp_path,
        "DISCORD_TOKEN=abc\n"
        "OWNER_ID=41\n"
        "ALLOWLIST_GUILD_ID=777\n"
        "SANDBOX_CHANNEL_ID=501\n"
        "LOG_CHANNEL_ID=502\n"
        "OPTIN_ROLE_ID=900\n",
    )
    settings = Settings.load(path)
    assert settings.discord_token == "abc"
    assert settings.owner_id == 41
    assert settings.allowlist_guild_id == 777
    assert settings.sandbox_channel_id == 501
    assert settings.log_channel_id == 502
    assert settings.optin_role_id == 900
    assert settings.default_cron == DEFAULT_AUTO_PING_CRON
    assert settings.mention_retention_sec == MENTION_RETENTION_SEC


def test_environment_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_env(tmp_path, "DISCORD_TOKEN=abc\nOWNER_ID=41\nALLOWLIST_GUILD_ID=777\n")
    monkeypatch.setenv("OWNER_ID", "42")
    monkeypatch.setenv("AUTO_PING_CRON", "0 * * * *")
    settings = Settings.load(path)
    assert settings.owner_id == 42
    assert settings.default_cron == "0 * * * *"
    assert settings.sandbox_channel_id == 0


def test_missing_token_is_fatal(tmp_path: Path) -> None:
    path = _write_env(tmp_path, "OWNER_ID=41\nALLOWLIST_GUILD_ID=777\n")
    with pytest.raises(RuntimeError, match="DISCORD_TOKEN"):
        Settings.load(path)


def test_missing_allowlist_guild_is_fatal(tmp_path: Path) -> None:
    path = _write_env(tmp_path, "DISCORD_TOKEN=abc\nOWNER_ID=41\n")
    with pytest.raises(RuntimeError, match="ALLOWLIST_GUILD_ID"):
        Settings.load(path)


def test_non_numeric_id_is_rejected(tmp_path: Path) -> None:
    path = _write_env(tmp_path, "DISCORD_TOKEN=abc\nOWNER_ID=me\nALLOWLIST_GUILD_ID=777\n")
    with pytest.raises(RuntimeError, match="OWNER_ID"):
        Settings.load(path)


def test_missing_file_falls_back_to_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "env-token")
    monkeypatch.setenv("OWNER_ID", "41")
    monkeypatch.setenv("ALLOWLIST_GUILD_ID", "777")
    settings = Settings.load(tmp_path / "absent.env")
    assert settings.discord_token == "env-token"
