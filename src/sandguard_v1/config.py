from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

DEFAULT_AUTO_PING_CRON = "*/5 * * * *"
MENTION_RETENTION_SEC = 120


@dataclass(frozen=True)
class Settings:
    discord_token: str
    owner_id: int
    allowlist_guild_id: int
    sandbox_channel_id: int
    log_channel_id: int
    optin_role_id: int
    default_cron: str = DEFAULT_AUTO_PING_CRON
    mention_retention_sec: int = MENTION_RETENTION_SEC

    @staticmethod
    def load(env_path: Path | str = ".env") -> "Settings":
        values = _read_values(Path(env_path))
        token = values.get("DISCORD_TOKEN", "").strip()
        owner_id = _parse_id(values, "OWNER_ID")
        allowlist_guild_id = _parse_id(values, "ALLOWLIST_GUILD_ID")
        if not token:
            raise RuntimeError("DISCORD_TOKEN is required in .env or the environment.")
        if not owner_id:
            raise RuntimeError("OWNER_ID is required in .env or the environment.")
        if not allowlist_guild_id:
            raise RuntimeError("ALLOWLIST_GUILD_ID is required in .env or the environment.")
        return Settings(
            discord_token=token,
            owner_id=owner_id,
            allowlist_guild_id=allowlist_guild_id,
            sandbox_channel_id=_parse_id(values, "SANDBOX_CHANNEL_ID"),
            log_channel_id=_parse_id(values, "LOG_CHANNEL_ID"),
            optin_role_id=_parse_id(values, "OPTIN_ROLE_ID"),
            default_cron=values.get("AUTO_PING_CRON", "").strip() or DEFAULT_AUTO_PING_CRON,
        )


def _read_values(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if path.exists():
        for key, value in dotenv_values(path).items():
            if value is not None:
                values[key] = value
    values.update(os.environ)
    return values


def _parse_id(values: dict[str, str], key: str) -> int:
    raw = values.get(key, "").strip()
    if not raw:
        return 0
    if not raw.isdigit():
        raise RuntimeError(f"{key} must be a numeric Discord id, got {raw!r}.")
    return int(raw)
