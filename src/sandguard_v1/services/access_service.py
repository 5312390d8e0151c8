from __future__ import annotations

from sandguard_v1.config import Settings

WRONG_GUILD_MESSAGE = "This command works only in the allow-listed test server."
NOT_OWNER_MESSAGE = "Only the bot owner can run this command."


class AccessService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def rejection(self, guild_id: int | None, user_id: int) -> str | None:
        if guild_id is None or int(guild_id) != self.settings.allowlist_guild_id:
            return WRONG_GUILD_MESSAGE
        if int(user_id) != self.settings.owner_id:
            return NOT_OWNER_MESSAGE
        return None
