from __future__ import annotations

from dataclasses import dataclass

import discord

from sandguard_v1.services.logger_service import LoggerService
from sandguard_v1.services.mention_ledger import MentionLedger


@dataclass(frozen=True)
class GhostPingReport:
    message_id: int
    guild_id: int
    author_id: int
    user_count: int
    role_count: int
    everyone: bool

    def render(self) -> str:
        return (
            f"\U0001f47b **Ghost-ping suspected** by <@{self.author_id}>. "
            f"Mentions: users={self.user_count} roles={self.role_count} "
            f"everyone={'yes' if self.everyone else 'no'}"
        )


class GhostPingService:
    def __init__(self, ledger: MentionLedger, logger: LoggerService, *, enabled: bool = True) -> None:
        self.ledger = ledger
        self.logger = logger
        self.enabled = enabled

    def set_enabled(self, enabled: bool) -> bool:
        self.enabled = bool(enabled)
        self.logger.log("ghost_ping.toggled", enabled=self.enabled)
        return self.enabled

    def observe_created(self, message: discord.Message) -> bool:
        if message.guild is None or message.author.bot:
            return False
        if not self.enabled:
            return False
        user_ids = [user.id for user in message.mentions]
        role_ids = [role.id for role in message.role_mentions]
        everyone = bool(message.mention_everyone)
        if not user_ids and not role_ids and not everyone:
            return False
        self.ledger.record(
            message_id=message.id,
            guild_id=message.guild.id,
            author_id=message.author.id,
            mentioned_user_ids=user_ids,
            mentioned_role_ids=role_ids,
            mentions_everyone=everyone,
        )
        return True

    def observe_deleted(self, message_id: int, guild_id: int | None) -> GhostPingReport | None:
        if guild_id is None or not self.enabled:
            return None
        row = self.ledger.consume(message_id)
        if row is None or row.guild_id != int(guild_id):
            return None
        report = GhostPingReport(
            message_id=row.message_id,
            guild_id=row.guild_id,
            author_id=row.author_id,
            user_count=len(row.mentioned_user_ids),
            role_count=len(row.mentioned_role_ids),
            everyone=row.mentions_everyone,
        )
        self.logger.log(
            "ghost_ping.suspected",
            guild_id=report.guild_id,
            message_id=report.message_id,
            author_id=report.author_id,
        )
        return report
