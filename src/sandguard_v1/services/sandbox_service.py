from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import discord

from sandguard_v1.services.logger_service import LoggerService

PURGE_LIMIT = 100
BULK_DELETE_MAX_AGE_DAYS = 14
RAID_MESSAGE_COUNT = 25
RAID_MESSAGE_TEMPLATE = "[SIM] Raid message {index} — this is a harmless test message."
RAID_COMPLETE_MESSAGE = "Simulation complete. No real users pinged."


@dataclass(frozen=True)
class ResetResult:
    clone_id: int
    scanned: int
    deleted: int
    failed: int


class SandboxService:
    def __init__(self, logger: LoggerService) -> None:
        self.logger = logger

    async def reset_channel(self, channel: discord.TextChannel, *, limit: int = PURGE_LIMIT) -> ResetResult:
        position = channel.position
        clone = await channel.clone(reason="nuke_safe")
        await clone.edit(position=position)
        scanned, deleted = await self._purge_recent(channel, limit)
        result = ResetResult(clone_id=clone.id, scanned=scanned, deleted=deleted, failed=scanned - deleted)
        self.logger.log(
            "nuke_safe.done",
            channel_id=channel.id,
            clone_id=clone.id,
            scanned=scanned,
            deleted=deleted,
        )
        return result

    async def _purge_recent(self, channel: discord.TextChannel, limit: int) -> tuple[int, int]:
        try:
            history = [msg async for msg in channel.history(limit=limit, oldest_first=False)]
        except discord.HTTPException as exc:
            self.logger.log("nuke_safe.history_failed", channel_id=channel.id, error=str(exc)[:300])
            return 0, 0
        if not history:
            return 0, 0

        cutoff = datetime.now(tz=timezone.utc) - timedelta(days=BULK_DELETE_MAX_AGE_DAYS)
        bulk_batch: list[discord.Message] = []
        deleted = 0
        for msg in history:
            created_at = msg.created_at if msg.created_at.tzinfo else msg.created_at.replace(tzinfo=timezone.utc)
            if created_at > cutoff:
                bulk_batch.append(msg)
                continue
            deleted += await self._delete_one(channel, msg)
        deleted += await self._delete_bulk_batch(channel, bulk_batch)
        return len(history), deleted

    async def _delete_bulk_batch(self, channel: discord.TextChannel, batch: list[discord.Message]) -> int:
        if not batch:
            return 0
        if len(batch) == 1:
            return await self._delete_one(channel, batch[0])
        try:
            await channel.delete_messages(batch)
            return len(batch)
        except discord.HTTPException as exc:
            self.logger.log("nuke_safe.bulk_failed", channel_id=channel.id, size=len(batch), error=str(exc)[:300])
        deleted = 0
        for msg in batch:
            deleted += await self._delete_one(channel, msg)
        return deleted

    async def _delete_one(self, channel: discord.TextChannel, msg: discord.Message) -> int:
        try:
            await msg.delete()
            return 1
        except discord.HTTPException as exc:
            self.logger.log("nuke_safe.delete_failed", channel_id=channel.id, message_id=msg.id, error=str(exc)[:300])
            return 0

    async def simulate_raid(self, channel: discord.TextChannel, *, count: int = RAID_MESSAGE_COUNT) -> int:
        sent = 0
        for index in range(1, count + 1):
            await channel.send(RAID_MESSAGE_TEMPLATE.format(index=index))
            sent += 1
        await channel.send(RAID_COMPLETE_MESSAGE)
        sent += 1
        self.logger.log("raid_sim.done", channel_id=channel.id, sent=sent)
        return sent
