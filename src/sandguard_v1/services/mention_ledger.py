from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from sandguard_v1.config import MENTION_RETENTION_SEC

SWEEP_INTERVAL_SEC = 15


@dataclass(frozen=True)
class MentionRecord:
    message_id: int
    guild_id: int
    author_id: int
    mentioned_user_ids: frozenset[int]
    mentioned_role_ids: frozenset[int]
    mentions_everyone: bool
    created_at: float
    expires_at: float


class MentionLedger:
    """
    Short-lived map of message id -> mentions, used to correlate deletions.

    Each entry carries its own deadline fixed at insertion time; re-recording the
    same message overwrites the entry and restarts its window. Expired entries are
    invisible to `consume` right away and are dropped from memory by `sweep`.
    """

    def __init__(
        self,
        retention_sec: float = MENTION_RETENTION_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.retention_sec = float(retention_sec)
        self._clock = clock
        self._records: dict[int, MentionRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def record(
        self,
        message_id: int,
        guild_id: int,
        author_id: int,
        mentioned_user_ids: Iterable[int],
        mentioned_role_ids: Iterable[int],
        mentions_everyone: bool,
    ) -> MentionRecord:
        now = self._clock()
        row = MentionRecord(
            message_id=int(message_id),
            guild_id=int(guild_id),
            author_id=int(author_id),
            mentioned_user_ids=frozenset(int(uid) for uid in mentioned_user_ids),
            mentioned_role_ids=frozenset(int(rid) for rid in mentioned_role_ids),
            mentions_everyone=bool(mentions_everyone),
            created_at=now,
            expires_at=now + self.retention_sec,
        )
        self._records[row.message_id] = row
        return row

    def consume(self, message_id: int) -> MentionRecord | None:
        row = self._records.pop(int(message_id), None)
        if row is None:
            return None
        if row.expires_at <= self._clock():
            return None
        return row

    def sweep(self) -> int:
        now = self._clock()
        expired = [mid for mid, row in self._records.items() if row.expires_at <= now]
        for mid in expired:
            del self._records[mid]
        return len(expired)

    async def sweep_loop(self, interval_sec: float = SWEEP_INTERVAL_SEC) -> None:
        while True:
            await asyncio.sleep(interval_sec)
            self.sweep()
