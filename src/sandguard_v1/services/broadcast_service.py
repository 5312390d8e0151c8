from __future__ import annotations

from datetime import timezone
from typing import Awaitable, Callable

import discord
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from sandguard_v1.services.logger_service import LoggerService

AUTO_PING_JOB_ID = "auto-ping"


def broadcast_text(role_id: int) -> str:
    return f"<@&{role_id}> scheduled check-in (safe auto-ping)."


class BroadcastService:
    """Owns the single recurring auto-ping job."""

    def __init__(self, scheduler: AsyncIOScheduler, logger: LoggerService) -> None:
        self.scheduler = scheduler
        self.logger = logger
        self._cron_expr: str | None = None

    @property
    def running(self) -> bool:
        return self.scheduler.get_job(AUTO_PING_JOB_ID) is not None

    @property
    def cron_expr(self) -> str | None:
        return self._cron_expr if self.running else None

    def start(self, cron_expr: str, send: Callable[[], Awaitable[object]]) -> None:
        # Raises ValueError before touching the current job.
        trigger = CronTrigger.from_crontab(cron_expr, timezone=timezone.utc)
        self.stop()

        async def fire() -> None:
            try:
                await send()
            except discord.HTTPException as exc:
                self.logger.log("auto_ping.send_failed", cron=cron_expr, error=str(exc)[:300])

        self.scheduler.add_job(
            fire,
            trigger=trigger,
            id=AUTO_PING_JOB_ID,
            name="auto-ping",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._cron_expr = cron_expr
        self.logger.log("auto_ping.started", cron=cron_expr)

    def stop(self) -> bool:
        if not self.running:
            self._cron_expr = None
            return False
        self.scheduler.remove_job(AUTO_PING_JOB_ID)
        self.logger.log("auto_ping.stopped", cron=self._cron_expr)
        self._cron_expr = None
        return True
