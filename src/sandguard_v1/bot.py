from __future__ import annotations

import asyncio
from datetime import timezone

import discord
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from discord import app_commands
from discord.ext import commands

from sandguard_v1.config import Settings
from sandguard_v1.services.access_service import AccessService
from sandguard_v1.services.broadcast_service import BroadcastService, broadcast_text
from sandguard_v1.services.ghost_ping_service import GhostPingService
from sandguard_v1.services.logger_service import LoggerService
from sandguard_v1.services.mention_ledger import MentionLedger
from sandguard_v1.services.sandbox_service import RAID_MESSAGE_COUNT, PURGE_LIMIT, SandboxService
from sandguard_v1.utils.discord_utils import resolve_text_channel

PRESENCE_TEXT = "Safe testing only 🛡️"


class SandguardBot(commands.Bot):
    def __init__(self, settings: Settings, *, scheduler: AsyncIOScheduler | None = None) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True
        intents.message_content = True
        super().__init__(command_prefix=commands.when_mentioned, intents=intents, help_command=None)
        self.settings = settings
        self.logger = LoggerService()
        self.access = AccessService(settings)
        self.ledger = MentionLedger(retention_sec=settings.mention_retention_sec)
        self.ghost_pings = GhostPingService(self.ledger, self.logger)
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.broadcasts = BroadcastService(self.scheduler, self.logger)
        self.sandbox = SandboxService(self.logger)
        self._sweep_task: asyncio.Task | None = None
        self._ready_once = False
        self._commands_registered = False

    async def setup_hook(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
        self._register_commands()
        self.tree.error(self._on_app_command_error)

    def _register_commands(self) -> None:
        if self._commands_registered:
            return
        self._commands_registered = True
        guild = discord.Object(id=self.settings.allowlist_guild_id)

        @self.tree.command(
            name="nuke_safe",
            description="Clone sandbox channel and clear recent messages (safe).",
            guild=guild,
        )
        @app_commands.default_permissions(manage_channels=True)
        async def nuke_safe(interaction: discord.Interaction) -> None:
            await self.handle_nuke_safe(interaction)

        @self.tree.command(
            name="raid_sim",
            description="Simulate raid by generating dummy messages into the log channel (safe).",
            guild=guild,
        )
        async def raid_sim(interaction: discord.Interaction) -> None:
            await self.handle_raid_sim(interaction)

        @self.tree.command(
            name="auto_ping",
            description="Start or stop scheduled pings to an opt-in role in the sandbox channel.",
            guild=guild,
        )
        @app_commands.describe(
            action="start or stop",
            cron=f"Cron expr, evaluated in UTC (default: {self.settings.default_cron})",
        )
        @app_commands.choices(
            action=[
                app_commands.Choice(name="start", value="start"),
                app_commands.Choice(name="stop", value="stop"),
            ]
        )
        async def auto_ping(
            interaction: discord.Interaction,
            action: app_commands.Choice[str],
            cron: str | None = None,
        ) -> None:
            await self.handle_auto_ping(interaction, action.value, cron)

        @self.tree.command(
            name="ghost_ping_detector",
            description="Enable or disable ghost-ping detection logging.",
            guild=guild,
        )
        @app_commands.describe(state="on or off")
        @app_commands.choices(
            state=[
                app_commands.Choice(name="on", value="on"),
                app_commands.Choice(name="off", value="off"),
            ]
        )
        async def ghost_ping_detector(interaction: discord.Interaction, state: app_commands.Choice[str]) -> None:
            await self.handle_ghost_ping_detector(interaction, state.value)

    async def _reject_if_unauthorized(self, interaction: discord.Interaction) -> bool:
        reason = self.access.rejection(interaction.guild_id, interaction.user.id)
        if reason is None:
            return False
        self.logger.log(
            "command.rejected",
            user_id=interaction.user.id,
            guild_id=interaction.guild_id,
            reason=reason,
        )
        await self._send_interaction_message(interaction, reason)
        return True

    async def handle_nuke_safe(self, interaction: discord.Interaction) -> None:
        if await self._reject_if_unauthorized(interaction):
            return
        channel = resolve_text_channel(interaction.guild, self.settings.sandbox_channel_id)
        if channel is None:
            await self._send_interaction_message(interaction, "Sandbox channel not found or not text.")
            return
        await self._send_interaction_message(interaction, f"Cloning and clearing **#{channel.name}**...")
        result = await self.sandbox.reset_channel(channel, limit=PURGE_LIMIT)
        await self._send_interaction_message(
            interaction,
            f"Done. Clone created: <#{result.clone_id}>. Last {PURGE_LIMIT} messages cleared in sandbox.",
        )

    async def handle_raid_sim(self, interaction: discord.Interaction) -> None:
        if await self._reject_if_unauthorized(interaction):
            return
        channel = resolve_text_channel(interaction.guild, self.settings.log_channel_id)
        if channel is None:
            await self._send_interaction_message(interaction, "Log channel not found.")
            return
        await self._send_interaction_message(
            interaction,
            f"Generating {RAID_MESSAGE_COUNT} dummy “raid” messages in log channel...",
        )
        await self.sandbox.simulate_raid(channel)

    async def handle_auto_ping(self, interaction: discord.Interaction, action: str, cron: str | None = None) -> None:
        if await self._reject_if_unauthorized(interaction):
            return
        channel = resolve_text_channel(interaction.guild, self.settings.sandbox_channel_id)
        if channel is None:
            await self._send_interaction_message(interaction, "Sandbox channel not found.")
            return
        if action != "start":
            self.broadcasts.stop()
            await self._send_interaction_message(interaction, "Auto-ping stopped.")
            return

        cron_expr = (cron or "").strip() or self.settings.default_cron
        content = broadcast_text(self.settings.optin_role_id)

        async def send() -> None:
            await channel.send(content, allowed_mentions=discord.AllowedMentions(roles=True))

        try:
            self.broadcasts.start(cron_expr, send)
        except ValueError as exc:
            self.logger.log("auto_ping.invalid_cron", cron=cron_expr, error=str(exc)[:300])
            await self._send_interaction_message(interaction, f"Invalid cron expression `{cron_expr}`: {exc}")
            return
        await self._send_interaction_message(interaction, f"Auto-ping started with cron `{cron_expr}`.")

    async def handle_ghost_ping_detector(self, interaction: discord.Interaction, state: str) -> None:
        if await self._reject_if_unauthorized(interaction):
            return
        enabled = self.ghost_pings.set_enabled(state == "on")
        label = "ENABLED" if enabled else "DISABLED"
        await self._send_interaction_message(interaction, f"Ghost-ping detector **{label}**.")

    async def on_ready(self) -> None:
        if self._ready_once:
            return
        self._ready_once = True
        self.logger.log("bot.ready", user_id=self.user.id if self.user else None, guilds=len(self.guilds))
        guild = discord.Object(id=self.settings.allowlist_guild_id)
        try:
            synced = await self.tree.sync(guild=guild)
            self.logger.log("commands.synced", guild_id=guild.id, count=len(synced))
        except discord.HTTPException as exc:
            self.logger.log("commands.sync_failed", guild_id=guild.id, error=str(exc)[:300])
        await self.change_presence(activity=discord.Game(name=PRESENCE_TEXT))
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self.ledger.sweep_loop(), name="mention-ledger-sweep")
        print(f"Logged in as {self.user} ({self.user.id if self.user else '?'})")

    async def on_message(self, message: discord.Message) -> None:
        self.ghost_pings.observe_created(message)

    async def on_raw_message_delete(self, payload: discord.RawMessageDeleteEvent) -> None:
        report = self.ghost_pings.observe_deleted(payload.message_id, payload.guild_id)
        if report is None:
            return
        guild = self.get_guild(report.guild_id)
        channel = resolve_text_channel(guild, self.settings.log_channel_id)
        if channel is None:
            self.logger.log("ghost_ping.no_log_channel", guild_id=report.guild_id)
            return
        try:
            await channel.send(report.render(), allowed_mentions=discord.AllowedMentions.none())
        except discord.HTTPException as exc:
            self.logger.log("ghost_ping.report_failed", guild_id=report.guild_id, error=str(exc)[:300])

    async def _on_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        original = getattr(error, "original", error)
        command_name = interaction.command.name if interaction.command else "unknown"
        self.logger.log("command.error", command=command_name, error=str(original)[:300])
        try:
            await self._send_interaction_message(interaction, f"Command error: {original}")
        except discord.HTTPException:
            return

    async def _send_interaction_message(
        self,
        interaction: discord.Interaction,
        content: str,
        *,
        ephemeral: bool = True,
    ) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(content=content, ephemeral=ephemeral)
            return
        await interaction.response.send_message(content=content, ephemeral=ephemeral)

    async def close(self) -> None:
        if self._sweep_task is not None and not self._sweep_task.done():
            self._sweep_task.cancel()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        await super().close()


def main() -> None:
    settings = Settings.load()
    bot = SandguardBot(settings)
    bot.run(settings.discord_token)
