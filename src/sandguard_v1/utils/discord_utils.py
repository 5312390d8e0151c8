from __future__ import annotations

import discord


def resolve_text_channel(guild: discord.Guild | None, channel_id: int) -> discord.TextChannel | None:
    """
    Look up a configured channel in the guild cache.

    Returns None for unset ids, unknown channels, and anything that is not a plain
    text channel (threads, voice, forums).
    """

    if guild is None or not channel_id:
        return None
    channel = guild.get_channel(int(channel_id))
    if isinstance(channel, discord.TextChannel):
        return channel
    return None
