"""
vigil.services.announcement_service — Best-Effort Announcements
================================================================

Owns channel resolution for the two things Vigil posts on its own:

* level-ups, posted in the guild's leveling channel,
* eviction summaries, posted in the first text channel whose name
  contains a log keyword (``log`` / ``로그`` by default) and where the
  bot may send messages.

Both are fire-and-forget.  A missing channel is silently skipped; a send
error is logged and never propagates back into the core.

Embed construction lives in :mod:`vigil.services.embeds`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

import discord

from vigil.engine.leveling import LevelUp
from vigil.services.embeds import build_eviction_embed, build_level_up_embed
from vigil.services.eviction_service import EvictionReport

if TYPE_CHECKING:
    from vigil.bot.core import VigilBot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Channel resolution
# ---------------------------------------------------------------------------
def resolve_log_channel(
    guild: discord.Guild, keywords: Iterable[str]
) -> discord.TextChannel | None:
    """First text channel named like a log channel that the bot can post in."""
    keywords = [k.lower() for k in keywords]
    me = guild.me
    for channel in guild.text_channels:
        name = channel.name.lower()
        if not any(k in name for k in keywords):
            continue
        if me is not None and not channel.permissions_for(me).send_messages:
            continue
        return channel
    return None


# ---------------------------------------------------------------------------
# Public API — wired into VigilCore by the bot
# ---------------------------------------------------------------------------
async def announce_level_up(bot: VigilBot, level_up: LevelUp) -> None:
    channel = bot.get_channel(level_up.channel_id)
    if not isinstance(channel, discord.abc.Messageable):
        return

    avatar_url = None
    guild = bot.get_guild(level_up.guild_id)
    member = guild.get_member(level_up.member_id) if guild else None
    if member is not None:
        avatar_url = member.display_avatar.url

    embed = build_level_up_embed(
        level_up,
        avatar_url=avatar_url,
        next_threshold=bot.core.leveling.ladder.next_threshold(level_up.new_level),
    )
    try:
        await channel.send(embed=embed)
    except discord.HTTPException:
        logger.exception(
            "Failed to announce level-up for member %d in channel %d",
            level_up.member_id, level_up.channel_id,
        )


async def announce_eviction(bot: VigilBot, report: EvictionReport) -> None:
    if not report.evicted:
        return
    guild = bot.get_guild(report.guild_id)
    if guild is None:
        return
    channel = resolve_log_channel(guild, bot.cfg.log_channel_keywords)
    if channel is None:
        logger.debug("No log channel in guild %d — eviction report not posted", guild.id)
        return

    try:
        await channel.send(
            embed=build_eviction_embed(report, bot.cfg.inactive_threshold_hours)
        )
    except discord.HTTPException:
        logger.exception(
            "Failed to post eviction report to #%s in guild %d", channel.name, guild.id,
        )
