"""
vigil.bot.cogs.activity — Gateway Activity Capture
===================================================

Turns raw gateway events into core events and submits them to the
ingestion queue:

- ``on_message``            → :class:`~vigil.engine.events.MemberMessage`
- ``on_voice_state_update`` → :class:`~vigil.engine.events.MemberVoiceActivity`
- ``on_member_join``        → :class:`~vigil.engine.events.MemberJoined`

Direct messages carry no guild and are ignored.  Bot accounts are
dropped by the ingestor.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from vigil.engine.events import MemberJoined, MemberMessage, MemberVoiceActivity

if TYPE_CHECKING:
    from vigil.bot.core import VigilBot

logger = logging.getLogger(__name__)


class Activity(commands.Cog, name="Activity"):
    """Feeds member activity into the Vigil core."""

    def __init__(self, bot: VigilBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None:
            return
        try:
            self.bot.core.ingestor.submit(MemberMessage(
                guild_id=message.guild.id,
                channel_id=message.channel.id,
                member_id=message.author.id,
                is_bot=message.author.bot,
            ))
        except Exception:
            logger.exception(
                "Error queuing message activity for %s", message.author.id,
                extra={"event_type": "message", "user_id": message.author.id},
            )

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        # Joining, leaving, moving and mute toggles all count as presence.
        try:
            self.bot.core.ingestor.submit(MemberVoiceActivity(
                guild_id=member.guild.id,
                member_id=member.id,
                is_bot=member.bot,
            ))
        except Exception:
            logger.exception(
                "Error queuing voice activity for %s", member.id,
                extra={"event_type": "voice", "user_id": member.id},
            )

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        try:
            self.bot.core.ingestor.submit(MemberJoined(
                guild_id=member.guild.id,
                member_id=member.id,
                is_bot=member.bot,
                account_created_at=member.created_at,
            ))
        except Exception:
            logger.exception(
                "Error queuing member_join for %s", member.id,
                extra={"event_type": "member_join", "user_id": member.id},
            )


async def setup(bot: VigilBot) -> None:
    await bot.add_cog(Activity(bot))
