"""
vigil.bot.cogs.levels — Leveling Slash Commands
================================================

- ``/level [member]`` — level and message count
- ``/leaderboard [page]`` — ranked by level, then message count
- ``/set-level-channel <channel>`` / ``/clear-level-channel`` — choose
  which channel counts toward levels (Manage Server)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from vigil.services.embeds import build_leaderboard_embed, build_level_embed
from vigil.services.state_store import PersistenceError

if TYPE_CHECKING:
    from vigil.bot.core import VigilBot


def can_manage_guild():
    async def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            return False
        return interaction.permissions.manage_guild
    return app_commands.check(predicate)


class Levels(commands.Cog, name="Levels"):
    """Message-count levels for the designated leveling channel."""

    def __init__(self, bot: VigilBot) -> None:
        self.bot = bot

    @app_commands.command(name="level", description="Show a member's level.")
    @app_commands.describe(member="Member to look up (defaults to you)")
    @app_commands.guild_only()
    async def level(
        self, interaction: discord.Interaction, member: discord.Member | None = None
    ) -> None:
        target = member or interaction.user
        record = self.bot.core.get_level(interaction.guild_id, target.id)
        ladder = self.bot.core.leveling.ladder
        embed = build_level_embed(
            record,
            target.display_name,
            avatar_url=target.display_avatar.url,
            next_threshold=ladder.next_threshold(record.level),
        )
        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="leaderboard", description="Top members by level.")
    @app_commands.describe(page="Page number (default 1)")
    @app_commands.guild_only()
    async def leaderboard(
        self, interaction: discord.Interaction, page: app_commands.Range[int, 1] = 1
    ) -> None:
        guild = interaction.guild
        board = self.bot.core.get_leaderboard(guild.id, page)
        names = {}
        for record in board.entries:
            found = guild.get_member(record.member_id)
            if found is not None:
                names[record.member_id] = found.display_name
        await interaction.response.send_message(
            embed=build_leaderboard_embed(board, names, guild.name),
        )

    @app_commands.command(
        name="set-level-channel",
        description="Count messages in this channel toward levels.",
    )
    @app_commands.describe(channel="The leveling channel")
    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @can_manage_guild()
    async def set_level_channel(
        self, interaction: discord.Interaction, channel: discord.TextChannel
    ) -> None:
        try:
            await self.bot.core.set_level_channel(interaction.guild_id, channel.id)
        except PersistenceError:
            await interaction.response.send_message(
                "❌ The leveling channel could not be saved.", ephemeral=True,
            )
            return
        await interaction.response.send_message(
            f"✅ Messages in {channel.mention} now count toward levels.", ephemeral=True,
        )

    @app_commands.command(
        name="clear-level-channel",
        description="Stop counting messages toward levels.",
    )
    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @can_manage_guild()
    async def clear_level_channel(self, interaction: discord.Interaction) -> None:
        try:
            cleared = await self.bot.core.clear_level_channel(interaction.guild_id)
        except PersistenceError:
            await interaction.response.send_message(
                "❌ The leveling channel could not be saved.", ephemeral=True,
            )
            return
        await interaction.response.send_message(
            "✅ Leveling channel cleared." if cleared else "ℹ️ No leveling channel was set.",
            ephemeral=True,
        )

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await interaction.response.send_message(
                "🔒 You need the Manage Server permission to use this command.",
                ephemeral=True,
            )
        else:
            raise error


async def setup(bot: VigilBot) -> None:
    await bot.add_cog(Levels(bot))
