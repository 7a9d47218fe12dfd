"""
vigil.bot.cogs.admin — Inactivity Admin Slash Commands
=======================================================

The ``/inactive`` command group:

- ``/inactive exempt <user>`` / ``/inactive unexempt <user>``
- ``/inactive exempt-role <role>`` / ``/inactive unexempt-role <role>``
- ``/inactive status`` — counts, threshold, schedule
- ``/inactive check`` — preview of who the next cycle would remove
- ``/inactive evict`` — run an eviction batch now
- ``/inactive help``

Every command requires the Kick Members permission.  Replies are
ephemeral; exemption changes are saved before the reply is sent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from vigil.services.embeds import build_check_message, build_help_embed, build_status_embed
from vigil.services.state_store import PersistenceError

if TYPE_CHECKING:
    from vigil.bot.core import VigilBot

logger = logging.getLogger(__name__)

SAVE_FAILED = "❌ The change could not be saved. Please try again later."


def can_kick():
    """Decorator that checks the invoking member may kick members."""
    async def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            return False
        return interaction.permissions.kick_members
    return app_commands.check(predicate)


@app_commands.guild_only()
@app_commands.default_permissions(kick_members=True)
class InactivityAdmin(commands.GroupCog, group_name="inactive"):
    """Manage inactive-member removal."""

    def __init__(self, bot: VigilBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # User exemptions
    # -------------------------------------------------------------------
    @app_commands.command(name="exempt", description="Never remove this user for inactivity.")
    @app_commands.describe(user="The user to exempt; members who left can be given by ID")
    @can_kick()
    async def exempt(self, interaction: discord.Interaction, user: discord.User) -> None:
        try:
            added = await self.bot.core.add_exempt_user(user.id)
        except PersistenceError:
            await interaction.response.send_message(SAVE_FAILED, ephemeral=True)
            return
        message = (
            f"✅ **{user.display_name}** added to the exemption list."
            if added else f"ℹ️ **{user.display_name}** is already exempt."
        )
        await interaction.response.send_message(message, ephemeral=True)

    @app_commands.command(name="unexempt", description="Remove a member's exemption.")
    @app_commands.describe(user="The user to remove from the exemption list")
    @can_kick()
    async def unexempt(self, interaction: discord.Interaction, user: discord.User) -> None:
        try:
            removed = await self.bot.core.remove_exempt_user(user.id)
        except PersistenceError:
            await interaction.response.send_message(SAVE_FAILED, ephemeral=True)
            return
        message = (
            f"✅ **{user.display_name}** removed from the exemption list."
            if removed else "❌ That user is not on the exemption list."
        )
        await interaction.response.send_message(message, ephemeral=True)

    # -------------------------------------------------------------------
    # Role exemptions
    # -------------------------------------------------------------------
    @app_commands.command(name="exempt-role", description="Never remove members holding this role.")
    @app_commands.describe(role="The role to exempt")
    @can_kick()
    async def exempt_role(self, interaction: discord.Interaction, role: discord.Role) -> None:
        guild = interaction.guild
        if guild is None or guild.get_role(role.id) is None:
            await interaction.response.send_message(
                "❌ That role could not be found in this server.", ephemeral=True,
            )
            return
        try:
            added = await self.bot.core.add_exempt_role(role.id)
        except PersistenceError:
            await interaction.response.send_message(SAVE_FAILED, ephemeral=True)
            return
        message = (
            f"✅ Role **{role.name}** added to the exemption list."
            if added else f"ℹ️ Role **{role.name}** is already exempt."
        )
        await interaction.response.send_message(message, ephemeral=True)

    @app_commands.command(name="unexempt-role", description="Remove a role's exemption.")
    @app_commands.describe(role="The role to remove from the exemption list")
    @can_kick()
    async def unexempt_role(self, interaction: discord.Interaction, role: discord.Role) -> None:
        try:
            removed = await self.bot.core.remove_exempt_role(role.id)
        except PersistenceError:
            await interaction.response.send_message(SAVE_FAILED, ephemeral=True)
            return
        message = (
            f"✅ Role **{role.name}** removed from the exemption list."
            if removed else "❌ That role is not on the exemption list."
        )
        await interaction.response.send_message(message, ephemeral=True)

    # -------------------------------------------------------------------
    # Information
    # -------------------------------------------------------------------
    @app_commands.command(name="status", description="Show inactivity tracking status.")
    @can_kick()
    async def status(self, interaction: discord.Interaction) -> None:
        guild = interaction.guild
        assert guild is not None  # guild_only
        await interaction.response.defer(ephemeral=True, thinking=True)

        snapshot = await self.bot.core.fetch_snapshot(guild.id)
        summary = self.bot.core.get_status(snapshot)
        embed = build_status_embed(
            summary, self.bot.cfg, guild.member_count or len(snapshot.members),
        )
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.command(name="check", description="List members who would be removed now.")
    @can_kick()
    async def check(self, interaction: discord.Interaction) -> None:
        guild = interaction.guild
        assert guild is not None
        await interaction.response.defer(ephemeral=True, thinking=True)

        scan = await self.bot.core.run_scan_now(guild.id)
        await interaction.followup.send(
            build_check_message(scan, self.bot.cfg.inactive_threshold_hours),
            ephemeral=True,
        )

    @app_commands.command(name="evict", description="Remove inactive members now.")
    @can_kick()
    async def evict(self, interaction: discord.Interaction) -> None:
        guild = interaction.guild
        assert guild is not None
        await interaction.response.defer(ephemeral=True, thinking=True)

        logger.info(
            "Manual eviction in guild %d requested by %s",
            guild.id, interaction.user.id,
        )
        report = await self.bot.core.run_eviction_now(guild.id)
        if report.skipped_reason:
            text = "⏸️ Eviction skipped: the member list is too old to act on safely."
        elif not report.total_checked:
            text = "✅ No inactive members to remove."
        else:
            text = f"\U0001f528 Removed **{len(report.evicted)}** inactive members."
            if report.failures:
                text += f"\n⚠️ {len(report.failures)} could not be removed."
        await interaction.followup.send(text, ephemeral=True)

    @app_commands.command(name="help", description="How the inactivity bot works.")
    @can_kick()
    async def help(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message(
            embed=build_help_embed(self.bot.cfg), ephemeral=True,
        )

    # -------------------------------------------------------------------
    # Error handler for missing permission
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await interaction.response.send_message(
                "🔒 You need the Kick Members permission to use this command.",
                ephemeral=True,
            )
        else:
            raise error


async def setup(bot: VigilBot) -> None:
    await bot.add_cog(InactivityAdmin(bot))
