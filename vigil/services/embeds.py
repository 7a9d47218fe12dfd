"""
vigil.services.embeds — Discord embed builders
===============================================

All embed construction lives here so the announcement service and
cogs only need to supply data — no layout concerns.
"""

from __future__ import annotations

from collections.abc import Mapping

import discord

from vigil.config import VigilConfig
from vigil.constants import (
    CHECK_PREVIEW_LIMIT,
    COLOR_EVICTION,
    COLOR_HELP,
    COLOR_LEVEL_UP,
    COLOR_STATUS,
    RANK_BADGES,
)
from vigil.engine.leveling import LeaderboardPage, LevelRecord, LevelUp
from vigil.engine.scanner import ScanReport
from vigil.services.core_service import StatusSummary
from vigil.services.eviction_service import EvictionReport


def build_level_up_embed(
    level_up: LevelUp,
    avatar_url: str | None = None,
    next_threshold: int | None = None,
) -> discord.Embed:
    """Build a level-up celebration embed with @mention."""
    description = (
        f"<@{level_up.member_id}> reached **Level {level_up.new_level}**!\n"
        f"{level_up.message_count} messages in this channel."
    )
    if next_threshold is not None:
        description += f"\nNext level at {next_threshold} messages."
    embed = discord.Embed(
        title="⚡ Level Up!",
        description=description,
        color=COLOR_LEVEL_UP,
    )
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_level_embed(
    record: LevelRecord,
    display_name: str,
    avatar_url: str | None = None,
    next_threshold: int | None = None,
) -> discord.Embed:
    """Embed for ``/level``."""
    embed = discord.Embed(
        title=f"\U0001f4c8 {display_name}",
        color=COLOR_LEVEL_UP,
    )
    embed.add_field(name="Level", value=str(record.level), inline=True)
    embed.add_field(name="Messages", value=str(record.message_count), inline=True)
    if next_threshold is None:
        embed.add_field(name="Next level", value="Top tier reached", inline=True)
    else:
        remaining = max(next_threshold - record.message_count, 0)
        embed.add_field(
            name="Next level",
            value=f"{remaining} more ({next_threshold} total)",
            inline=True,
        )
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_leaderboard_embed(
    page: LeaderboardPage,
    names: Mapping[int, str],
    guild_name: str = "",
) -> discord.Embed:
    """Embed for ``/leaderboard``; *names* maps member id → display name."""
    lines: list[str] = []
    for position, record in enumerate(page.entries, start=page.offset + 1):
        badge = RANK_BADGES[position - 1] if position <= len(RANK_BADGES) else f"`#{position}`"
        name = names.get(record.member_id, f"<@{record.member_id}>")
        lines.append(
            f"{badge} **{name}** — Level {record.level} · {record.message_count} msgs"
        )

    embed = discord.Embed(
        title=f"\U0001f3c6 Leaderboard{f' — {guild_name}' if guild_name else ''}",
        description="\n".join(lines) or "No messages counted yet.",
        color=COLOR_LEVEL_UP,
    )
    embed.set_footer(text=f"Page {page.page}/{page.total_pages} · {page.total} members ranked")
    return embed


def build_status_embed(
    summary: StatusSummary,
    cfg: VigilConfig,
    member_count: int,
) -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f916 Inactivity Bot Status",
        color=COLOR_STATUS,
        timestamp=discord.utils.utcnow(),
    )
    embed.add_field(
        name="\U0001f4ca Server",
        value=(
            f"Members: {member_count}\n"
            f"Tracked: {summary.tracked_count}\n"
            f"Inactive: {summary.inactive_count}"
        ),
        inline=True,
    )
    embed.add_field(
        name="⚙️ Settings",
        value=(
            f"Threshold: {cfg.inactive_threshold_hours:g} hours\n"
            f"Check every: {cfg.check_interval_minutes:g} minutes\n"
            f"Auto-evict: {'on' if cfg.auto_evict else 'off'}"
        ),
        inline=True,
    )
    embed.add_field(
        name="\U0001f512 Exemptions",
        value=(
            f"Users: {summary.exempt_user_count}\n"
            f"Roles: {summary.exempt_role_count}"
        ),
        inline=True,
    )
    return embed


def build_check_message(scan: ScanReport, threshold_hours: float) -> str:
    """Plain-text preview of the members the next cycle would evict."""
    if not scan.inactive:
        return f"✅ No members have been inactive for more than {threshold_hours:g} hours."

    lines = [f"⚠️ **{len(scan.inactive)}** inactive members found:"]
    for entry in scan.inactive[:CHECK_PREVIEW_LIMIT]:
        lines.append(
            f"• {entry.member.display_name} — {entry.inactive_days:.1f} days inactive"
        )
    hidden = len(scan.inactive) - CHECK_PREVIEW_LIMIT
    if hidden > 0:
        lines.append(f"... and {hidden} more")
    if not scan.snapshot_complete:
        lines.append("_Member list is partial; some members may be missing._")
    return "\n".join(lines)


def build_eviction_embed(report: EvictionReport, threshold_hours: float) -> discord.Embed:
    """Summary posted to the log channel after an eviction batch."""
    embed = discord.Embed(
        title="\U0001f528 Inactive Members Removed",
        description=(
            f"{len(report.evicted)} members inactive for more than "
            f"{threshold_hours:g} hours were removed."
        ),
        color=COLOR_EVICTION,
        timestamp=discord.utils.utcnow(),
    )
    if report.evicted:
        names = ", ".join(entry.member.display_name for entry in report.evicted[:20])
        if len(report.evicted) > 20:
            names += f" … (+{len(report.evicted) - 20})"
        embed.add_field(name="Removed", value=names, inline=False)
    if report.failures:
        embed.add_field(
            name="Failed",
            value="\n".join(
                f"{f.entry.member.display_name}: {f.error}" for f in report.failures[:10]
            ),
            inline=False,
        )
    return embed


def build_help_embed(cfg: VigilConfig) -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f4d6 Inactivity Bot Help",
        description=(
            f"Removes members who have not been active for "
            f"{cfg.inactive_threshold_hours:g} hours."
        ),
        color=COLOR_HELP,
    )
    embed.add_field(
        name="\U0001f464 Users",
        value=(
            "`/inactive exempt <user>` — never remove this user\n"
            "`/inactive unexempt <user>` — remove the exemption"
        ),
        inline=False,
    )
    embed.add_field(
        name="\U0001f3ad Roles",
        value=(
            "`/inactive exempt-role <role>` — never remove holders of this role\n"
            "`/inactive unexempt-role <role>` — remove the exemption"
        ),
        inline=False,
    )
    embed.add_field(
        name="\U0001f4ca Information",
        value=(
            "`/inactive status` — bot status and counts\n"
            "`/inactive check` — list inactive members\n"
            "`/inactive evict` — remove inactive members now"
        ),
        inline=False,
    )
    embed.add_field(
        name="\U0001f4c8 Leveling",
        value=(
            "`/level [member]` · `/leaderboard [page]`\n"
            "`/set-level-channel <channel>` · `/clear-level-channel`"
        ),
        inline=False,
    )
    embed.set_footer(text="⚠️ Inactivity commands require the Kick Members permission.")
    return embed
