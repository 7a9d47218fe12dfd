"""
vigil.bot.gateway — discord.py Adapters for the Core
=====================================================

Implements the two collaborator protocols the core depends on:

* :class:`~vigil.engine.membership.MembershipSource` — chunks the guild
  member list into a :class:`~vigil.engine.membership.MembershipSnapshot`.
  If chunking fails the last complete snapshot (or, failing that, the
  gateway member cache) is returned with ``complete=False``.
* :class:`~vigil.engine.membership.MemberRemover` — kicks through the
  REST API and turns every ``discord.HTTPException`` into a
  :class:`~vigil.engine.membership.RemovalError`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

import discord

from vigil.constants import utcnow
from vigil.engine.membership import MembershipSnapshot, MemberView, RemovalError

logger = logging.getLogger(__name__)


def member_view(member: discord.Member) -> MemberView:
    """Project a discord.py member onto the fields the core needs."""
    guild = member.guild
    return MemberView(
        member_id=member.id,
        display_name=member.display_name,
        role_ids=frozenset(role.id for role in member.roles),
        is_owner=guild is not None and guild.owner_id == member.id,
        is_admin=member.guild_permissions.administrator,
        is_bot=member.bot,
        account_created_at=member.created_at,
    )


class DiscordGateway:
    """Membership source + member remover backed by a connected client."""

    def __init__(
        self,
        client: discord.Client,
        *,
        chunk_timeout: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self.chunk_timeout = chunk_timeout
        self._clock = clock
        self._last_complete: dict[int, MembershipSnapshot] = {}

    # -------------------------------------------------------------------
    # MembershipSource
    # -------------------------------------------------------------------
    async def fetch_snapshot(self, guild_id: int) -> MembershipSnapshot:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            logger.warning("Guild %d is not in the cache — empty partial snapshot", guild_id)
            return self._fallback(guild_id, None)

        try:
            members = await asyncio.wait_for(guild.chunk(cache=True), self.chunk_timeout)
        except (discord.HTTPException, discord.ClientException, asyncio.TimeoutError) as exc:
            logger.warning("Member fetch failed for guild %d: %s", guild_id, exc)
            return self._fallback(guild_id, guild)

        snapshot = MembershipSnapshot(
            guild_id=guild_id,
            members=tuple(member_view(m) for m in members),
            captured_at=self._clock(),
            complete=True,
        )
        self._last_complete[guild_id] = snapshot
        return snapshot

    def _fallback(self, guild_id: int, guild: discord.Guild | None) -> MembershipSnapshot:
        last = self._last_complete.get(guild_id)
        if last is not None:
            return MembershipSnapshot(
                guild_id=guild_id,
                members=last.members,
                captured_at=last.captured_at,
                complete=False,
            )
        cached = tuple(member_view(m) for m in guild.members) if guild is not None else ()
        return MembershipSnapshot(
            guild_id=guild_id,
            members=cached,
            captured_at=self._clock(),
            complete=False,
        )

    # -------------------------------------------------------------------
    # MemberRemover
    # -------------------------------------------------------------------
    async def remove_member(self, guild_id: int, member_id: int, reason: str) -> None:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            raise RemovalError(f"guild {guild_id} is not available")
        try:
            await guild.kick(discord.Object(id=member_id), reason=reason)
        except discord.Forbidden as exc:
            raise RemovalError(f"missing permission: {exc.text or exc}") from exc
        except discord.HTTPException as exc:
            raise RemovalError(f"HTTP {exc.status}: {exc.text or exc}") from exc
