"""
vigil.engine.membership — Membership Snapshot Types
====================================================

The scanner never walks ``guild.members`` itself.  It is handed a
:class:`MembershipSnapshot` pulled from a :class:`MembershipSource`, so the
behaviour under a stale or partial member list is explicit:

* ``complete`` is ``False`` when the full member fetch failed and the
  source fell back to a cached view.
* ``captured_at`` lets the caller enforce a staleness bound before doing
  anything destructive with the snapshot.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol


@dataclass(frozen=True, slots=True)
class MemberView:
    """Everything the core needs to know about one guild member."""

    member_id: int
    display_name: str
    role_ids: frozenset[int] = frozenset()
    is_owner: bool = False
    is_admin: bool = False
    is_bot: bool = False
    account_created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class MembershipSnapshot:
    """Point-in-time member list for one guild."""

    guild_id: int
    members: Sequence[MemberView] = field(default_factory=tuple)
    captured_at: datetime | None = None
    complete: bool = True

    def age(self, now: datetime) -> timedelta:
        if self.captured_at is None:
            return timedelta(0)
        return now - self.captured_at

    def is_stale(self, now: datetime, max_age: timedelta) -> bool:
        return self.age(now) > max_age


class MembershipSource(Protocol):
    """Pull-based view of guild membership (implemented over discord.py)."""

    async def fetch_snapshot(self, guild_id: int) -> MembershipSnapshot: ...


class MemberRemover(Protocol):
    """Removes a member from a guild; raises on failure."""

    async def remove_member(self, guild_id: int, member_id: int, reason: str) -> None: ...


class RemovalError(Exception):
    """A member could not be removed (missing permission, HTTP error…)."""
