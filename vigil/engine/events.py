"""
vigil.engine.events — Gateway Event Envelopes
==============================================

Every Discord interaction that counts as "activity" is normalized into one
of these frozen dataclasses before it reaches the ingestion queue.  The
engine never sees a ``discord.Message`` or ``discord.Member``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

__all__ = [
    "ActivityEvent",
    "MemberJoined",
    "MemberMessage",
    "MemberVoiceActivity",
]


@dataclass(frozen=True, slots=True)
class MemberMessage:
    """A guild message.  Counts as activity and feeds the leveling engine."""

    guild_id: int
    channel_id: int
    member_id: int
    is_bot: bool = False


@dataclass(frozen=True, slots=True)
class MemberVoiceActivity:
    """Any voice-state change (join, leave, move, mute…)."""

    guild_id: int
    member_id: int
    is_bot: bool = False


@dataclass(frozen=True, slots=True)
class MemberJoined:
    """A member joined the guild."""

    guild_id: int
    member_id: int
    is_bot: bool = False
    account_created_at: datetime | None = None


ActivityEvent = Union[MemberMessage, MemberVoiceActivity, MemberJoined]
