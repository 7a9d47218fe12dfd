"""
vigil.constants — Shared Constants & Helpers
=============================================

Single source of truth for the default leveling ladder, presentation
constants and the epoch-millisecond conversion used by the persisted
activity table.  Import from here instead of duplicating in cogs,
services, and the status API.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Leveling ladder
# ---------------------------------------------------------------------------
# Tier n (1-based) requires DEFAULT_LEVEL_THRESHOLDS[n - 1] messages.
# Level 2 therefore covers 2–3 messages, level 3 covers 4–7, and so on.
DEFAULT_LEVEL_THRESHOLDS: tuple[int, ...] = (
    0, 2, 4, 8, 16, 32, 64, 128, 256, 512, 1024,
)


def validate_ladder(thresholds: Sequence[int]) -> None:
    """Raise :class:`ValueError` unless *thresholds* is a usable ladder.

    A ladder starts at 0 (everyone is at least level 1) and every tier
    requires strictly more messages than the one below it.
    """
    if not thresholds:
        raise ValueError("ladder must contain at least one tier")
    if thresholds[0] != 0:
        raise ValueError("the first tier must require 0 messages")
    for lower, upper in zip(thresholds, thresholds[1:]):
        if upper <= lower:
            raise ValueError(
                f"tiers must be strictly increasing ({lower} then {upper})"
            )


# ---------------------------------------------------------------------------
# Notification channel lookup
# ---------------------------------------------------------------------------
DEFAULT_LOG_CHANNEL_KEYWORDS: tuple[str, ...] = ("log", "로그")


# ---------------------------------------------------------------------------
# Presentation (used by bot embeds)
# ---------------------------------------------------------------------------
COLOR_STATUS = 0x00AE86
COLOR_HELP = 0x0099FF
COLOR_EVICTION = 0xFF6B6B
COLOR_LEVEL_UP = 0xF1C40F

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

# How many inactive members /inactive check lists before "... and N more"
CHECK_PREVIEW_LIMIT = 10


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    """Timezone-aware "now" — the default clock everywhere in Vigil."""
    return datetime.now(UTC)


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int | str) -> datetime:
    """Inverse of :func:`to_epoch_ms`.

    Accepts the decimal-string form as well, which is how the first
    generation of the bot wrote its ``user_activity.json``.
    """
    return datetime.fromtimestamp(int(value) / 1000, tz=UTC)
