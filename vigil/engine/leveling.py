"""
vigil.engine.leveling — Engagement Leveling Engine
===================================================

Counts messages sent in each guild's designated leveling channel and maps
the count onto a discrete ladder.

Ladder semantics: tier *n* (1-based) requires ``thresholds[n - 1]``
messages, inclusive.  The level for a count is found by walking the
ladder from the top down and taking the first tier whose requirement is
met.  A single message can cross several tiers (after an admin edits the
ladder, for example); only one :class:`LevelUp` is emitted, for the final
tier reached.

No Discord I/O, no DB I/O.  Dirty records are drained by the flush task,
the channel binding is written through by
:class:`~vigil.services.core_service.VigilCore`.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from vigil.constants import DEFAULT_LEVEL_THRESHOLDS, validate_ladder

logger = logging.getLogger(__name__)

MemberKey = tuple[int, int]  # (guild_id, member_id)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class LevelRecord:
    guild_id: int
    member_id: int
    level: int = 1
    message_count: int = 0


@dataclass(frozen=True, slots=True)
class LevelUp:
    """Emitted when a counted message raises a member's level."""

    guild_id: int
    channel_id: int
    member_id: int
    old_level: int
    new_level: int
    message_count: int


@dataclass(frozen=True, slots=True)
class LeaderboardPage:
    guild_id: int
    page: int
    total_pages: int
    total: int
    page_size: int
    entries: list[LevelRecord] = field(default_factory=list)

    @property
    def offset(self) -> int:
        """Rank of the first entry minus one."""
        return (self.page - 1) * self.page_size


class LevelLadder:
    """Monotonic step function from message count to level."""

    def __init__(self, thresholds: Sequence[int] = DEFAULT_LEVEL_THRESHOLDS) -> None:
        validate_ladder(thresholds)
        self.thresholds: tuple[int, ...] = tuple(thresholds)

    @property
    def max_level(self) -> int:
        return len(self.thresholds)

    def level_for(self, message_count: int) -> int:
        for index in range(len(self.thresholds) - 1, -1, -1):
            if self.thresholds[index] <= message_count:
                return index + 1
        return 1

    def next_threshold(self, level: int) -> int | None:
        """Messages required for ``level + 1``; ``None`` at the top tier."""
        if level >= self.max_level:
            return None
        return self.thresholds[level]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
class LevelingEngine:
    """Per-guild message counters + the guild → leveling channel binding."""

    def __init__(
        self,
        ladder: LevelLadder | None = None,
        *,
        records: Iterable[LevelRecord] = (),
        channels: Mapping[int, int] | None = None,
    ) -> None:
        self.ladder = ladder or LevelLadder()
        self._records: dict[MemberKey, LevelRecord] = {}
        self._channels: dict[int, int] = dict(channels or {})
        self._dirty: set[MemberKey] = set()
        for record in records:
            self._adopt(record)

    def _adopt(self, record: LevelRecord) -> None:
        """Load a persisted record, recomputing its level from the count."""
        key = (record.guild_id, record.member_id)
        count = max(record.message_count, 0)
        level = self.ladder.level_for(count)
        if level != record.level or count != record.message_count:
            logger.warning(
                "Corrected stored level for member %d in guild %d: "
                "level %d / %d msgs → level %d / %d msgs",
                record.member_id, record.guild_id,
                record.level, record.message_count, level, count,
            )
            self._dirty.add(key)
        self._records[key] = LevelRecord(record.guild_id, record.member_id, level, count)

    # -------------------------------------------------------------------
    # Channel binding
    # -------------------------------------------------------------------
    def level_channel(self, guild_id: int) -> int | None:
        return self._channels.get(guild_id)

    def bind_channel(self, guild_id: int, channel_id: int | None) -> int | None:
        """Set (or clear, with ``None``) the binding; return the previous one."""
        previous = self._channels.get(guild_id)
        if channel_id is None:
            self._channels.pop(guild_id, None)
        else:
            self._channels[guild_id] = channel_id
        return previous

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    # -------------------------------------------------------------------
    # Counting
    # -------------------------------------------------------------------
    def record_message(
        self, guild_id: int, channel_id: int, member_id: int
    ) -> LevelUp | None:
        """Count one message; return a :class:`LevelUp` if the level rose."""
        if self._channels.get(guild_id) != channel_id:
            return None

        key = (guild_id, member_id)
        record = self._records.get(key)
        if record is None:
            record = LevelRecord(guild_id, member_id)
            self._records[key] = record

        record.message_count += 1
        new_level = self.ladder.level_for(record.message_count)
        self._dirty.add(key)

        if new_level <= record.level:
            return None

        old_level = record.level
        record.level = new_level
        logger.info(
            "Member %d reached level %d in guild %d (%d msgs)",
            member_id, new_level, guild_id, record.message_count,
        )
        return LevelUp(
            guild_id=guild_id,
            channel_id=channel_id,
            member_id=member_id,
            old_level=old_level,
            new_level=new_level,
            message_count=record.message_count,
        )

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_level(self, guild_id: int, member_id: int) -> LevelRecord:
        record = self._records.get((guild_id, member_id))
        if record is None:
            return LevelRecord(guild_id, member_id)
        return LevelRecord(record.guild_id, record.member_id, record.level, record.message_count)

    def get_leaderboard(
        self, guild_id: int, page: int = 1, page_size: int = 10
    ) -> LeaderboardPage:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        ranked = sorted(
            (r for (g_id, _), r in self._records.items() if g_id == guild_id),
            key=lambda r: (-r.level, -r.message_count, r.member_id),
        )
        total = len(ranked)
        total_pages = max(math.ceil(total / page_size), 1)
        page = min(max(page, 1), total_pages)
        start = (page - 1) * page_size
        entries = [
            LevelRecord(r.guild_id, r.member_id, r.level, r.message_count)
            for r in ranked[start:start + page_size]
        ]
        return LeaderboardPage(
            guild_id=guild_id,
            page=page,
            total_pages=total_pages,
            total=total,
            page_size=page_size,
            entries=entries,
        )

    def __len__(self) -> int:
        return len(self._records)

    # -------------------------------------------------------------------
    # Persistence hand-off
    # -------------------------------------------------------------------
    @property
    def dirty(self) -> bool:
        return bool(self._dirty)

    def take_dirty(self) -> list[LevelRecord]:
        records = [
            LevelRecord(r.guild_id, r.member_id, r.level, r.message_count)
            for key in self._dirty
            if (r := self._records.get(key)) is not None
        ]
        self._dirty.clear()
        return records

    def restore_dirty(self, records: Iterable[LevelRecord]) -> None:
        for record in records:
            self._dirty.add((record.guild_id, record.member_id))
