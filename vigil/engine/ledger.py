"""
vigil.engine.ledger — Activity Ledger
======================================

In-memory, authoritative map of ``(guild_id, member_id) → last activity``.

Writes are constant-time dictionary updates.  Durability is handled
outside this class: every mutation marks the key dirty and the periodic
flush task (see :class:`~vigil.services.core_service.VigilCore`) drains
the dirty set through :meth:`take_dirty`.  If that write fails the keys
are handed back with :meth:`restore_dirty` and retried on the next flush.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta

from vigil.constants import utcnow

logger = logging.getLogger(__name__)

MemberKey = tuple[int, int]  # (guild_id, member_id)


class ActivityLedger:
    """Tracks when each member was last seen."""

    def __init__(
        self,
        records: Mapping[MemberKey, datetime] | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._clock = clock
        self._last_seen: dict[MemberKey, datetime] = dict(records or {})
        self._dirty: set[MemberKey] = set()
        self._removed: set[MemberKey] = set()

    def __len__(self) -> int:
        return len(self._last_seen)

    def __contains__(self, key: object) -> bool:
        return key in self._last_seen

    @property
    def dirty(self) -> bool:
        """True when memory holds changes the database has not seen yet."""
        return bool(self._dirty or self._removed)

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def record_activity(self, guild_id: int, member_id: int) -> datetime:
        """Stamp *member_id* as active right now and return the stored instant.

        The stored instant never moves backwards, so a clock that steps
        back (NTP adjustment) cannot make a member look less active.
        """
        key = (guild_id, member_id)
        now = self._clock()
        current = self._last_seen.get(key)
        if current is not None and current >= now:
            return current
        self._last_seen[key] = now
        self._dirty.add(key)
        self._removed.discard(key)
        return now

    def forget(self, guild_id: int, member_id: int) -> bool:
        """Drop a member's record (after a successful eviction)."""
        key = (guild_id, member_id)
        if self._last_seen.pop(key, None) is None:
            return False
        self._dirty.discard(key)
        self._removed.add(key)
        return True

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def last_active_at(self, guild_id: int, member_id: int) -> datetime | None:
        return self._last_seen.get((guild_id, member_id))

    def time_since_activity(
        self, guild_id: int, member_id: int, now: datetime | None = None
    ) -> timedelta | None:
        """How long the member has been silent; ``None`` if never observed."""
        last = self._last_seen.get((guild_id, member_id))
        if last is None:
            return None
        return (now or self._clock()) - last

    def count_inactive(
        self,
        threshold: timedelta,
        now: datetime | None = None,
        guild_id: int | None = None,
    ) -> int:
        """Count records older than *threshold*.

        Exemption-unaware — this is the cheap figure the status probe
        reports when no membership snapshot is at hand.
        """
        now = now or self._clock()
        return sum(
            1
            for (g_id, _), last in self._last_seen.items()
            if (guild_id is None or g_id == guild_id) and now - last > threshold
        )

    # -------------------------------------------------------------------
    # Persistence hand-off
    # -------------------------------------------------------------------
    def take_dirty(self) -> tuple[dict[MemberKey, datetime], set[MemberKey]]:
        """Return ``(upserts, deletions)`` accumulated since the last call.

        The dirty sets are cleared; call :meth:`restore_dirty` if the
        write that consumes them fails.
        """
        upserts = {key: self._last_seen[key] for key in self._dirty if key in self._last_seen}
        deletions = set(self._removed)
        self._dirty.clear()
        self._removed.clear()
        return upserts, deletions

    def restore_dirty(
        self, upserts: Iterable[MemberKey], deletions: Iterable[MemberKey]
    ) -> None:
        """Re-mark keys whose write failed.

        A key that was re-recorded or forgotten in the meantime keeps its
        newer state; only keys still matching are put back.
        """
        for key in upserts:
            if key in self._last_seen and key not in self._removed:
                self._dirty.add(key)
        for key in deletions:
            if key not in self._last_seen:
                self._removed.add(key)
