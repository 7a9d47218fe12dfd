"""
vigil.engine.scanner — Inactivity Scanner
==========================================

One pass over a guild's membership snapshot that classifies each member
as exempt, inactive, active, or "never tracked".

Pure calculation apart from one deliberate side effect: a member with no
activity record whose account is older than the threshold is *backfilled*
with "now".  Members who were already in the guild before tracking began
are treated as freshly active instead of being kicked on the first cycle.
The backfill is idempotent — the next scan finds a record and skips it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from vigil.constants import utcnow
from vigil.engine.exemptions import ExemptionRegistry
from vigil.engine.ledger import ActivityLedger
from vigil.engine.membership import MembershipSnapshot, MemberView

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InactiveMember:
    """A member past the threshold, with how long they have been silent."""

    member: MemberView
    last_active_at: datetime
    inactive_for: timedelta

    @property
    def inactive_days(self) -> float:
        return self.inactive_for / timedelta(days=1)


@dataclass
class ScanReport:
    """Result of one scan over one guild."""

    guild_id: int
    scanned_at: datetime
    inactive: list[InactiveMember] = field(default_factory=list)
    checked: int = 0
    exempt: int = 0
    backfilled: int = 0
    snapshot_complete: bool = True

    @property
    def inactive_ids(self) -> list[int]:
        return [entry.member.member_id for entry in self.inactive]


class InactivityScanner:
    """Classifies members using the ledger and the exemption registry."""

    def __init__(
        self,
        ledger: ActivityLedger,
        registry: ExemptionRegistry,
        threshold: timedelta,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ledger = ledger
        self.registry = registry
        self.threshold = threshold
        self._clock = clock

    def scan(
        self, snapshot: MembershipSnapshot, now: datetime | None = None
    ) -> ScanReport:
        """Return the inactive members of *snapshot*, in snapshot order."""
        now = now or self._clock()
        guild_id = snapshot.guild_id
        report = ScanReport(
            guild_id=guild_id,
            scanned_at=now,
            snapshot_complete=snapshot.complete,
        )
        if not snapshot.complete:
            logger.warning(
                "Scanning guild %d on a partial member snapshot (%d members)",
                guild_id, len(snapshot.members),
            )

        for member in snapshot.members:
            if member.is_bot:
                continue
            report.checked += 1

            if self.registry.is_exempt(member):
                report.exempt += 1
                continue

            last = self.ledger.last_active_at(guild_id, member.member_id)
            if last is None:
                if self._account_older_than_threshold(member, now):
                    self.ledger.record_activity(guild_id, member.member_id)
                    report.backfilled += 1
                continue

            silent_for = now - last
            if silent_for > self.threshold:
                report.inactive.append(InactiveMember(
                    member=member,
                    last_active_at=last,
                    inactive_for=silent_for,
                ))

        if report.backfilled:
            logger.info(
                "Backfilled %d untracked members in guild %d",
                report.backfilled, guild_id,
            )
        logger.debug(
            "Scan guild %d: checked=%d exempt=%d inactive=%d",
            guild_id, report.checked, report.exempt, len(report.inactive),
        )
        return report

    def _account_older_than_threshold(self, member: MemberView, now: datetime) -> bool:
        # Unknown creation date: treat as old so the member gets a record.
        if member.account_created_at is None:
            return True
        return now - member.account_created_at > self.threshold
