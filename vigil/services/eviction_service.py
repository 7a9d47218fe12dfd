"""
vigil.services.eviction_service — Rate-Limited Eviction Executor
=================================================================

Applies the removal action to the output of one scan.

* **Sequential** — one removal at a time, in scan order.
* **Rate-limited** — a fixed delay (``eviction_delay_seconds``, default
  1 s) separates successive removal attempts so the bot stays inside
  Discord's abuse-prevention limits.
* **Failure-isolated** — a member that cannot be removed is recorded in
  ``failures`` and the batch carries on.

The executor works from the already-computed scan.  An admin who exempts
someone mid-batch affects the next cycle, not this one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from vigil.engine.ledger import ActivityLedger
from vigil.engine.membership import MemberRemover
from vigil.engine.scanner import InactiveMember

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EvictionFailure:
    entry: InactiveMember
    error: str


@dataclass
class EvictionReport:
    """Outcome of one eviction batch."""

    guild_id: int
    evicted: list[InactiveMember] = field(default_factory=list)
    failures: list[EvictionFailure] = field(default_factory=list)
    skipped_reason: str | None = None

    @property
    def total_checked(self) -> int:
        return len(self.evicted) + len(self.failures)


class EvictionExecutor:
    """Removes inactive members one by one."""

    def __init__(
        self,
        ledger: ActivityLedger,
        remover: MemberRemover,
        *,
        delay_seconds: float = 1.0,
        reason: str = "Inactive member",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.ledger = ledger
        self.remover = remover
        self.delay_seconds = delay_seconds
        self.reason = reason
        self._sleep = sleep

    async def evict(
        self, guild_id: int, inactive: Sequence[InactiveMember]
    ) -> EvictionReport:
        report = EvictionReport(guild_id=guild_id)

        for index, entry in enumerate(inactive):
            if index and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)

            member = entry.member
            try:
                await self.remover.remove_member(guild_id, member.member_id, self.reason)
            except Exception as exc:
                report.failures.append(EvictionFailure(entry=entry, error=str(exc) or type(exc).__name__))
                logger.warning(
                    "Eviction failed — %s (ID: %d) in guild %d: %s",
                    member.display_name, member.member_id, guild_id, exc,
                )
                continue

            self.ledger.forget(guild_id, member.member_id)
            report.evicted.append(entry)
            logger.info(
                "Evicted %s (ID: %d) from guild %d after %.1f days of inactivity",
                member.display_name, member.member_id, guild_id, entry.inactive_days,
            )

        if report.total_checked:
            logger.info(
                "Eviction batch for guild %d: %d evicted, %d failed",
                guild_id, len(report.evicted), len(report.failures),
            )
        return report
