"""
vigil.services.core_service — VigilCore, the Engine Context Object
===================================================================

**Why this file exists:**
The ledger, the exemption registry, the leveling engine and their
durable copies form one unit of state.  :class:`VigilCore` owns that unit
and is the only thing the bot cogs, the periodic tasks and the status API
talk to.  Nothing is a module-level singleton, so tests can build as many
cores as they like side by side.

Durability model:

* Activity and level counters are marked dirty in memory and written by
  :meth:`VigilCore.flush`, which the tasks cog calls every
  ``flush_interval_seconds``.  Worst-case loss on a crash is one interval.
* Exemption changes and the leveling-channel binding are written through
  before the call returns.  If the write fails the in-memory change is
  rolled back and :class:`~vigil.services.state_store.PersistenceError`
  propagates to the command layer.
* Every eviction batch and :meth:`VigilCore.shutdown` end with a flush.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import asdict, dataclass
from datetime import datetime

from vigil.config import VigilConfig
from vigil.constants import utcnow
from vigil.database.engine import run_db
from vigil.engine.exemptions import ExemptionRegistry
from vigil.engine.ledger import ActivityLedger
from vigil.engine.leveling import LeaderboardPage, LevelingEngine, LevelLadder, LevelRecord
from vigil.engine.membership import MemberRemover, MembershipSnapshot, MembershipSource
from vigil.engine.scanner import InactivityScanner, ScanReport
from vigil.services.eviction_service import EvictionExecutor, EvictionReport
from vigil.services.ingestion_service import EventIngestor, LevelUpCallback
from vigil.services.state_store import LoadedState, PersistenceError, StateStore

logger = logging.getLogger(__name__)

EvictionNotifier = Callable[[EvictionReport], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class StatusSummary:
    tracked_count: int
    exempt_user_count: int
    exempt_role_count: int
    inactive_count: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class VigilCore:
    """Owns every piece of mutable engine state for one bot process."""

    def __init__(
        self,
        cfg: VigilConfig,
        store: StateStore,
        *,
        membership: MembershipSource,
        remover: MemberRemover,
        state: LoadedState | None = None,
        on_level_up: LevelUpCallback | None = None,
        eviction_notifier: EvictionNotifier | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        state = state or LoadedState()
        self.cfg = cfg
        self.store = store
        self.membership = membership
        self.eviction_notifier = eviction_notifier
        self._clock = clock

        self.ledger = ActivityLedger(state.activity, clock=clock)
        self.registry = ExemptionRegistry(state.exempt_users, state.exempt_roles)
        self.leveling = LevelingEngine(
            LevelLadder(cfg.level_thresholds),
            records=state.levels,
            channels=state.level_channels,
        )
        self.scanner = InactivityScanner(
            self.ledger, self.registry, cfg.inactive_threshold, clock=clock,
        )
        self.executor = EvictionExecutor(
            self.ledger,
            remover,
            delay_seconds=cfg.eviction_delay_seconds,
            reason=cfg.kick_reason,
            sleep=sleep,
        )
        self.ingestor = EventIngestor(self.ledger, self.leveling, on_level_up=on_level_up)

        self.started_at: datetime = clock()
        self.ready = False
        self._write_lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()
        self._guild_locks: dict[int, asyncio.Lock] = {}
        self._background: set[asyncio.Task] = set()

    @classmethod
    def load(cls, cfg: VigilConfig, store: StateStore, **kwargs) -> VigilCore:
        """Build a core from whatever the database currently holds."""
        return cls(cfg, store, state=store.load_all(), **kwargs)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def start(self) -> None:
        self.ingestor.start(asyncio.get_running_loop())
        self.ready = True
        logger.info(
            "Vigil core ready — %d tracked members, threshold %s",
            len(self.ledger), self.cfg.inactive_threshold,
        )

    async def shutdown(self) -> None:
        """Apply queued events and write everything still dirty."""
        self.ready = False
        await self.ingestor.stop()
        written = await self.flush()
        logger.info("Vigil core stopped — final flush wrote %d rows", written)

    async def flush(self) -> int:
        """Write dirty activity and level rows; return rows written.

        A failed write is logged and its rows re-marked dirty, so they go
        out with the next flush.
        """
        async with self._flush_lock:
            upserts, deletions = self.ledger.take_dirty()
            levels = self.leveling.take_dirty()
            written = 0

            if upserts or deletions:
                try:
                    written += await run_db(self.store.save_activity, upserts, deletions)
                except PersistenceError:
                    logger.exception("Activity flush failed — will retry next interval")
                    self.ledger.restore_dirty(upserts, deletions)

            if levels:
                try:
                    written += await run_db(self.store.save_levels, levels)
                except PersistenceError:
                    logger.exception("Level flush failed — will retry next interval")
                    self.leveling.restore_dirty(levels)

        if written:
            logger.debug("Flushed %d rows", written)
        return written

    # -------------------------------------------------------------------
    # Exemptions (write-through)
    # -------------------------------------------------------------------
    async def add_exempt_user(self, user_id: int) -> bool:
        return await self._change_exemption("user", user_id, True)

    async def remove_exempt_user(self, user_id: int) -> bool:
        return await self._change_exemption("user", user_id, False)

    async def add_exempt_role(self, role_id: int) -> bool:
        return await self._change_exemption("role", role_id, True)

    async def remove_exempt_role(self, role_id: int) -> bool:
        return await self._change_exemption("role", role_id, False)

    async def _change_exemption(self, kind: str, target_id: int, exempt: bool) -> bool:
        if kind == "user":
            apply, undo = (
                (self.registry.add_user, self.registry.remove_user) if exempt
                else (self.registry.remove_user, self.registry.add_user)
            )
            persist = self.store.set_exempt_user
        else:
            apply, undo = (
                (self.registry.add_role, self.registry.remove_role) if exempt
                else (self.registry.remove_role, self.registry.add_role)
            )
            persist = self.store.set_exempt_role

        async with self._write_lock:
            if not apply(target_id):
                return False
            try:
                await run_db(persist, target_id, exempt)
            except PersistenceError:
                undo(target_id)
                logger.exception("Could not persist exemption change for %s %d", kind, target_id)
                raise

        logger.info(
            "Exempt %s %s: %d", kind, "added" if exempt else "removed", target_id,
        )
        return True

    # -------------------------------------------------------------------
    # Scanning & eviction
    # -------------------------------------------------------------------
    async def fetch_snapshot(self, guild_id: int) -> MembershipSnapshot:
        try:
            return await self.membership.fetch_snapshot(guild_id)
        except Exception:
            logger.exception("Membership snapshot unavailable for guild %d", guild_id)
            return MembershipSnapshot(
                guild_id=guild_id, members=(), captured_at=self._clock(), complete=False,
            )

    async def run_scan_now(self, guild_id: int) -> ScanReport:
        snapshot = await self.fetch_snapshot(guild_id)
        return self.scanner.scan(snapshot)

    async def run_eviction_now(self, guild_id: int) -> EvictionReport:
        """Scan *guild_id* and evict every inactive member found."""
        lock = self._guild_locks.setdefault(guild_id, asyncio.Lock())
        async with lock:
            try:
                snapshot = await self.fetch_snapshot(guild_id)
                now = self._clock()
                scan = self.scanner.scan(snapshot, now)

                if snapshot.is_stale(now, self.cfg.snapshot_max_age):
                    logger.warning(
                        "Skipping eviction in guild %d — member snapshot is %s old",
                        guild_id, snapshot.age(now),
                    )
                    return EvictionReport(guild_id=guild_id, skipped_reason="stale_snapshot")

                report = await self.executor.evict(guild_id, scan.inactive)
            finally:
                await self.flush()

        if report.total_checked and self.eviction_notifier is not None:
            self._spawn(self._notify_eviction(report))
        return report

    async def run_cycle(self, guild_ids: Iterable[int]) -> dict[int, EvictionReport | ScanReport]:
        """One periodic pass over every guild; a failing guild is skipped."""
        logger.info("Periodic inactivity check started")
        results: dict[int, EvictionReport | ScanReport] = {}
        for guild_id in guild_ids:
            try:
                if self.cfg.auto_evict:
                    results[guild_id] = await self.run_eviction_now(guild_id)
                else:
                    results[guild_id] = await self.run_scan_now(guild_id)
            except Exception:
                logger.exception(
                    "Inactivity cycle failed for guild %d", guild_id,
                    extra={"task": "inactivity", "guild_id": guild_id},
                )
        logger.info("Periodic inactivity check finished (%d guilds)", len(results))
        return results

    async def _notify_eviction(self, report: EvictionReport) -> None:
        try:
            await self.eviction_notifier(report)  # type: ignore[misc]
        except Exception:
            logger.exception("Eviction notification failed for guild %d", report.guild_id)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def get_status(
        self, snapshot: MembershipSnapshot | None = None, now: datetime | None = None
    ) -> StatusSummary:
        """Counts for the status command and probe.

        With a *snapshot* the inactive count honours exemptions (it runs a
        scan); without one it is the raw number of stale ledger entries.
        """
        now = now or self._clock()
        if snapshot is not None:
            inactive = len(self.scanner.scan(snapshot, now).inactive)
        else:
            inactive = self.ledger.count_inactive(self.cfg.inactive_threshold, now)
        return StatusSummary(
            tracked_count=len(self.ledger),
            exempt_user_count=len(self.registry.user_ids),
            exempt_role_count=len(self.registry.role_ids),
            inactive_count=inactive,
        )

    def probe_summary(self) -> dict:
        """Read-only structured summary for the HTTP status probe."""
        now = self._clock()
        summary = self.get_status(now=now).as_dict()
        summary.update({
            "status": "online" if self.ready else "not_ready",
            "threshold_hours": self.cfg.inactive_threshold_hours,
            "check_interval_minutes": self.cfg.check_interval_minutes,
            "level_channels": self.leveling.channel_count,
            "level_records": len(self.leveling),
            "pending_events": self.ingestor.pending,
            "uptime_seconds": round((now - self.started_at).total_seconds(), 1),
            "timestamp": now.isoformat(),
        })
        return summary

    # -------------------------------------------------------------------
    # Leveling
    # -------------------------------------------------------------------
    def get_level(self, guild_id: int, member_id: int) -> LevelRecord:
        return self.leveling.get_level(guild_id, member_id)

    def get_leaderboard(self, guild_id: int, page: int = 1) -> LeaderboardPage:
        return self.leveling.get_leaderboard(
            guild_id, page, self.cfg.leaderboard_page_size,
        )

    async def set_level_channel(self, guild_id: int, channel_id: int | None) -> bool:
        """Bind the leveling channel (``None`` clears it); returns whether it changed."""
        async with self._write_lock:
            previous = self.leveling.bind_channel(guild_id, channel_id)
            try:
                await run_db(self.store.set_level_channel, guild_id, channel_id)
            except PersistenceError:
                self.leveling.bind_channel(guild_id, previous)
                logger.exception("Could not persist level channel for guild %d", guild_id)
                raise
        logger.info("Level channel for guild %d set to %s", guild_id, channel_id)
        return previous != channel_id

    async def clear_level_channel(self, guild_id: int) -> bool:
        return await self.set_level_channel(guild_id, None)
