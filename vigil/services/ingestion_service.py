"""
vigil.services.ingestion_service — Event Queue → Ledger / Leveling
===================================================================

Gateway listeners never touch the ledger directly.  They ``submit()``
normalized events onto a single :class:`asyncio.Queue`; one background
worker drains it and applies each event:

* every event stamps the member in the Activity Ledger,
* a :class:`~vigil.engine.events.MemberMessage` is also counted by the
  Leveling Engine, and a resulting level-up is announced via the
  ``on_level_up`` callback (best-effort, never blocks the queue).

Bot accounts are dropped at the door.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from vigil.engine.events import ActivityEvent, MemberJoined, MemberMessage
from vigil.engine.ledger import ActivityLedger
from vigil.engine.leveling import LevelingEngine, LevelUp

logger = logging.getLogger(__name__)

LevelUpCallback = Callable[[LevelUp], Awaitable[None]]


class EventIngestor:
    """Single-consumer ingestion queue."""

    def __init__(
        self,
        ledger: ActivityLedger,
        leveling: LevelingEngine,
        *,
        on_level_up: LevelUpCallback | None = None,
    ) -> None:
        self.ledger = ledger
        self.leveling = leveling
        self.on_level_up = on_level_up
        self._queue: asyncio.Queue[ActivityEvent] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._notify_tasks: set[asyncio.Task] = set()
        self.processed = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # -------------------------------------------------------------------
    # Producer side
    # -------------------------------------------------------------------
    def submit(self, event: ActivityEvent) -> bool:
        """Queue *event*; returns False for bot accounts (ignored)."""
        if event.is_bot:
            return False
        self._queue.put_nowait(event)
        return True

    # -------------------------------------------------------------------
    # Consumer side
    # -------------------------------------------------------------------
    def process(self, event: ActivityEvent) -> LevelUp | None:
        """Apply one event synchronously and return any level-up."""
        self.ledger.record_activity(event.guild_id, event.member_id)
        self.processed += 1

        if isinstance(event, MemberJoined):
            logger.info("Member joined: %d in guild %d", event.member_id, event.guild_id)
            return None
        if isinstance(event, MemberMessage):
            return self.leveling.record_message(
                event.guild_id, event.channel_id, event.member_id
            )
        return None

    async def _handle(self, event: ActivityEvent) -> None:
        level_up = self.process(event)
        if level_up is not None and self.on_level_up is not None:
            task = asyncio.get_running_loop().create_task(self._notify(level_up))
            self._notify_tasks.add(task)
            task.add_done_callback(self._notify_tasks.discard)

    async def _notify(self, level_up: LevelUp) -> None:
        try:
            await self.on_level_up(level_up)  # type: ignore[misc]
        except Exception:
            logger.exception(
                "Level-up notification failed for member %d in guild %d",
                level_up.member_id, level_up.guild_id,
            )

    async def drain(self) -> int:
        """Apply everything still queued (used at shutdown and in tests)."""
        drained = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await self._handle(event)
                drained += 1
            except Exception:
                logger.exception("Failed to apply %s", type(event).__name__)
            finally:
                self._queue.task_done()
        return drained

    # -------------------------------------------------------------------
    # Worker lifecycle
    # -------------------------------------------------------------------
    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start the background worker."""
        if self._worker is not None:
            return

        async def _worker_loop() -> None:
            while True:
                event = await self._queue.get()
                try:
                    await self._handle(event)
                except Exception:
                    logger.exception(
                        "Failed to apply %s for member %d",
                        type(event).__name__, event.member_id,
                    )
                finally:
                    self._queue.task_done()

        self._worker = loop.create_task(_worker_loop(), name="vigil-ingest")

    async def stop(self) -> None:
        """Cancel the worker, then apply whatever is left in the queue."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        await self.drain()
