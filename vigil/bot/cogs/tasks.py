"""
vigil.bot.cogs.tasks — Periodic Background Tasks
=================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Inactivity cycle** — every ``check_interval_minutes`` (default 30),
  scans every guild the bot is in and evicts inactive members
  (scan-only when ``auto_evict`` is off).
- **State flush** — every ``flush_interval_seconds`` (default 60),
  writes dirty activity and level rows.

Intervals come from config, so the loops are declared with a placeholder
and re-timed in :meth:`PeriodicTasks.cog_load`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

if TYPE_CHECKING:
    from vigil.bot.core import VigilBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled inactivity checks and state flushes."""

    def __init__(self, bot: VigilBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        """Apply configured intervals and start the loops."""
        cfg = self.bot.cfg
        self.inactivity_loop.change_interval(seconds=cfg.check_interval.total_seconds())
        self.flush_loop.change_interval(seconds=cfg.flush_interval_seconds)
        self.inactivity_loop.start()
        self.flush_loop.start()

    async def cog_unload(self) -> None:
        self.inactivity_loop.cancel()
        self.flush_loop.cancel()

    # -------------------------------------------------------------------
    # Inactivity cycle
    # -------------------------------------------------------------------
    @tasks.loop(minutes=30)
    async def inactivity_loop(self):
        try:
            await self.bot.core.run_cycle([guild.id for guild in self.bot.guilds])
        except Exception:
            logger.exception("Inactivity cycle failed", extra={"task": "inactivity"})

    @inactivity_loop.before_loop
    async def _wait_inactivity(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Dirty-state flush
    # -------------------------------------------------------------------
    @tasks.loop(seconds=60)
    async def flush_loop(self):
        try:
            await self.bot.core.flush()
        except Exception:
            logger.exception("State flush failed", extra={"task": "flush"})

    @flush_loop.before_loop
    async def _wait_flush(self):
        await self.bot.wait_until_ready()


async def setup(bot: VigilBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
