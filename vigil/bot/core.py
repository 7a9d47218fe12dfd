"""
vigil.bot.core — Bot Instance & Cog Loader
===========================================

**Why this file exists:**
Defines :class:`VigilBot`, the ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``), DB engine (``bot.engine``) and
   the :class:`~vigil.services.core_service.VigilCore` (``bot.core``) so
   every Cog can reach them via ``self.bot.*``.
2. Loads every Cog listed in :data:`EXTENSIONS`.
3. Syncs the slash-command tree on startup (guild-scoped for dev, global
   for production — controlled by the ``DEV_GUILD_ID`` env var).
4. Starts the ingestion worker once the member cache is ready, and drains
   + flushes it exactly once on shutdown.
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from vigil.bot.gateway import DiscordGateway
from vigil.config import VigilConfig
from vigil.engine.leveling import LevelUp
from vigil.services.announcement_service import announce_eviction, announce_level_up
from vigil.services.core_service import VigilCore
from vigil.services.eviction_service import EvictionReport
from vigil.services.state_store import StateStore

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "vigil.bot.cogs.activity",
    "vigil.bot.cogs.admin",
    "vigil.bot.cogs.levels",
    "vigil.bot.cogs.tasks",
]


class VigilBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`VigilConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` for the state database.
    """

    def __init__(self, cfg: VigilConfig, engine: Engine) -> None:
        # Privileged intent (must be enabled in the Developer Portal):
        #   GUILD_MEMBERS — member chunking for scans, join events
        # Message content is never read; only author and channel are.
        intents = discord.Intents.default()
        intents.members = True
        intents.voice_states = True
        intents.presences = False

        # Slash commands only; mentions are the sole text prefix.
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            description="Vigil — removes inactive members and ranks active ones",
        )

        self.cfg = cfg
        self.engine = engine
        self.gateway = DiscordGateway(self)
        self.core = VigilCore.load(
            cfg,
            StateStore(engine),
            membership=self.gateway,
            remover=self.gateway,
            on_level_up=self._on_level_up,
            eviction_notifier=self._on_eviction,
        )
        self._shutdown_done = False

    async def _on_level_up(self, level_up: LevelUp) -> None:
        await announce_level_up(self, level_up)

    async def _on_eviction(self, report: EvictionReport) -> None:
        await announce_eviction(self, report)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all Cog extensions; one broken Cog doesn't stop the others."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info(
            "Logged in as %s (ID: %s) — watching %d guilds",
            self.user.name, self.user.id, len(self.guilds),
        )

        # --- Slash-command sync ---------------------------------------------
        dev_guild_id = os.getenv("DEV_GUILD_ID")
        try:
            if dev_guild_id:
                guild = discord.Object(id=int(dev_guild_id))
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
            else:
                synced = await self.tree.sync()
                logger.info("Synced %d commands globally", len(synced))
        except discord.HTTPException:
            logger.exception("Slash-command sync failed")

        # on_ready fires again after a reconnect; the core starts once.
        if not self.core.ready:
            await self.core.start()

    async def close(self) -> None:
        """Graceful shutdown — apply queued events and flush state once."""
        if not self._shutdown_done:
            self._shutdown_done = True
            logger.info("Bot shutting down…")
            try:
                await self.core.shutdown()
            except Exception:
                logger.exception("Final state flush failed")
        await super().close()
