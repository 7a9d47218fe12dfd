"""
vigil.bot.__main__ — Entry point for ``python -m vigil.bot``
============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Create the VigilBot (which loads persisted state into its core).
5. Run the bot and the status API on one event loop until SIGINT/SIGTERM,
   then drain queued events and flush state once.

Run with::

    python -m vigil.bot        # or the ``vigil-bot`` console script
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys

import uvicorn
from dotenv import load_dotenv

from vigil.api.main import create_app
from vigil.bot.core import VigilBot
from vigil.config import load_config
from vigil.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("vigil")


class EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the bot process."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass


async def serve(bot: VigilBot, token: str, port: int) -> None:
    """Run the bot and the status API together until the bot closes."""
    server = EmbeddedServer(uvicorn.Config(
        create_app(bot.core),
        host="0.0.0.0",
        port=port,
        log_config=None,
    ))

    loop = asyncio.get_running_loop()
    closing: list[asyncio.Task] = []

    def _on_signal(sig: signal.Signals) -> None:
        logger.info("Received %s — shutting down gracefully…", sig.name)
        closing.append(loop.create_task(bot.close()))

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except NotImplementedError:  # Windows
            pass

    api_task = loop.create_task(server.serve(), name="vigil-status-api")
    logger.info("Status API listening on port %d", port)
    try:
        async with bot:
            await bot.start(token)
    finally:
        server.should_exit = True
        await api_task
        if closing:
            await asyncio.gather(*closing, return_exceptions=True)


def main() -> None:
    """Bootstrap and run the Vigil bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    cfg = load_config()
    logger.info(
        "Config loaded — threshold %gh, check every %gm, flush every %gs",
        cfg.inactive_threshold_hours, cfg.check_interval_minutes, cfg.flush_interval_seconds,
    )

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Bot (loads persisted state into bot.core).
    bot = VigilBot(cfg=cfg, engine=engine)

    # 5. Run until Ctrl+C or SIGTERM.
    port = int(os.getenv("PORT") or cfg.status_port)
    logger.info("Starting Vigil bot…")
    try:
        asyncio.run(serve(bot, token, port))
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
