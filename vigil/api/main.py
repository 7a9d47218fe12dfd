"""
vigil.api.main — FastAPI status probe
======================================

Served in-process by :mod:`vigil.bot.__main__` on ``PORT`` (default
3000) so hosting platforms can health-check the bot.  It can also be run
standalone, in which case it always reports ``not_ready``::

    uvicorn vigil.api.main:app --port 3000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI

from vigil import __version__
from vigil.api.routes.status import router as status_router
from vigil.services.core_service import VigilCore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Status API started")
    yield
    logger.info("Status API shutting down")


def create_app(core: VigilCore | None = None) -> FastAPI:
    app = FastAPI(
        title="Vigil Status API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.core = core
    app.state.started_at = datetime.now(UTC)
    app.include_router(status_router, prefix="/api")
    return app


app = create_app()
