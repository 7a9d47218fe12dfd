"""
vigil.api.deps — FastAPI dependency injection
==============================================

The status API runs inside the bot process.  The entry point stores the
live :class:`~vigil.services.core_service.VigilCore` on
``app.state.core``; until then (or in a bare ``uvicorn`` run) it is
``None`` and the probe answers ``not_ready``.
"""

from __future__ import annotations

from fastapi import Request

from vigil.services.core_service import VigilCore


def get_core(request: Request) -> VigilCore | None:
    core = getattr(request.app.state, "core", None)
    if core is None or not core.ready:
        return None
    return core
