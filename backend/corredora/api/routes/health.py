"""Liveness route that also checks the store is reachable."""

import asyncio

from fastapi import APIRouter, Request

from corredora.core.errors import Unavailable
from corredora.core.logging import logger

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    """Return ``{"status": "ok"}`` when the database answers a ping."""
    database = request.app.state.database
    timeout = request.app.state.settings.STORE_TIMEOUT_SECONDS
    try:
        await asyncio.wait_for(database.ping(), timeout=timeout)
    except Exception as exc:
        logger.exception("Health check failed")
        raise Unavailable("Error de base de datos") from exc
    return {"status": "ok"}
