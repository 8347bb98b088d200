"""FastAPI application entrypoint for the Corredora backend.

:func:`create_app` builds the application from a :class:`Settings`
instance. The lifespan opens the database handle on startup (retrying
while the store comes up), creates missing tables, purges expired refresh
tokens and disposes the engine on shutdown.
"""

import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from corredora.api.routes.auth import router as auth_router
from corredora.api.routes.health import router as health_router
from corredora.api.routes.users import router as users_router
from corredora.config.config import Settings, get_settings
from corredora.core.errors import CorredoraError, MalformedRequest, Unavailable
from corredora.core.logging import logger, setup_logging
from corredora.core.security import TokenIssuer
from corredora.db.session import Database
from corredora.services.refresh_tokens import RefreshTokenStore

STARTUP_ATTEMPTS = 5
STARTUP_RETRY_DELAY_SECONDS = 2


async def _open_database(settings: Settings) -> Database:
    for attempt in range(STARTUP_ATTEMPTS):
        database = Database(
            settings.DATABASE_URL_ASYNC,
            echo=settings.SQL_ECHO,
            timeout=settings.STORE_TIMEOUT_SECONDS,
        )
        try:
            await database.create_all()
            return database
        except Exception as e:
            await database.dispose()
            if attempt < STARTUP_ATTEMPTS - 1:
                logger.warning("Database connection attempt {} failed: {}. Retrying..", attempt + 1, e)
                await asyncio.sleep(STARTUP_RETRY_DELAY_SECONDS)
            else:
                logger.exception("Failed to initialize database after {} attempts", STARTUP_ATTEMPTS)
                raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store for the lifetime of the application.

    Yields:
        None: Control is returned to FastAPI while the app is running.
    """
    settings: Settings = app.state.settings
    logger.info("Starting up")

    database = await _open_database(settings)
    app.state.database = database

    try:
        async with database.session() as db:
            store = RefreshTokenStore(db, timeout=settings.STORE_TIMEOUT_SECONDS)
            purged = await store.purge_expired()
        logger.info("Purged {} expired refresh tokens", purged)
    except Unavailable:
        logger.warning("Skipping expired refresh token purge; the store did not answer")

    try:
        yield
    finally:
        logger.info("Shutting down")
        await database.dispose()


async def corredora_error_handler(request: Request, exc: CorredoraError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    logger.debug("Rejected request body path={} fields={}", request.url.path, fields)
    return JSONResponse(
        status_code=MalformedRequest.status_code,
        content={"error": MalformedRequest.message, "fields": fields},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error("Unhandled error path={}", request.url.path)
    return JSONResponse(status_code=500, content={"error": CorredoraError.message})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API application.

    Args:
        settings: Explicit settings; defaults to the cached environment ones.
    """
    settings = settings or get_settings()
    setup_logging()

    app = FastAPI(title="Corredora API", lifespan=lifespan, root_path=settings.ROOT_PATH)
    app.state.settings = settings
    app.state.token_issuer = TokenIssuer(
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        ttl_seconds=settings.ACCESS_TOKEN_TTL_SECONDS,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CorredoraError, corredora_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    return app


if __name__ == "__main__":
    uvicorn.run("corredora.main:create_app", factory=True, host="0.0.0.0", port=4000, reload=True)
