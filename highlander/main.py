"""
Main entry point for FastAPI application.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from highlander.exceptions import GameRuleError, StorageUnavailableError
from highlander.routes import admin, games, selections, teams
from highlander.services.deadline_service import DeadlineMonitor
from highlander.utils.db_async import DATABASE_URL, SessionLocal, dispose_engine, init_db
from highlander.utils.db_url import describe_database_url
from highlander.utils.ttl_cache import TTLCache

from highlander.logging_config import setup_logging
from highlander.config import settings

import logging
logger = logging.getLogger(__name__)

setup_logging(level=settings.log_level, access_log=settings.access_log)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.is_dev and settings.auto_init_db:
        logger.info("Running init_db()…")
        logger.info(f"DB target: {describe_database_url(DATABASE_URL)}")
        try:
            await init_db()
            logger.info("DB ready.")
        except Exception:
            logger.exception("init_db failed")
            raise
    else:
        logger.info("Skipping init_db(); not a dev environment or auto_init_db disabled")

    monitor = DeadlineMonitor(SessionLocal, settings.deadline_check_interval_seconds)
    if settings.deadline_monitor_enabled:
        monitor.start()
    app.state.deadline_monitor = monitor

    yield

    await monitor.stop()

    # Shutdown: dispose engine cleanly
    try:
        logger.info("Disposing DB engine…")
        await dispose_engine()
        logger.info("DB engine disposed.")
    except Exception:
        logger.exception("Failed to dispose DB engine")


app = FastAPI(title="Highlander", lifespan=lifespan)
app.state.user_cache = TTLCache(settings.user_cache_ttl_seconds)


@app.exception_handler(GameRuleError)
async def game_rule_error_handler(request: Request, exc: GameRuleError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(
    request: Request, exc: StorageUnavailableError
) -> JSONResponse:
    logger.error("Storage unavailable for %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Service temporarily unavailable", "code": "storage_unavailable"},
    )


app.include_router(teams.router)
app.include_router(games.router)
app.include_router(admin.games_router)
app.include_router(selections.router)
app.include_router(admin.router)


@app.get("/health")
async def health_check():
    """Health Check Endpoint"""
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
