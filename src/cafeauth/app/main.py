"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from cafeauth import __version__
from cafeauth.adapters import SqlUserDirectory
from cafeauth.app.api.v1 import auth_router, lockouts_router, manager_router, staff_router
from cafeauth.app.config import get_settings
from cafeauth.app.logging import setup_logging
from cafeauth.app.metrics import get_metrics_response
from cafeauth.app.middleware import LoggingMiddleware
from cafeauth.core.errors import (
    CafeAuthError,
    CooldownError,
    InternalError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from cafeauth.core.logging_schema import LogEvent
from cafeauth.infra import close_db, get_engine, get_session_factory, init_db
from cafeauth.services import SessionService

setup_logging()
logger = logging.getLogger(__name__)


async def _seed_accounts() -> None:
    """Create missing roles and, when BOOTSTRAP_ADMIN_PASSWORD is set, the
    first admin account. Existing accounts are never modified."""
    bootstrap = get_settings().bootstrap
    async with get_session_factory()() as db:
        users = SqlUserDirectory(db)
        try:
            await users.ensure_roles(bootstrap.roles)
            if bootstrap.admin_password and (
                await users.get_by_username(bootstrap.admin_username) is None
            ):
                await users.create_user(
                    bootstrap.admin_username,
                    bootstrap.admin_password,
                    bootstrap.admin_role,
                    full_name="Administrator",
                )
                logger.info(
                    "Created bootstrap admin account",
                    extra={
                        "event": LogEvent.APP_STARTED,
                        "username": bootstrap.admin_username,
                    },
                )
        except (StoreUnavailableError, ValidationError) as e:
            # Another worker seeding concurrently
            logger.warning(
                "Account seeding skipped",
                extra={"event": LogEvent.APP_STARTED, "error": str(e)},
            )


async def _sweeper_loop() -> None:
    """Deactivate expired sessions every SWEEPER_INTERVAL seconds."""
    interval = get_settings().sweeper.interval
    factory = get_session_factory()
    while True:
        await asyncio.sleep(interval)
        try:
            async with factory() as db:
                await SessionService.sweep_expired(db)
        except StoreUnavailableError:
            # Already logged by store_operation; retry next round
            continue
        except Exception:
            logger.exception(
                "Session sweep failed", extra={"event": LogEvent.SESSIONS_SWEPT}
            )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    await init_db()
    await _seed_accounts()

    logger.info(
        "Starting application",
        extra={"event": LogEvent.APP_STARTED, "version": __version__},
    )

    sweeper_task = None
    if settings.sweeper.enabled:
        sweeper_task = asyncio.create_task(_sweeper_loop())

    yield

    logger.info("Shutting down application", extra={"event": LogEvent.APP_STOPPED})
    if sweeper_task is not None:
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            pass

    await close_db()


app = FastAPI(title="cafe-auth", version=__version__, lifespan=lifespan)
app.add_middleware(LoggingMiddleware)


def error_response(exc: CafeAuthError) -> JSONResponse:
    headers = None
    if isinstance(exc, CooldownError):
        headers = {"Retry-After": str(exc.remaining_seconds)}
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().to_content(),
        headers=headers,
    )


@app.exception_handler(CafeAuthError)
async def cafeauth_error_handler(request: Request, exc: CafeAuthError) -> JSONResponse:
    """Handle CafeAuthError exceptions."""
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies get the same 400 envelope as other input errors."""
    return error_response(ValidationError("Invalid request"))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        extra={"event": LogEvent.REQUEST_FAILED, "path": request.url.path},
    )
    return error_response(InternalError())


app.include_router(auth_router, prefix="/api/v1")
app.include_router(lockouts_router, prefix="/api/v1")
app.include_router(manager_router, prefix="/api/v1")
app.include_router(staff_router, prefix="/api/v1")


async def _check_postgres() -> str:
    try:
        async with get_engine().begin() as conn:
            await conn.execute(text("SELECT 1"))
        return "connected"
    except RuntimeError:
        return "not initialized"
    except Exception as e:
        return f"error: {e}"


@app.get("/health")
async def health():
    database = await _check_postgres()
    return {
        "status": "ok" if database == "connected" else "degraded",
        "version": __version__,
        "services": {"database": database},
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    if not get_settings().metrics.enabled:
        raise NotFoundError()
    return get_metrics_response()
