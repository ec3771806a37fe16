"""FastAPI application entrypoint. No business logic; only wiring, middleware and error rendering."""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from cadence.api import router as api_router
from cadence.api.deps import get_auth_rate_limiter, get_rate_limiter, get_reset_token_store
from cadence.core.config import settings
from cadence.core.errors import (
    INTERNAL_ERROR_MESSAGE,
    AppError,
    AuthorizationFailed,
    InternalError,
    RateLimited,
)
from cadence.core.logging_config import configure_logging

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


async def _sweep_expired_state(interval_sec: int) -> None:
    purgeable = (get_reset_token_store(), get_rate_limiter(), get_auth_rate_limiter())
    while True:
        await asyncio.sleep(interval_sec)
        for store in purgeable:
            try:
                store.purge_expired()
            except Exception:
                logger.exception("Sweep failed for %s", type(store).__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    sweeper = None
    if settings.RESET_TOKEN_SWEEP_INTERVAL_SEC > 0:
        sweeper = asyncio.create_task(
            _sweep_expired_state(settings.RESET_TOKEN_SWEEP_INTERVAL_SEC)
        )
        logger.info(
            "Expiry sweep enabled: interval_sec=%s",
            settings.RESET_TOKEN_SWEEP_INTERVAL_SEC,
        )
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper


app = FastAPI(
    title="Cadence API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "X-Permitted-Cross-Domain-Policies": "none",
}


@app.middleware("http")
async def add_security_headers(request: Request, call_next) -> Response:
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render taxonomy errors with their safe message only."""
    headers = None
    if isinstance(exc, AuthorizationFailed):
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    if isinstance(exc, InternalError):
        logger.error("Internal error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are a 400; the offending input is not echoed back."""
    logger.info(
        "Request validation failed on %s: fields=%s",
        request.url.path,
        [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()],
    )
    return JSONResponse(
        status_code=400,
        content={"detail": "invalid request data", "code": "VALIDATION_ERROR"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": INTERNAL_ERROR_MESSAGE, "code": InternalError.code},
    )


app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "Cadence API"}
