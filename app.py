# app.py
import time
from contextlib import asynccontextmanager
from os import getenv

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import db
from logs import configure_logging
from routes import auth, projects, prompts, public, users
from services.config_cache import ConfigCache
from services.dispatcher import ExecutionDispatcher
from services.errors import PromptPalError
from services.provider import OpenAIProvider
from services.session import SessionIssuer
from settings import Settings, get_settings
from storage.users import ensure_user

logger = structlog.get_logger(__name__)

API_PREFIX = "/api/v1"


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        {"code": status_code, "error": message},
        status_code=status_code,
        headers=headers,
    )


# ---------------------------
# Error handlers
# ---------------------------
async def handle_app_error(request: Request, exc: PromptPalError):
    if exc.status_code >= 500:
        logger.warning("Request failed", path=request.url.path, error=exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error_response(exc.status_code, exc.message, headers)


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = "page not found"
    else:
        message = str(exc.detail)
    return error_response(exc.status_code, message, getattr(exc, "headers", None))


async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{where}: {first.get('msg', 'invalid value')}"
    else:
        message = "invalid request"
    return error_response(400, message)


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    return error_response(500, "internal server error")


# ---------------------------
# App factory
# ---------------------------
def create_app(
    settings: Settings | None = None,
    provider=None,
    clock=None,
    cache_clock=None,
) -> FastAPI:
    """Build the API. `provider` and the clocks are injectable for tests."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.configure(settings.db_path)
        db.init_db()
        if settings.admin_address:
            admin = ensure_user(settings.admin_address, name="admin", level=100)
            logger.info("Admin user ready", uid=admin.id)
        logger.info("PromptPal started", version=settings.commit_sha, db_path=settings.db_path)
        yield
        close = getattr(app.state.provider, "aclose", None)
        if close is not None:
            await close()

    app = FastAPI(title="PromptPal", lifespan=lifespan)

    app.state.settings = settings
    app.state.sessions = SessionIssuer(settings.jwt_secret, clock=clock or time.time)
    app.state.project_cache = ConfigCache(
        ttl=settings.project_cache_ttl,
        clock=cache_clock or time.monotonic,
    )
    app.state.provider = provider or OpenAIProvider(timeout=settings.provider_timeout)
    app.state.dispatcher = ExecutionDispatcher(
        app.state.project_cache,
        app.state.provider,
        timeout=settings.provider_timeout,
    )

    # with version
    @app.middleware("http")
    async def add_version_header(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-PP-VER"] = settings.commit_sha
        return response

    app.add_middleware(GZipMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Authorization", "X-API-KEY"],
        expose_headers=["Content-Length", "Content-Encoding", "Date"],
        max_age=12 * 60 * 60,
    )

    app.add_exception_handler(PromptPalError, handle_app_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(auth.router, prefix=API_PREFIX)
    app.include_router(users.router, prefix=API_PREFIX + "/admin")
    app.include_router(projects.router, prefix=API_PREFIX + "/admin")
    app.include_router(prompts.router, prefix=API_PREFIX + "/admin")
    app.include_router(public.router, prefix=API_PREFIX)

    return app


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    uvicorn.run(create_app(settings), host=getenv("HOST", "127.0.0.1"), port=int(getenv("PORT", "8000")))
