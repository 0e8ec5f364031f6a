from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

load_dotenv()

from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware  # noqa: E402
from .routers import auth, blogs, businesses, comments, system, users  # noqa: E402
from .seed import ensure_seed_data  # noqa: E402
from .settings import CORS_ORIGINS, RUN_MIGRATIONS, AuthConfig  # noqa: E402

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    return cfg


def run_migrations() -> None:
    logger.info("run_migrations: Running Alembic migrations...")
    try:
        command.upgrade(_alembic_config(), "head")
        logger.info("run_migrations: Completed successfully.")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        logger.info("run_startup_tasks: Already completed, skipping.")
        return
    try:
        if RUN_MIGRATIONS:
            run_migrations()
        else:
            logger.info("run_startup_tasks: RUN_MIGRATIONS disabled, skipping migrations.")
        ensure_seed_data()
        _STARTUP_COMPLETE = True
        logger.info("Startup tasks completed.")
    except Exception as e:
        logger.error(f"Startup tasks failed: {e}", exc_info=True)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    # Server won't accept requests until these complete
    run_startup_tasks()
    logger.info("Blog API server ready")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="Blog API",
    version="1.0.0",
    description="Blogs, comments, follows, wallets and subscriptions",
    lifespan=lifespan,
)

# Signing configuration; fails fast when JWT_SECRET_KEY is missing or weak
app.state.auth_config = AuthConfig.from_env()


# ============================================================================
# ERROR HANDLERS
# ============================================================================


def _error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message}, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # 4xx/5xx raised intentionally in code
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(level, f"HTTPException {exc.status_code} on {request.method} {request.url.path}: {exc.detail}")
    return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    logger.warning(f"Validation error on {request.method} {request.url.path}: {problems}")
    return _error_response(status.HTTP_400_BAD_REQUEST, "; ".join(problems) or "Invalid request")


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"IntegrityError on {request.method} {request.url.path}: {exc.orig}")
    return _error_response(status.HTTP_409_CONFLICT, "Conflicting record")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# ============================================================================
# MIDDLEWARE & ROUTERS
# ============================================================================

if "*" in CORS_ORIGINS:
    logger.warning(
        "CORS is configured to allow all origins. "
        "This is insecure for production. Set CORS_ORIGINS to specific domains."
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,  # Cache preflight requests for 10 minutes
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(system.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(blogs.router)
app.include_router(comments.router)
app.include_router(businesses.router)
