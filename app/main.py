"""FastAPI application factory.

The import route carries `dependencies=[RequireApiKey]` itself, so /health,
/docs and the CORS preflight stay public.
"""
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.responses import fail, ok
from app.api.v1.imports import router as imports_router
from app.config import settings
from app.core.exceptions import (
    AppException,
    FeedAcquisitionError,
    NoValidRecordsError,
    NotFoundError,
    ParsingError,
    StorageError,
    ValidationError,
)
from app.core.logging import get_logger, setup_logging
from app.database import async_session_factory

logger = get_logger(__name__)

# Handlers resolve along the MRO, so subclasses inherit their parent's status.
ERROR_STATUS = {
    NotFoundError: 404,
    ParsingError: 400,
    ValidationError: 400,
    FeedAcquisitionError: 500,
    StorageError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    if not settings.api_key:
        logger.warning(
            "API_KEY not configured — import endpoint is unprotected. "
            "Set API_KEY in .env before going to production."
        )

    yield

    logger.info("Shutting down %s", settings.app_name)


def _app_error_handler(status_code: int):
    async def handler(request: Request, exc: AppException):
        if status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        detail = exc.detail if isinstance(exc.detail, dict) else None
        errors = None
        if isinstance(exc, NoValidRecordsError) and detail:
            errors = detail.get("errors")
        return fail(status_code, exc.message, request, errors=errors, data=detail)

    return handler


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Property feed importer — fetch, normalize and upsert vendor XML listings.",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def add_trace_id(request: Request, call_next):
        request.state.trace_id = str(uuid4())
        response = await call_next(request)
        response.headers["X-Trace-Id"] = request.state.trace_id
        return response

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception [trace_id=%s]",
            getattr(request.state, "trace_id", None),
            exc_info=exc,
        )
        return fail(500, "Internal server error", request)

    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        response = fail(exc.status_code, str(exc.detail), request)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    for exc_class, status_code in ERROR_STATUS.items():
        application.add_exception_handler(exc_class, _app_error_handler(status_code))

    application.include_router(imports_router, prefix="/api/v1/import-properties", tags=["import"])

    @application.get("/health", tags=["system"])
    async def health_check(request: Request):
        db_status = "ok"
        try:
            async with async_session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            db_status = f"error: {e}"

        return ok(
            {
                "status": "healthy" if db_status == "ok" else "unhealthy",
                "version": settings.app_version,
                "database": db_status,
            },
            "Health check completed",
            request,
        )

    return application


app = create_app()
