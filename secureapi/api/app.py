"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from secureapi import __version__
from secureapi.api.routes import health, patterns, scan
from secureapi.api.schemas import ScanResponse
from secureapi.core.archive import ArchiveTranscoder
from secureapi.core.exceptions import MethodNotAllowedError, SecureAPIError
from secureapi.core.patterns import PatternCatalog
from secureapi.core.quota import InMemoryQuotaStore, QuotaGate, QuotaStore
from secureapi.utils.config import Settings
from secureapi.utils.logger import get_logger


def _build_store(settings: Settings, logger) -> QuotaStore:
    if settings.redis_url:
        from secureapi.api.redis_store import RedisQuotaStore

        logger.info(f"Quota store: Redis at {settings.redis_url.split('@')[-1]}")
        return RedisQuotaStore.from_url(settings.redis_url)
    logger.warning("REDIS_URL not set, quota counters are kept in process memory")
    return InMemoryQuotaStore()


def create_app(
    settings: Optional[Settings] = None,
    quota_store: Optional[QuotaStore] = None,
    catalog: Optional[PatternCatalog] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings.from_env()
    logger = get_logger("secureapi", settings.log_level)

    catalog = catalog or PatternCatalog.load(settings.patterns_file)
    store = quota_store or _build_store(settings, logger)
    gate = QuotaGate(
        store,
        limit=settings.quota_limit,
        window_seconds=settings.quota_window_seconds,
        reservation_ttl_seconds=settings.reservation_ttl_seconds,
        fail_open=settings.quota_fail_open,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting SecureAPI {__version__} with {len(catalog)} patterns")
        yield
        close = getattr(store, "close", None)
        if close is not None:
            await close()
        logger.info("Shutting down SecureAPI...")

    app = FastAPI(
        title="SecureAPI",
        description="Removes hardcoded secrets from uploaded source archives",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.catalog = catalog
    app.state.quota_gate = gate
    app.state.transcoder = ArchiveTranscoder(catalog, max_entry_bytes=settings.max_entry_bytes)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(scan.router, prefix="/api/v1", tags=["Scan"])
    app.include_router(patterns.router, prefix="/api/v1", tags=["Patterns"])
    app.add_api_route(
        "/upload",
        scan.scan_archive,
        methods=["POST"],
        response_model=ScanResponse,
        tags=["Scan"],
    )

    # Exception handlers
    @app.exception_handler(SecureAPIError)
    async def secureapi_error_handler(request: Request, exc: SecureAPIError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            error = MethodNotAllowedError("Method Not Allowed")
            return JSONResponse(status_code=405, content=error.to_dict(), headers=exc.headers)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app
