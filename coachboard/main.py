"""
Coachboard analytics API.

Serves dashboard, forecast and drill-down results under ``/api/v1/analytics``.
Each request is tagged with an ``X-Request-ID`` (taken from the caller when
present) that is bound into every log event emitted while serving it.
"""

import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coachboard.config import get_settings
from coachboard.engine import __version__ as engine_version
from coachboard.routers import analytics
from coachboard.utils.logging import configure_logging, get_logger

API_VERSION = "0.1.0"
ANALYTICS_PREFIX = "/api/v1/analytics"
REQUEST_ID_HEADER = "X-Request-ID"

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()

    # DuckDB creates the file but not its parent directory.
    record_dir = os.path.dirname(settings.db_path) or "."
    os.makedirs(record_dir, exist_ok=True)

    logger.info(
        "analytics_api_ready",
        api_version=app.version,
        engine_version=engine_version,
        record_store=settings.db_path,
        dev_mode=settings.dev_mode,
    )
    yield
    logger.info("analytics_api_stopped")


def create_app() -> FastAPI:
    """Build the analytics API with CORS, request tagging and the analytics routes."""
    settings = get_settings()

    app = FastAPI(
        title="Coachboard Analytics API",
        description="Membership & revenue analytics for the coaching console",
        version=API_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def tag_request(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("analytics_request_crashed", error=str(e), exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "Internal server error",
                    "request_id": request_id,
                },
                headers={REQUEST_ID_HEADER: request_id},
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "analytics_request_served",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response

    @app.get("/health", tags=["System"])
    async def health_check():
        return {"status": "healthy", "version": app.version}

    app.include_router(analytics.router, prefix=ANALYTICS_PREFIX, tags=["Analytics"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "coachboard.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
