"""FastAPI application for the comparison dashboard.

create_app() builds the application with:
- Lifespan that loads sentiment_analysis.jsonl into a DashboardEngine on app.state
- CORS middleware for the browser front end
- Exception handlers rendering every error as an ErrorEnvelope
- /health endpoint

Admin mode (ignore controls) comes from Settings.admin_mode and is fixed for
the lifetime of the app.

Usage:
    uvicorn versus.api.app:app --reload
"""

import traceback
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from versus.api.dependencies import load_engine
from versus.api.models import ErrorDetail, ErrorEnvelope
from versus.api.responses import INTERNAL_ERROR, NOT_FOUND, VALIDATION_ERROR
from versus.api.routes import dashboard, ignored
from versus.config import Settings, load_settings
from versus.utils.logging_config import get_logger, setup_logging


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    envelope = ErrorEnvelope(error=ErrorDetail(code=code, message=message))
    return JSONResponse(status_code=status_code, content=envelope.model_dump())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the dashboard application.

    Args:
        settings: Resolved configuration (default: load_settings() from the environment)
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = get_logger(__name__)
        app.state.engine = load_engine(settings)
        logger.info("dashboard_started", admin_mode=settings.admin_mode)
        yield
        logger.info("dashboard_stopped")

    app = FastAPI(
        title="Versus Dashboard API",
        description="Aggregate and per-comment sentiment for Claude Code vs Codex discussions on Reddit",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(dashboard.router)
    app.include_router(ignored.router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        get_logger(__name__).warning("validation_error", path=request.url.path, errors=exc.errors())
        return _error_response(422, VALIDATION_ERROR, f"Request validation failed: {exc.errors()[0]['msg']}")

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        get_logger(__name__).warning("http_exception", path=request.url.path, status=exc.status_code)

        if isinstance(exc.detail, dict) and "code" in exc.detail:
            return _error_response(exc.status_code, exc.detail["code"], exc.detail["message"])

        code = {404: NOT_FOUND, 422: VALIDATION_ERROR}.get(exc.status_code, INTERNAL_ERROR)
        message = str(exc.detail) if exc.detail else "An error occurred"
        if exc.status_code == 404:
            message = f"Resource not found: {request.url.path}"
        return _error_response(exc.status_code, code, message)

    @app.exception_handler(404)
    async def not_found_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        detail = getattr(exc, "detail", None)
        if isinstance(detail, dict) and "code" in detail:
            return _error_response(404, detail["code"], detail["message"])
        return _error_response(404, NOT_FOUND, f"Resource not found: {request.url.path}")

    @app.exception_handler(500)
    async def internal_server_error_handler(request: Request, exc: Exception) -> JSONResponse:
        get_logger(__name__).error(
            "internal_server_error",
            path=request.url.path,
            error=str(exc),
            traceback=traceback.format_exc(),
        )
        return _error_response(500, INTERNAL_ERROR, "An internal server error occurred")

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "healthy"}

    get_logger(__name__).info("fastapi_app_initialized", cors_origins=settings.cors_origins, **settings.as_log_context())
    return app


def _default_app() -> FastAPI:
    settings = load_settings()
    setup_logging(log_dir=str(settings.log_dir), log_filename="dashboard.log")
    return create_app(settings)


app = _default_app()
