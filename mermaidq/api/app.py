"""FastAPI server for mermaidq diagram generation"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mermaidq.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from mermaidq.api.routes.diagrams import router as diagrams_router
from mermaidq.api.routes.health import router as health_router
from mermaidq.config import (
    ALLOWED_ORIGINS_ENV,
    API_HOST,
    API_PORT,
    APP_VERSION,
    is_production,
)
from mermaidq.diagrams.errors import NotDiagramRejection, PromptValidationError, StageError
from mermaidq.diagrams.pipeline import DiagramPipeline
from mermaidq.llm.client import CompletionError
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter, log_event

logger = get_logger(__name__)


def _allowed_origins() -> list[str]:
    origins = [o.strip() for o in ALLOWED_ORIGINS_ENV.split(",") if o.strip()]
    # Allow the local editor in development only
    if not is_production():
        origins.extend(
            [
                "http://localhost:3000",
                "http://localhost:8000",
                "http://127.0.0.1:3000",
                "http://127.0.0.1:8000",
            ]
        )
    return origins


def _error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message, "error": error_type})


def _register_exception_handlers(app: FastAPI) -> None:
    # Custom validation error handler to prevent information leakage
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        counter("api.validation_errors")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": "Invalid request format. Please check your request and try again.",
                "error_count": len(exc.errors()),
                # Only expose field names, not validation logic
                "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
            },
        )

    @app.exception_handler(PromptValidationError)
    async def prompt_validation_handler(
        request: Request, exc: PromptValidationError
    ) -> JSONResponse:
        counter("api.bad_request")
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), "invalid_prompt")

    @app.exception_handler(NotDiagramRejection)
    async def not_diagram_handler(request: Request, exc: NotDiagramRejection) -> JSONResponse:
        counter("api.not_diagram")
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "not_diagram")

    @app.exception_handler(StageError)
    async def stage_error_handler(request: Request, exc: StageError) -> JSONResponse:
        counter("api.upstream_errors")
        logger.error("Pipeline stage %s failed on %s: %s", exc.stage, request.url.path, exc.detail)
        return _error_response(status.HTTP_502_BAD_GATEWAY, str(exc), exc.stage)

    @app.exception_handler(CompletionError)
    async def completion_error_handler(request: Request, exc: CompletionError) -> JSONResponse:
        counter("api.upstream_errors")
        logger.error("Provider %s failed on %s: %s", exc.provider, request.url.path, exc)
        return _error_response(status.HTTP_502_BAD_GATEWAY, str(exc), exc.kind)


def create_app(pipeline: DiagramPipeline | None = None) -> FastAPI:
    """
    Build the API.

    Args:
        pipeline: Pipeline to serve; built from environment configuration when
            omitted (provider credentials are only checked on first call)
    """
    app = FastAPI(title="mermaidq API", version=APP_VERSION)
    app.state.pipeline = pipeline or DiagramPipeline.from_config()

    _register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(health_router)
    app.include_router(diagrams_router)

    @app.get("/")
    def root() -> dict[str, Any]:
        return {
            "service": "mermaidq API",
            "version": APP_VERSION,
            "status": "running",
            "endpoints": {
                "health": "/health",
                "diagrams": "/api/diagrams",
                "identify": "/api/diagrams/identify",
                "improve": "/api/diagrams/improve",
                "generate": "/api/diagrams/generate",
            },
        }

    log_event("api.startup", service="mermaidq", version=APP_VERSION)
    return app


app = create_app()


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("mermaidq.api.app:app", host=API_HOST, port=API_PORT)
