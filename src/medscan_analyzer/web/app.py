"""
FastAPI application: the server side of the trust boundary.

Provider credentials live only in this process (via Settings). Callers send
patient fields and pre-encoded files and get back the report text or a
classified error. Nothing a caller sends can carry or select a credential,
and no response or log line echoes one.

Endpoints:
- GET  /health
- GET  /api/models
- POST /api/models/{provider}/analyze
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import (
    STATUS_BY_KIND,
    AnalyzerError,
    ValidationError,
    scrub_secrets,
)
from ..core.logging import get_logger
from ..domain.models import PROVIDER_CATALOGUE, ProviderId
from ..services.analysis import AnalysisService
from .schemas import (
    AnalyzePayload,
    AnalyzeResponse,
    ErrorResponse,
    HealthResponse,
    ProviderSummary,
)

logger = get_logger(__name__)


def _error_response(app_settings: Settings, status_code: int, message: str) -> JSONResponse:
    safe = scrub_secrets(message, app_settings.secret_values())
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=safe).model_dump())


def _describe_validation_errors(exc: RequestValidationError) -> str:
    """Summarize field problems without echoing submitted values."""
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{loc or 'body'}: {err.get('msg', 'invalid')}")
    return f"{ValidationError.public_message} Problems: {'; '.join(problems)}"


def get_service(request: Request) -> AnalysisService:
    return request.app.state.analysis_service


def create_app(
    app_settings: Settings | None = None,
    service: AnalysisService | None = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        app_settings: Settings constructed once at process start
        service: Pipeline service (built from settings if None)
    """
    app_settings = app_settings or default_settings
    analysis_service = service or AnalysisService(app_settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "application_started",
            environment=app_settings.environment,
            providers=[p.value for p in ProviderId if app_settings.credential_for(p) is not None],
        )
        yield
        logger.info("application_shutdown")

    app = FastAPI(
        title=app_settings.app_name,
        version=app_settings.app_version,
        description="Multi-provider medical document analysis",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.analysis_service = analysis_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # ═══════════════════════════════════════════════════════════════════════
    # Error Handlers
    # ═══════════════════════════════════════════════════════════════════════
    @app.exception_handler(AnalyzerError)
    async def analyzer_error_handler(_: Request, exc: AnalyzerError) -> JSONResponse:
        logger.warning("request_rejected", kind=exc.kind.value, error=str(exc))
        return _error_response(app_settings, exc.status_code, exc.caller_message())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        message = _describe_validation_errors(exc)
        logger.info("request_validation_failed", error=message)
        return _error_response(app_settings, ValidationError.status_code, message)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("unexpected_error", error_type=type(exc).__name__)
        return _error_response(app_settings, 500, "An unknown error occurred")

    # ═══════════════════════════════════════════════════════════════════════
    # API Routes
    # ═══════════════════════════════════════════════════════════════════════
    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok", version=app_settings.app_version)

    @app.get("/api/models", response_model=list[ProviderSummary])
    async def list_models(
        svc: AnalysisService = Depends(get_service),
    ) -> list[ProviderSummary]:
        """List supported providers and whether each is configured."""
        summaries = []
        for provider in svc.dispatcher.providers:
            info = PROVIDER_CATALOGUE[provider]
            summaries.append(
                ProviderSummary(
                    id=provider,
                    name=info.name,
                    description=info.description,
                    model=svc.dispatcher.adapter_for(provider).model,
                    configured=app_settings.credential_for(provider) is not None,
                )
            )
        return summaries

    @app.post(
        "/api/models/{provider}/analyze",
        response_model=AnalyzeResponse,
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            413: {"model": ErrorResponse},
            429: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )
    async def analyze(
        provider: str,
        payload: AnalyzePayload,
        svc: AnalysisService = Depends(get_service),
    ) -> Any:
        """
        Analyze pre-encoded documents with the selected provider.

        Raises:
            UnknownProviderError: If the provider is not supported
            ValidationError: If a file payload is not valid base64
        """
        provider_id = ProviderId.parse(provider)
        request = payload.to_domain()

        logger.info(
            "analysis_requested",
            provider=provider_id.value,
            file_count=len(request.files),
            files=[f"{f.name} ({f.byte_size / 1024:.2f}KB)" for f in request.files],
        )
        result = await svc.analyze_encoded(provider_id, request)

        if result.error is not None:
            return _error_response(
                app_settings,
                STATUS_BY_KIND.get(result.error.kind, 500),
                result.error.message,
            )
        return AnalyzeResponse(result=result.report_text or "")

    return app


app = create_app()
