# produce_tracker/main.py
# Application factory: lifecycle of the shared provider clients, middleware,
# exception mapping and the health check.

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import uuid

import structlog

from produce_tracker.core.config import Settings, settings as default_settings
from produce_tracker.core.errors import ConfigurationError, LocationUnavailable, PipelineFailure
from produce_tracker.core.middleware import SessionMiddleware, SessionRegistry
from produce_tracker.api.routes import router as api_router
from produce_tracker.logging import configure_logging
from produce_tracker.middleware.logging import LoggingMiddleware
from produce_tracker.models.dto import ErrorResponse
from produce_tracker.services.classifier import ClassifierHandle
from produce_tracker.services.geocode_cache import GeocodeCache, build_geocode_cache
from produce_tracker.services.geocoding import GeocodingProvider
from produce_tracker.services.pipeline import SustainabilityPipeline

logger = structlog.get_logger(__name__)


def _error(status_code: int, error: str, detail: str, **extra) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail).model_dump(exclude_none=True)
    body.update(extra)
    return JSONResponse(status_code=status_code, content={"detail": body})


def create_app(
    settings: Optional[Settings] = None,
    classifier: Optional[ClassifierHandle] = None,
    geocoder: Optional[GeocodingProvider] = None,
    cache: Optional[GeocodeCache] = None,
) -> FastAPI:
    """
    Builds the API. Collaborators default to the real providers configured
    from ``settings``; tests pass fakes instead.
    """
    settings = settings or default_settings

    # --- Application Lifecycle Management ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("app_startup", version=settings.VERSION, env=settings.ENV)

        app.state.classifier = classifier or ClassifierHandle.from_settings(settings)
        app.state.geocoder = geocoder or GeocodingProvider.from_settings(settings)
        app.state.geocode_cache = cache or build_geocode_cache(settings)

        if not app.state.classifier.is_configured:
            # Startup continues; every analysis fails with CONFIGURATION_ERROR until the token is set
            logger.warning("classifier_token_missing", setting="HUGGING_FACE_TOKEN")
        if not app.state.geocoder.supports_routing:
            logger.info("routing_disabled", reason="MAPBOX_TOKEN not set; using haversine distances")

        def pipeline_factory() -> SustainabilityPipeline:
            return SustainabilityPipeline.build(
                settings,
                app.state.classifier,
                app.state.geocoder,
                app.state.geocode_cache,
            )

        app.state.sessions = SessionRegistry(pipeline_factory)

        yield

        logger.info("app_shutdown")
        close = getattr(app.state.geocode_cache, "close", None)
        if close is not None:
            await close()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description=settings.BRIEF_DESCRIPTION,
        lifespan=lifespan,
    )

    # --- Middleware ---
    # Added last runs first: request logging wraps the session cookie handling
    app.add_middleware(SessionMiddleware)
    app.add_middleware(LoggingMiddleware)

    # --- API Routes ---
    app.include_router(api_router, prefix="/api")

    # --- Health Check Endpoint ---
    @app.get("/health", status_code=status.HTTP_200_OK)
    async def health_check(request: Request):
        return {
            "status": "ok",
            "classifier_configured": request.app.state.classifier.is_configured,
            "routing_configured": request.app.state.geocoder.supports_routing,
        }

    # --- Exception Handlers ---
    @app.exception_handler(LocationUnavailable)
    async def location_unavailable_handler(request: Request, exc: LocationUnavailable):
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "LOCATION_UNAVAILABLE",
            str(exc),
            reason=exc.reason,
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "CONFIGURATION_ERROR", str(exc))

    @app.exception_handler(PipelineFailure)
    async def pipeline_failure_handler(request: Request, exc: PipelineFailure):
        return _error(
            status.HTTP_502_BAD_GATEWAY,
            "ANALYSIS_FAILED",
            "Failed to analyze produce sustainability. Please retry; your query was kept.",
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        error_id = str(uuid.uuid4())
        logger.error("unhandled_exception", error_id=error_id, exc_info=exc)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred. Please report this error ID.",
            error_id=error_id,
        )

    return app


configure_logging()
app = create_app()
