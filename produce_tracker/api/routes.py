# produce_tracker/api/routes.py
# JSON API consumed by the produce tracker UI.
# Domain errors (LocationUnavailable, ConfigurationError, PipelineFailure)
# propagate to the exception handlers registered in main.py.

from fastapi import APIRouter, Request, HTTPException, status, Depends
import structlog
from typing import Optional

from produce_tracker.core.errors import (
    GeolocationDenied,
    GeolocationTimeout,
    GeolocationUnavailable,
)
from produce_tracker.models.dto import (
    AnalyzeRequest,
    AnalyzeResponse,
    Coordinates,
    ErrorResponse,
    SessionStatus,
)
from produce_tracker.services.location_resolver import PositionSource
from produce_tracker.services.pipeline import AnalysisOutcome, AnalysisSession, StaleResult

router = APIRouter()
logger = structlog.get_logger(__name__)

GEOLOCATION_ERRORS = {
    "denied": GeolocationDenied,
    "unavailable": GeolocationUnavailable,
    "timeout": GeolocationTimeout,
}


class ReportedPosition:
    """
    PositionSource replaying the outcome of the geolocation prompt the
    browser already showed, so the resolver applies the same rules it would
    to a live request.
    """

    def __init__(self, error: str):
        self.error = error

    async def get_current_position(self) -> Coordinates:
        raise GEOLOCATION_ERRORS[self.error]()


def position_source_for(data: AnalyzeRequest) -> Optional[PositionSource]:
    if data.geolocation_error and not data.user_location.has_coordinates:
        return ReportedPosition(data.geolocation_error)
    return None


# ----------------------------------------------------------------------
# Session dependency
# ----------------------------------------------------------------------
def get_session(request: Request) -> AnalysisSession:
    """Session for the 'pt_session' cookie set by SessionMiddleware."""
    return request.app.state.sessions.get_or_create(request.state.session_id)


def _response(session: AnalysisSession, outcome: AnalysisOutcome) -> AnalyzeResponse:
    return AnalyzeResponse(state=session.state, result=outcome.info, warnings=outcome.warnings)


async def _run(session: AnalysisSession, coro) -> AnalyzeResponse:
    try:
        outcome = await coro
    except StaleResult as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ErrorResponse(
                error="SUPERSEDED",
                detail="A newer analysis was started before this one finished.",
            ).model_dump(),
        ) from e
    return _response(session, outcome)


# ----------------------------------------------------------------------
# Analysis
# ----------------------------------------------------------------------
@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def analyze(data: AnalyzeRequest, session: AnalysisSession = Depends(get_session)):
    """Run the full pipeline for one produce query."""
    if not data.produce_name.strip() or not data.source_location.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorResponse(
                error="INVALID_QUERY",
                detail="Please enter both a produce name and where it was grown.",
            ).model_dump(),
        )
    query = data.to_query()

    logger.info("analyze_requested", produce=query.produce_name, source=query.source_location)
    return await _run(session, session.submit(query, position_source_for(data)))


@router.get(
    "/result",
    response_model=AnalyzeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_result(session: AnalysisSession = Depends(get_session)):
    """Last successful result for this session."""
    if session.outcome is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=ErrorResponse(
                error="NO_RESULT",
                detail="No analysis result yet. Submit a produce query first.",
            ).model_dump(),
        )
    return _response(session, session.outcome)


@router.post(
    "/retry",
    response_model=AnalyzeResponse,
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def retry(session: AnalysisSession = Depends(get_session)):
    """Re-run the last submitted query without re-entering it."""
    if session.last_query is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=ErrorResponse(
                error="NO_QUERY",
                detail="There is no previous query to retry.",
            ).model_dump(),
        )
    logger.info("analyze_retry", produce=session.last_query.produce_name)
    return await _run(session, session.retry())


@router.post("/reset", response_model=SessionStatus)
async def reset(session: AnalysisSession = Depends(get_session)):
    session.reset()
    return _status(session)


@router.get("/status", response_model=SessionStatus)
async def get_status(session: AnalysisSession = Depends(get_session)):
    return _status(session)


def _status(session: AnalysisSession) -> SessionStatus:
    return SessionStatus(
        state=session.state,
        has_result=session.outcome is not None,
        has_query=session.last_query is not None,
    )
