import re
import secrets
from collections import OrderedDict
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from structlog.contextvars import bind_contextvars

from produce_tracker.core.config import settings
from produce_tracker.services.pipeline import AnalysisSession, SustainabilityPipeline

SESSION_COOKIE = "pt_session"
SESSION_MAX_AGE = 60 * 60 * 24 * 7
_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{16,64}$")


class SessionRegistry:
    """
    In-process map of session id -> AnalysisSession.
    Least recently used sessions are evicted once ``max_sessions`` is reached.
    """

    def __init__(self, pipeline_factory: Callable[[], SustainabilityPipeline], max_sessions: int = 1000):
        self.pipeline_factory = pipeline_factory
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, AnalysisSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> Optional[AnalysisSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
        return session

    def get_or_create(self, session_id: str) -> AnalysisSession:
        session = self.get(session_id)
        if session is None:
            session = AnalysisSession(self.pipeline_factory)
            self._sessions[session_id] = session
            while len(self._sessions) > self.max_sessions:
                self._sessions.popitem(last=False)
        return session


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Ensures every client has a 'pt_session' cookie so its last query and
    result survive between requests.
    """
    async def dispatch(self, request: Request, call_next):
        session_id = request.cookies.get(SESSION_COOKIE)
        created_new = False
        if not session_id or not _SESSION_ID.match(session_id):
            session_id = secrets.token_urlsafe(24)
            created_new = True

        request.state.session_id = session_id
        bind_contextvars(session_id=session_id[:8])

        response = await call_next(request)

        if created_new:
            response.set_cookie(
                key=SESSION_COOKIE,
                value=session_id,
                max_age=SESSION_MAX_AGE,
                httponly=True,
                secure=(settings.ENV == "production"),
                samesite="lax"
            )

        return response
