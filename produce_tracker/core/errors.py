"""Error taxonomy shared by the pipeline stages and the HTTP layer.

Stages recover locally wherever they can; only ``LocationUnavailable``,
``ConfigurationError`` and ``PipelineFailure`` are expected to reach the
API boundary.
"""

from typing import Any, Optional


class ProduceTrackerError(Exception):
    """Base class for every error raised by the tracker."""


class LocationUnavailable(ProduceTrackerError):
    """No coordinates and no resolvable location text were available."""

    reason = "unresolved"

    def __init__(self, message: str = "Unable to determine your location. Please enter your location manually."):
        super().__init__(message)


class GeolocationDenied(LocationUnavailable):
    reason = "denied"


class GeolocationUnavailable(LocationUnavailable):
    reason = "unavailable"


class GeolocationTimeout(LocationUnavailable):
    reason = "timeout"


class DistanceProviderError(ProduceTrackerError):
    """Geocoding or routing provider failed; callers fall back to haversine."""


class ClassifierError(ProduceTrackerError):
    """Base for classification/generation provider failures."""


class ModelUnavailable(ClassifierError):
    """The hosted model could not be loaded."""


class InferenceError(ClassifierError):
    """A single inference call failed after the model was loaded."""


class ConfigurationError(ProduceTrackerError):
    """A required credential or setting is missing or rejected."""


class PipelineFailure(ProduceTrackerError):
    """A stage failed after exhausting its fallbacks.

    The original query is kept so the caller can retry without asking the
    user to re-enter anything.
    """

    def __init__(self, message: str, query: Optional[Any] = None):
        self.query = query
        super().__init__(message)
