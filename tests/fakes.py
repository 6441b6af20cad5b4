"""Shared test doubles.

Every provider is replaced through constructor injection; no test touches
the network.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from produce_tracker.core.errors import ConfigurationError, DistanceProviderError, ModelUnavailable
from produce_tracker.models.dto import ClassifierVerdict, Coordinates

AMSTERDAM = Coordinates(lat=52.37, lng=4.90)


class FakeClassifier:
    """
    Stand-in for ClassifierHandle.

    ``rules`` is a list of (prompt fragment, outcome) pairs checked in order;
    an outcome is either a (label, score) tuple or an exception instance to
    raise. Prompts matching no rule get ``default``.
    """

    def __init__(
        self,
        rules: Sequence[Tuple[str, object]] = (),
        default: Tuple[str, float] = ("POSITIVE", 0.9),
        configured: bool = True,
        unavailable: bool = False,
        generated: str = "",
    ):
        self.rules = list(rules)
        self.default = default
        self.configured = configured
        self.unavailable = unavailable
        self.generated = generated
        self.prompts: List[str] = []
        self.generation_prompts: List[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    @property
    def is_unavailable(self) -> bool:
        return self.unavailable

    def require_credentials(self) -> None:
        if not self.configured:
            raise ConfigurationError("Missing Hugging Face access token.")

    async def ensure_loaded(self) -> None:
        self.require_credentials()
        if self.unavailable:
            raise ModelUnavailable("model failed to load")

    async def infer(self, prompt: str) -> ClassifierVerdict:
        self.prompts.append(prompt)
        await self.ensure_loaded()
        outcome = self.default
        for fragment, rule in self.rules:
            if fragment in prompt:
                outcome = rule
                break
        if isinstance(outcome, Exception):
            raise outcome
        label, score = outcome
        return ClassifierVerdict(label=label, score=score)

    async def generate(self, prompt: str, max_length: int = 150) -> str:
        self.generation_prompts.append(prompt)
        await self.ensure_loaded()
        return self.generated


class FakeGeocoder:
    """Stand-in for GeocodingProvider backed by dictionaries."""

    def __init__(
        self,
        places: Optional[Dict[str, Coordinates]] = None,
        reverse: Tuple[Optional[str], Optional[str]] = (None, None),
        route_km: Optional[float] = None,
    ):
        self.places = {k.lower(): v for k, v in (places or {}).items()}
        self.reverse = reverse
        self.route_km = route_km
        self.geocode_calls: List[str] = []
        self.route_calls = 0

    @property
    def supports_routing(self) -> bool:
        return self.route_km is not None

    async def geocode(self, place: str) -> Coordinates:
        self.geocode_calls.append(place)
        try:
            return self.places[place.lower()]
        except KeyError:
            raise DistanceProviderError(f"No geocoding result for '{place}'")

    async def reverse_geocode(self, coords: Coordinates):
        if self.reverse == (None, None):
            raise DistanceProviderError("reverse lookup failed")
        return self.reverse

    async def route_distance(self, origin: Coordinates, destination: Coordinates) -> float:
        self.route_calls += 1
        if self.route_km is None:
            raise DistanceProviderError("Routing provider is not configured")
        return self.route_km
