# produce_tracker/models/dto.py
# Domain records for the sustainability pipeline and the public request/response DTOs.
# Attributes are snake_case; JSON uses the camelCase names the UI expects.

import math
from enum import Enum
from typing import FrozenSet, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Nutrient scales used to normalize the similarity vector
NUTRIENT_SCALE = (100.0, 10.0, 30.0, 10.0)


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# --- Locations ---

class Coordinates(_Record):
    """A point on the globe in decimal degrees."""
    lat: float = Field(..., ge=-90, le=90, description="Latitude.")
    lng: float = Field(..., ge=-180, le=180, description="Longitude.")


class UserLocation(_Record):
    """Where the consumer is, either as browser coordinates or as typed text."""
    city: Optional[str] = Field(None, description="City name entered or reverse-geocoded.")
    country: Optional[str] = Field(None, description="Country name entered or reverse-geocoded.")
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="Browser latitude.")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="Browser longitude.")

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def has_text(self) -> bool:
        return bool((self.city or "").strip() or (self.country or "").strip())

    def text(self) -> str:
        """City and country joined for geocoding, empty when neither is set."""
        parts = [p.strip() for p in (self.city, self.country) if p and p.strip()]
        return ", ".join(parts)

    def display_name(self) -> Optional[str]:
        return self.text() or None


class ProduceQuery(_Record):
    """One form submission."""
    produce_name: str = Field(..., min_length=1, description="Produce under analysis, e.g. 'avocado'.")
    source_location: str = Field(..., min_length=1, description="Where the produce was grown.")
    user_location: UserLocation = Field(default_factory=UserLocation)


# --- Classifier ---

class ClassifierVerdict(_Record):
    """Output of the confidence-scored yes/no oracle."""
    label: Literal["POSITIVE", "NEGATIVE"]
    score: float = Field(..., ge=0, le=1)

    @property
    def positive_likelihood(self) -> float:
        return self.score if self.label == "POSITIVE" else 1.0 - self.score


# --- Nutrition ---

class NutritionFeatures(_Record):
    """Per-100g nutrients, only used as an intermediate similarity vector."""
    calories: float = Field(..., ge=0)
    protein: float = Field(..., ge=0)
    carbs: float = Field(..., ge=0)
    fat: float = Field(..., ge=0)
    vitamins: FrozenSet[str] = Field(default_factory=frozenset)

    def vector(self) -> Tuple[float, float, float, float]:
        values = (self.calories, self.protein, self.carbs, self.fat)
        return tuple(v / scale for v, scale in zip(values, NUTRIENT_SCALE))

    def cosine_similarity(self, other: "NutritionFeatures") -> float:
        a, b = self.vector(), other.vector()
        dot = sum(x * y for x, y in zip(a, b))
        norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
        if norm == 0:
            return 0.0
        return max(0.0, min(1.0, dot / norm))

    def shared_vitamins(self, other: "NutritionFeatures") -> List[str]:
        return sorted(self.vitamins & other.vitamins)


# --- Results ---

class AlternativeOption(_Record):
    """A lower-impact substitute for the queried produce."""
    name: str
    co2_impact: float = Field(..., ge=0, description="kg CO2 per kg of produce.")
    distance_reduction: int = Field(..., ge=0, le=100, description="Percent less travel than the original.")
    benefits: List[str] = Field(..., min_length=1)
    nutritional_similarity: Optional[str] = None


class ProduceInfo(_Record):
    """Final pipeline output held by the UI until the next query or a reset."""
    name: str
    source: str
    co2_impact: float = Field(..., ge=0)
    travel_distance: int = Field(..., ge=0, description="Kilometres from source to consumer.")
    ripening_method: Optional[str] = None
    in_season: bool
    seasonal_alternatives: List[AlternativeOption] = Field(default_factory=list)
    local_alternatives: List[AlternativeOption] = Field(default_factory=list)
    user_location: str


# --- API Request / Response Models ---

class AnalyzeRequest(_Record):
    """Request model for POST /api/analyze."""
    produce_name: str = Field(..., min_length=1)
    source_location: str = Field(..., min_length=1)
    user_location: UserLocation = Field(default_factory=UserLocation)
    geolocation_error: Optional[Literal["denied", "unavailable", "timeout"]] = Field(
        None, description="Outcome of the browser geolocation prompt when it did not yield coordinates."
    )

    def to_query(self) -> ProduceQuery:
        return ProduceQuery(
            produce_name=self.produce_name.strip(),
            source_location=self.source_location.strip(),
            user_location=self.user_location,
        )


class PipelineState(str, Enum):
    IDLE = "IDLE"
    RESOLVING = "RESOLVING"
    CALCULATING = "CALCULATING"
    ANALYZING = "ANALYZING"
    RANKING = "RANKING"
    DONE = "DONE"
    FAILED = "FAILED"


class AnalyzeResponse(_Record):
    state: PipelineState
    result: ProduceInfo
    warnings: List[str] = Field(default_factory=list)


class SessionStatus(_Record):
    state: PipelineState
    has_result: bool
    has_query: bool


# --- Error Response Model ---

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="A machine-readable error code.")
    detail: str = Field(..., description="A human-readable explanation.")
    retry_after_seconds: Optional[int] = Field(None, description="Time until retry is allowed.")
