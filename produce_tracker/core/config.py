# produce_tracker/core/config.py
# Environment-driven settings for the sustainability pipeline and its providers.

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Sustainable Produce Tracker"
    VERSION: str = "0.3.0"
    BRIEF_DESCRIPTION: str = "Estimates the travel distance and CO2 footprint of produce and suggests lower-impact alternatives."

    ENV: str = Field("development", description="Application environment (e.g., production, development)")

    # --- Classification / generation provider ---
    HUGGING_FACE_TOKEN: Optional[str] = Field(None, description="Access token for the Hugging Face inference API")
    HF_INFERENCE_URL: str = Field(
        "https://router.huggingface.co/hf-inference/models",
        description="Base URL of the hosted inference API (model id is appended)"
    )
    CLASSIFIER_MODEL: str = Field(
        "distilbert/distilbert-base-uncased-finetuned-sst-2-english",
        description="Text-classification model used as a yes/no oracle"
    )
    GENERATOR_MODEL: str = Field(
        "TinyLlama/TinyLlama-1.1B-Chat-v1.0",
        description="Text-generation model used for optional ripening descriptions"
    )
    CLASSIFIER_TIMEOUT: float = 15.0 # seconds per inference call
    CLASSIFIER_LOAD_TIMEOUT: float = 60.0 # max wait while the hosted model warms up
    CLASSIFIER_LOAD_POLL_INTERVAL: float = 2.0
    CLASSIFIER_RETRY_COOLDOWN: float = 60.0 # seconds before a failed load is retried
    CLASSIFIER_CONFIDENCE_THRESHOLD: float = 0.7
    ENABLE_GENERATIVE_RIPENING: bool = Field(False, description="Ask the generator model to phrase ripening explanations")

    # --- Geocoding / routing provider ---
    MAPBOX_TOKEN: Optional[str] = Field(None, description="Mapbox token for geocoding and driving distances")
    MAPBOX_TIMEOUT: int = 8 # seconds
    MAPBOX_MAX_RETRIES: int = 2
    MAPBOX_INITIAL_BACKOFF: float = 1.0 # seconds
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org"
    NOMINATIM_USER_AGENT: str = "SustainableProduceTracker/0.3 (produce footprint estimates)"
    GEOLOCATION_TIMEOUT: float = 10.0

    # --- Pipeline tuning ---
    DEFAULT_DISTANCE_KM: int = Field(5000, description="Distance used when no location can be resolved")
    MAX_ALTERNATIVES: int = 6
    MIN_ALTERNATIVES: int = 2
    MIN_DISTANCE_REDUCTION: int = Field(30, description="Alternatives must cut travel by at least this percentage")
    MAX_CANDIDATES: int = 12

    # --- Geocode cache ---
    ENABLE_REDIS: bool = Field(False, description="Feature flag for the Redis geocode cache")
    REDIS_URL: Optional[str] = Field(None, description="Redis URL for the shared geocode cache")
    GEOCODE_CACHE_TTL: int = 60 * 60 * 24 * 30

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
