# produce_tracker/services/classifier.py
"""Client for the hosted classification and generation models.

One ``ClassifierHandle`` is owned by the application and injected into
every stage that needs it. Loading is lazy and single-flight: the first
caller warms the hosted model up while concurrent callers wait on the same
lock instead of issuing their own warm-up requests. A failed load is
remembered for ``retry_cooldown`` seconds so a request does not pay the
load timeout once per stage.
"""

import asyncio
import time
from typing import Any, Optional

import httpx
import structlog

from produce_tracker.core.config import Settings
from produce_tracker.core.errors import ConfigurationError, InferenceError, ModelUnavailable
from produce_tracker.models.dto import ClassifierVerdict

logger = structlog.get_logger(__name__)

WARMUP_PROMPT = "Fresh seasonal produce is good."


class ClassifierHandle:
    def __init__(
        self,
        token: Optional[str],
        classification_model: str,
        generation_model: str,
        base_url: str = "https://router.huggingface.co/hf-inference/models",
        timeout: float = 15.0,
        load_timeout: float = 60.0,
        poll_interval: float = 2.0,
        retry_cooldown: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.classification_model = classification_model
        self.generation_model = generation_model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.load_timeout = load_timeout
        self.poll_interval = poll_interval
        self.retry_cooldown = retry_cooldown
        self._transport = transport

        self._loaded = False
        self._load_lock = asyncio.Lock()
        self._failed_at: Optional[float] = None
        self.load_attempts = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClassifierHandle":
        return cls(
            token=settings.HUGGING_FACE_TOKEN,
            classification_model=settings.CLASSIFIER_MODEL,
            generation_model=settings.GENERATOR_MODEL,
            base_url=settings.HF_INFERENCE_URL,
            timeout=settings.CLASSIFIER_TIMEOUT,
            load_timeout=settings.CLASSIFIER_LOAD_TIMEOUT,
            poll_interval=settings.CLASSIFIER_LOAD_POLL_INTERVAL,
            retry_cooldown=settings.CLASSIFIER_RETRY_COOLDOWN,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.token)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_unavailable(self) -> bool:
        """True while a failed load is inside its cooldown window."""
        return self._failed_at is not None and not self._loaded

    def require_credentials(self) -> None:
        if not self.token:
            raise ConfigurationError(
                "Missing Hugging Face access token. Set HUGGING_FACE_TOKEN to analyze produce."
            )

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _post(self, model: str, payload: dict) -> httpx.Response:
        self.require_credentials()
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/{model}",
                json=payload,
                headers={"Authorization": f"Bearer {self.token}"},
            )
        if response.status_code in (401, 403):
            raise ConfigurationError(f"Inference provider rejected the access token (HTTP {response.status_code})")
        return response

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def ensure_loaded(self) -> None:
        """Warm the classification model once per process."""
        if self._loaded:
            return
        self.require_credentials()
        async with self._load_lock:
            if self._loaded:
                return
            if self._failed_at is not None and time.monotonic() - self._failed_at < self.retry_cooldown:
                raise ModelUnavailable("Classifier failed to load recently; using static heuristics")
            try:
                await self._load()
            except ModelUnavailable:
                self._failed_at = time.monotonic()
                raise
            self._loaded = True
            self._failed_at = None

    async def _load(self) -> None:
        self.load_attempts += 1
        deadline = time.monotonic() + self.load_timeout
        logger.info("classifier_loading", model=self.classification_model)
        while True:
            try:
                response = await self._post(self.classification_model, {"inputs": WARMUP_PROMPT})
            except httpx.HTTPError as e:
                logger.warning("classifier_load_failed", model=self.classification_model, error=str(e))
                raise ModelUnavailable(f"Could not reach {self.classification_model}") from e

            if response.status_code == 200:
                logger.info("classifier_loaded", model=self.classification_model)
                return
            if response.status_code != 503:
                logger.warning("classifier_load_failed", model=self.classification_model, status_code=response.status_code)
                raise ModelUnavailable(f"{self.classification_model} returned HTTP {response.status_code}")

            # 503 means the hosted model is still being loaded
            if time.monotonic() + self.poll_interval > deadline:
                logger.warning("classifier_load_timeout", model=self.classification_model, waited_s=self.load_timeout)
                raise ModelUnavailable(f"{self.classification_model} did not finish loading in time")
            await asyncio.sleep(self.poll_interval)

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    async def infer(self, prompt: str) -> ClassifierVerdict:
        """Classify ``prompt`` and return the highest scoring label."""
        await self.ensure_loaded()
        try:
            response = await self._post(self.classification_model, {"inputs": prompt})
            response.raise_for_status()
            return _top_verdict(response.json())
        except ConfigurationError:
            raise
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning("classifier_inference_failed", error=str(e))
            raise InferenceError(f"Classification failed for prompt: {prompt[:60]}") from e

    async def generate(self, prompt: str, max_length: int = 150) -> str:
        """Generate a continuation of ``prompt`` with the generation model."""
        self.require_credentials()
        payload = {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": max_length,
                "temperature": 0.3,
                "top_p": 0.95,
                "return_full_text": False,
            },
        }
        try:
            response = await self._post(self.generation_model, payload)
            if response.status_code == 503:
                raise ModelUnavailable(f"{self.generation_model} is still loading")
            response.raise_for_status()
            data = response.json()
            if isinstance(data, list):
                data = data[0]
            return str(data.get("generated_text", "")).strip()
        except (ConfigurationError, ModelUnavailable):
            raise
        except (httpx.HTTPError, ValueError, KeyError, IndexError, AttributeError) as e:
            logger.warning("generation_failed", error=str(e))
            raise InferenceError("Text generation failed") from e


def _top_verdict(data: Any) -> ClassifierVerdict:
    # The API returns [[{label, score}, ...]] for single inputs, sometimes flattened
    candidates = data[0] if data and isinstance(data[0], list) else data
    best = max(candidates, key=lambda item: item["score"])
    label = str(best["label"]).upper()
    if label in ("LABEL_1", "POS"):
        label = "POSITIVE"
    elif label in ("LABEL_0", "NEG"):
        label = "NEGATIVE"
    return ClassifierVerdict(label=label, score=float(best["score"]))
