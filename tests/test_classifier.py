"""Tests for the hosted classifier client.

HTTP is served by httpx.MockTransport; no request leaves the process.
"""

import asyncio
import json

import httpx
import pytest

from produce_tracker.core.errors import ConfigurationError, InferenceError, ModelUnavailable
from produce_tracker.services.classifier import WARMUP_PROMPT, ClassifierHandle

POSITIVE = [[{"label": "POSITIVE", "score": 0.93}, {"label": "NEGATIVE", "score": 0.07}]]


class Recorder:
    """Mock transport handler that replays queued responses per prompt."""

    def __init__(self, warmup_statuses=(200,), verdict=POSITIVE, status_code=200):
        self.warmup_statuses = list(warmup_statuses)
        self.verdict = verdict
        self.status_code = status_code
        self.warmups = 0
        self.inferences = 0
        self.urls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        body = json.loads(request.content)
        if body["inputs"] == WARMUP_PROMPT:
            self.warmups += 1
            status_code = self.warmup_statuses.pop(0) if len(self.warmup_statuses) > 1 else self.warmup_statuses[0]
            return httpx.Response(status_code, json={"error": "loading"} if status_code == 503 else POSITIVE)
        self.inferences += 1
        return httpx.Response(self.status_code, json=self.verdict)


def make_handle(handler, token="hf_test", **kwargs):
    kwargs.setdefault("poll_interval", 0)
    return ClassifierHandle(
        token=token,
        classification_model="org/classifier",
        generation_model="org/generator",
        base_url="https://inference.test/models",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestCredentials:

    def test_missing_token(self):
        handle = make_handle(Recorder(), token=None)
        assert handle.is_configured is False
        with pytest.raises(ConfigurationError):
            handle.require_credentials()
        with pytest.raises(ConfigurationError):
            asyncio.run(handle.infer("anything"))

    def test_rejected_token(self):
        handle = make_handle(lambda request: httpx.Response(401, json={"error": "unauthorized"}))
        with pytest.raises(ConfigurationError):
            asyncio.run(handle.infer("anything"))


class TestLoading:

    def test_infer_returns_top_label(self):
        recorder = Recorder()
        handle = make_handle(recorder)
        verdict = asyncio.run(handle.infer("apples are grown locally in Oslo"))
        assert verdict.label == "POSITIVE"
        assert verdict.score == pytest.approx(0.93)
        assert handle.is_loaded
        assert recorder.urls[0] == "https://inference.test/models/org/classifier"

    def test_polls_while_model_loads(self):
        recorder = Recorder(warmup_statuses=(503, 503, 200))
        handle = make_handle(recorder)
        asyncio.run(handle.infer("x"))
        assert recorder.warmups == 3
        assert handle.load_attempts == 1

    def test_single_flight_load(self):
        """Test that concurrent callers share one warm-up."""
        recorder = Recorder(warmup_statuses=(503, 200))
        handle = make_handle(recorder)

        async def burst():
            return await asyncio.gather(*(handle.infer(f"prompt {i}") for i in range(5)))

        verdicts = asyncio.run(burst())
        assert len(verdicts) == 5
        assert handle.load_attempts == 1
        assert recorder.warmups == 2
        assert recorder.inferences == 5

    def test_load_timeout(self):
        recorder = Recorder(warmup_statuses=(503,))
        handle = make_handle(recorder, load_timeout=0, poll_interval=0.01)
        with pytest.raises(ModelUnavailable):
            asyncio.run(handle.ensure_loaded())
        assert handle.is_unavailable

    def test_failed_load_is_remembered(self):
        recorder = Recorder(warmup_statuses=(500,))
        handle = make_handle(recorder, retry_cooldown=60)

        async def twice():
            for _ in range(2):
                with pytest.raises(ModelUnavailable):
                    await handle.ensure_loaded()

        asyncio.run(twice())
        assert recorder.warmups == 1
        assert handle.load_attempts == 1

    def test_retry_after_cooldown(self):
        recorder = Recorder(warmup_statuses=(500, 200))
        handle = make_handle(recorder, retry_cooldown=0)

        async def twice():
            with pytest.raises(ModelUnavailable):
                await handle.ensure_loaded()
            await handle.ensure_loaded()

        asyncio.run(twice())
        assert handle.is_loaded
        assert handle.is_unavailable is False
        assert handle.load_attempts == 2


class TestInference:

    def test_label_ids_are_mapped(self):
        recorder = Recorder(verdict=[[{"label": "LABEL_0", "score": 0.8}, {"label": "LABEL_1", "score": 0.2}]])
        verdict = asyncio.run(make_handle(recorder).infer("x"))
        assert verdict.label == "NEGATIVE"
        assert verdict.positive_likelihood == pytest.approx(0.2)

    def test_flat_response(self):
        recorder = Recorder(verdict=[{"label": "NEGATIVE", "score": 0.6}, {"label": "POSITIVE", "score": 0.4}])
        assert asyncio.run(make_handle(recorder).infer("x")).label == "NEGATIVE"

    def test_server_error(self):
        recorder = Recorder(status_code=500, verdict={"error": "boom"})
        with pytest.raises(InferenceError):
            asyncio.run(make_handle(recorder).infer("x"))

    def test_malformed_response(self):
        recorder = Recorder(verdict={"unexpected": True})
        with pytest.raises(InferenceError):
            asyncio.run(make_handle(recorder).infer("x"))


class TestGeneration:

    def test_generated_text(self):
        def handler(request):
            assert request.url.path.endswith("org/generator")
            return httpx.Response(200, json=[{"generated_text": "  Ripened with ethylene.  "}])

        assert asyncio.run(make_handle(handler).generate("prompt")) == "Ripened with ethylene."

    def test_generator_loading(self):
        handle = make_handle(lambda request: httpx.Response(503, json={"error": "loading"}))
        with pytest.raises(ModelUnavailable):
            asyncio.run(handle.generate("prompt"))
