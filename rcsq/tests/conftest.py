import pytest

from rcsq.config.settings import RCSQConfig
from rcsq.utils.retry import RetryPolicy
from rcsq.video_pipeline.core.usage.usage_tracker import UsageTracker
from .fakes import (
    FakeEmbeddingProvider,
    FakeFaceDetectionProvider,
    FakeImageEmbeddingProvider,
    FakeLLMProvider,
    FakeMediaExtractor,
    FakeTranscriptionProvider,
    FakeVisionProvider,
)


@pytest.fixture
def tracker():
    return UsageTracker()


@pytest.fixture
def instant_retry():
    """Retry policy with zero backoff so retry tests do not sleep."""
    return RetryPolicy(max_retries=3, initial_backoff=0.0, max_backoff=0.0, jitter=0.0)


@pytest.fixture
def config(monkeypatch):
    for name in ("FACE_DETECTION_ENABLED", "FRAME_INTERVAL_SEC", "MAX_FRAMES", "RUN_TIMEOUT_SEC"):
        monkeypatch.delenv(name, raising=False)
    return RCSQConfig()


@pytest.fixture
def fake_providers():
    return {
        "transcription_provider": FakeTranscriptionProvider(),
        "llm_provider": FakeLLMProvider(),
        "vision_provider": FakeVisionProvider(),
        "embedding_provider": FakeEmbeddingProvider(),
        "image_embedding_provider": FakeImageEmbeddingProvider(),
        "face_detection_provider": FakeFaceDetectionProvider(),
    }


@pytest.fixture
def pipeline_kwargs(fake_providers, config):
    return {
        **fake_providers,
        "media_extractor": FakeMediaExtractor(duration_sec=30.0),
        "config": config,
        "disable_console_log": True,
    }
