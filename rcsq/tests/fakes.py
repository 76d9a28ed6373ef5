"""
In-memory stand-ins for the external collaborators.

Each fake implements the matching provider contract and records the calls it
receives, so tests can assert on ordering and attempt counts without network
access or ffmpeg binaries.
"""

import asyncio
from io import BytesIO
from typing import Callable, Dict, List, Optional

from PIL import Image

from rcsq.exceptions import ProviderException
from rcsq.providers.base import (
    EmbeddingProvider,
    FaceDetectionProvider,
    ImageEmbeddingProvider,
    LLMProvider,
    TranscriptionProvider,
    VisionProvider,
)
from rcsq.providers.provider_models import (
    EmbeddingBatch,
    EmbeddingItem,
    EmbeddingResult,
    RawFaceDetection,
    TranscriptionResult,
    TranscriptSegment,
)
from rcsq.video_pipeline.core.media.media_extractor import MediaExtractor, plan_frame_timestamps
from rcsq.video_pipeline.core.models import ExtractedFrame, TechnicalInfo


def make_jpeg(width: int = 64, height: int = 48, color=(120, 80, 40)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


def make_segments(texts: List[str]) -> List[TranscriptSegment]:
    return [
        TranscriptSegment(
            ordinal_index=position,
            start_sec=position * 5.0,
            end_sec=position * 5.0 + 4.5,
            text=text,
            avg_log_probability=-0.1,
        )
        for position, text in enumerate(texts)
    ]


class FakeTranscriptionProvider(TranscriptionProvider):
    def __init__(self, texts: Optional[List[str]] = None, language: str = "en"):
        self.texts = texts if texts is not None else ["Welcome to the lecture.", "Today we cover gradients."]
        self.language = language
        self.calls = 0
        self.closed = False

    async def transcribe(self, audio_data: bytes, mime_type: str = "audio/wav", **kwargs) -> TranscriptionResult:
        self.calls += 1
        segments = make_segments(self.texts)
        return TranscriptionResult(
            text=" ".join(self.texts),
            segments=segments,
            language=self.language,
            duration=segments[-1].end_sec if segments else 0.0,
        )

    async def close(self):
        self.closed = True


class FakeLLMProvider(LLMProvider):
    def __init__(self, content: str = None, usage: Optional[Dict[str, int]] = None):
        self.content = content or (
            '{"topics": [{"label": "Introduction", "description": "Opening remarks",'
            ' "summary": "The lecture begins.", "segmentIds": ["seg_0001"]},'
            ' {"label": "Gradients", "description": "Core material",'
            ' "summary": "Gradients are explained.", "segment_ids": ["seg_0002"]}]}'
        )
        self.usage = usage
        self.messages: List[List[Dict]] = []
        self.closed = False

    async def chat_completion(self, messages: List[Dict], **kwargs) -> Dict:
        self.messages.append(messages)
        return {"content": self.content, "usage": self.usage, "model": "fake-llm"}

    async def close(self):
        self.closed = True


class FakeVisionProvider(VisionProvider):
    """
    Captions frames as ``caption-<n bytes>``.

    ``delays`` maps an image payload to a sleep before answering, used to force
    out-of-order completion. ``fail_on`` payloads raise a terminal error.
    """

    def __init__(self, delays: Optional[Dict[bytes, float]] = None, fail_on: Optional[set] = None):
        self.delays = delays or {}
        self.fail_on = fail_on or set()
        self.calls: List[bytes] = []
        self.closed = False

    async def caption_image(self, image_data: bytes, **kwargs) -> Dict:
        self.calls.append(image_data)
        await asyncio.sleep(self.delays.get(image_data, 0))
        if image_data in self.fail_on:
            raise ProviderException("caption request rejected", service="fake-vision", status_code=400)
        return {"caption": f"caption-{len(image_data)}", "model": "fake-vision", "usage": None}

    async def close(self):
        self.closed = True


class FakeEmbeddingProvider(EmbeddingProvider):
    """Returns items in reverse order to mimic a provider that reorders results."""

    def __init__(self, dimension: int = 4, items_override: Optional[Callable[[List[str]], List[EmbeddingItem]]] = None,
                 total_tokens: Optional[int] = None):
        self.dimension = dimension
        self.items_override = items_override
        self.total_tokens = total_tokens
        self.calls: List[List[str]] = []
        self.closed = False

    async def batch_embedding(self, texts: List[str], **kwargs) -> EmbeddingBatch:
        self.calls.append(list(texts))
        if self.items_override is not None:
            items = self.items_override(texts)
        else:
            items = [EmbeddingItem(index=i, vector=[float(i)] * self.dimension) for i in range(len(texts))]
            items.reverse()
        return EmbeddingBatch(items=items, model="fake-text-embedding", total_tokens=self.total_tokens)

    async def close(self):
        self.closed = True


class FakeImageEmbeddingProvider(ImageEmbeddingProvider):
    def __init__(self, dimension: int = 4, fail: bool = False):
        self.dimension = dimension
        self.fail = fail
        self.calls: List[bytes] = []
        self.closed = False

    async def image_embedding(self, image_data: bytes, **kwargs) -> EmbeddingResult:
        self.calls.append(image_data)
        if self.fail:
            raise ProviderException("embedding request rejected", service="fake-image-embedding", status_code=400)
        return EmbeddingResult(vector=[float(len(image_data))] * self.dimension, model="fake-image-embedding")

    async def close(self):
        self.closed = True


class FakeFaceDetectionProvider(FaceDetectionProvider):
    """
    Replays detections per call in call order.

    ``responses`` entries are either a list of detections or an exception
    instance to raise for that call.
    """

    def __init__(self, responses: Optional[List] = None, default: Optional[List[RawFaceDetection]] = None):
        self.responses = list(responses or [])
        self.default = default or []
        self.calls = 0
        self.closed = False

    async def detect_faces(self, image_data: bytes, **kwargs) -> List[RawFaceDetection]:
        self.calls += 1
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


class FakeMediaExtractor(MediaExtractor):
    """Media extractor that plans frames like the ffmpeg one and renders solid JPEGs."""

    def __init__(self, duration_sec: float = 30.0, width: int = 64, height: int = 48):
        self.duration_sec = duration_sec
        self.width = width
        self.height = height

    async def probe(self, video_bytes: bytes) -> TechnicalInfo:
        return TechnicalInfo(
            duration_sec=self.duration_sec,
            frame_rate_fps=30.0,
            width=self.width,
            height=self.height,
            audio_sample_rate_hz=16000,
            audio_channels=1,
        )

    async def extract_audio(self, video_bytes: bytes) -> bytes:
        return b"RIFF----WAVEfmt "

    async def extract_frames(self, video_bytes: bytes, interval_sec: float, max_frames: int,
                             duration_sec: Optional[float] = None) -> List[ExtractedFrame]:
        timestamps = plan_frame_timestamps(duration_sec or self.duration_sec, interval_sec, max_frames)
        return [
            ExtractedFrame(
                timestamp_sec=timestamp,
                image_bytes=make_jpeg(self.width, self.height, (position * 20 % 256, 90, 160)),
            )
            for position, timestamp in enumerate(timestamps)
        ]


def make_detection(left=0.25, top=0.25, width=0.25, height=0.25, confidence=99.0) -> RawFaceDetection:
    return RawFaceDetection(left=left, top=top, width=width, height=height, confidence=confidence)
