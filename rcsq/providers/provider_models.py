"""
Typed results returned by provider implementations.

Providers translate raw SDK / HTTP payloads into these records so that the
pipeline never touches provider-specific response shapes.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class TranscriptSegment:
    """One timed segment of a transcription, in provider order."""
    ordinal_index: int
    start_sec: float
    end_sec: float
    text: str
    avg_log_probability: float


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    segments: List[TranscriptSegment] = field(default_factory=list)
    language: str = "en"
    duration: float = 0.0


@dataclass(frozen=True)
class EmbeddingItem:
    """An embedding tagged with the caller's input index."""
    index: int
    vector: List[float]


@dataclass(frozen=True)
class EmbeddingBatch:
    items: List[EmbeddingItem]
    model: str
    total_tokens: Optional[int] = None


@dataclass(frozen=True)
class EmbeddingResult:
    vector: List[float]
    model: str
    total_tokens: Optional[int] = None


@dataclass(frozen=True)
class RawFaceDetection:
    """Face detection in normalized image coordinates; confidence is 0-100."""
    left: float
    top: float
    width: float
    height: float
    confidence: float
