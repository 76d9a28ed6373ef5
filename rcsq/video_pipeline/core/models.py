from dataclasses import dataclass


@dataclass(frozen=True)
class TechnicalInfo:
    """Technical metadata probed from the source video."""
    duration_sec: float
    frame_rate_fps: float
    width: int
    height: int
    audio_sample_rate_hz: int
    audio_channels: int


@dataclass(frozen=True)
class ExtractedFrame:
    """A JPEG frame decoded at ``timestamp_sec``."""
    timestamp_sec: float
    image_bytes: bytes


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in pixel coordinates (top-left origin)."""
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)


@dataclass(frozen=True)
class DetectedFace:
    bounding_box: BoundingBox
    confidence: float


@dataclass(frozen=True)
class ProcessedFace:
    """A cropped face that has not been embedded yet."""
    timestamp_sec: float
    bounding_box: BoundingBox
    frame_id: str
    image_bytes: bytes
    embedding_image_bytes: bytes
    confidence: float
