from typing import List, Literal, Any
from pydantic import BaseModel, Field, ConfigDict, ValidationError

"""
pydantic models describing the analysis result document
"""

RCSQ_TOOL_NAME = "rcsq-tool"
RCSQ_VERSION = "1.0.0"

EmbeddingVector = List[float]


class VideoSource(BaseModel):
    model_config = ConfigDict(extra="forbid")
    filename: str
    filesize_bytes: int
    mime_type: str


class VideoTechnical(BaseModel):
    model_config = ConfigDict(extra="forbid")
    duration_sec: float
    frame_rate_fps: float
    width: int
    height: int
    audio_sample_rate_hz: int
    audio_channels: int


class VideoHashes(BaseModel):
    model_config = ConfigDict(extra="forbid")
    md5: str


class VideoInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")
    source: VideoSource
    technical: VideoTechnical
    hashes: VideoHashes
    rcsq_video_id: str


class TranscriptionModel(BaseModel):
    provider: str = "whisper"
    name: str
    language: str = "en"


class NamedModel(BaseModel):
    provider: str
    name: str


class EmbeddingModel(BaseModel):
    provider: str
    name: str
    dimension: int


class ModelsConfig(BaseModel):
    """Descriptor of which model served each role in the run."""
    transcription: TranscriptionModel
    segment_summarisation: NamedModel
    topic_extraction: NamedModel
    text_embedding: EmbeddingModel
    image_embedding: EmbeddingModel
    captioning: NamedModel
    face_detection: NamedModel


class TimeRange(BaseModel):
    start_sec: float
    end_sec: float


class Timestamp(BaseModel):
    timestamp_sec: float


class Transcript(BaseModel):
    text: str
    avg_confidence: float = Field(..., ge=0.0, le=1.0)


class ModelVector(BaseModel):
    model: str
    vector: EmbeddingVector


class Segment(BaseModel):
    segment_id: int
    rcsq_video_id: str
    time: TimeRange
    transcript: Transcript
    text_embedding: ModelVector


class TopicSummary(BaseModel):
    text: str
    model: str


class Topic(BaseModel):
    topic_id: str
    rcsq_video_id: str
    label: str
    description: str
    summary: TopicSummary
    segment_ids: List[str] = Field(default_factory=list)


class ImageData(BaseModel):
    encoding: Literal["image/jpeg", "image/png"] = "image/jpeg"
    data_base64: str


class Caption(BaseModel):
    text: str


class Frame(BaseModel):
    frame_id: str
    rcsq_video_id: str
    time: Timestamp
    image: ImageData
    caption: Caption
    image_embedding: ModelVector


class Face(BaseModel):
    face_id: str
    rcsq_video_id: str
    frame_id: str
    time: Timestamp
    image: ImageData
    face_embedding: ModelVector


class ModelTokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    estimated_cost_usd: float


class UsageStats(BaseModel):
    model_config = ConfigDict(frozen=True)
    models: List[ModelTokenUsage] = Field(default_factory=list)
    total_tokens: int = 0
    total_estimated_cost_usd: float = 0.0


class ProcessingStats(BaseModel):
    total_segments: int
    total_topics: int
    total_frames: int
    total_faces: int
    processing_time_sec: float
    usage: UsageStats


class PipelineResult(BaseModel):
    """Root document produced by a successful pipeline run."""
    tool: Literal["rcsq-tool"] = RCSQ_TOOL_NAME
    version: str = RCSQ_VERSION
    created_at: str
    video: VideoInfo
    models: ModelsConfig
    segments: List[Segment]
    topics: List[Topic]
    frames: List[Frame]
    faces: List[Face]
    stats: ProcessingStats


def validate_result(obj: Any) -> bool:
    """Return True when ``obj`` (a dict or PipelineResult) matches the result schema."""
    if isinstance(obj, PipelineResult):
        return True
    if not isinstance(obj, dict):
        return False
    try:
        PipelineResult.model_validate(obj)
    except ValidationError:
        return False
    return True
