from .llm_provider import LLMProvider
from .embedding_provider import EmbeddingProvider
from .image_embedding_provider import ImageEmbeddingProvider
from .transcription_provider import TranscriptionProvider
from .vision_provider import VisionProvider
from .face_detection_provider import FaceDetectionProvider

__all__ = [
    'LLMProvider',
    'EmbeddingProvider',
    'ImageEmbeddingProvider',
    'VisionProvider',
    'TranscriptionProvider',
    'FaceDetectionProvider',
]
