"""Provider system for the RCSQ tool."""

from .base import (
    LLMProvider,
    EmbeddingProvider,
    ImageEmbeddingProvider,
    VisionProvider,
    TranscriptionProvider,
    FaceDetectionProvider,
)
from .factory import ProviderFactory, provider_factory
from .openai_providers import (
    OpenAILLMProvider,
    OpenAIVisionProvider,
    OpenAITranscriptionProvider,
)
from .voyage_providers import (
    VoyageEmbeddingProvider,
    VoyageImageEmbeddingProvider,
)
from .aws_providers import RekognitionFaceDetectionProvider

__all__ = [
    # Base classes
    'LLMProvider',
    'EmbeddingProvider',
    'ImageEmbeddingProvider',
    'VisionProvider',
    'TranscriptionProvider',
    'FaceDetectionProvider',
    # Factory
    'ProviderFactory',
    'provider_factory',
    # Implementations
    'OpenAILLMProvider',
    'OpenAIVisionProvider',
    'OpenAITranscriptionProvider',
    'VoyageEmbeddingProvider',
    'VoyageImageEmbeddingProvider',
    'RekognitionFaceDetectionProvider',
]
