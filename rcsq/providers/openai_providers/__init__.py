from .llm_provider import OpenAILLMProvider
from .transcription_provider import OpenAITranscriptionProvider
from .vision_provider import OpenAIVisionProvider

__all__ = [
    # OpenAI providers
    'OpenAILLMProvider',
    'OpenAIVisionProvider',
    'OpenAITranscriptionProvider',
]
