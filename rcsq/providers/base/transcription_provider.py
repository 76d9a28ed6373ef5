from abc import ABC, abstractmethod

from ..provider_models import TranscriptionResult


class TranscriptionProvider(ABC):
    """Abstract base class for transcription providers."""

    @abstractmethod
    async def transcribe(self, audio_data: bytes, mime_type: str = "audio/wav", **kwargs) -> TranscriptionResult:
        """Transcribe audio to timed segments."""
        pass

    @abstractmethod
    async def close(self):
        """Close the provider and cleanup resources."""
        pass
