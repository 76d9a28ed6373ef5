import io
from typing import Dict, Any

from loguru import logger

from rcsq.exceptions import ValidationException
from rcsq.providers.base import TranscriptionProvider
from rcsq.providers.provider_models import TranscriptSegment, TranscriptionResult
from rcsq.utils.error_handler import handle_exceptions
from rcsq.utils.retry import RetryPolicy
from .client import create_async_client

AUDIO_EXTENSIONS = {
    "audio/mp3": "mp3",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/wave": "wav",
    "audio/x-wav": "wav",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/flac": "flac",
}


def audio_filename(mime_type: str) -> str:
    """Whisper infers the container from the upload's filename."""
    return f"audio.{AUDIO_EXTENSIONS.get(mime_type, 'mp3')}"


class OpenAITranscriptionProvider(TranscriptionProvider):
    """OpenAI Whisper transcription provider implementation."""

    def __init__(self, config: Dict[str, Any], retry_policy: RetryPolicy = None):
        self.config = config
        self.model_name = config.get("model_name") or config.get("transcription_model", "whisper-1")
        self.retry_policy = retry_policy
        self.client = create_async_client(config)

    @property
    def service_name(self) -> str:
        return self.model_name

    async def transcribe(self, audio_data: bytes, mime_type: str = "audio/wav", **kwargs) -> TranscriptionResult:
        """Transcribe audio bytes using OpenAI Whisper with segment timestamps."""
        if not audio_data:
            raise ValidationException("Empty audio buffer provided for transcription")
        return await self._transcribe(audio_data, mime_type, **kwargs)

    @handle_exceptions()
    async def _transcribe(self, audio_data: bytes, mime_type: str, **kwargs) -> TranscriptionResult:
        # A fresh file object per attempt; the SDK consumes it on upload
        audio_file = io.BytesIO(audio_data)
        audio_file.name = audio_filename(mime_type)

        response = await self.client.audio.transcriptions.create(
            model=self.model_name,
            file=audio_file,
            response_format="verbose_json",
            timestamp_granularities=["segment"],
            **kwargs
        )

        segments = [
            TranscriptSegment(
                ordinal_index=position,
                start_sec=float(seg.start),
                end_sec=float(seg.end),
                text=seg.text.strip(),
                avg_log_probability=float(seg.avg_logprob),
            )
            for position, seg in enumerate(getattr(response, "segments", None) or [])
        ]

        return TranscriptionResult(
            text=response.text,
            segments=segments,
            language=getattr(response, "language", None) or "en",
            duration=float(getattr(response, "duration", None) or 0.0),
        )

    async def close(self):
        """Close the transcription client and cleanup resources."""
        if self.client:
            logger.info("Closing OpenAI transcription client")
            await self.client.close()
