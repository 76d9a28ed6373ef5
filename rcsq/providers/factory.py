from typing import Dict, Type, Any, Optional
from loguru import logger

from .base import (
    LLMProvider,
    EmbeddingProvider,
    ImageEmbeddingProvider,
    VisionProvider,
    TranscriptionProvider,
    FaceDetectionProvider,
)
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
from ..utils.error_handler import ConfigurationException
from ..utils.retry import RetryPolicy
from ..config.settings import RCSQConfig


class ProviderFactory:
    """Factory class for creating provider instances."""

    _llm_providers: Dict[str, Type[LLMProvider]] = {
        'openai': OpenAILLMProvider,
    }

    _vision_providers: Dict[str, Type[VisionProvider]] = {
        'openai': OpenAIVisionProvider,
    }

    _transcription_providers: Dict[str, Type[TranscriptionProvider]] = {
        'openai': OpenAITranscriptionProvider,
    }

    _embedding_providers: Dict[str, Type[EmbeddingProvider]] = {
        'voyage': VoyageEmbeddingProvider,
    }

    _image_embedding_providers: Dict[str, Type[ImageEmbeddingProvider]] = {
        'voyage': VoyageImageEmbeddingProvider,
    }

    _face_detection_providers: Dict[str, Type[FaceDetectionProvider]] = {
        'aws_rekognition': RekognitionFaceDetectionProvider,
    }

    # Provider name -> RCSQConfig section holding its credentials
    _config_sections: Dict[str, str] = {
        'openai': 'openai',
        'voyage': 'voyage',
        'aws_rekognition': 'aws',
    }

    @classmethod
    def _build(cls, kind: str, registry: Dict[str, type], provider_name: Optional[str],
               model_name: Optional[str] = None, config: RCSQConfig = None):
        config = config or RCSQConfig()
        if provider_name is None:
            provider_name = getattr(config.providers, kind)

        if provider_name not in registry:
            raise ConfigurationException(
                f"Unknown {kind} provider: {provider_name}. "
                f"Supported providers: {list(registry.keys())}"
            )

        section = cls._config_sections.get(provider_name, provider_name)
        section_config = getattr(config, section, None)
        provider_config: Dict[str, Any] = section_config.model_dump() if section_config is not None else {}
        if model_name:
            provider_config["model_name"] = model_name

        provider_class = registry[provider_name]
        logger.info(f"Creating {kind} provider: {provider_name}" + (f" ({model_name})" if model_name else ""))
        return provider_class(provider_config, retry_policy=RetryPolicy.from_config(config.retry))

    @classmethod
    def create_llm_provider(cls, provider_name: str = None, model_name: str = None,
                            config: RCSQConfig = None) -> LLMProvider:
        """
        Create LLM provider instance.

        Args:
            provider_name: Name of the provider (optional, defaults to config)
            model_name: Chat model to bind the instance to (optional)
            config: Loaded configuration (optional, read from the environment)

        Raises:
            ConfigurationException: If provider is not supported
        """
        return cls._build("llm", cls._llm_providers, provider_name, model_name, config)

    @classmethod
    def create_vision_provider(cls, provider_name: str = None, model_name: str = None,
                               config: RCSQConfig = None) -> VisionProvider:
        """Create vision (captioning) provider instance."""
        return cls._build("vision", cls._vision_providers, provider_name, model_name, config)

    @classmethod
    def create_transcription_provider(cls, provider_name: str = None,
                                      config: RCSQConfig = None) -> TranscriptionProvider:
        """Create transcription provider instance."""
        return cls._build("transcription", cls._transcription_providers, provider_name, config=config)

    @classmethod
    def create_embedding_provider(cls, provider_name: str = None,
                                  config: RCSQConfig = None) -> EmbeddingProvider:
        """Create text embedding provider instance."""
        return cls._build("embedding", cls._embedding_providers, provider_name, config=config)

    @classmethod
    def create_image_embedding_provider(cls, provider_name: str = None,
                                        config: RCSQConfig = None) -> ImageEmbeddingProvider:
        """Create image embedding provider instance."""
        return cls._build("image_embedding", cls._image_embedding_providers, provider_name, config=config)

    @classmethod
    def create_face_detection_provider(cls, provider_name: str = None,
                                       config: RCSQConfig = None) -> FaceDetectionProvider:
        """Create face detection provider instance."""
        return cls._build("face_detection", cls._face_detection_providers, provider_name, config=config)

    @classmethod
    def get_supported_providers(cls) -> Dict[str, list]:
        """Get list of supported providers by type."""
        return {
            "llm": list(cls._llm_providers.keys()),
            "vision": list(cls._vision_providers.keys()),
            "transcription": list(cls._transcription_providers.keys()),
            "embedding": list(cls._embedding_providers.keys()),
            "image_embedding": list(cls._image_embedding_providers.keys()),
            "face_detection": list(cls._face_detection_providers.keys()),
        }

    @classmethod
    def register_llm_provider(cls, name: str, provider_class: Type[LLMProvider]):
        """Register a new LLM provider."""
        cls._llm_providers[name] = provider_class
        logger.info(f"Registered LLM provider: {name}")

    @classmethod
    def register_vision_provider(cls, name: str, provider_class: Type[VisionProvider]):
        """Register a new vision provider."""
        cls._vision_providers[name] = provider_class
        logger.info(f"Registered vision provider: {name}")

    @classmethod
    def register_transcription_provider(cls, name: str, provider_class: Type[TranscriptionProvider]):
        """Register a new transcription provider."""
        cls._transcription_providers[name] = provider_class
        logger.info(f"Registered transcription provider: {name}")

    @classmethod
    def register_embedding_provider(cls, name: str, provider_class: Type[EmbeddingProvider]):
        """Register a new embedding provider."""
        cls._embedding_providers[name] = provider_class
        logger.info(f"Registered embedding provider: {name}")

    @classmethod
    def register_image_embedding_provider(cls, name: str, provider_class: Type[ImageEmbeddingProvider]):
        """Register a new image embedding provider."""
        cls._image_embedding_providers[name] = provider_class
        logger.info(f"Registered image embedding provider: {name}")

    @classmethod
    def register_face_detection_provider(cls, name: str, provider_class: Type[FaceDetectionProvider]):
        """Register a new face detection provider."""
        cls._face_detection_providers[name] = provider_class
        logger.info(f"Registered face detection provider: {name}")


# Global provider factory instance
provider_factory = ProviderFactory()
