from abc import ABC, abstractmethod

from ..provider_models import EmbeddingResult


class ImageEmbeddingProvider(ABC):
    """Abstract base class for image embedding providers."""

    @abstractmethod
    async def image_embedding(self, image_data: bytes, **kwargs) -> EmbeddingResult:
        """
        Generate embedding for a single JPEG image.

        Args:
            image_data: Raw JPEG bytes
            **kwargs: Additional provider-specific parameters

        Returns:
            EmbeddingResult with the vector and provider-reported token usage
        """
        pass

    @abstractmethod
    async def close(self):
        """Close the provider and cleanup resources."""
        pass
