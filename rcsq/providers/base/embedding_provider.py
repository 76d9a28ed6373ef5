from abc import ABC, abstractmethod
from typing import List

from ..provider_models import EmbeddingBatch


class EmbeddingProvider(ABC):
    """Abstract base class for text embedding providers."""

    @abstractmethod
    async def batch_embedding(self, texts: List[str], **kwargs) -> EmbeddingBatch:
        """
        Generate embeddings for multiple texts in a single request.

        Items in the returned batch carry the index of the input text they
        belong to; providers may return them in any order.
        """
        pass

    @abstractmethod
    async def close(self):
        """Close the provider and cleanup resources."""
        pass
