from .embedding_provider import VoyageEmbeddingProvider
from .image_embedding_provider import VoyageImageEmbeddingProvider

__all__ = [
    'VoyageEmbeddingProvider',
    'VoyageImageEmbeddingProvider',
]
