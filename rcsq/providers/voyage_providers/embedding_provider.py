from typing import Dict, Any, List

from loguru import logger

from rcsq.exceptions import MalformedResponseException, ValidationException
from rcsq.providers.base import EmbeddingProvider
from rcsq.providers.provider_models import EmbeddingBatch, EmbeddingItem
from rcsq.utils.error_handler import handle_exceptions
from rcsq.utils.retry import RetryPolicy
from .client import VoyageClient, validate_vector


class VoyageEmbeddingProvider(EmbeddingProvider):
    """Voyage text embedding provider (``/embeddings``)."""

    def __init__(self, config: Dict[str, Any], retry_policy: RetryPolicy = None):
        self.config = config
        self.model_name = config.get("model_name") or config.get("text_model", "voyage-3-large")
        self.dimension = config.get("dimension", 1024)
        self.max_batch_size = config.get("max_batch_size", 128)
        self.retry_policy = retry_policy
        self.client = VoyageClient(config)

    @property
    def service_name(self) -> str:
        return self.model_name

    async def batch_embedding(self, texts: List[str], **kwargs) -> EmbeddingBatch:
        """
        Embed ``texts``; inputs over the batch limit are sent as ordered chunks.

        Returned items are tagged with their index into ``texts`` but are not
        sorted; callers order them by index.
        """
        if not texts:
            raise ValidationException("Empty texts list provided for embedding")

        items: List[EmbeddingItem] = []
        total_tokens = 0
        for offset in range(0, len(texts), self.max_batch_size):
            chunk = texts[offset:offset + self.max_batch_size]
            if offset:
                logger.debug(f"Embedding chunk at offset {offset} ({len(chunk)} texts)")
            batch = await self._embed_chunk(chunk, **kwargs)
            items.extend(EmbeddingItem(index=offset + item.index, vector=item.vector) for item in batch.items)
            total_tokens += batch.total_tokens or 0

        return EmbeddingBatch(items=items, model=self.model_name, total_tokens=total_tokens)

    @handle_exceptions()
    async def _embed_chunk(self, texts: List[str], **kwargs) -> EmbeddingBatch:
        body = {
            "input": texts,
            "model": self.model_name,
            "input_type": kwargs.get("input_type", "document"),
            "truncation": True,
        }
        response = await self.client.post("/embeddings", body, self.model_name)

        data = response.get("data") or []
        if len(data) != len(texts):
            raise MalformedResponseException(
                f"Unexpected response: expected {len(texts)} embeddings, got {len(data)}",
                service=self.model_name,
            )

        items = [
            EmbeddingItem(
                index=int(entry["index"]),
                vector=validate_vector(entry.get("embedding"), self.dimension, self.model_name),
            )
            for entry in data
        ]
        usage = response.get("usage") or {}
        return EmbeddingBatch(items=items, model=self.model_name, total_tokens=usage.get("total_tokens"))

    async def close(self):
        await self.client.close()
