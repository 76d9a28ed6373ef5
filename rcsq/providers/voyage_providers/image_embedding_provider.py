import base64
from typing import Dict, Any

from rcsq.exceptions import MalformedResponseException, ValidationException
from rcsq.providers.base import ImageEmbeddingProvider
from rcsq.providers.provider_models import EmbeddingResult
from rcsq.utils.error_handler import handle_exceptions
from rcsq.utils.retry import RetryPolicy
from .client import VoyageClient, validate_vector


class VoyageImageEmbeddingProvider(ImageEmbeddingProvider):
    """Voyage multimodal embedding provider for frames and face crops."""

    def __init__(self, config: Dict[str, Any], retry_policy: RetryPolicy = None):
        self.config = config
        self.model_name = config.get("model_name") or config.get("multimodal_model", "voyage-multimodal-3")
        self.dimension = config.get("dimension", 1024)
        self.retry_policy = retry_policy
        self.client = VoyageClient(config)

    @property
    def service_name(self) -> str:
        return self.model_name

    async def image_embedding(self, image_data: bytes, **kwargs) -> EmbeddingResult:
        if not image_data:
            raise ValidationException("Empty image data provided for embedding")
        data_uri = "data:image/jpeg;base64," + base64.b64encode(image_data).decode("utf-8")
        return await self._embed(data_uri, **kwargs)

    @handle_exceptions()
    async def _embed(self, data_uri: str, **kwargs) -> EmbeddingResult:
        body = {
            "inputs": [{"content": [{"type": "image_base64", "image_base64": data_uri}]}],
            "model": self.model_name,
            "input_type": kwargs.get("input_type", "document"),
            "truncation": True,
        }
        response = await self.client.post("/multimodalembeddings", body, self.model_name)

        data = response.get("data") or []
        if not data:
            raise MalformedResponseException("No embedding data in response", service=self.model_name)

        vector = validate_vector(data[0].get("embedding"), self.dimension, self.model_name)
        usage = response.get("usage") or {}
        return EmbeddingResult(vector=vector, model=self.model_name, total_tokens=usage.get("total_tokens"))

    async def close(self):
        await self.client.close()
