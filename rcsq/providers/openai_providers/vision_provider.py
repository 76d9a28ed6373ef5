import base64
from typing import Dict, Any

from loguru import logger

from rcsq.exceptions import MalformedResponseException, ValidationException
from rcsq.providers.base import VisionProvider
from rcsq.utils.error_handler import handle_exceptions
from rcsq.utils.retry import RetryPolicy
from .client import create_async_client, usage_to_dict


class OpenAIVisionProvider(VisionProvider):
    """OpenAI vision provider used for frame captioning."""

    def __init__(self, config: Dict[str, Any], retry_policy: RetryPolicy = None):
        self.config = config
        self.model_name = config.get("model_name") or config.get("caption_model", "gpt-5-mini")
        self.retry_policy = retry_policy
        self.client = create_async_client(config)

    @property
    def service_name(self) -> str:
        return self.model_name

    async def caption_image(self, image_data: bytes, **kwargs) -> Dict[str, Any]:
        """Caption a JPEG image with a low-detail vision request."""
        if not image_data:
            raise ValidationException("Empty image data provided for captioning")
        return await self._caption(image_data, **kwargs)

    @handle_exceptions()
    async def _caption(self, image_data: bytes, **kwargs) -> Dict[str, Any]:
        prompt = kwargs.get("prompt", "Describe what is shown in this video frame:")
        system_prompt = kwargs.get("system_prompt")
        image_base64 = base64.b64encode(image_data).decode("utf-8")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:image/jpeg;base64,{image_base64}",
                            "detail": kwargs.get("detail", "low"),
                        },
                    },
                ],
            }
        )

        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=messages,
        )

        caption = response.choices[0].message.content if response.choices else None
        if not caption or not caption.strip():
            raise MalformedResponseException("Empty caption from model", service=self.model_name)

        return {
            "caption": caption.strip(),
            "model": response.model,
            "usage": usage_to_dict(response.usage),
        }

    async def close(self):
        if self.client:
            logger.info("Closing OpenAI vision client")
            await self.client.close()
