from typing import Dict, Any, List

from loguru import logger

from rcsq.exceptions import MalformedResponseException
from rcsq.providers.base import LLMProvider
from rcsq.utils.error_handler import handle_exceptions
from rcsq.utils.retry import RetryPolicy
from .client import create_async_client, usage_to_dict


class OpenAILLMProvider(LLMProvider):
    """OpenAI chat completion provider (topic extraction, summarisation)."""

    def __init__(self, config: Dict[str, Any], retry_policy: RetryPolicy = None):
        self.config = config
        self.model_name = config.get("model_name") or config.get("topic_model", "gpt-4.1-nano")
        self.retry_policy = retry_policy
        self.client = create_async_client(config)

    @property
    def service_name(self) -> str:
        return self.model_name

    @handle_exceptions()
    async def chat_completion(self, messages: List[Dict], **kwargs) -> Dict[str, Any]:
        """Generate chat completion using OpenAI."""
        completion_kwargs = {
            "model": kwargs.pop("model", self.model_name),
            "messages": messages,
            **kwargs,
        }
        response = await self.client.chat.completions.create(**completion_kwargs)

        if not response.choices:
            raise MalformedResponseException("Empty choices in chat completion", service=self.model_name)
        content = response.choices[0].message.content
        if content is None or not content.strip():
            raise MalformedResponseException("Empty response from model", service=self.model_name)

        return {
            "content": content.strip(),
            "usage": usage_to_dict(response.usage),
            "model": response.model,
        }

    async def close(self):
        """Close the LLM client and cleanup resources."""
        if self.client:
            logger.info("Closing OpenAI LLM client")
            await self.client.close()
