from abc import ABC, abstractmethod
from typing import Dict, Any, List


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def chat_completion(self, messages: List[Dict], **kwargs) -> Dict[str, Any]:
        """
        Generate chat completion response.

        Returns:
            Dict with ``content`` (str), ``usage`` (dict with ``prompt_tokens`` and
            ``completion_tokens`` or None) and ``model``.
        """
        pass

    @abstractmethod
    async def close(self):
        """Close the provider and cleanup resources."""
        pass
