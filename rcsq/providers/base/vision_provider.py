from abc import ABC, abstractmethod
from typing import Dict, Any


class VisionProvider(ABC):
    """Abstract base class for image captioning providers."""

    @abstractmethod
    async def caption_image(self, image_data: bytes, **kwargs) -> Dict[str, Any]:
        """
        Describe image content.

        Returns:
            Dict with ``caption`` (non-empty str), ``usage`` and ``model``.
        """
        pass

    @abstractmethod
    async def close(self):
        """Close the provider and cleanup resources."""
        pass
