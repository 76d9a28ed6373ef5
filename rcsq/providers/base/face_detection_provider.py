from abc import ABC, abstractmethod
from typing import List

from ..provider_models import RawFaceDetection


class FaceDetectionProvider(ABC):
    """Abstract base class for face detection providers."""

    @abstractmethod
    async def detect_faces(self, image_data: bytes, **kwargs) -> List[RawFaceDetection]:
        """Detect faces, returning normalized boxes with 0-100 confidence."""
        pass

    @abstractmethod
    async def close(self):
        """Close the provider and cleanup resources."""
        pass
