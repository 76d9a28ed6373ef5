import asyncio
from typing import Dict, Any, List

import boto3
from botocore.config import Config
from loguru import logger

from rcsq.exceptions import ProviderException, ValidationException
from rcsq.providers.base import FaceDetectionProvider
from rcsq.providers.provider_models import RawFaceDetection
from rcsq.utils.error_handler import handle_exceptions
from rcsq.utils.retry import RetryPolicy


class RekognitionFaceDetectionProvider(FaceDetectionProvider):
    """AWS Rekognition ``DetectFaces`` provider."""

    service_name = "aws_rekognition"

    def __init__(self, config: Dict[str, Any], retry_policy: RetryPolicy = None):
        self.config = config
        self.region = config.get("region", "us-east-1")
        self.retry_policy = retry_policy
        self.client = self._initialize_client()

    def _initialize_client(self):
        """Build the boto3 client; falls back to the default credential chain."""
        kwargs = {
            "region_name": self.region,
            # Retries are handled by call_with_retry
            "config": Config(retries={"max_attempts": 1, "mode": "standard"}),
        }
        if self.config.get("access_key_id"):
            kwargs["aws_access_key_id"] = self.config["access_key_id"]
            kwargs["aws_secret_access_key"] = self.config.get("secret_access_key") or ""
        try:
            return boto3.client("rekognition", **kwargs)
        except Exception as e:
            raise ProviderException(f"Failed to initialize Rekognition client: {e}", service=self.service_name)

    async def detect_faces(self, image_data: bytes, **kwargs) -> List[RawFaceDetection]:
        if not image_data:
            raise ValidationException("Empty image data provided for face detection")
        return await self._detect(image_data)

    @handle_exceptions()
    async def _detect(self, image_data: bytes) -> List[RawFaceDetection]:
        response = await asyncio.to_thread(
            self.client.detect_faces,
            Image={"Bytes": image_data},
            Attributes=["DEFAULT"],
        )

        detections = []
        for face in response.get("FaceDetails") or []:
            box = face.get("BoundingBox")
            confidence = face.get("Confidence")
            if not box or not confidence:
                continue
            detections.append(
                RawFaceDetection(
                    left=float(box.get("Left", 0.0)),
                    top=float(box.get("Top", 0.0)),
                    width=float(box.get("Width", 0.0)),
                    height=float(box.get("Height", 0.0)),
                    confidence=float(confidence),
                )
            )
        return detections

    async def close(self):
        logger.info("Closing Rekognition client")
        self.client.close()
