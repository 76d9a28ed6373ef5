"""Tests for the Rekognition face detection provider with a stubbed boto3 client."""

import pytest
from botocore.exceptions import ClientError

from rcsq.exceptions import ProviderException, ValidationException
from rcsq.providers.aws_providers import RekognitionFaceDetectionProvider


class StubRekognition:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def detect_faces(self, **kwargs):
        self.calls.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        pass


def throttled() -> ClientError:
    return ClientError(
        {"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}, "ResponseMetadata": {"HTTPStatusCode": 400}},
        "DetectFaces",
    )


FACE_DETAILS = {
    "FaceDetails": [
        {"BoundingBox": {"Left": 0.1, "Top": 0.2, "Width": 0.3, "Height": 0.4}, "Confidence": 99.9},
        {"BoundingBox": {"Left": 0.5, "Top": 0.5, "Width": 0.1, "Height": 0.1}, "Confidence": 42.0},
        {"Confidence": 97.0},
    ]
}


class TestRekognitionFaceDetectionProvider:
    """Tests for detect_faces."""

    @pytest.fixture
    def provider(self, instant_retry):
        return RekognitionFaceDetectionProvider({"region": "us-east-1"}, retry_policy=instant_retry)

    async def test_maps_face_details(self, provider) -> None:
        provider.client = StubRekognition([FACE_DETAILS])

        detections = await provider.detect_faces(b"\xff\xd8jpeg")

        # Entries without a bounding box are skipped; thresholding is the pipeline's job
        assert len(detections) == 2
        first = detections[0]
        assert (first.left, first.top, first.width, first.height) == (0.1, 0.2, 0.3, 0.4)
        assert first.confidence == 99.9
        call = provider.client.calls[0]
        assert call["Image"] == {"Bytes": b"\xff\xd8jpeg"}
        assert call["Attributes"] == ["DEFAULT"]

    async def test_throttling_is_retried(self, provider) -> None:
        provider.client = StubRekognition([throttled(), {"FaceDetails": []}])

        assert await provider.detect_faces(b"\xff\xd8jpeg") == []
        assert len(provider.client.calls) == 2

    async def test_invalid_image_is_terminal(self, provider) -> None:
        error = ClientError(
            {"Error": {"Code": "InvalidImageFormatException", "Message": "Bad image"}, "ResponseMetadata": {"HTTPStatusCode": 400}},
            "DetectFaces",
        )
        provider.client = StubRekognition([error, FACE_DETAILS])

        with pytest.raises(ProviderException) as exc_info:
            await provider.detect_faces(b"\xff\xd8jpeg")

        assert exc_info.value.service == "aws_rekognition"
        assert len(provider.client.calls) == 1

    async def test_empty_image_rejected(self, provider) -> None:
        with pytest.raises(ValidationException):
            await provider.detect_faces(b"")
