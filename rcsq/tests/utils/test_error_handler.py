"""Tests for provider error classification and the retrying decorator."""

import json

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from rcsq.exceptions import (
    MalformedResponseException,
    ProviderException,
    TransientServiceException,
    ValidationException,
)
from rcsq.utils.error_handler import ErrorHandler, handle_exceptions, log_exceptions


def client_error(code: str, status: int) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": f"{code} raised"}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "DetectFaces",
    )


class TestClassifyProviderError:
    """Tests for ErrorHandler.classify_provider_error."""

    def test_throttling_client_error_is_transient(self) -> None:
        error = ErrorHandler.classify_provider_error(client_error("ThrottlingException", 400), "aws_rekognition")
        assert isinstance(error, TransientServiceException)
        assert error.status_code == 429

    def test_server_client_error_is_transient(self) -> None:
        error = ErrorHandler.classify_provider_error(client_error("InternalServerError", 500), "aws_rekognition")
        assert isinstance(error, TransientServiceException)

    def test_bad_request_client_error_is_terminal(self) -> None:
        error = ErrorHandler.classify_provider_error(client_error("InvalidImageFormatException", 400), "aws_rekognition")
        assert type(error) is ProviderException
        assert error.service == "aws_rekognition"
        assert "InvalidImageFormatException raised" in error.message

    def test_endpoint_connection_error_is_transient(self) -> None:
        error = ErrorHandler.classify_provider_error(
            EndpointConnectionError(endpoint_url="https://rekognition.us-east-1.amazonaws.com"),
            "aws_rekognition",
        )
        assert isinstance(error, TransientServiceException)

    def test_json_decode_error_is_malformed(self) -> None:
        try:
            json.loads("{not json")
        except json.JSONDecodeError as e:
            error = ErrorHandler.classify_provider_error(e, "gpt-4.1-nano")
        assert isinstance(error, MalformedResponseException)

    def test_rcsq_exception_passes_through_with_service(self) -> None:
        original = ProviderException("rejected", status_code=403)
        error = ErrorHandler.classify_provider_error(original, "voyage-3-large")
        assert error is original
        assert error.service == "voyage-3-large"

    def test_validation_exception_passes_through(self) -> None:
        original = ValidationException("empty buffer")
        assert ErrorHandler.classify_provider_error(original, "svc") is original


class FakeService:
    service_name = "fake-service"

    def __init__(self, retry_policy, errors):
        self.retry_policy = retry_policy
        self.errors = list(errors)
        self.attempts = 0

    @handle_exceptions()
    async def call(self, value):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return value * 2


class TestHandleExceptions:
    """Tests for the handle_exceptions decorator."""

    async def test_throttled_call_is_retried(self, instant_retry) -> None:
        service = FakeService(instant_retry, [client_error("ThrottlingException", 400)] * 2)

        assert await service.call(21) == 42
        assert service.attempts == 3

    async def test_terminal_error_is_not_retried(self, instant_retry) -> None:
        service = FakeService(instant_retry, [client_error("AccessDeniedException", 403)])

        with pytest.raises(ProviderException) as exc_info:
            await service.call(1)

        assert service.attempts == 1
        assert exc_info.value.service == "fake-service"
        assert exc_info.value.status_code == 403

    async def test_retry_budget_comes_from_policy(self, instant_retry) -> None:
        service = FakeService(instant_retry, [client_error("ServiceUnavailable", 503)] * 10)

        with pytest.raises(TransientServiceException):
            await service.call(1)

        assert service.attempts == instant_retry.max_retries + 1


class TestLogExceptions:
    """Tests for the log_exceptions decorator."""

    async def test_async_function_reraises(self) -> None:
        @log_exceptions(custom_message="probe failed")
        async def failing():
            raise RuntimeError("ffprobe missing")

        with pytest.raises(RuntimeError, match="ffprobe missing"):
            await failing()

    def test_sync_function_passes_result_through(self) -> None:
        @log_exceptions()
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
