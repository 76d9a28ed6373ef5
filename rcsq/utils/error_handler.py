import asyncio
import functools
import json
from typing import TypeVar, Callable, Any, Optional

import aiohttp
import openai
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from loguru import logger

from ..exceptions import (
    RCSQException,
    ProviderException,
    TransientServiceException,
    MalformedResponseException,
    ConfigurationException,
    ValidationException,
)
from .retry import RetryPolicy, call_with_retry, is_retryable_status

T = TypeVar('T')

_BOTO_NETWORK_ERRORS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
)
_BOTO_THROTTLING_CODES = {
    "ThrottlingException",
    "ProvisionedThroughputExceededException",
    "LimitExceededException",
}


def handle_exceptions(service: Optional[str] = None):
    """
    Decorator routing an async provider method through the retrying call wrapper.

    The wrapped method's exceptions are first classified with
    :meth:`ErrorHandler.classify_provider_error`, so SDK and transport errors
    become ``TransientServiceException`` (retried) or a terminal
    ``ProviderException`` (raised immediately).

    Args:
        service: Service name for logs and errors. Defaults to the provider's
            ``service_name`` attribute.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def async_wrapper(self, *args, **kwargs) -> T:
            name = service or getattr(self, "service_name", None) or type(self).__name__
            policy = getattr(self, "retry_policy", None) or RetryPolicy()

            async def attempt():
                try:
                    return await func(self, *args, **kwargs)
                except Exception as e:
                    raise ErrorHandler.classify_provider_error(e, name) from e

            return await call_with_retry(attempt, service=name, policy=policy)

        return async_wrapper

    return decorator


def log_exceptions(
    log_level: str = "ERROR",
    include_traceback: bool = True,
    custom_message: Optional[str] = None
):
    """
    Decorator to log exceptions.

    Args:
        log_level: Log level for exception logging
        include_traceback: Whether to include traceback in log
        custom_message: Custom message to include in log
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                message = custom_message or f"Exception in {func.__name__}"
                if include_traceback:
                    logger.opt(exception=True).log(log_level, f"{message}: {e}")
                else:
                    logger.log(log_level, f"{message}: {e}")
                raise

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                message = custom_message or f"Exception in {func.__name__}"
                if include_traceback:
                    logger.opt(exception=True).log(log_level, f"{message}: {e}")
                else:
                    logger.log(log_level, f"{message}: {e}")
                raise

        # Return appropriate wrapper based on function type
        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator


class ErrorHandler:
    """Centralized error handling utilities."""

    @staticmethod
    def classify_provider_error(e: Exception, service: str) -> RCSQException:
        """Map an SDK/transport exception onto the RCSQ exception hierarchy."""
        if isinstance(e, RCSQException):
            if isinstance(e, ProviderException) and e.service is None:
                e.service = service
                e.details.setdefault("service", service)
            return e

        details = {"original_exception": type(e).__name__}

        # OpenAI SDK
        if isinstance(e, openai.APIStatusError):
            return ErrorHandler.from_status(e.status_code, str(e), service, details)
        if isinstance(e, openai.APIConnectionError):
            return TransientServiceException(f"{service} connection failed: {e}", service=service, details=details)

        # aiohttp (Voyage HTTP API)
        if isinstance(e, aiohttp.ClientResponseError):
            return ErrorHandler.from_status(e.status, e.message, service, details)
        if isinstance(e, (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError)):
            return TransientServiceException(f"{service} connection failed: {e}", service=service, details=details)

        # botocore (Rekognition)
        if isinstance(e, ClientError):
            error = e.response.get("Error", {})
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if error.get("Code") in _BOTO_THROTTLING_CODES:
                status = 429
            return ErrorHandler.from_status(status, error.get("Message") or str(e), service, details)
        if isinstance(e, _BOTO_NETWORK_ERRORS):
            return TransientServiceException(f"{service} connection failed: {e}", service=service, details=details)

        if isinstance(e, (json.JSONDecodeError, KeyError, IndexError, TypeError)):
            return MalformedResponseException(f"{service} returned a malformed response: {e}", service=service, details=details)
        if isinstance(e, (ConnectionError, asyncio.TimeoutError, TimeoutError)):
            return TransientServiceException(f"{service} connection failed: {e}", service=service, details=details)

        logger.error(f"Provider {service} error: {e}")
        return ProviderException(f"Provider {service} failed: {e}", service=service, details=details)

    @staticmethod
    def from_status(status: Optional[int], message: str, service: str, details: dict) -> ProviderException:
        if is_retryable_status(status):
            return TransientServiceException(
                f"{service} returned HTTP {status}: {message}",
                service=service,
                status_code=status,
                details=details,
            )
        return ProviderException(
            f"{service} returned HTTP {status}: {message}",
            service=service,
            status_code=status,
            details=details,
        )


__all__ = [
    "handle_exceptions",
    "log_exceptions",
    "ErrorHandler",
    "ProviderException",
    "TransientServiceException",
    "MalformedResponseException",
    "ConfigurationException",
    "ValidationException",
]
