from typing import Dict, Optional


class RCSQException(Exception):
    """Base exception for the RCSQ tool."""

    def __init__(self, message: str, error_code: str = None, details: Dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ValidationException(RCSQException):
    """Raised when input to a stage is invalid (e.g. an empty buffer)."""
    pass


class ConfigurationException(RCSQException):
    """Raised when configuration is invalid."""
    pass


class ProviderException(RCSQException):
    """Raised when an external provider fails terminally."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: str = "PROVIDER_ERROR",
        details: Dict = None,
    ):
        details = dict(details or {})
        if service is not None:
            details.setdefault("service", service)
        if status_code is not None:
            details.setdefault("status_code", status_code)
        super().__init__(message, error_code=error_code, details=details)
        self.service = service
        self.status_code = status_code


class TransientServiceException(ProviderException):
    """Raised on rate limits (429), server errors (5xx) and network failures."""

    def __init__(self, message: str, service: Optional[str] = None, status_code: Optional[int] = None, details: Dict = None):
        super().__init__(
            message,
            service=service,
            status_code=status_code,
            error_code="TRANSIENT_SERVICE_ERROR",
            details=details,
        )


class MalformedResponseException(ProviderException):
    """Raised when a provider response cannot be parsed or has the wrong shape."""

    def __init__(self, message: str, service: Optional[str] = None, details: Dict = None):
        super().__init__(
            message,
            service=service,
            error_code="MALFORMED_RESPONSE",
            details=details,
        )


class MediaProcessingException(RCSQException):
    """Raised when ffmpeg/ffprobe fail to decode the source video."""
    pass


class PipelineStageException(RCSQException):
    """Raised by the pipeline when a stage aborts the run."""

    def __init__(self, stage: str, cause: Exception):
        super().__init__(
            f"Stage '{stage}' failed: {cause}",
            error_code="STAGE_FAILED",
            details={
                "stage": stage,
                "original_exception": type(cause).__name__,
                "message": str(cause),
            },
        )
        self.stage = stage
        self.cause = cause
