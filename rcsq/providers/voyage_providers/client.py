from typing import Dict, Any, Optional

import aiohttp
from loguru import logger

from rcsq.exceptions import ConfigurationException, MalformedResponseException
from rcsq.utils.error_handler import ErrorHandler


def error_message(body: Any, status: int) -> str:
    """Pull the human-readable message out of a Voyage error body."""
    if isinstance(body, dict):
        error = body.get("error")
        nested = error.get("message") if isinstance(error, dict) else None
        message = body.get("detail") or body.get("message") or nested
        if message:
            return str(message)
    return f"HTTP {status}"


class VoyageClient:
    """Thin aiohttp wrapper around the Voyage REST API."""

    def __init__(self, config: Dict[str, Any]):
        self.api_key = config.get("api_key")
        if not self.api_key:
            raise ConfigurationException("Voyage API key is required (VOYAGE_API_KEY)")
        self.base_url = config.get("base_url", "https://api.voyageai.com/v1").rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=config.get("timeout", 60))
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
            )
        return self._session

    async def post(self, endpoint: str, body: Dict[str, Any], service: str) -> Dict[str, Any]:
        """POST ``body`` as JSON and return the decoded response."""
        session = self._get_session()
        async with session.post(f"{self.base_url}{endpoint}", json=body) as response:
            if response.status >= 400:
                try:
                    payload = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    payload = None
                raise ErrorHandler.from_status(
                    response.status,
                    error_message(payload, response.status),
                    service,
                    {"endpoint": endpoint},
                )
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise MalformedResponseException(f"{service} returned invalid JSON: {e}", service=service)

    async def close(self):
        if self._session is not None and not self._session.closed:
            logger.info("Closing Voyage HTTP session")
            await self._session.close()
        self._session = None


def validate_vector(vector: Any, dimension: int, service: str) -> list:
    if not isinstance(vector, list) or len(vector) != dimension:
        got = len(vector) if isinstance(vector, list) else type(vector).__name__
        raise MalformedResponseException(
            f"Invalid embedding dimension: expected {dimension}, got {got}",
            service=service,
        )
    return vector
