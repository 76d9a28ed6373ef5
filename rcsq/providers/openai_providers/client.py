from typing import Dict, Any

from openai import AsyncOpenAI

from rcsq.exceptions import ConfigurationException, ProviderException


def create_async_client(config: Dict[str, Any]) -> AsyncOpenAI:
    """
    Build the AsyncOpenAI client shared by the OpenAI providers.

    The SDK's own retry loop is disabled; retries are owned by
    ``rcsq.utils.retry.call_with_retry``.
    """
    api_key = config.get("api_key")
    if not api_key:
        raise ConfigurationException("OpenAI API key is required (OPENAI_API_KEY)")
    try:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=config.get("base_url"),
            timeout=config.get("timeout", 200),
            max_retries=0,
        )
    except Exception as e:
        raise ProviderException(f"Failed to initialize OpenAI client: {e}", service="openai")


def usage_to_dict(usage) -> Dict[str, int]:
    if usage is None:
        return None
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", None) or 0,
        "completion_tokens": getattr(usage, "completion_tokens", None) or 0,
    }
