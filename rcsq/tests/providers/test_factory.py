"""Tests for the provider factory."""

import pytest

from rcsq.exceptions import ConfigurationException
from rcsq.providers.base import LLMProvider
from rcsq.providers.factory import ProviderFactory, provider_factory


class EchoLLMProvider(LLMProvider):
    def __init__(self, config, retry_policy=None):
        self.config = config
        self.retry_policy = retry_policy

    async def chat_completion(self, messages, **kwargs):
        return {"content": messages[-1]["content"], "usage": None, "model": self.config.get("model_name")}

    async def close(self):
        pass


class TestProviderFactory:
    """Tests for provider lookup and registration."""

    def test_supported_providers(self) -> None:
        supported = provider_factory.get_supported_providers()

        assert supported["llm"] == ["openai"]
        assert supported["embedding"] == ["voyage"]
        assert supported["face_detection"] == ["aws_rekognition"]
        assert set(supported) == {"llm", "vision", "transcription", "embedding", "image_embedding", "face_detection"}

    def test_unknown_provider(self, config) -> None:
        with pytest.raises(ConfigurationException, match="Unknown llm provider"):
            provider_factory.create_llm_provider(provider_name="nonexistent", config=config)

    def test_registered_provider_is_built_with_retry_policy(self, config, monkeypatch) -> None:
        monkeypatch.setattr(ProviderFactory, "_llm_providers", dict(ProviderFactory._llm_providers))
        ProviderFactory.register_llm_provider("echo", EchoLLMProvider)

        provider = provider_factory.create_llm_provider(provider_name="echo", model_name="echo-1", config=config)

        assert isinstance(provider, EchoLLMProvider)
        assert provider.config["model_name"] == "echo-1"
        assert provider.retry_policy.max_retries == config.retry.max_retries

    async def test_registered_provider_works(self, config, monkeypatch) -> None:
        monkeypatch.setattr(ProviderFactory, "_llm_providers", dict(ProviderFactory._llm_providers))
        ProviderFactory.register_llm_provider("echo", EchoLLMProvider)
        provider = provider_factory.create_llm_provider(provider_name="echo", config=config)

        response = await provider.chat_completion([{"role": "user", "content": "ping"}])

        assert response["content"] == "ping"

    def test_rekognition_is_built_from_aws_section(self, config) -> None:
        provider = provider_factory.create_face_detection_provider(provider_name="aws_rekognition", config=config)

        assert provider.region == config.aws.region
