"""Tests for embedding providers."""

import json
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from clipsage.core.config import Settings
from clipsage.core.embeddings import (
    HashEmbeddingProvider,
    LiteLLMEmbeddingProvider,
    OllamaEmbeddingProvider,
    create_embedding_provider,
)
from clipsage.core.errors import ProviderError, ProviderUnavailable


def ollama_with(handler):
    return OllamaEmbeddingProvider(
        api_base="http://ollama.test",
        model="nomic-embed-text",
        summary_model="llama3.2",
        transport=httpx.MockTransport(handler),
    )


class TestOllamaEmbeddingProvider:
    """Ollama HTTP client against a mock transport."""

    @pytest.mark.asyncio
    async def test_embed_success(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})

        result = await ollama_with(handler).embed("test content")

        assert result == [0.1, 0.2, 0.3]
        assert seen["path"] == "/api/embeddings"
        assert seen["body"] == {"model": "nomic-embed-text", "prompt": "test content"}

    @pytest.mark.asyncio
    async def test_connection_failure_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderUnavailable):
            await ollama_with(handler).embed("text")

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ProviderUnavailable):
            await ollama_with(handler).embed("text")

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request):
            return httpx.Response(500, text="model not loaded")

        with pytest.raises(ProviderError):
            await ollama_with(handler).embed("text")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"[1, 2, 3]",
            b"{}",
            b'{"embedding": []}',
            b'{"embedding": "abc"}',
            b'{"embedding": [1.0, "x"]}',
        ],
    )
    async def test_malformed_response(self, body):
        def handler(request):
            return httpx.Response(200, content=body)

        with pytest.raises(ProviderError):
            await ollama_with(handler).embed("text")

    @pytest.mark.asyncio
    async def test_generate_summary(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "  A short summary.\n"})

        result = await ollama_with(handler).generate_summary("long text here")

        assert result == "A short summary."
        assert seen["path"] == "/api/generate"
        assert seen["body"]["model"] == "llama3.2"
        assert seen["body"]["stream"] is False
        assert "long text here" in seen["body"]["prompt"]

    @pytest.mark.asyncio
    async def test_generate_summary_missing_response(self):
        def handler(request):
            return httpx.Response(200, json={"done": True})

        with pytest.raises(ProviderError):
            await ollama_with(handler).generate_summary("text")

    def test_summary_model_defaults_to_embedding_model(self):
        provider = OllamaEmbeddingProvider(model="nomic-embed-text")
        assert provider.summary_model == "nomic-embed-text"
        assert provider.timeout is None


class TestLiteLLMEmbeddingProvider:
    """litellm-backed provider."""

    @pytest.mark.asyncio
    async def test_embed_success(self):
        mock_response = Mock()
        mock_response.data = [{"embedding": [0.1, 0.2, 0.3]}]
        provider = LiteLLMEmbeddingProvider(
            model="ollama/nomic-embed-text", api_base="http://ollama.test"
        )

        with patch(
            "clipsage.core.embeddings.aembedding",
            new=AsyncMock(return_value=mock_response),
        ) as mock_embed:
            result = await provider.embed("test content")

        assert result == [0.1, 0.2, 0.3]
        kwargs = mock_embed.call_args.kwargs
        assert kwargs["model"] == "ollama/nomic-embed-text"
        assert kwargs["input"] == ["test content"]
        assert kwargs["num_retries"] == 0
        assert kwargs["api_base"] == "http://ollama.test"

    @pytest.mark.asyncio
    async def test_backend_error(self):
        provider = LiteLLMEmbeddingProvider()

        with patch(
            "clipsage.core.embeddings.aembedding",
            new=AsyncMock(side_effect=Exception("API Error")),
        ):
            with pytest.raises(ProviderError):
                await provider.embed("test content")

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        mock_response = Mock()
        mock_response.data = []
        provider = LiteLLMEmbeddingProvider()

        with patch(
            "clipsage.core.embeddings.aembedding",
            new=AsyncMock(return_value=mock_response),
        ):
            with pytest.raises(ProviderError):
                await provider.embed("test content")


class TestHashEmbeddingProvider:
    """Deterministic offline provider."""

    @pytest.mark.asyncio
    async def test_deterministic(self):
        provider = HashEmbeddingProvider(dimension=64)

        first = await provider.embed("same text")
        second = await provider.embed("same text")
        other = await provider.embed("different text")

        assert first == second
        assert first != other
        assert len(first) == 64
        assert all(-1.0 <= x <= 1.0 for x in first)


class TestCreateEmbeddingProvider:
    """Provider factory."""

    def test_ollama(self):
        provider = create_embedding_provider(
            Settings(embed_provider="ollama", request_timeout=5.0)
        )
        assert isinstance(provider, OllamaEmbeddingProvider)
        assert provider.timeout == 5.0

    def test_litellm(self):
        provider = create_embedding_provider(Settings(embed_provider="litellm"))
        assert isinstance(provider, LiteLLMEmbeddingProvider)
        assert provider.api_base == "http://localhost:11434"

    def test_hash(self):
        assert isinstance(
            create_embedding_provider(Settings(embed_provider="hash")),
            HashEmbeddingProvider,
        )

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_embedding_provider(Settings(embed_provider="nope"))
