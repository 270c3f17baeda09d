"""Embedding providers: the boundary between the engine and text-to-vector models."""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import httpx
from litellm import aembedding
from litellm.exceptions import APIConnectionError, ServiceUnavailableError, Timeout

from clipsage.core.config import Settings
from clipsage.core.errors import ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Turns text into a float vector.

    A single attempt: implementations raise ``ProviderUnavailable`` when the
    backend cannot be reached and ``ProviderError`` when it answers badly.
    """

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Generate an embedding for ``text``."""


def _parse_vector(raw: Any, origin: str) -> List[float]:
    if not isinstance(raw, list) or not raw:
        raise ProviderError(f"{origin} returned no embedding")
    try:
        return [float(x) for x in raw]
    except (TypeError, ValueError) as e:
        raise ProviderError(f"{origin} returned a non-numeric embedding") from e


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Ollama HTTP API client (``/api/embeddings`` and ``/api/generate``)."""

    def __init__(
        self,
        api_base: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        summary_model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.model = model
        self.summary_model = summary_model or model
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post_json(self, path: str, payload: dict) -> dict:
        url = f"{self.api_base}{path}"
        try:
            async with self._client() as client:
                response = await client.post(url, json=payload)
        except httpx.TransportError as e:
            logger.warning(f"Ollama unreachable at {url}: {e}")
            raise ProviderUnavailable(f"Ollama unreachable at {url}: {e}") from e

        if response.status_code != 200:
            raise ProviderError(
                f"Ollama {path} returned HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Ollama {path} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise ProviderError(f"Ollama {path} returned unexpected payload")
        return data

    async def embed(self, text: str) -> List[float]:
        data = await self._post_json(
            "/api/embeddings", {"model": self.model, "prompt": text}
        )
        vector = _parse_vector(data.get("embedding"), "Ollama")
        logger.debug(f"Embedded {len(text)} chars into {len(vector)} dims")
        return vector

    async def generate_summary(self, text: str) -> str:
        """One-sentence summary, for the capture side. Not used by retrieval."""
        prompt = f"Summarize the following text in one short sentence:\n\n{text}"
        data = await self._post_json(
            "/api/generate",
            {"model": self.summary_model, "prompt": prompt, "stream": False},
        )
        summary = data.get("response")
        if not isinstance(summary, str):
            raise ProviderError("Ollama /api/generate returned no response text")
        return summary.strip()


class LiteLLMEmbeddingProvider(EmbeddingProvider):
    """Embeddings through litellm, for any backend it can route to."""

    def __init__(
        self,
        model: str = "ollama/nomic-embed-text",
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model
        self.api_base = api_base
        self.timeout = timeout

    async def embed(self, text: str) -> List[float]:
        params = {"model": self.model, "input": [text], "num_retries": 0}
        if self.api_base:
            params["api_base"] = self.api_base
        if self.timeout is not None:
            params["timeout"] = self.timeout

        try:
            response = await aembedding(**params)
        except (APIConnectionError, ServiceUnavailableError, Timeout) as e:
            logger.warning(f"LiteLLM embedding backend unavailable: {e}")
            raise ProviderUnavailable(str(e)) from e
        except Exception as e:
            logger.warning(f"LiteLLM embedding failed: {e}")
            raise ProviderError(str(e)) from e

        try:
            raw = response.data[0]["embedding"]
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise ProviderError("LiteLLM returned a malformed embedding response") from e
        return _parse_vector(raw, "LiteLLM")


class HashEmbeddingProvider(EmbeddingProvider):
    """Deterministic md5-derived vectors. Offline mode and tests only.

    Identical text always maps to the identical vector; there is no semantic
    signal beyond that.
    """

    def __init__(self, dimension: int = 768):
        self.dimension = dimension

    async def embed(self, text: str) -> List[float]:
        hash_bytes = hashlib.md5(text.encode()).digest()
        embedding = []
        for i in range(self.dimension):
            byte_val = hash_bytes[i % len(hash_bytes)]
            # Normalize to [-1, 1] range
            embedding.append((byte_val - 128) / 128.0)
        return embedding


def create_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Build the provider named by ``settings.embed_provider``."""
    name = settings.embed_provider
    if name == "ollama":
        return OllamaEmbeddingProvider(
            api_base=settings.ollama_api_base,
            model=settings.embedding_model,
            summary_model=settings.summary_model,
            timeout=settings.request_timeout,
        )
    if name == "litellm":
        return LiteLLMEmbeddingProvider(
            model=settings.litellm_embedding_model,
            api_base=settings.ollama_api_base
            if settings.litellm_embedding_model.startswith("ollama/")
            else None,
            timeout=settings.request_timeout,
        )
    if name == "hash":
        return HashEmbeddingProvider()
    raise ValueError(f"Unknown embedding provider: {name}")
