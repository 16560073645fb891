"""Unit tests for pageguard.embeddings providers and factory (backends mocked)."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import numpy as np
import pytest

from pageguard.config import Settings
from pageguard.embeddings.base import create_embedding_provider, create_embedding_provider_from_config
from pageguard.embeddings.ollama_provider import OllamaEmbeddingProvider
from pageguard.embeddings.openai_provider import OpenAIEmbeddingProvider
from pageguard.errors import EmbeddingProviderError


class TestFactory:
    def test_openai(self):
        provider = create_embedding_provider("openai", api_key="sk-test")
        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.model == "text-embedding-3-small"

    def test_ollama(self):
        provider = create_embedding_provider("Ollama", base_url="http://ollama:11434/")
        assert isinstance(provider, OllamaEmbeddingProvider)
        assert provider.model == "nomic-embed-text"
        assert provider.base_url == "http://ollama:11434"

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            create_embedding_provider("word2vec")

    def test_from_config(self):
        s = Settings(_env_file=None, embedding_provider="ollama", embedding_model="mxbai-embed-large")
        provider = create_embedding_provider_from_config(s)
        assert isinstance(provider, OllamaEmbeddingProvider)
        assert provider.model == "mxbai-embed-large"
        assert provider.base_url == "http://localhost:11434"


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_embed_many_orders_and_normalizes(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        response = SimpleNamespace(data=[
            SimpleNamespace(index=1, embedding=[0.0, 2.0]),
            SimpleNamespace(index=0, embedding=[3.0, 4.0]),
        ])
        provider.client = MagicMock()
        provider.client.embeddings.create = AsyncMock(return_value=response)

        vectors = await provider.embed_many(["first", "second"])

        provider.client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-small", input=["first", "second"]
        )
        assert np.allclose(vectors[0], [0.6, 0.8])
        assert np.allclose(vectors[1], [0.0, 1.0])

    @pytest.mark.asyncio
    async def test_backend_error_is_wrapped(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        provider.client = MagicMock()
        provider.client.embeddings.create = AsyncMock(side_effect=RuntimeError("rate limited"))
        with pytest.raises(EmbeddingProviderError, match="rate limited"):
            await provider.embed("text")

    @pytest.mark.asyncio
    async def test_count_mismatch(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        provider.client = MagicMock()
        provider.client.embeddings.create = AsyncMock(return_value=SimpleNamespace(data=[]))
        with pytest.raises(EmbeddingProviderError):
            await provider.embed_many(["text"])

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        assert await provider.embed_many([]) == []


def _mock_async_client(response=None, error=None):
    client = AsyncMock()
    if error is not None:
        client.post = AsyncMock(side_effect=error)
    else:
        client.post = AsyncMock(return_value=response)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


class TestOllamaProvider:
    @pytest.mark.asyncio
    async def test_embed_many(self):
        response = MagicMock()
        response.json.return_value = {"embeddings": [[3.0, 4.0], [1.0, 0.0]]}
        client = _mock_async_client(response)

        with patch("pageguard.embeddings.ollama_provider.httpx.AsyncClient", return_value=client):
            vectors = await OllamaEmbeddingProvider().embed_many(["a", "b"])

        client.post.assert_awaited_once_with(
            "http://localhost:11434/api/embed",
            json={"model": "nomic-embed-text", "input": ["a", "b"]},
        )
        assert np.allclose(vectors[0], [0.6, 0.8])
        assert np.allclose(vectors[1], [1.0, 0.0])

    @pytest.mark.asyncio
    async def test_transport_error(self):
        client = _mock_async_client(error=httpx.ConnectError("refused"))
        with patch("pageguard.embeddings.ollama_provider.httpx.AsyncClient", return_value=client):
            with pytest.raises(EmbeddingProviderError, match="refused"):
                await OllamaEmbeddingProvider().embed("a")

    @pytest.mark.asyncio
    async def test_bad_payload(self):
        response = MagicMock()
        response.json.return_value = {"embedding": [1.0]}
        client = _mock_async_client(response)
        with patch("pageguard.embeddings.ollama_provider.httpx.AsyncClient", return_value=client):
            with pytest.raises(EmbeddingProviderError):
                await OllamaEmbeddingProvider().embed("a")
