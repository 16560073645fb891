"""Base embedding provider interface and factory.

Every backend must implement `EmbeddingProvider`. The factory function
`create_embedding_provider()` picks one by name and
`create_embedding_provider_from_config()` builds it from app settings.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Abstract interface: text in, L2-normalised float vector out."""

    @abstractmethod
    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        """Embed a batch of texts in one backend round-trip.

        Args:
            texts: Input strings, order preserved in the output.

        Returns:
            One unit-length float32 vector per input.

        Raises:
            EmbeddingProviderError: the backend failed or answered badly.
        """
        ...

    async def embed(self, text: str) -> np.ndarray:
        vectors = await self.embed_many([text])
        return vectors[0]


def create_embedding_provider(
    provider_name: str = "openai",
    **kwargs,
) -> EmbeddingProvider:
    """Factory: create an embedding provider by name.

    Args:
        provider_name: "openai" or "ollama"
        **kwargs: Forwarded to the provider constructor (api_key, model, base_url)
    """
    name = provider_name.lower().strip()

    if name == "openai":
        from pageguard.embeddings.openai_provider import OpenAIEmbeddingProvider
        return OpenAIEmbeddingProvider(**kwargs)
    elif name == "ollama":
        from pageguard.embeddings.ollama_provider import OllamaEmbeddingProvider
        return OllamaEmbeddingProvider(**kwargs)
    else:
        raise ValueError(f"Unknown embedding provider: {provider_name!r} (expected openai or ollama)")


def create_embedding_provider_from_config(settings=None) -> EmbeddingProvider:
    """Build an EmbeddingProvider from app settings."""
    if settings is None:
        from pageguard.config import settings

    return create_embedding_provider(
        settings.embedding_provider,
        api_key=_pick_key(settings, settings.embedding_provider),
        model=settings.embedding_model or None,
        base_url=_pick_base_url(settings, settings.embedding_provider),
    )


def _pick_key(settings, provider: str) -> Optional[str]:
    if provider == "openai":
        return settings.openai_api_key
    return None


def _pick_base_url(settings, provider: str) -> Optional[str]:
    if provider == "ollama":
        return settings.ollama_base_url
    return None
