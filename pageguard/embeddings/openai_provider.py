"""OpenAI embedding provider.

Uses the embeddings endpoint with batched input so a whole page's chunks
cost one request.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import numpy as np
from openai import AsyncOpenAI

from pageguard.embeddings.base import EmbeddingProvider
from pageguard.embeddings.vector_store import as_vector, normalize
from pageguard.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Provider for OpenAI text embeddings."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        **kwargs,
    ):
        self.model = model or DEFAULT_MODEL
        client_kwargs: Dict[str, Any] = {}
        if api_key:
            client_kwargs["api_key"] = api_key
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = AsyncOpenAI(**client_kwargs)

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        if not texts:
            return []
        try:
            response = await self.client.embeddings.create(model=self.model, input=texts)
        except Exception as exc:
            raise EmbeddingProviderError(f"OpenAI embeddings request failed: {exc}") from exc

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise EmbeddingProviderError(
                f"OpenAI returned {len(data)} embeddings for {len(texts)} inputs"
            )
        return [normalize(as_vector(item.embedding)) for item in data]
