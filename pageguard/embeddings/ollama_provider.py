"""Ollama embedding provider.

Talks to a local Ollama server over HTTP (`POST /api/embed`), which accepts
a list of inputs and returns one embedding per input.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
import numpy as np

from pageguard.embeddings.base import EmbeddingProvider
from pageguard.embeddings.vector_store import as_vector, normalize
from pageguard.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "nomic-embed-text"
DEFAULT_BASE_URL = "http://localhost:11434"
TIMEOUT_S = 60


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Provider for Ollama local embedding models."""

    def __init__(
        self,
        model: Optional[str] = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        **kwargs,
    ):
        self.model = model or DEFAULT_MODEL
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        if not texts:
            return []

        payload: Dict[str, Any] = {"model": self.model, "input": texts}
        try:
            async with httpx.AsyncClient(timeout=TIMEOUT_S) as client:
                resp = await client.post(f"{self.base_url}/api/embed", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise EmbeddingProviderError(f"Ollama embed request failed: {exc}") from exc

        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            raise EmbeddingProviderError("Ollama returned an unexpected embed payload")
        return [normalize(as_vector(e)) for e in embeddings]
