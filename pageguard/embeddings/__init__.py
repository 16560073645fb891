"""Embedding providers and the vector cache.

Usage:
    from pageguard.embeddings import create_embedding_provider

    provider = create_embedding_provider("ollama", base_url="http://localhost:11434")
    vector = await provider.embed("some text")
"""

from pageguard.embeddings.base import (
    EmbeddingProvider,
    create_embedding_provider,
    create_embedding_provider_from_config,
)
from pageguard.embeddings.vector_store import VectorStore

__all__ = [
    "EmbeddingProvider",
    "VectorStore",
    "create_embedding_provider",
    "create_embedding_provider_from_config",
]
