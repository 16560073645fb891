"""Embedding cache and vector math.

Debounced re-scans of unchanged page regions are the common case under
live content monitoring, so identical chunk text must never be embedded
twice while it is still in the cache.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Iterable, List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 500


class VectorStore:
    """Bounded least-recently-used map from exact text to embedding."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("VectorStore capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, text: str) -> Optional[np.ndarray]:
        vector = self._entries.get(text)
        if vector is None:
            self.misses += 1
            return None
        self._entries.move_to_end(text)
        self.hits += 1
        return vector

    def put(self, text: str, vector: np.ndarray) -> None:
        self._entries[text] = vector
        self._entries.move_to_end(text)
        if len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted embedding for %d-char text", len(evicted))

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> List[str]:
        """Keys from least to most recently used."""
        return list(self._entries.keys())

    def __contains__(self, text: str) -> bool:
        return text in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Vector math
# ---------------------------------------------------------------------------

def as_vector(values: Iterable[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=np.float32)


def normalize(vector: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        return vector
    return (vector / norm).astype(np.float32)


def mean_vector(vectors: Sequence[np.ndarray]) -> Optional[np.ndarray]:
    """Component-wise mean, re-normalised to unit length."""
    if not vectors:
        return None
    return normalize(np.mean(np.vstack(vectors), axis=0))


def cosine_similarity(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> float:
    """Dot product of unit vectors; 0.0 for missing or mismatched inputs."""
    if a is None or b is None or a.shape != b.shape:
        return 0.0
    return float(np.dot(a, b))


def cosine_distance(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> float:
    return 1.0 - cosine_similarity(a, b)
