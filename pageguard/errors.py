"""Typed error hierarchy for the scan engine.

Every error carries a machine-readable `code` so callers never need to
parse exception messages. None of these are meant to escape a scan: the
orchestrator catches them at each step and degrades instead.
"""

from __future__ import annotations

from typing import Optional


class GuardError(Exception):
    """Base for all pageguard errors."""
    code: str = "guard_error"
    retriable: bool = False

    def __init__(self, message: str, *, code: Optional[str] = None, retriable: Optional[bool] = None):
        super().__init__(message)
        if code is not None:
            self.code = code
        if retriable is not None:
            self.retriable = retriable


class TraversalError(GuardError):
    """A node could not be read while walking the tree."""
    code = "traversal_error"
    retriable = False


class DetectorError(GuardError):
    """A single detector failed on its input."""
    code = "detector_error"
    retriable = False


class ClassificationError(GuardError):
    """The classification service failed or returned something unusable."""
    code = "classification_error"
    retriable = True


class ClassificationTimeoutError(ClassificationError):
    """The classification service did not answer in time."""
    code = "classification_timeout"
    retriable = True


class EmbeddingProviderError(GuardError):
    """The embedding backend returned an error or was unreachable."""
    code = "embedding_provider_error"
    retriable = True


class SanitizationError(GuardError):
    """A tree mutation could not be applied."""
    code = "sanitization_error"
    retriable = False
