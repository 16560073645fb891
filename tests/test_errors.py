"""Unit tests for pageguard.errors: typed error hierarchy."""

import pytest

from pageguard.errors import (
    ClassificationError,
    ClassificationTimeoutError,
    DetectorError,
    EmbeddingProviderError,
    GuardError,
    SanitizationError,
    TraversalError,
)


class TestErrorHierarchy:
    @pytest.mark.parametrize("cls, code, retriable", [
        (GuardError, "guard_error", False),
        (TraversalError, "traversal_error", False),
        (DetectorError, "detector_error", False),
        (ClassificationError, "classification_error", True),
        (ClassificationTimeoutError, "classification_timeout", True),
        (EmbeddingProviderError, "embedding_provider_error", True),
        (SanitizationError, "sanitization_error", False),
    ])
    def test_codes(self, cls, code, retriable):
        err = cls("msg")
        assert err.code == code
        assert err.retriable is retriable
        assert str(err) == "msg"
        assert isinstance(err, GuardError)

    def test_timeout_is_classification_error(self):
        assert issubclass(ClassificationTimeoutError, ClassificationError)

    def test_overrides(self):
        err = ClassificationError("msg", code="custom", retriable=False)
        assert err.code == "custom"
        assert err.retriable is False
        assert ClassificationError.code == "classification_error"
