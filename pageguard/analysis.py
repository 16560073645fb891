"""Classification service and the transports that reach it.

The orchestrator never talks to the embedding model directly. It sends the
flattened page text to a ClassificationClient, which either runs the
AnalysisEngine in-process or POSTs to another pageguard's `/api/analyze`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from pageguard.detectors.directives import PatternDetector
from pageguard.detectors.semantic import EmbeddingClassifier
from pageguard.detectors.types import Finding, SpanFinding, finding_from_dict
from pageguard.errors import ClassificationError, GuardError

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "SUCCESS"
STATUS_ERROR = "ERROR"


class AnalysisEngine:
    """Runs the text detectors and collects their findings."""

    def __init__(
        self,
        pattern_detector: Optional[PatternDetector] = None,
        classifier: Optional[EmbeddingClassifier] = None,
    ):
        self.pattern_detector = pattern_detector or PatternDetector()
        self.classifier = classifier

    @property
    def semantic_enabled(self) -> bool:
        return self.classifier is not None

    async def analyze(self, text: str, include_patterns: bool = True) -> List[Finding]:
        """Pattern findings first, then semantic ones.

        A failing pattern scan is logged and skipped. A failing classifier
        raises ClassificationError so the caller can degrade.
        """
        findings: List[Finding] = []
        if not text:
            return findings

        if include_patterns:
            try:
                findings.extend(self.pattern_detector.scan(text))
            except Exception as exc:
                logger.warning("Pattern detector failed: %s", exc)

        if self.classifier is not None:
            try:
                findings.extend(await self.classifier.analyze(text))
            except ClassificationError:
                raise
            except Exception as exc:
                code = exc.code if isinstance(exc, GuardError) else type(exc).__name__
                raise ClassificationError(f"Semantic analysis failed ({code}): {exc}") from exc

        return findings


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------

class ClassificationClient(ABC):
    """Sends flattened text for semantic classification."""

    @abstractmethod
    async def classify_text(self, text: str) -> List[SpanFinding]:
        """Return semantic findings for `text`.

        Raises:
            ClassificationError: transport failure or unusable response.
        """
        ...


class LocalClassificationClient(ClassificationClient):
    """Runs the engine in the current process."""

    def __init__(self, engine: AnalysisEngine):
        self.engine = engine

    async def classify_text(self, text: str) -> List[SpanFinding]:
        # The orchestrator already ran the pattern detector on this text
        return await self.engine.analyze(text, include_patterns=False)  # type: ignore[return-value]


class HttpClassificationClient(ClassificationClient):
    """Calls a remote pageguard service over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def classify_text(self, text: str) -> List[SpanFinding]:
        payload: Dict[str, Any] = {"text": text, "include_patterns": False}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(f"{self.base_url}/api/analyze", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise ClassificationError(f"Classification request failed: {exc}") from exc
        except ValueError as exc:
            raise ClassificationError(f"Classification response is not JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise ClassificationError("Classification response is not an object")
        if data.get("status") != STATUS_SUCCESS:
            raise ClassificationError(str(data.get("message") or "Classification service reported an error"))

        raw = data.get("findings")
        if not isinstance(raw, list):
            raise ClassificationError("Classification response has no findings list")
        return [finding_from_dict(item) for item in raw]
