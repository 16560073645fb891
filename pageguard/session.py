"""Scan session: everything that outlives a single scan.

A host creates one session per document (or per service process) and
passes it to every entry point. It owns the embedding cache, the
classifier with its in-flight anchor load, the lock that serialises scans,
the post-scan cooldown and the report event bus.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from pageguard.analysis import (
    AnalysisEngine,
    ClassificationClient,
    HttpClassificationClient,
    LocalClassificationClient,
)
from pageguard.clock import Clock, SystemClock
from pageguard.detectors.directives import PatternDetector
from pageguard.detectors.semantic import EmbeddingClassifier
from pageguard.detectors.types import finding_to_dict
from pageguard.embeddings.base import EmbeddingProvider, create_embedding_provider_from_config
from pageguard.embeddings.vector_store import VectorStore
from pageguard.observability.activity import ActivityLog
from pageguard.observability.events import (
    EventBus,
    ScanEndEvent,
    ScanSafeEvent,
    ScanStartEvent,
    ThreatsDetectedEvent,
)
from pageguard.policy.redaction import EntityRedactor
from pageguard.scanner import ScanOrchestrator, ScanResult
from pageguard.tree.nodes import document_title

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_S = 1.0


class ScanSession:
    def __init__(
        self,
        orchestrator: ScanOrchestrator,
        *,
        engine: Optional[AnalysisEngine] = None,
        clock: Optional[Clock] = None,
        cooldown_s: float = DEFAULT_COOLDOWN_S,
        bus: Optional[EventBus] = None,
        activity: Optional[ActivityLog] = None,
    ):
        self.orchestrator = orchestrator
        self.engine = engine or AnalysisEngine(orchestrator.pattern_detector)
        self.clock = clock or SystemClock()
        self.cooldown_s = cooldown_s
        self.bus = bus or EventBus()
        self.activity = activity or ActivityLog()
        self.activity.attach(self.bus)

        self._lock = asyncio.Lock()
        self._scanning = False
        self._last_scan_end: Optional[float] = None

    @classmethod
    def from_settings(
        cls,
        settings=None,
        *,
        provider: Optional[EmbeddingProvider] = None,
        client: Optional[ClassificationClient] = None,
        clock: Optional[Clock] = None,
    ) -> "ScanSession":
        """Wire a session from app settings.

        `provider` and `client` override what the settings would build.
        """
        if settings is None:
            from pageguard.config import settings

        patterns = PatternDetector()
        classifier: Optional[EmbeddingClassifier] = None

        if settings.semantic_enabled and (provider is not None or not settings.uses_remote_analysis()):
            if provider is None:
                try:
                    provider = create_embedding_provider_from_config(settings)
                except Exception as exc:
                    logger.warning("Semantic analysis disabled, embedding provider unavailable: %s", exc)
            if provider is not None:
                classifier = EmbeddingClassifier(
                    provider,
                    vector_store=VectorStore(settings.vector_cache_size),
                    similarity_threshold=settings.anchor_similarity_threshold,
                    outlier_threshold=settings.outlier_distance_threshold,
                    min_chunk_words=settings.min_chunk_words,
                )

        engine = AnalysisEngine(patterns, classifier)

        if client is None and settings.semantic_enabled:
            if settings.uses_remote_analysis():
                client = HttpClassificationClient(settings.analysis_url, timeout=settings.analysis_timeout_seconds)
            elif classifier is not None:
                client = LocalClassificationClient(engine)

        orchestrator = ScanOrchestrator(
            pattern_detector=patterns,
            client=client,
            redactor=EntityRedactor(settings.get_safe_senders()),
            analysis_timeout=settings.analysis_timeout_seconds,
        )
        return cls(
            orchestrator,
            engine=engine,
            clock=clock,
            cooldown_s=settings.scan_cooldown_ms / 1000.0,
            activity=ActivityLog(settings.activity_log_size),
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def classifier(self) -> Optional[EmbeddingClassifier]:
        return self.engine.classifier

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    def is_quiet(self) -> bool:
        """False while a scan runs or within the cooldown after one."""
        if self._scanning:
            return False
        if self._last_scan_end is None:
            return True
        return self.clock.now() - self._last_scan_end >= self.cooldown_s

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def scan_now(self, root, url: str = "", title: Optional[str] = None) -> ScanResult:
        """Scan `root`, waiting for any scan already in progress."""
        async with self._lock:
            self._scanning = True
            started = self.clock.now()
            self.bus.emit(ScanStartEvent(url=url))
            try:
                result = await self.orchestrator.scan(root)
            finally:
                self._scanning = False
                self._last_scan_end = self.clock.now()

            self._report(result, url, title if title is not None else document_title(root))
            self.bus.emit(ScanEndEvent(
                url=url,
                threat_count=result.threat_count,
                sanitized_count=result.sanitized_count,
                duration_ms=int((self._last_scan_end - started) * 1000),
            ))
            return result

    def _report(self, result: ScanResult, url: str, title: str) -> None:
        if not result.findings:
            self.bus.emit(ScanSafeEvent(count=0))
            return
        self.bus.emit(ThreatsDetectedEvent(
            count=len(result.findings),
            matches=[finding_to_dict(f) for f in result.findings],
            context={
                "title": title,
                "url": url,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        ))
