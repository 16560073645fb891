"""Scan orchestration.

One scan of a subtree:
1. Single walk: strip carrier nodes and neutralise hidden containers
2. Regex directives on the flattened text
3. Semantic findings from the classification client (bounded, degradable)
Each span finding is mapped back to leaf ranges and sanitised in place.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from bs4 import Tag

from pageguard.analysis import ClassificationClient
from pageguard.detectors.directives import PatternDetector
from pageguard.detectors.hidden_text import VisibilityHeuristicDetector
from pageguard.detectors.types import Finding, SpanFinding, finding_to_dict
from pageguard.errors import ClassificationTimeoutError, DetectorError
from pageguard.policy.redaction import EntityRedactor
from pageguard.sanitizer import SanitizationPlanner
from pageguard.tree.nodes import is_carrier
from pageguard.tree.styles import StyleResolver
from pageguard.tree.text_map import TreeTextMapper

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_TIMEOUT_S = 30.0


@dataclass
class ScanResult:
    findings: List[Finding] = field(default_factory=list)
    sanitized_count: int = 0

    @property
    def threat_count(self) -> int:
        return len(self.findings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "findings": [finding_to_dict(f) for f in self.findings],
            "sanitized_count": self.sanitized_count,
        }


class ScanOrchestrator:
    """Runs every detector over a subtree and sanitises what they find."""

    def __init__(
        self,
        pattern_detector: Optional[PatternDetector] = None,
        client: Optional[ClassificationClient] = None,
        redactor: Optional[EntityRedactor] = None,
        analysis_timeout: float = DEFAULT_ANALYSIS_TIMEOUT_S,
    ):
        self.pattern_detector = pattern_detector or PatternDetector()
        self.client = client
        self.redactor = redactor or EntityRedactor()
        self.analysis_timeout = analysis_timeout

    async def scan(self, root) -> ScanResult:
        result = ScanResult()

        # Styles, fragment bookkeeping and the text map are per scan
        styles = StyleResolver()
        mapper = TreeTextMapper(styles)
        hidden = VisibilityHeuristicDetector(styles)
        planner = SanitizationPlanner(self.redactor)

        try:
            for node in mapper.walk(root):
                if node is not root and is_carrier(node):
                    node.extract()
                    continue
                if isinstance(node, Tag):
                    self._check_hidden(hidden, planner, node, result)
        except Exception as exc:
            logger.warning("Tree walk aborted: %s", exc)

        text = mapper.text
        if not text.strip():
            return result

        for finding in self._run_patterns(text):
            self._sanitize_span(mapper, planner, finding, result)

        for finding in await self._classify(text):
            self._sanitize_span(mapper, planner, finding, result)

        if result.findings:
            logger.info(
                "Scan found %d threat(s), sanitized %d",
                len(result.findings), result.sanitized_count,
            )
        return result

    async def process_content(self, text: str, safe_list: Iterable[str] = ()) -> Dict[str, Any]:
        """Text-only scan: findings plus a sanitised copy of `text`."""
        findings: List[Finding] = []
        if text and text.strip():
            findings.extend(self._run_patterns(text))
            findings.extend(await self._classify(text))

        planner = SanitizationPlanner(self.redactor)
        cleaned = planner.sanitize_text(text, findings, safe_list)
        for finding in findings:
            finding.sanitized = True
        return {"original": text, "cleaned": cleaned, "findings": findings}

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def _check_hidden(
        detector: VisibilityHeuristicDetector,
        planner: SanitizationPlanner,
        node: Tag,
        result: ScanResult,
    ) -> None:
        try:
            finding = detector.scan_node(node)
        except Exception as exc:
            error = DetectorError(f"Hidden text detector failed on <{node.name}>: {exc}")
            logger.warning("Detector skipped [%s]: %s", error.code, error)
            return
        if finding is None:
            return
        finding.sanitized = planner.apply_to_node(node, finding)
        if finding.sanitized:
            result.sanitized_count += 1
        result.findings.append(finding)

    def _run_patterns(self, text: str) -> List[SpanFinding]:
        try:
            return list(self.pattern_detector.scan(text))
        except Exception as exc:
            error = DetectorError(f"Pattern detector failed: {exc}")
            logger.warning("Detector skipped [%s]: %s", error.code, error)
            return []

    async def _classify(self, text: str) -> List[SpanFinding]:
        if self.client is None:
            return []
        try:
            return list(await asyncio.wait_for(self.client.classify_text(text), timeout=self.analysis_timeout))
        except asyncio.TimeoutError:
            error = ClassificationTimeoutError(
                f"Classification did not answer within {self.analysis_timeout:g}s"
            )
            logger.warning("Semantic analysis skipped [%s]: %s", error.code, error)
        except Exception as exc:
            code = getattr(exc, "code", type(exc).__name__)
            logger.warning("Semantic analysis skipped [%s]: %s", code, exc)
        return []

    @staticmethod
    def _sanitize_span(
        mapper: TreeTextMapper,
        planner: SanitizationPlanner,
        finding: SpanFinding,
        result: ScanResult,
    ) -> None:
        applied = False
        for leaf_range in mapper.get_ranges(finding.index, finding.end):
            if planner.apply_to_range(leaf_range, finding):
                applied = True
        finding.sanitized = applied
        if applied:
            result.sanitized_count += 1
        result.findings.append(finding)
