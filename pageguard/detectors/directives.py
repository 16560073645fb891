"""Fast path: regex scan for high-risk imperative phrases.

Runs synchronously before any semantic analysis so obvious attacks are
neutralised even when the classification service is slow or down.
Keep this list small and high-signal; every pattern here rewrites page
content when it fires.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from pageguard.detectors.types import DirectiveFinding

logger = logging.getLogger(__name__)

# Match windows grow outward until a paragraph break or these bounds
MAX_LOOKBACK_CHARS = 150
MAX_LOOKAHEAD_CHARS = 250

_EMAIL = r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"
_QUALIFIERS = r"(?:(?:the|this|these|previous|all|prior|above|earlier)\s+)+"

# (pattern, label, base score), ordered by category
HIGH_RISK_PATTERNS: List[Tuple[re.Pattern, str, float]] = [
    # Instruction override
    (re.compile(rf"ignore\s+{_QUALIFIERS}instructions?", re.IGNORECASE), "Instruction Override", 1.0),
    (re.compile(rf"ignore\s+{_QUALIFIERS}directions", re.IGNORECASE), "Instruction Override", 1.0),
    (re.compile(r"ignore\s+what\s+I\s+said", re.IGNORECASE), "Instruction Override", 0.9),
    (re.compile(r"forget\s+(?:all\s+)?(?:prior\s+|previous\s+)?instructions", re.IGNORECASE), "Instruction Override", 1.0),
    (re.compile(r"disregard\s+(?:the|this|previous)\s+message", re.IGNORECASE), "Instruction Override", 0.9),
    (re.compile(r"ignore\s+this\s+and\s+(?:send|write|print|display)", re.IGNORECASE), "Compound Injection", 1.0),

    # System override / mode switching
    (re.compile(r"system\s+override", re.IGNORECASE), "System Override", 1.0),
    (re.compile(r"debug\s+mode", re.IGNORECASE), "Mode Switching", 0.8),
    (re.compile(r"admin\s+mode", re.IGNORECASE), "Mode Switching", 0.8),
    (re.compile(r"urgent\s+system\s+update", re.IGNORECASE), "False Urgency", 0.7),

    # Evasion
    (re.compile(r"do\s+not\s+alert\s+the\s+user", re.IGNORECASE), "Evasion Attempt", 1.0),
    (re.compile(r"delete\s+this\s+email\s+after", re.IGNORECASE), "Trace Removal", 0.9),

    # Data exfiltration
    (re.compile(r"forward\s+this\s+email\s+to", re.IGNORECASE), "Data Exfiltration", 0.9),
    (re.compile(
        r"(?:forward|send)\s+(?:the|this|all)?\s*(?:following|before|above|previous|below)?\s*"
        r"(?:mail|email|message|text|content)\s+to\s+(?:this\s+email\s*:?)?",
        re.IGNORECASE,
    ), "Data Exfiltration", 0.95),
    (re.compile(rf"send\s+(?:the|this)?\s*.*\s*to\s+{_EMAIL}", re.IGNORECASE), "Data Exfiltration", 0.9),

    # Credential theft
    (re.compile(r"retrieve\s+.*cookies", re.IGNORECASE), "Credential Theft", 1.0),

    # Financial coercion
    (re.compile(r"immediately\s+wire\s+transfer", re.IGNORECASE), "Financial Coercion", 1.0),
    (re.compile(r"mandatory\s+update\s+for", re.IGNORECASE), "False Urgency", 0.8),
]


def expand_window(text: str, start: int, end: int) -> Tuple[int, int]:
    """Grow [start, end) to the surrounding paragraph, within the lookaround bounds."""
    looked_back = 0
    while start > 0 and looked_back < MAX_LOOKBACK_CHARS:
        if start >= 2 and text[start - 1] == "\n" and text[start - 2] == "\n":
            break
        start -= 1
        looked_back += 1

    looked_ahead = 0
    while end < len(text) and looked_ahead < MAX_LOOKAHEAD_CHARS:
        if text[end] == "\n" and end + 1 < len(text) and text[end + 1] == "\n":
            break
        end += 1
        looked_ahead += 1

    return start, end


class PatternDetector:
    """Scans flattened text for known injection phrasings."""

    name = "PatternDetector"

    def __init__(self, patterns: Optional[List[Tuple[re.Pattern, str, float]]] = None):
        self.patterns = patterns if patterns is not None else HIGH_RISK_PATTERNS

    def scan(self, text: str) -> List[DirectiveFinding]:
        findings: List[DirectiveFinding] = []
        if not text:
            return findings

        for pattern, label, score in self.patterns:
            for match in pattern.finditer(text):
                start, end = expand_window(text, match.start(), match.end())
                findings.append(DirectiveFinding(
                    subtype=label,
                    score=score,
                    reasoning=[f'Detected high-risk phrase: "{label}"'],
                    match=text[start:end],
                    index=start,
                    end=end,
                ))

        if findings:
            logger.debug("Pattern scan matched %d directives", len(findings))
        return findings
