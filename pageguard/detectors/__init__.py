"""Threat detectors: regex directives, hidden text, and semantic outliers."""

from pageguard.detectors.directives import PatternDetector
from pageguard.detectors.hidden_text import VisibilityHeuristicDetector
from pageguard.detectors.semantic import EmbeddingClassifier
from pageguard.detectors.types import (
    DirectiveFinding,
    Finding,
    FindingType,
    HiddenTextFinding,
    RoleConflictFinding,
    finding_from_dict,
    finding_to_dict,
)

__all__ = [
    "DirectiveFinding",
    "EmbeddingClassifier",
    "Finding",
    "FindingType",
    "HiddenTextFinding",
    "PatternDetector",
    "RoleConflictFinding",
    "VisibilityHeuristicDetector",
    "finding_from_dict",
    "finding_to_dict",
]
