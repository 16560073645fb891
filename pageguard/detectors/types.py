"""Finding primitives shared by every detector and the sanitizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from bs4 import Tag

from pageguard.errors import ClassificationError


class FindingType(str, Enum):
    """What kind of threat a finding describes."""
    HIDDEN_TEXT = "HIDDEN_TEXT"
    MALICIOUS_DIRECTIVE = "MALICIOUS_DIRECTIVE"
    ROLE_CONFLICT = "ROLE_CONFLICT"


# ---------------------------------------------------------------------------
# Finding variants
# ---------------------------------------------------------------------------

@dataclass
class BaseFinding:
    """Fields every finding carries."""
    type: FindingType
    subtype: str = ""
    score: float = 0.0
    reasoning: List[str] = field(default_factory=list)
    sanitized: bool = False


@dataclass
class HiddenTextFinding(BaseFinding):
    """A container hidden from people but readable by text extraction."""
    type: FindingType = field(default=FindingType.HIDDEN_TEXT, init=False)
    subtype: str = "Hidden Text"
    node: Optional[Tag] = None


@dataclass
class DirectiveFinding(BaseFinding):
    """An imperative instruction located in the flattened text."""
    type: FindingType = field(default=FindingType.MALICIOUS_DIRECTIVE, init=False)
    match: str = ""
    index: int = 0
    end: int = 0
    # Set only by the semantic classifier
    context: Optional[str] = None
    target_context: Optional[str] = None


@dataclass
class RoleConflictFinding(BaseFinding):
    """A chunk resembling a risk category that is an outlier in its document."""
    type: FindingType = field(default=FindingType.ROLE_CONFLICT, init=False)
    match: str = ""
    index: int = 0
    end: int = 0
    context: str = ""
    target_context: str = ""


Finding = Union[HiddenTextFinding, DirectiveFinding, RoleConflictFinding]
SpanFinding = Union[DirectiveFinding, RoleConflictFinding]


def is_span_finding(finding: Finding) -> bool:
    return isinstance(finding, (DirectiveFinding, RoleConflictFinding))


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

def finding_to_dict(finding: Finding) -> Dict[str, Any]:
    """JSON-friendly view used for reports and the analysis API."""
    data: Dict[str, Any] = {
        "type": finding.type.value,
        "subtype": finding.subtype,
        "score": round(float(finding.score), 4),
        "reasoning": list(finding.reasoning),
        "sanitized": finding.sanitized,
    }
    if isinstance(finding, HiddenTextFinding):
        data["node"] = finding.node.name if finding.node is not None else None
        return data

    data.update({"match": finding.match, "index": finding.index, "end": finding.end})
    if finding.context is not None:
        data["context"] = finding.context
    if finding.target_context is not None:
        data["target_context"] = finding.target_context
    return data


def finding_from_dict(data: Dict[str, Any]) -> SpanFinding:
    """Rebuild a span finding received from the classification service."""
    try:
        kind = FindingType(data["type"])
        common = {
            "subtype": str(data.get("subtype", "")),
            "score": float(data.get("score", 0.0)),
            "reasoning": [str(r) for r in data.get("reasoning", [])],
            "match": str(data.get("match", "")),
            "index": int(data["index"]),
            "end": int(data["end"]),
        }
    except (KeyError, TypeError, ValueError) as exc:
        raise ClassificationError(f"Malformed finding payload: {exc}") from exc

    if common["end"] < common["index"]:
        raise ClassificationError("Malformed finding payload: end before index")

    if kind is FindingType.MALICIOUS_DIRECTIVE:
        return DirectiveFinding(
            context=data.get("context"),
            target_context=data.get("target_context"),
            **common,
        )
    if kind is FindingType.ROLE_CONFLICT:
        return RoleConflictFinding(
            context=str(data.get("context", "")),
            target_context=str(data.get("target_context", "")),
            **common,
        )
    raise ClassificationError(f"Finding type {kind.value} cannot cross the wire")
