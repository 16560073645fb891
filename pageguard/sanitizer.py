"""Tree and text rewriting for confirmed findings.

Span findings (directives, role conflicts) replace exactly the characters
they cover with a visible warning marker. Hidden-text findings replace the
whole container's content and force it to render, so a person sees the
same thing an agent would have read.

A single scan can sanitise several findings that touch the same text leaf.
The first replacement splits the leaf, so the planner remembers how every
original leaf was cut up and maps later original-offset ranges onto the
surviving fragments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from bs4 import NavigableString, Tag

from pageguard.detectors.types import Finding, FindingType, is_span_finding
from pageguard.errors import SanitizationError
from pageguard.policy.redaction import EntityRedactor
from pageguard.tree.nodes import (
    SANITIZED_ATTR,
    SCANNED_ATTR,
    WARNING_CLASS,
    add_class,
    is_sanitized,
    new_tag,
)
from pageguard.tree.styles import format_declarations, parse_declarations
from pageguard.tree.text_map import LeafRange

logger = logging.getLogger(__name__)

HIDDEN_CONTENT_LABEL = "[HIDDEN CONTENT NEUTRALIZED]"
DEFAULT_TITLE = "pageguard neutralized this content."

# Attributes screen readers and text extractors read as if they were content
RISKY_ATTRIBUTES = ("aria-label", "title", "alt", "placeholder", "data-content", "value")

_MARKER_STYLE = {
    "color": "#b91c1c",
    "background-color": "#fee2e2",
    "font-weight": "bold",
    "border-radius": "3px",
}

_REVEAL_STYLE = {
    "display": "block",
    "visibility": "visible",
    "opacity": "1",
    "font-size": "12px",
    "position": "static",
    "color": "#b91c1c",
    "background-color": "#fee2e2",
    "border": "1px dashed #b91c1c",
}


@dataclass
class _Fragment:
    """The piece of an original leaf occupying [start, end) of its text."""
    start: int
    end: int
    node: object
    replaced: bool = False


class SanitizationPlanner:
    """Applies warning markers to the tree for one scan."""

    def __init__(self, redactor: Optional[EntityRedactor] = None):
        self.redactor = redactor or EntityRedactor()
        self._fragments: Dict[int, Tuple[NavigableString, List[_Fragment]]] = {}
        self._labelled: Set[int] = set()

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    @staticmethod
    def warning_label(finding: Finding) -> Tuple[str, str]:
        """Marker text and hover title for a finding."""
        if finding.type is FindingType.MALICIOUS_DIRECTIVE:
            return f" [ 🚫 Command Removed: {finding.subtype} ] ", DEFAULT_TITLE
        if finding.type is FindingType.ROLE_CONFLICT:
            reason = finding.reasoning[0] if finding.reasoning else finding.subtype
            return f" [ 🚫 Blocked: {finding.subtype} ] ", f"Semantic analysis result: {reason}"
        return " [ 🚫 Dangerous Directive Neutralized ] ", DEFAULT_TITLE

    # ------------------------------------------------------------------
    # Span findings
    # ------------------------------------------------------------------

    def apply_to_range(self, leaf_range: LeafRange, finding: Finding) -> bool:
        """Replace the slice of a leaf covered by `leaf_range` with a marker.

        Returns False when every covered character was already replaced or
        the mutation failed.
        """
        try:
            return self._apply_to_range(leaf_range, finding)
        except Exception as exc:
            logger.warning("Could not sanitize %s range: %s", finding.subtype or finding.type.value, exc)
            return False

    def _apply_to_range(self, leaf_range: LeafRange, finding: Finding) -> bool:
        fragments = self._fragments_for(leaf_range.leaf)
        start, end = leaf_range.start, leaf_range.end

        targets = [
            f for f in fragments
            if not f.replaced and f.start < end and f.end > start
        ]
        if not targets:
            return False

        markers: List[Tag] = []
        for fragment in targets:
            marker = self._split(fragments, fragment, max(start, fragment.start), min(end, fragment.end), finding)
            markers.append(marker)

        for marker in markers:
            if isinstance(marker.parent, Tag):
                self.scrub_attributes(marker.parent)
        return True

    def _fragments_for(self, leaf: NavigableString) -> List[_Fragment]:
        entry = self._fragments.get(id(leaf))
        if entry is None or entry[0] is not leaf:
            entry = (leaf, [_Fragment(start=0, end=len(leaf), node=leaf)])
            self._fragments[id(leaf)] = entry
        return entry[1]

    def _split(
        self,
        fragments: List[_Fragment],
        fragment: _Fragment,
        start: int,
        end: int,
        finding: Finding,
    ) -> Tag:
        node = fragment.node
        if node.parent is None:
            raise SanitizationError("Text fragment is no longer attached to the document")

        text = str(node)
        local_start = start - fragment.start
        local_end = end - fragment.start

        pieces: List[_Fragment] = []
        replacements = []
        if local_start > 0:
            before = NavigableString(text[:local_start])
            replacements.append(before)
            pieces.append(_Fragment(start=fragment.start, end=start, node=before))

        marker = self._marker(node, finding)
        replacements.append(marker)
        pieces.append(_Fragment(start=start, end=end, node=marker, replaced=True))

        if local_end < len(text):
            after = NavigableString(text[local_end:])
            replacements.append(after)
            pieces.append(_Fragment(start=end, end=fragment.end, node=after))

        node.replace_with(*replacements)

        position = fragments.index(fragment)
        fragments[position:position + 1] = pieces
        return marker

    def _marker(self, anchor, finding: Finding) -> Tag:
        text, title = self.warning_label(finding)
        marker = new_tag(anchor, "span", {
            SANITIZED_ATTR: "true",
            "title": title,
            "style": format_declarations(_MARKER_STYLE),
        })
        add_class(marker, WARNING_CLASS)
        # A match spanning several leaves is labelled once
        if id(finding) not in self._labelled:
            self._labelled.add(id(finding))
            marker.string = text
        return marker

    # ------------------------------------------------------------------
    # Hidden containers
    # ------------------------------------------------------------------

    def apply_to_node(self, node: Tag, finding: Finding) -> bool:
        """Replace a hidden container's content with a visible warning."""
        if finding.type is not FindingType.HIDDEN_TEXT or not isinstance(node, Tag):
            return False
        if is_sanitized(node):
            return False
        try:
            node.clear()
            node.append(HIDDEN_CONTENT_LABEL)

            declarations = parse_declarations(node.get("style"))
            for name in ("left", "top"):
                declarations.pop(name, None)
            declarations.update(_REVEAL_STYLE)
            node["style"] = format_declarations(declarations)
            if node.has_attr("hidden"):
                del node["hidden"]

            self.scrub_attributes(node)
            node[SCANNED_ATTR] = "true"
            node["title"] = "; ".join(finding.reasoning) or DEFAULT_TITLE
            add_class(node, WARNING_CLASS)
        except Exception as exc:
            logger.warning("Could not neutralize hidden <%s>: %s", node.name, exc)
            return False
        return True

    def scrub_attributes(self, tag: Tag) -> None:
        """Redact or drop attributes that carry text outside the visible flow."""
        for attr in RISKY_ATTRIBUTES:
            if not tag.has_attr(attr):
                continue
            value = tag[attr]
            if isinstance(value, list):
                value = " ".join(value)
            if self.redactor.contains_entities(value):
                tag[attr] = self.redactor.redact(value)
            else:
                del tag[attr]

    # ------------------------------------------------------------------
    # Plain text
    # ------------------------------------------------------------------

    def sanitize_text(self, text: str, findings: Sequence[Finding], safe_list: Iterable[str] = ()) -> str:
        """Text-only sanitisation: label each span, redact entities elsewhere."""
        if not text:
            return text

        spans = sorted(
            ((max(0, f.index), min(len(text), f.end), f) for f in findings
             if is_span_finding(f) and f.end > f.index),
            key=lambda span: (span[0], span[1]),
        )

        merged: List[Tuple[int, int, Finding]] = []
        for start, end, finding in spans:
            if merged and start < merged[-1][1]:
                prev_start, prev_end, prev_finding = merged[-1]
                merged[-1] = (prev_start, max(prev_end, end), prev_finding)
            else:
                merged.append((start, end, finding))

        safe = list(safe_list)
        out: List[str] = []
        cursor = 0
        for start, end, finding in merged:
            out.append(self.redactor.redact(text[cursor:start], safe))
            out.append(self.warning_label(finding)[0])
            cursor = end
        out.append(self.redactor.redact(text[cursor:], safe))
        return "".join(out)
