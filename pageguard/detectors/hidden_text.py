"""Hidden text detection over resolved styles.

Techniques scored:
1. display: none / visibility: hidden
2. opacity near 0
3. sub-pixel font size
4. text color equal to the background color
5. absolute/fixed positioning far off-screen

Hiding alone is normal for tooltips and screen-reader text, so a node is
only flagged when it is hidden *and* its text looks instructional.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from bs4 import Tag

from pageguard.detectors.types import HiddenTextFinding
from pageguard.tree.nodes import is_sanitized, is_text_leaf, tag_name
from pageguard.tree.styles import TRANSPARENT, ComputedStyle, StyleResolver

logger = logging.getLogger(__name__)

SUSPICIOUS_KEYWORDS = [
    "ignore", "previous", "instruction", "password", "system", "override",
    "credit", "card", "bank", "transfer", "debug", "admin", "root",
    "cookies", "export", "browser", "server", "hacked", "pwned",
]

FLAG_THRESHOLD = 0.5
OFFSCREEN_PX = -1000

_IGNORED_TAGS = frozenset({
    "script", "style", "noscript", "link", "meta", "head", "title", "svg",
    "path", "g", "iframe",
})
_FORM_CONTROLS = frozenset({"button", "select", "textarea", "progress"})
_ENCODED_RE = re.compile(r"^[A-Za-z0-9+/=]+$")


class VisibilityHeuristicDetector:
    """Flags containers hidden from people but visible to text extraction."""

    name = "HiddenText"

    def __init__(self, style_resolver: Optional[StyleResolver] = None):
        self.styles = style_resolver or StyleResolver()

    def scan_node(self, node) -> Optional[HiddenTextFinding]:
        if not isinstance(node, Tag) or self._is_excluded(node):
            return None

        content = self.own_text(node)
        if not content or not content.strip():
            return None
        # Minified code, JSON blobs, tokens
        if len(content) > 50 and " " not in content:
            return None
        if len(content) > 20 and _ENCODED_RE.match(content.strip()):
            return None

        score, reasoning = self.score_style(self.styles.resolve(node))
        if score <= FLAG_THRESHOLD:
            return None

        lowered = content.lower()
        if not any(keyword in lowered for keyword in SUSPICIOUS_KEYWORDS):
            return None

        return HiddenTextFinding(score=score, reasoning=reasoning, node=node)

    @staticmethod
    def own_text(node: Tag) -> str:
        """Text under `node`, leaving out anything the planner wrote."""
        parts: List[str] = []
        for leaf in node.find_all(string=True):
            if not is_text_leaf(leaf):
                continue
            ancestor = leaf.parent
            while ancestor is not None and ancestor is not node and not is_sanitized(ancestor):
                ancestor = ancestor.parent
            if ancestor is node:
                parts.append(str(leaf))
        return "".join(parts)

    @staticmethod
    def score_style(style: ComputedStyle):
        """Sum the independent hiding signals present in `style`."""
        reasoning: List[str] = []
        score = 0.0

        if style.display == "none":
            reasoning.append("Element has display: none")
            score += 1.0
        if style.visibility == "hidden":
            reasoning.append("Element has visibility: hidden")
            score += 1.0
        if style.opacity < 0.05:
            reasoning.append("Element transparency is near 0")
            score += 1.0

        # Exactly 0 is a common accessibility idiom; below 1px is not
        if 0 < style.font_size < 1:
            reasoning.append(f"Font size is extremely small ({style.font_size:g}px)")
            score += 0.8

        if (
            style.color is not None
            and style.background_color is not None
            and style.background_color != TRANSPARENT
            and style.color == style.background_color
        ):
            reasoning.append("Text color matches background color")
            score += 0.9

        if style.position in ("absolute", "fixed"):
            left = style.left if style.left is not None else 0.0
            top = style.top if style.top is not None else 0.0
            if left < OFFSCREEN_PX or top < OFFSCREEN_PX:
                reasoning.append("Element positioned far off-screen")
                score += 0.8

        return score, reasoning

    @staticmethod
    def _is_excluded(node: Tag) -> bool:
        if is_sanitized(node):
            return True

        name = tag_name(node)
        if name in _IGNORED_TAGS or name in _FORM_CONTROLS:
            return True
        if name == "input" and str(node.get("type", "")).lower() == "hidden":
            return True

        # Accessibility-hidden content is usually legitimate
        if str(node.get("aria-hidden", "")).lower() == "true":
            return True
        if str(node.get("aria-busy", "")).lower() == "true":
            return True
        if str(node.get("role", "")).lower() == "progressbar":
            return True
        return False
