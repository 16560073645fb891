"""Tree ↔ flattened-text mapping.

The detectors work on one long string; the sanitizer has to edit the tree.
TreeTextMapper produces the string while remembering which text leaf every
character came from, then answers "which leaves (and which offsets inside
them) does text[start:end] cover?".

The walk is a generator that yields each visited node before descending
into it, so a caller can fold carrier stripping and the visibility detector
into the same single pass:

    mapper = TreeTextMapper()
    for node in mapper.walk(root):
        ...  # strip it, sanitise it, or leave it alone
    ranges = mapper.get_ranges(start, end)

After resuming, the walker re-checks the node: anything the caller detached
or marked as sanitised is not descended into.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from bs4 import NavigableString, Tag

from pageguard.errors import TraversalError
from pageguard.tree.nodes import (
    INFRASTRUCTURE_TAGS,
    is_detached,
    is_sanitized,
    is_text_leaf,
    tag_name,
)
from pageguard.tree.styles import StyleResolver, is_block_display

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n"


class SegmentKind(str, Enum):
    TEXT = "text"
    VIRTUAL = "virtual"


@dataclass(frozen=True)
class TextSegment:
    """One contiguous piece of the flattened text."""
    start: int
    end: int
    kind: SegmentKind
    text: str
    leaf: Optional[NavigableString] = None


@dataclass(frozen=True)
class LeafRange:
    """A non-empty [start, end) slice of a single text leaf."""
    leaf: NavigableString
    start: int
    end: int

    @property
    def text(self) -> str:
        return str(self.leaf)[self.start:self.end]


class TreeTextMapper:
    """Flattens a tree into text and maps text offsets back to leaves."""

    def __init__(self, style_resolver: Optional[StyleResolver] = None):
        self.styles = style_resolver or StyleResolver()
        self.segments: List[TextSegment] = []
        self._parts: List[str] = []
        self._length = 0
        self._text: Optional[str] = None

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def walk(self, root) -> Iterator:
        """Traverse `root` depth-first, yielding every visited node."""
        self._reset()
        yield from self._visit(root, root)

    def build(self, root) -> "TreeTextMapper":
        for _ in self.walk(root):
            pass
        return self

    def _reset(self) -> None:
        self.segments = []
        self._parts = []
        self._length = 0
        self._text = None

    def _visit(self, node, root) -> Iterator:
        yield node

        try:
            if is_detached(node, root):
                return

            if isinstance(node, NavigableString):
                if is_text_leaf(node):
                    self._append(str(node), SegmentKind.TEXT, leaf=node)
                return

            if not isinstance(node, Tag):
                return

            name = tag_name(node)
            if name in INFRASTRUCTURE_TAGS or is_sanitized(node):
                return

            children = list(node.children)
            is_document = name == "[document]"
            display = "inline" if is_document else self.styles.resolve(node).display
        except Exception as exc:
            error = TraversalError(f"Unreadable node during traversal: {exc}")
            logger.warning("Skipping node [%s]: %s", error.code, error)
            return

        for child in children:
            yield from self._visit(child, root)

        if name == "br" or (not is_document and is_block_display(display)):
            self._append(BLOCK_SEPARATOR, SegmentKind.VIRTUAL)

    def _append(self, text: str, kind: SegmentKind, leaf: Optional[NavigableString] = None) -> None:
        if not text:
            return
        start = self._length
        self._length += len(text)
        self._parts.append(text)
        self._text = None
        self.segments.append(TextSegment(start=start, end=self._length, kind=kind, text=text, leaf=leaf))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        if self._text is None:
            self._text = "".join(self._parts)
        return self._text

    def get_text(self) -> str:
        return self.text

    def get_ranges(self, start: int, end: int) -> List[LeafRange]:
        """Resolve a flattened-text slice into leaf-local ranges, in document order."""
        ranges: List[LeafRange] = []
        if end <= start:
            return ranges
        for segment in self.segments:
            if segment.kind is SegmentKind.VIRTUAL:
                continue
            if segment.end <= start or segment.start >= end:
                continue
            local_start = max(start, segment.start) - segment.start
            local_end = min(end, segment.end) - segment.start
            if local_end > local_start:
                ranges.append(LeafRange(leaf=segment.leaf, start=local_start, end=local_end))
        return ranges
