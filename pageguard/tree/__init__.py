"""Document tree access: node rules, resolved styles and the text map."""

from pageguard.tree.styles import ComputedStyle, StyleResolver
from pageguard.tree.text_map import LeafRange, SegmentKind, TextSegment, TreeTextMapper

__all__ = [
    "ComputedStyle",
    "LeafRange",
    "SegmentKind",
    "StyleResolver",
    "TextSegment",
    "TreeTextMapper",
]
