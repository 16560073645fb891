"""Node helpers over the BeautifulSoup tree.

Everything the engine needs to know about a node (kind, markers, carrier
status, how to create new nodes next to it) lives here so the detectors,
the mapper and the planner agree on the same rules.
"""

from __future__ import annotations

from typing import Dict, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import CData, Declaration, Doctype, ProcessingInstruction

# Marker written by the planner on replaced spans
SANITIZED_ATTR = "data-pageguard-sanitized"
# Marker written by the planner on neutralised hidden nodes
SCANNED_ATTR = "data-pageguard-scanned"
WARNING_CLASS = "pageguard-warning"

# Containers whose text must never reach the flattened stream
INFRASTRUCTURE_TAGS = frozenset({
    "script", "style", "noscript", "link", "meta", "head", "title", "svg",
    "iframe", "frame", "object", "embed", "template",
})

# Script types browsers never execute; a common place to park instructions
INERT_SCRIPT_TYPES = frozenset({"text/plain", "text/template", "text/x-template"})

_NON_TEXT_STRINGS = (Comment, CData, Declaration, Doctype, ProcessingInstruction)


def is_text_leaf(node) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, _NON_TEXT_STRINGS)


def tag_name(tag: Tag) -> str:
    return (tag.name or "").lower()


def has_class(tag: Tag, class_name: str) -> bool:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return class_name in classes


def add_class(tag: Tag, class_name: str) -> None:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    if class_name not in classes:
        tag["class"] = list(classes) + [class_name]


def is_sanitized(tag: Tag) -> bool:
    """True for anything the planner already produced or neutralised."""
    return (
        tag.has_attr(SANITIZED_ATTR)
        or tag.has_attr(SCANNED_ATTR)
        or has_class(tag, WARNING_CLASS)
    )


def is_carrier(node) -> bool:
    """Comments and inert scripts: invisible to users, visible to text extraction."""
    if isinstance(node, Comment):
        return True
    if isinstance(node, Tag) and tag_name(node) == "script":
        return str(node.get("type", "")).strip().lower() in INERT_SCRIPT_TYPES
    return False


def is_detached(node, root) -> bool:
    return node is not root and node.parent is None


def find_document(node) -> Optional[BeautifulSoup]:
    current = node
    while current is not None and not isinstance(current, BeautifulSoup):
        current = current.parent
    return current


def new_tag(anchor, name: str, attrs: Optional[Dict[str, str]] = None) -> Tag:
    """Create a tag owned by the same document as `anchor` when there is one."""
    soup = find_document(anchor)
    if soup is not None:
        return soup.new_tag(name, attrs=dict(attrs or {}))
    return Tag(name=name, attrs=dict(attrs or {}))


def document_title(node) -> str:
    soup = find_document(node)
    if soup is None or soup.title is None:
        return ""
    return soup.title.get_text(strip=True)
