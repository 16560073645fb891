"""Resolved visual properties for BeautifulSoup containers.

A browser host hands us computed styles; a parsed document only has inline
`style` attributes. The resolver bridges the two: it reads inline
declarations, applies tag default display values and inherits the
properties CSS inherits (visibility, color, font-size). Hosts that have real
computed styles serialise them into the inline `style` attribute before the
scan and get exactly those values back.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from bs4 import Tag

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int, float]

TRANSPARENT: Color = (0, 0, 0, 0.0)
BLACK: Color = (0, 0, 0, 1.0)
DEFAULT_FONT_SIZE_PX = 16.0

_BLOCK_TAGS = frozenset({
    "address", "article", "aside", "blockquote", "body", "dd", "details",
    "dialog", "div", "dl", "dt", "fieldset", "figcaption", "figure", "footer",
    "form", "h1", "h2", "h3", "h4", "h5", "h6", "header", "hgroup", "hr",
    "html", "legend", "main", "menu", "nav", "ol", "p", "pre", "section",
    "summary", "ul",
})

_DEFAULT_DISPLAY: Dict[str, str] = {
    "li": "list-item",
    "table": "table",
    "caption": "table-caption",
    "thead": "table-header-group",
    "tbody": "table-row-group",
    "tfoot": "table-footer-group",
    "tr": "table-row",
    "td": "table-cell",
    "th": "table-cell",
    "colgroup": "table-column-group",
    "col": "table-column",
    "head": "none",
    "script": "none",
    "style": "none",
    "template": "none",
    "title": "none",
    "meta": "none",
    "link": "none",
    "noscript": "none",
}

_NAMED_COLORS: Dict[str, Color] = {
    "black": (0, 0, 0, 1.0),
    "white": (255, 255, 255, 1.0),
    "red": (255, 0, 0, 1.0),
    "green": (0, 128, 0, 1.0),
    "lime": (0, 255, 0, 1.0),
    "blue": (0, 0, 255, 1.0),
    "yellow": (255, 255, 0, 1.0),
    "gray": (128, 128, 128, 1.0),
    "grey": (128, 128, 128, 1.0),
    "silver": (192, 192, 192, 1.0),
    "whitesmoke": (245, 245, 245, 1.0),
    "transparent": TRANSPARENT,
}

_RGB_RE = re.compile(r"rgba?\(\s*([^)]*)\)", re.IGNORECASE)
_LENGTH_RE = re.compile(r"^(-?\d*\.?\d+)\s*(px|pt|em|rem|%)?$", re.IGNORECASE)


@dataclass(frozen=True)
class ComputedStyle:
    """The subset of computed CSS the detectors and the text mapper read."""
    display: str = "inline"
    visibility: str = "visible"
    opacity: float = 1.0
    font_size: float = DEFAULT_FONT_SIZE_PX
    color: Optional[Color] = BLACK
    background_color: Optional[Color] = TRANSPARENT
    position: str = "static"
    left: Optional[float] = None
    top: Optional[float] = None


# ---------------------------------------------------------------------------
# Declaration helpers (shared with the sanitizer, which rewrites inline styles)
# ---------------------------------------------------------------------------

def parse_declarations(style: Optional[str]) -> Dict[str, str]:
    """Parse an inline style attribute into an ordered property map."""
    declarations: Dict[str, str] = {}
    if not style:
        return declarations
    for part in style.split(";"):
        if ":" not in part:
            continue
        name, _, value = part.partition(":")
        name = name.strip().lower()
        value = re.sub(r"\s*!important\s*$", "", value.strip(), flags=re.IGNORECASE)
        if name:
            declarations[name] = value
    return declarations


def format_declarations(declarations: Dict[str, str]) -> str:
    return "; ".join(f"{name}: {value}" for name, value in declarations.items())


def parse_color(value: Optional[str]) -> Optional[Color]:
    """Parse a CSS color into an RGBA tuple; None when unrecognised."""
    if not value:
        return None
    value = value.strip().lower()
    if value in _NAMED_COLORS:
        return _NAMED_COLORS[value]
    if value.startswith("#"):
        return _parse_hex(value[1:])
    match = _RGB_RE.fullmatch(value)
    if match:
        parts = [p for p in re.split(r"[\s,/]+", match.group(1)) if p]
        if len(parts) not in (3, 4):
            return None
        try:
            rgb = [_channel(p) for p in parts[:3]]
            alpha = _alpha(parts[3]) if len(parts) == 4 else 1.0
        except ValueError:
            return None
        return (rgb[0], rgb[1], rgb[2], alpha)
    return None


def parse_length(value: Optional[str], *, reference: float = DEFAULT_FONT_SIZE_PX) -> Optional[float]:
    """Convert a CSS length to pixels; relative units resolve against `reference`."""
    if value is None:
        return None
    match = _LENGTH_RE.match(value.strip())
    if not match:
        return None
    number = float(match.group(1))
    unit = (match.group(2) or "px").lower()
    if unit == "pt":
        return number * 4.0 / 3.0
    if unit == "em":
        return number * reference
    if unit == "rem":
        return number * DEFAULT_FONT_SIZE_PX
    if unit == "%":
        return number / 100.0 * reference
    return number


def _parse_hex(digits: str) -> Optional[Color]:
    if len(digits) in (3, 4):
        digits = "".join(c * 2 for c in digits)
    if len(digits) not in (6, 8):
        return None
    try:
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
        alpha = int(digits[6:8], 16) / 255.0 if len(digits) == 8 else 1.0
    except ValueError:
        return None
    return (r, g, b, round(alpha, 3))


def _channel(part: str) -> int:
    if part.endswith("%"):
        return round(float(part[:-1]) * 2.55)
    return int(round(float(part)))


def _alpha(part: str) -> float:
    if part.endswith("%"):
        return float(part[:-1]) / 100.0
    return float(part)


def _first_color(shorthand: str) -> Optional[Color]:
    # `background: #fff url(x.png) no-repeat`
    for token in shorthand.split():
        color = parse_color(token)
        if color is not None:
            return color
    return None


def _parse_opacity(value: Optional[str]) -> float:
    if value is None:
        return 1.0
    value = value.strip()
    try:
        if value.endswith("%"):
            return float(value[:-1]) / 100.0
        return float(value)
    except ValueError:
        return 1.0


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class StyleResolver:
    """Resolves and memoises ComputedStyle per container for one scan."""

    def __init__(self):
        self._cache: Dict[int, Tuple[Tag, ComputedStyle]] = {}

    def resolve(self, tag: Tag) -> ComputedStyle:
        cached = self._cache.get(id(tag))
        if cached is not None and cached[0] is tag:
            return cached[1]

        parent = tag.parent if isinstance(tag.parent, Tag) and tag.parent.name != "[document]" else None
        inherited = self.resolve(parent) if parent is not None else ComputedStyle()
        style = self._compute(tag, inherited)
        self._cache[id(tag)] = (tag, style)
        return style

    def _compute(self, tag: Tag, inherited: ComputedStyle) -> ComputedStyle:
        decls = parse_declarations(tag.get("style"))
        name = (tag.name or "").lower()

        display = decls.get("display", "").lower() or self._default_display(tag, name)
        if tag.has_attr("hidden"):
            display = "none"

        font_size = inherited.font_size
        if "font-size" in decls:
            parsed = parse_length(decls["font-size"], reference=inherited.font_size)
            if parsed is not None:
                font_size = parsed

        color = inherited.color
        if "color" in decls:
            color = parse_color(decls["color"])

        background = TRANSPARENT
        bg_value = decls.get("background-color") or decls.get("background")
        if bg_value:
            background = parse_color(bg_value) or _first_color(bg_value)

        return ComputedStyle(
            display=display,
            visibility=decls.get("visibility", "").lower() or inherited.visibility,
            opacity=_parse_opacity(decls.get("opacity")),
            font_size=font_size,
            color=color,
            background_color=background,
            position=decls.get("position", "").lower() or "static",
            left=parse_length(decls.get("left"), reference=font_size),
            top=parse_length(decls.get("top"), reference=font_size),
        )

    @staticmethod
    def _default_display(tag: Tag, name: str) -> str:
        if name == "input" and str(tag.get("type", "")).lower() == "hidden":
            return "none"
        if name in _BLOCK_TAGS:
            return "block"
        return _DEFAULT_DISPLAY.get(name, "inline")


def is_block_display(display: str) -> bool:
    return (
        display in ("block", "flex", "grid", "table", "list-item")
        or display.startswith("table-")
    )
