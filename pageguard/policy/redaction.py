"""Entity redaction for sender addresses and links.

Injected instructions usually need somewhere to send data. Masking email
addresses and URLs in anything we rewrite leaves an agent nothing to act on.
"""

from __future__ import annotations

import re
from typing import Iterable

_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,6}")
_URL_PATTERN = re.compile(r"https?://[^\s]+")

SENDER_REDACTED = "[UNVERIFIED_SENDER_REDACTED]"
URL_REDACTED = "[PROTECTED_URL]"


class EntityRedactor:
    """Replaces email- and URL-shaped substrings with fixed markers."""

    def __init__(self, safe_list: Iterable[str] = ()):
        self.safe_list = [s for s in safe_list if s]

    def redact(self, text: str, safe_list: Iterable[str] = ()) -> str:
        """Mask emails not in the safe list (case-insensitive), then all URLs."""
        if not text:
            return text

        allowed = {s.lower() for s in (*self.safe_list, *safe_list)}

        def _sender(match: re.Match) -> str:
            if match.group(0).lower() in allowed:
                return match.group(0)
            return SENDER_REDACTED

        result = _EMAIL_PATTERN.sub(_sender, text)
        result = _URL_PATTERN.sub(URL_REDACTED, result)
        return result

    def contains_entities(self, text: str) -> bool:
        if not text:
            return False
        return bool(_EMAIL_PATTERN.search(text) or _URL_PATTERN.search(text))


def redact_entities(text: str, safe_list: Iterable[str] = ()) -> str:
    """Module-level convenience wrapper around EntityRedactor.redact."""
    return EntityRedactor().redact(text, safe_list)
