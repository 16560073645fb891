"""Debounced incremental scanning for documents that keep changing.

A host reports changed nodes through `notify_changed`. Notifications are
coalesced until the document has been quiet for `debounce_s`, then only
the outermost changed subtrees are scanned. Changes arriving while the
session is scanning or cooling down are our own sanitisation edits and
are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup, NavigableString

from pageguard.clock import Clock
from pageguard.scanner import ScanResult
from pageguard.session import ScanSession

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 0.5


def dedupe_roots(nodes: Iterable) -> List:
    """Reduce changed nodes to the distinct outermost attached subtrees."""
    candidates = []
    seen = set()
    for node in nodes:
        if isinstance(node, NavigableString):
            node = node.parent
        if node is None:
            continue
        if node.parent is None and not isinstance(node, BeautifulSoup):
            continue
        if id(node) in seen:
            continue
        seen.add(id(node))
        candidates.append(node)

    roots = []
    for node in candidates:
        ancestor = node.parent
        nested = False
        while ancestor is not None:
            if id(ancestor) in seen:
                nested = True
                break
            ancestor = ancestor.parent
        if not nested:
            roots.append(node)
    return roots


class ScanScheduler:
    def __init__(
        self,
        session: ScanSession,
        clock: Optional[Clock] = None,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        url: str = "",
    ):
        self.session = session
        self.clock = clock or session.clock
        self.debounce_s = debounce_s
        self.url = url

        self._pending: List = []
        self._timer: Optional[asyncio.Task] = None
        self._flushing = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    def notify_changed(self, nodes: Iterable) -> bool:
        """Queue changed nodes and re-arm the debounce timer.

        Returns False when the notification was dropped.
        """
        if not self.session.is_quiet():
            logger.debug("Ignoring change notification during scan or cooldown")
            return False

        self._pending.extend(nodes)
        if self._flushing:
            # picked up by the flush already running
            return True
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.ensure_future(self._debounce())
        return True

    async def _debounce(self) -> None:
        await self.clock.sleep(self.debounce_s)
        await self.flush()

    async def flush(self) -> List[ScanResult]:
        """Scan every pending root now."""
        results: List[ScanResult] = []
        self._flushing = True
        try:
            while self._pending:
                roots = dedupe_roots(self._pending)
                self._pending = []
                for root in roots:
                    results.append(await self.session.scan_now(root, url=self.url))
        finally:
            self._flushing = False
        return results

    async def scan_now(self, root) -> ScanResult:
        """Manual trigger; queues behind any scan already running."""
        return await self.session.scan_now(root, url=self.url)

    async def wait_idle(self) -> None:
        """Wait for the armed debounce timer, if any, to finish."""
        while self._timer is not None and not self._timer.done():
            timer = self._timer
            try:
                await asyncio.shield(timer)
            except asyncio.CancelledError:
                if timer.cancelled():
                    # superseded by a newer timer
                    continue
                raise
