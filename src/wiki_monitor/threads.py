"""Lazy resolution of discussion thread titles."""

from __future__ import annotations

import asyncio
import html
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from .errors import WikiMonitorError

THREAD_NAMESPACES: frozenset[int] = frozenset({1201, 2001})

_METADATA_RE = re.compile(r"<ac_metadata\s*title=\"([^\"]+)\"[^>]*>\s*</ac_metadata>")

QueryFunc = Callable[[Mapping[str, Any]], Awaitable[Mapping[str, Any]]]


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ResolvedTitle:
    """Page to link to and the human readable title of a thread."""

    page: str
    title: str


def container_key(page: str) -> str:
    """Return ``<namespace-root>/<first-segment>`` for a thread page title."""

    parts = page.split("/")
    return "/".join(parts[:2])


def board_name(page: str) -> str:
    """Strip the namespace prefix and every path segment after the board."""

    _, sep, rest = page.partition(":")
    name = rest if sep else page
    return name.split("/", 1)[0]


def extract_thread_title(content: str) -> str | None:
    match = _METADATA_RE.search(content or "")
    if match is None:
        return None
    return html.unescape(match.group(1)).strip() or None


class ThreadResolver:
    """Cache of thread container keys to their resolved titles.

    ``resolve`` never waits for the network: unknown keys get a placeholder
    and a single background lookup fills the cache for later calls.
    """

    def __init__(self, query: QueryFunc, *, placeholder: str | None = None):
        self._query = query
        self._placeholder = placeholder
        self._cache: dict[str, ResolvedTitle] = {}
        self._pending: dict[str, asyncio.Task[None]] = {}
        self._closed = False

    def resolve(self, page: str) -> ResolvedTitle:
        key = container_key(page)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        self._schedule(key)
        segment = key.split("/", 1)[1] if "/" in key else key
        return ResolvedTitle(page=page, title=self._placeholder or segment)

    def is_pending(self, page: str) -> bool:
        return container_key(page) in self._pending

    async def wait_pending(self) -> None:
        """Wait for every scheduled lookup; used on shutdown and in tests."""

        while self._pending:
            await asyncio.gather(*list(self._pending.values()), return_exceptions=True)

    def snapshot(self) -> dict[str, tuple[str, str]]:
        return {key: (entry.page, entry.title) for key, entry in self._cache.items()}

    def load(self, entries: Mapping[str, Any]) -> None:
        for key, value in entries.items():
            if isinstance(value, (list, tuple)) and len(value) == 2:
                self._cache[str(key)] = ResolvedTitle(page=str(value[0]), title=str(value[1]))

    def close(self) -> None:
        self._closed = True

    def _schedule(self, key: str) -> None:
        if self._closed or key in self._pending:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._lookup(key), name=f"thread-lookup:{key}")
        self._pending[key] = task
        task.add_done_callback(lambda _task, key=key: self._pending.pop(key, None))

    async def _lookup(self, key: str) -> None:
        try:
            query = await self._query(
                {"prop": "revisions", "titles": key, "rvlimit": 1, "rvprop": "content"}
            )
        except asyncio.CancelledError:
            raise
        except WikiMonitorError as exc:
            logger.warning("Не удалось получить заголовок треда %s: %s", key, exc)
            return
        if self._closed:
            return
        pages = query.get("pages")
        if not isinstance(pages, Mapping):
            return
        for page_id, page in pages.items():
            if not isinstance(page, Mapping):
                continue
            revisions = page.get("revisions")
            if not isinstance(revisions, list) or not revisions:
                continue
            first = revisions[0]
            if not isinstance(first, Mapping):
                continue
            content = first.get("*") or first.get("content")
            title = extract_thread_title(str(content or ""))
            if title is None:
                continue
            self._cache[key] = ResolvedTitle(page=f"Thread:{page_id}", title=title)
            logger.debug("Заголовок треда %s: %s", key, title)
