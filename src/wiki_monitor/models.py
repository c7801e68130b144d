"""Data models used across the monitoring service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .utils import encode_page_name

RECENT_CHANGES = "recentchanges"
LOG_EVENTS = "logevents"
ABUSE_LOG = "abuselog"
NEW_WIKIS = "wkdomains"

OFFSET_SOURCES: frozenset[str] = frozenset({NEW_WIKIS})

DEFAULT_BOTS: frozenset[str] = frozenset({"Wikia", "WikiaBot", "Fandom", "FandomBot"})
DEFAULT_SOURCES: tuple[str, ...] = (RECENT_CHANGES, LOG_EVENTS)


@dataclass(slots=True)
class SinkConfig:
    """Destination definition for rendered messages."""

    platform: str
    url: str | None = None
    token: str | None = None
    chat_id: str | None = None
    thread_id: int | None = None
    title: str = "Wiki Monitor"


@dataclass(slots=True)
class SiteConfig:
    """Runtime representation of a watched wiki."""

    name: str
    api_url: str
    language: str = "en"
    bots: frozenset[str] = DEFAULT_BOTS
    excluded_filters: frozenset[int] = frozenset()
    excluded_user: str | None = None
    log_types: tuple[str, ...] = ()
    interval: float = 0.5
    sources: tuple[str, ...] = DEFAULT_SOURCES
    sinks: tuple[SinkConfig, ...] = ()
    welcome: bool = False
    diff_threshold: int = 1000


@dataclass(slots=True)
class SiteInfo:
    """Subset of ``siteinfo``/``userinfo`` used for link building."""

    server: str
    article_path: str = "/wiki/$1"
    script_path: str = ""
    namespaces: Mapping[int, str] = field(default_factory=dict)
    rights: frozenset[str] = frozenset()

    def article_url(self, page: str) -> str:
        return f"{self.server}{self.article_path.replace('$1', encode_page_name(page))}"

    def diff_url(self, revision: Any) -> str:
        return f"{self.server}{self.script_path}/?diff={revision}"

    def namespace_name(self, namespace: int, default: str = "") -> str:
        return self.namespaces.get(namespace, default)


@dataclass(slots=True)
class FetchResult:
    """Records reported by a fetcher together with the new watermark."""

    records: Sequence[Mapping[str, Any]]
    watermark: str | int | None
    bootstrap: bool = False


@dataclass(slots=True, frozen=True)
class CanonicalEvent:
    """Normalized activity entry consumed by the templating layer."""

    kind: str
    args: tuple[Any, ...] = ()

    def as_list(self) -> list[Any]:
        return [self.kind, *self.args]


@dataclass(slots=True, frozen=True)
class DeliveryResult:
    """Outcome of a single delivery attempt to a sink."""

    ok: bool
    rate_limited: bool = False
    retry_after: float = 0.0
    status: int | None = None
    error: str | None = None
