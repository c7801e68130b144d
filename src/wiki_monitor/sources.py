"""Incremental fetchers for each watched feed."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence

from .errors import ConfigError, MalformedResponse
from .models import (
    ABUSE_LOG,
    LOG_EVENTS,
    NEW_WIKIS,
    RECENT_CHANGES,
    FetchResult,
    SiteConfig,
)
from .utils import parse_timestamp
from .watermarks import Watermark, is_newer, newest

PAGE_SIZE = 500
# Seed for a feed that was empty at bootstrap; anything logged later is newer.
EMPTY_FEED_WATERMARK = "1970-01-01T00:00:00Z"
MIN_WKFROM = 1490000
MAX_WKTO = 999999999999999
_PROBE_LIMIT = 1000
_TEST_DOMAIN_RE = re.compile(r"qatestwiki")

QueryFunc = Callable[[Mapping[str, Any]], Awaitable[Mapping[str, Any]]]
Record = Mapping[str, Any]

_SOURCE_ALIASES = {
    "rc": RECENT_CHANGES,
    "recent changes": RECENT_CHANGES,
    "recentchanges": RECENT_CHANGES,
    "log": LOG_EVENTS,
    "logevents": LOG_EVENTS,
    "abuselog": ABUSE_LOG,
    "al": ABUSE_LOG,
    "abuse log": ABUSE_LOG,
    "newwikis": NEW_WIKIS,
    "wkdomains": NEW_WIKIS,
}


logger = logging.getLogger(__name__)


def resolve_source_type(name: str) -> str:
    source = _SOURCE_ALIASES.get(name.strip().lower())
    if source is None:
        raise ConfigError(f"Неизвестный тип источника: {name}")
    return source


class SourceFetcher(Protocol):
    source: str

    async def fetch(
        self, site: SiteConfig, watermark: Watermark | None, query: QueryFunc
    ) -> FetchResult: ...


@dataclass(slots=True, frozen=True)
class TimelineSource:
    """Query layout of a timestamp-ordered list module."""

    source: str
    prefix: str
    prop: str
    exclude_bots: bool = False
    exclude_filters: bool = False


class TimelineFetcher:
    """Fetcher for ``recentchanges``, ``logevents`` and ``abuselog``."""

    def __init__(self, layout: TimelineSource):
        self._layout = layout

    @property
    def source(self) -> str:
        return self._layout.source

    def build_params(self, site: SiteConfig, watermark: Watermark | None) -> dict[str, Any]:
        prefix = self._layout.prefix
        params: dict[str, Any] = {
            "list": self._layout.source,
            f"{prefix}prop": self._layout.prop,
            f"{prefix}limit": PAGE_SIZE,
        }
        if watermark is not None:
            params[f"{prefix}end"] = watermark
        if self._layout.source == RECENT_CHANGES:
            params["rcshow"] = "!bot"
            if site.excluded_user:
                params["rcexcludeuser"] = site.excluded_user
        elif self._layout.source == LOG_EVENTS and site.log_types:
            params["letype"] = "|".join(site.log_types)
        return params

    def accepts(self, record: Record, site: SiteConfig) -> bool:
        if self._layout.exclude_bots and record.get("user") in site.bots:
            return False
        if self._layout.exclude_filters:
            try:
                filter_id = int(record.get("filter_id"))  # type: ignore[arg-type]
            except (TypeError, ValueError):
                return True
            if filter_id in site.excluded_filters:
                return False
        return True

    async def fetch(
        self, site: SiteConfig, watermark: Watermark | None, query: QueryFunc
    ) -> FetchResult:
        source = self._layout.source
        data = await query(self.build_params(site, watermark))
        raw = data.get(source)
        if not isinstance(raw, list):
            raise MalformedResponse(site.name, source)
        records = [record for record in raw if isinstance(record, Mapping)]
        candidate = newest(source, (record.get("timestamp") for record in records))
        if watermark is None:
            return FetchResult(
                records=(), watermark=candidate or EMPTY_FEED_WATERMARK, bootstrap=True
            )

        fresh = [
            record
            for record in records
            if is_newer(source, record.get("timestamp"), watermark)
            and self.accepts(record, site)
        ]
        fresh.sort(key=lambda record: parse_timestamp(record.get("timestamp")))  # type: ignore[arg-type,return-value]
        return FetchResult(records=fresh, watermark=candidate)


class RegistryFetcher:
    """Fetcher for the ``wkdomains`` site registry, ordered by numeric offset."""

    source = NEW_WIKIS

    def __init__(self, start: int = MIN_WKFROM):
        self._start = start

    async def probe(self, site: SiteConfig, start: int, query: QueryFunc) -> int:
        """Walk forward until a window reports no entries; return that offset."""

        offset = start
        for _ in range(_PROBE_LIMIT):
            data = await query(
                {"list": NEW_WIKIS, "wkcountonly": 1, "wkfrom": offset, "wkto": MAX_WKTO}
            )
            payload = data.get(NEW_WIKIS)
            if not isinstance(payload, Mapping):
                raise MalformedResponse(site.name, NEW_WIKIS)
            try:
                count = int(payload.get("count", 0))
            except (TypeError, ValueError) as exc:
                raise MalformedResponse(site.name, f"{NEW_WIKIS}.count") from exc
            if count <= 0:
                return offset
            offset += count
        logger.warning(
            "%s: поиск начальной позиции реестра не завершился за %d шагов",
            site.name,
            _PROBE_LIMIT,
        )
        return offset

    async def fetch(
        self, site: SiteConfig, watermark: Watermark | None, query: QueryFunc
    ) -> FetchResult:
        if watermark is None:
            offset = await self.probe(site, self._start, query)
            return FetchResult(records=(), watermark=offset, bootstrap=True)

        current = int(watermark)
        data = await query({"list": NEW_WIKIS, "wkfrom": current, "wkto": MAX_WKTO})
        payload = data.get(NEW_WIKIS)
        if isinstance(payload, Mapping):
            entries: Sequence[Any] = [
                value for key, value in payload.items() if key != "count"
            ]
        elif isinstance(payload, list):
            entries = payload
        else:
            raise MalformedResponse(site.name, NEW_WIKIS)
        records = [entry for entry in entries if isinstance(entry, Mapping)]
        if not records:
            return FetchResult(records=(), watermark=current)
        fresh = [
            record
            for record in records
            if not _TEST_DOMAIN_RE.search(str(record.get("domain") or ""))
        ]
        return FetchResult(records=fresh, watermark=current + len(records))


RECENT_CHANGES_LAYOUT = TimelineSource(
    source=RECENT_CHANGES,
    prefix="rc",
    prop="user|title|ids|timestamp|comment|flags|tags|loginfo|sizes",
    exclude_bots=True,
)
LOG_EVENTS_LAYOUT = TimelineSource(
    source=LOG_EVENTS,
    prefix="le",
    prop="ids|title|type|user|timestamp|comment|details|tags",
    exclude_bots=True,
)
ABUSE_LOG_LAYOUT = TimelineSource(
    source=ABUSE_LOG,
    prefix="afl",
    prop="filter|user|title|action|result|timestamp|ids",
    exclude_filters=True,
)


def build_fetcher(source: str, *, registry_start: int = MIN_WKFROM) -> SourceFetcher:
    if source == RECENT_CHANGES:
        return TimelineFetcher(RECENT_CHANGES_LAYOUT)
    if source == LOG_EVENTS:
        return TimelineFetcher(LOG_EVENTS_LAYOUT)
    if source == ABUSE_LOG:
        return TimelineFetcher(ABUSE_LOG_LAYOUT)
    if source == NEW_WIKIS:
        return RegistryFetcher(registry_start)
    raise ConfigError(f"Неизвестный тип источника: {source}")
