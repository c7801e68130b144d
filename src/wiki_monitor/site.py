"""Per-site pipeline: discovery, fetch, normalize and dispatch."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .api import MediaWikiClient
from .dispatcher import Dispatcher
from .errors import MalformedResponse, WikiMonitorError
from .i18n import load_strings
from .models import ABUSE_LOG, CanonicalEvent, SiteConfig, SiteInfo
from .normalizer import EventNormalizer
from .sinks import build_sink
from .sources import SourceFetcher, build_fetcher
from .state_store import StateStore
from .templating import RenderContext, build_renderer
from .threads import ThreadResolver
from .watermarks import WatermarkStore

ABUSE_LOG_RIGHT = "abusefilter-log"


logger = logging.getLogger(__name__)


def parse_site_info(site: str, data: Mapping[str, Any]) -> SiteInfo:
    """Build :class:`SiteInfo` from a ``meta=siteinfo|userinfo`` reply."""

    general = data.get("general")
    if not isinstance(general, Mapping) or not general.get("server"):
        raise MalformedResponse(site, "general")
    server = str(general["server"]).rstrip("/")
    if server.startswith("//"):
        server = f"https:{server}"

    namespaces: dict[int, str] = {}
    raw_namespaces = data.get("namespaces")
    if isinstance(raw_namespaces, Mapping):
        for key, value in raw_namespaces.items():
            if not isinstance(value, Mapping):
                continue
            try:
                namespace_id = int(value.get("id", key))
            except (TypeError, ValueError):
                continue
            namespaces[namespace_id] = str(value.get("*") or value.get("name") or "")

    rights: frozenset[str] = frozenset()
    userinfo = data.get("userinfo")
    if isinstance(userinfo, Mapping) and isinstance(userinfo.get("rights"), list):
        rights = frozenset(str(right) for right in userinfo["rights"])

    return SiteInfo(
        server=server,
        article_path=str(general.get("articlepath") or "/wiki/$1"),
        script_path=str(general.get("scriptpath") or ""),
        namespaces=namespaces,
        rights=rights,
    )


class SitePipeline:
    """Everything one watched wiki needs between the scheduler and the sinks."""

    def __init__(
        self,
        config: SiteConfig,
        client: MediaWikiClient,
        dispatcher: Dispatcher,
        watermarks: WatermarkStore,
        *,
        store: StateStore | None = None,
        fetchers: Mapping[str, SourceFetcher] | None = None,
    ):
        self.config = config
        self._client = client
        self._dispatcher = dispatcher
        self._watermarks = watermarks
        self._store = store
        self._strings = load_strings(config.language)
        self._resolver = ThreadResolver(self.query, placeholder=self._strings.get("message"))
        self._normalizer = EventNormalizer(self._resolver, self._strings)
        self._fetchers: dict[str, SourceFetcher] = dict(fetchers or {})
        self._sources: tuple[str, ...] = config.sources
        self._info: SiteInfo | None = None
        self._welcome_pending = config.welcome
        self._persisted_threads = 0
        self._closed = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def sources(self) -> tuple[str, ...]:
        return self._sources

    @property
    def info(self) -> SiteInfo | None:
        return self._info

    @property
    def resolver(self) -> ThreadResolver:
        return self._resolver

    async def query(self, params: Mapping[str, Any]) -> Mapping[str, Any]:
        return await self._client.api_query(self.config.name, self.config.api_url, params)

    async def discover(self) -> SiteInfo:
        data = await self.query(
            {
                "meta": ["siteinfo", "userinfo"],
                "siprop": ["general", "namespaces"],
                "uiprop": "rights",
            }
        )
        return parse_site_info(self.config.name, data)

    async def start(self) -> None:
        """Discover the site, restore saved progress and register the sinks.

        Raises :class:`WikiMonitorError` when the site cannot be started.
        """

        info = await self.discover()
        self._info = info
        if ABUSE_LOG in self._sources and ABUSE_LOG_RIGHT not in info.rights:
            logger.warning(
                "%s: нет права %s, журнал фильтров отключён", self.name, ABUSE_LOG_RIGHT
            )
            self._sources = tuple(source for source in self._sources if source != ABUSE_LOG)
        for source in self._sources:
            self._fetchers.setdefault(source, build_fetcher(source))

        if self._store is not None:
            self._watermarks.load(self.name, self._store.load_watermarks(self.name))
            self._resolver.load(self._store.load_thread_cache(self.name))
            self._persisted_threads = len(self._resolver.snapshot())

        context = RenderContext(
            site=info, strings=self._strings, diff_threshold=self.config.diff_threshold
        )
        for sink_config in self.config.sinks:
            renderer = build_renderer(sink_config.platform, context)
            sink = build_sink(sink_config, self._client)
            self._dispatcher.register(self.name, sink, renderer, self._strings)
        logger.info(
            "%s: наблюдение за источниками %s", self.name, ", ".join(self._sources) or "нет"
        )

    async def run_source(self, source: str) -> int:
        """Run one pass for ``source``; return the number of dispatched events."""

        fetcher = self._fetchers.get(source)
        if fetcher is None:
            fetcher = self._fetchers[source] = build_fetcher(source)
        current = self._watermarks.get(self.name, source)
        try:
            result = await fetcher.fetch(self.config, current, self.query)
        except WikiMonitorError as exc:
            logger.warning("%s/%s: проход пропущен: %s", self.name, source, exc)
            return 0
        if self._closed:
            return 0

        if result.bootstrap:
            changed = self._watermarks.seed(self.name, source, result.watermark)
            if changed:
                logger.info(
                    "%s/%s: начальная позиция %s", self.name, source, result.watermark
                )
        else:
            changed = self._watermarks.advance(self.name, source, result.watermark)

        events: list[CanonicalEvent] = []
        for record in result.records:
            event = self._normalizer.normalize(record, source)
            if event is not None:
                events.append(event)
        for event in events:
            await self._dispatcher.send(self.name, event)

        # close() already saved the final state; the site may be forgotten since.
        if self._closed:
            return len(events)
        self._persist(changed)
        await self._send_welcome()
        return len(events)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._resolver.close()
        # Progress is only loaded by start(); saving earlier would wipe it.
        if self._info is not None:
            self._persist(True)
        await self._dispatcher.unregister(self.name)

    async def _send_welcome(self) -> None:
        if not self._welcome_pending or self._closed:
            return
        self._welcome_pending = False
        await self._dispatcher.send(self.name, CanonicalEvent("start", (self.name,)))

    def _persist(self, watermarks_changed: bool) -> None:
        if self._store is None:
            return
        threads = self._resolver.snapshot()
        if watermarks_changed:
            self._store.save_watermarks(self.name, self._watermarks.snapshot(self.name))
        if len(threads) != self._persisted_threads:
            self._store.save_thread_cache(self.name, threads)
            self._persisted_threads = len(threads)
