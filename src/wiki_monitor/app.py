"""Application bootstrap for Wiki Monitor."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

import aiohttp

from .api import MediaWikiClient
from .config import load_config
from .dispatcher import Dispatcher
from .errors import ConfigError
from .models import SiteConfig
from .scheduler import PollScheduler
from .site import SitePipeline
from .state_store import StateStore
from .watermarks import WatermarkStore

logger = logging.getLogger(__name__)


class WikiMonitorApp:
    """High level coordinator tying together sites, the scheduler and the sinks."""

    def __init__(self, *, config_path: Path, db_path: Path):
        self._config_path = config_path
        self._store = StateStore(db_path)
        self._watermarks = WatermarkStore()
        self._dispatcher = Dispatcher()
        self._scheduler = PollScheduler()
        self._pipelines: dict[str, SitePipeline] = {}

    @property
    def pipelines(self) -> dict[str, SitePipeline]:
        return dict(self._pipelines)

    async def run(self) -> None:
        try:
            config = load_config(self._config_path)
            if not config.sites:
                raise ConfigError("Нет ни одной корректно настроенной вики")
            async with aiohttp.ClientSession() as session:
                client = MediaWikiClient(session)
                tasks = [
                    asyncio.create_task(
                        self._supervise(
                            site.name,
                            lambda site=site: self._run_site(site, client),
                        ),
                        name=f"{site.name}-supervisor",
                    )
                    for site in config.sites
                ]
                await asyncio.gather(*tasks)
        finally:
            await self.shutdown()

    async def unwatch(self, name: str) -> None:
        """Stop polling a site and drop its saved progress.

        Passes still running have their results discarded.
        """

        self._scheduler.unwatch(name)
        pipeline = self._pipelines.pop(name, None)
        if pipeline is not None:
            await pipeline.close()
        self._watermarks.forget(name)
        self._store.forget_site(name)

    async def shutdown(self) -> None:
        for name in list(self._pipelines):
            self._scheduler.unwatch(name)
        await self._scheduler.close()
        for name in list(self._pipelines):
            pipeline = self._pipelines.pop(name)
            await pipeline.close()
        await self._dispatcher.close()
        self._store.close()

    async def _run_site(self, site: SiteConfig, client: MediaWikiClient) -> None:
        pipeline = SitePipeline(
            site, client, self._dispatcher, self._watermarks, store=self._store
        )
        try:
            await pipeline.start()
            self._pipelines[site.name] = pipeline
            self._scheduler.watch(site.name, site.interval, pipeline.sources, pipeline.run_source)
            await self._scheduler.join(site.name)
        finally:
            self._scheduler.unwatch(site.name)
            if self._pipelines.get(site.name) is pipeline:
                del self._pipelines[site.name]
            await pipeline.close()

    async def _supervise(
        self,
        name: str,
        factory: Callable[[], Awaitable[None]],
        *,
        retry_delay: float = 5.0,
    ) -> None:
        while True:
            try:
                await factory()
            except asyncio.CancelledError:
                logger.info("Задача %s остановлена", name)
                raise
            except ConfigError as exc:
                logger.error("Вики %s остановлена из-за ошибки настройки: %s", name, exc)
                return
            except Exception:
                logger.exception("Задача %s завершилась с ошибкой", name)
            else:
                logger.info("Наблюдение за %s прекращено", name)
                return
            await asyncio.sleep(retry_delay)
