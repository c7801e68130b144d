"""Fixed-interval polling with at most one pass per (site, source)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from .utils import InFlightGuard

PassFactory = Callable[[str], Awaitable[object]]


logger = logging.getLogger(__name__)


class PollScheduler:
    """Drive one polling loop per watched site.

    A tick never queues work: if the previous pass for a source is still
    running, that source is skipped until the next tick.
    """

    def __init__(self, guard: InFlightGuard | None = None):
        self._guard = guard or InFlightGuard()
        self._loops: dict[str, asyncio.Task[None]] = {}
        self._passes: set[asyncio.Task[None]] = set()
        self._warned: set[tuple[str, str]] = set()

    def watch(
        self,
        site: str,
        interval: float,
        sources: Sequence[str],
        run_pass: PassFactory,
    ) -> None:
        if site in self._loops:
            self.unwatch(site)
        self._loops[site] = asyncio.get_running_loop().create_task(
            self._loop(site, interval, tuple(sources), run_pass), name=f"poll:{site}"
        )
        logger.info("%s: опрос запущен, интервал %.2f с", site, interval)

    def unwatch(self, site: str) -> None:
        task = self._loops.pop(site, None)
        if task is None:
            return
        task.cancel()
        logger.info("%s: опрос остановлен", site)

    def is_watching(self, site: str) -> bool:
        return site in self._loops

    async def join(self, site: str) -> None:
        """Wait until the site's loop ends; re-raise the error it failed with."""

        task = self._loops.get(site)
        if task is None:
            return
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            self._loops.pop(site, None)
            raise task.exception()  # type: ignore[misc]

    def tick(self, site: str, sources: Sequence[str], run_pass: PassFactory) -> list[str]:
        """Start a pass for every idle source and return the started ones."""

        started: list[str] = []
        loop = asyncio.get_running_loop()
        for source in sources:
            if not self._guard.try_acquire(site, source):
                logger.debug("%s/%s: предыдущий проход не завершён, тик пропущен", site, source)
                if (site, source) not in self._warned:
                    self._warned.add((site, source))
                    logger.warning(
                        "%s/%s: опрос не укладывается в интервал, лишние тики пропускаются",
                        site,
                        source,
                    )
                continue
            task = loop.create_task(
                self._run_pass(site, source, run_pass), name=f"pass:{site}:{source}"
            )
            self._passes.add(task)
            task.add_done_callback(self._passes.discard)
            started.append(source)
        return started

    async def wait_idle(self) -> None:
        while self._passes:
            await asyncio.gather(*list(self._passes), return_exceptions=True)

    async def close(self) -> None:
        for site in list(self._loops):
            self.unwatch(site)
        await self.wait_idle()

    async def _loop(
        self,
        site: str,
        interval: float,
        sources: tuple[str, ...],
        run_pass: PassFactory,
    ) -> None:
        while True:
            self.tick(site, sources, run_pass)
            await asyncio.sleep(interval)

    async def _run_pass(self, site: str, source: str, run_pass: PassFactory) -> None:
        try:
            await run_pass(source)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s/%s: ошибка при проходе", site, source)
        finally:
            self._guard.release(site, source)
