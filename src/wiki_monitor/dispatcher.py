"""Per-sink delivery with rate-limit aware requeueing."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Mapping

from .models import CanonicalEvent
from .sinks import Sink
from .templating import Renderer, render_event

READY = "ready"
THROTTLED = "throttled"


logger = logging.getLogger(__name__)


class SinkWorker:
    """Serialize delivery to one sink.

    While throttled, messages wait in a FIFO queue. The message that hit the
    rate limit goes to the head of the queue, and the queue is flushed in
    order once the server-specified delay has elapsed.
    """

    def __init__(self, sink: Sink, *, name: str = ""):
        self._sink = sink
        self._name = name or sink.platform
        self._state = READY
        self._queue: deque[str] = deque()
        self._lock = asyncio.Lock()
        self._timer: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def state(self) -> str:
        return self._state

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def send(self, text: str) -> None:
        async with self._lock:
            if self._closed:
                return
            if self._state == THROTTLED:
                self._queue.append(text)
                return
            await self._deliver(text)

    async def close(self) -> None:
        self._closed = True
        timer = self._timer
        self._timer = None
        if timer is not None and not timer.done():
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        if self._queue:
            logger.warning(
                "%s: %d сообщений не отправлено при остановке", self._name, len(self._queue)
            )
            self._queue.clear()

    async def _deliver(self, text: str) -> None:
        try:
            result = await self._sink.deliver(text)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s: ошибка при отправке сообщения, сообщение пропущено", self._name)
            return
        if result.rate_limited:
            self._throttle(text, result.retry_after)
            return
        if not result.ok:
            logger.warning(
                "%s: сообщение не доставлено (статус %s): %s",
                self._name,
                result.status,
                result.error,
            )

    def _throttle(self, text: str, delay: float) -> None:
        self._state = THROTTLED
        self._queue.appendleft(text)
        logger.info("%s: лимит запросов, пауза %.2f с", self._name, delay)
        self._timer = asyncio.get_running_loop().create_task(
            self._resume_after(max(0.0, delay)), name=f"sink-resume:{self._name}"
        )

    async def _resume_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            if self._closed:
                return
            self._state = READY
            while self._queue and self._state == READY:
                text = self._queue.popleft()
                await self._deliver(text)


@dataclass(slots=True)
class _Route:
    worker: SinkWorker
    renderer: Renderer
    strings: Mapping[str, str]


class Dispatcher:
    """Own the sinks of every watched site and fan events out to them."""

    def __init__(self) -> None:
        self._routes: dict[str, list[_Route]] = {}

    def register(
        self,
        site: str,
        sink: Sink,
        renderer: Renderer,
        strings: Mapping[str, str],
    ) -> SinkWorker:
        worker = SinkWorker(sink, name=f"{site}/{sink.platform}")
        self._routes.setdefault(site, []).append(_Route(worker, renderer, strings))
        return worker

    def workers(self, site: str) -> list[SinkWorker]:
        return [route.worker for route in self._routes.get(site, [])]

    async def send(self, site: str, event: CanonicalEvent) -> None:
        routes = self._routes.get(site)
        if not routes:
            logger.debug("%s: нет получателей для события %s", site, event.kind)
            return
        await asyncio.gather(
            *(
                route.worker.send(render_event(event, route.strings, route.renderer))
                for route in routes
            )
        )

    async def unregister(self, site: str) -> None:
        for route in self._routes.pop(site, []):
            await route.worker.close()

    async def close(self) -> None:
        for site in list(self._routes):
            await self.unregister(site)
