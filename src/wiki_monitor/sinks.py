"""Delivery transports for rendered messages."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Protocol

from .api import MediaWikiClient
from .errors import ConfigError
from .models import DeliveryResult, SinkConfig

_TELEGRAM_API_BASE = "https://api.telegram.org"
_DISCORD_MESSAGE_LIMIT = 2000
_TELEGRAM_MESSAGE_LIMIT = 4096
_NOTIFY_COMMAND = "notify-send"
_HTML_TAG_RE = re.compile(r"<(/?)([a-zA-Z]+)[^>]*>")


logger = logging.getLogger(__name__)


class Sink(Protocol):
    platform: str

    async def deliver(self, text: str) -> DeliveryResult: ...


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def _truncate_html(text: str, limit: int) -> str:
    """Shorten Telegram HTML without splitting a tag or an entity.

    Tags left open by the cut are closed after the ellipsis.
    """

    if len(text) <= limit:
        return text
    cut = limit - 1
    while cut > 0:
        head = text[:cut]
        bracket = head.rfind("<")
        if bracket > head.rfind(">"):
            head = head[:bracket]
        amp = head.rfind("&")
        if amp != -1 and ";" not in head[amp:]:
            head = head[:amp]
        open_tags: list[str] = []
        for match in _HTML_TAG_RE.finditer(head):
            name = match.group(2).lower()
            if not match.group(1):
                open_tags.append(name)
            elif name in open_tags:
                del open_tags[len(open_tags) - 1 - open_tags[::-1].index(name)]
        result = head + "…" + "".join(f"</{name}>" for name in reversed(open_tags))
        if len(result) <= limit:
            return result
        cut -= len(result) - limit
    return "…"


class DiscordWebhookSink:
    platform = "discord"

    def __init__(self, client: MediaWikiClient, url: str):
        self._client = client
        self._url = url

    async def deliver(self, text: str) -> DeliveryResult:
        body = {
            "content": _truncate(text, _DISCORD_MESSAGE_LIMIT),
            "allowed_mentions": {"parse": []},
        }
        return await self._client.post_webhook(self._url, body)


class SlackWebhookSink:
    platform = "slack"

    def __init__(self, client: MediaWikiClient, url: str):
        self._client = client
        self._url = url

    async def deliver(self, text: str) -> DeliveryResult:
        return await self._client.post_webhook(self._url, {"text": text})


class TelegramSink:
    """Bot API ``sendMessage`` with HTML markup."""

    platform = "telegram"

    def __init__(
        self,
        client: MediaWikiClient,
        token: str,
        chat_id: str,
        *,
        thread_id: int | None = None,
    ):
        self._client = client
        self._url = f"{_TELEGRAM_API_BASE}/bot{token}/sendMessage"
        self._chat_id = chat_id
        self._thread_id = thread_id

    async def deliver(self, text: str) -> DeliveryResult:
        data: dict[str, Any] = {
            "chat_id": self._chat_id,
            "text": _truncate_html(text, _TELEGRAM_MESSAGE_LIMIT),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        if self._thread_id is not None:
            data["message_thread_id"] = self._thread_id
        return await self._client.post_webhook(self._url, data)


class DesktopSink:
    """Desktop notification through the ``notify-send`` utility."""

    platform = "desktop"

    def __init__(self, title: str, *, command: str = _NOTIFY_COMMAND):
        self._title = title
        self._command = command

    async def deliver(self, text: str) -> DeliveryResult:
        try:
            process = await asyncio.create_subprocess_exec(
                self._command,
                self._title,
                text,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
        except OSError as exc:
            logger.warning("Не удалось показать уведомление: %s", exc)
            return DeliveryResult(ok=False, error=str(exc))
        if process.returncode != 0:
            detail = stderr.decode("utf-8", "replace").strip()
            return DeliveryResult(ok=False, status=process.returncode, error=detail or None)
        return DeliveryResult(ok=True)


def build_sink(config: SinkConfig, client: MediaWikiClient) -> Sink:
    platform = config.platform
    if platform == "discord":
        if not config.url:
            raise ConfigError("Для Discord нужен url или пара id и token")
        return DiscordWebhookSink(client, config.url)
    if platform == "slack":
        if not config.url:
            raise ConfigError("Для Slack нужен url вебхука")
        return SlackWebhookSink(client, config.url)
    if platform == "telegram":
        if not config.token or not config.chat_id:
            raise ConfigError("Для Telegram нужны token и chat_id")
        return TelegramSink(client, config.token, config.chat_id, thread_id=config.thread_id)
    if platform == "desktop":
        return DesktopSink(config.title)
    raise ConfigError(f"Неизвестная платформа доставки: {platform}")
