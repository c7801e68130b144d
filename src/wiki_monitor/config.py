"""JSON configuration loader.

The file holds one object per watched wiki, keyed by the wiki name::

    {
        "community": {
            "api_url": "https://community.fandom.com/api.php",
            "language": "en",
            "fetch": ["rc", "log", "abuselog"],
            "interval": 500,
            "transport": {"platform": "discord", "id": "...", "token": "..."}
        }
    }

A broken site entry is reported and skipped; the other sites still start.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigError
from .models import DEFAULT_BOTS, DEFAULT_SOURCES, SinkConfig, SiteConfig
from .sources import resolve_source_type
from .utils import parse_bool, parse_interval_setting

_DISCORD_WEBHOOK_URL = "https://discord.com/api/webhooks/{id}/{token}"
_PLATFORMS = {"discord", "slack", "telegram", "desktop"}


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MonitorConfig:
    sites: list[SiteConfig] = field(default_factory=list)
    errors: dict[str, ConfigError] = field(default_factory=dict)


def load_config(path: Path) -> MonitorConfig:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Не удалось прочитать конфигурацию {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Конфигурация {path} не является корректным JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Конфигурация {path} должна быть объектом")
    return parse_config(raw)


def parse_config(raw: Mapping[str, Any]) -> MonitorConfig:
    config = MonitorConfig()
    for name, entry in raw.items():
        try:
            config.sites.append(parse_site(str(name), entry))
        except ConfigError as exc:
            logger.error("Вики %s пропущена: %s", name, exc)
            config.errors[str(name)] = exc
    return config


def parse_site(name: str, entry: Any) -> SiteConfig:
    if not name.strip():
        raise ConfigError("Имя вики не может быть пустым")
    if not isinstance(entry, Mapping):
        raise ConfigError("Настройки вики должны быть объектом")

    api_url = entry.get("api_url") or f"https://{name}.fandom.com/api.php"
    if not isinstance(api_url, str) or not api_url.startswith(("http://", "https://")):
        raise ConfigError(f"Некорректный api_url: {api_url!r}")

    language = entry.get("language") or "en"
    if not isinstance(language, str):
        raise ConfigError("language должен быть строкой")

    sources = DEFAULT_SOURCES
    if "fetch" in entry:
        sources = _unique(resolve_source_type(item) for item in _str_list(entry, "fetch"))
        if not sources:
            raise ConfigError("Список fetch пуст")

    bots = DEFAULT_BOTS
    if "bots" in entry:
        bots = frozenset(_str_list(entry, "bots"))

    excluded_user = entry.get("excludeuser")
    if excluded_user is not None and not isinstance(excluded_user, str):
        raise ConfigError("excludeuser должен быть строкой")

    return SiteConfig(
        name=name,
        api_url=api_url,
        language=language,
        bots=bots,
        excluded_filters=_filter_ids(entry.get("excludefilter")),
        excluded_user=excluded_user or None,
        log_types=tuple(_str_list(entry, "logs")) if "logs" in entry else (),
        interval=parse_interval_setting(entry.get("interval")),
        sources=sources,
        sinks=_parse_sinks(name, entry),
        welcome=parse_bool(entry.get("welcome")),
        diff_threshold=_non_negative_int(entry.get("diff_threshold"), 1000, "diff_threshold"),
    )


def parse_sink(entry: Any, *, site: str = "") -> SinkConfig:
    if not isinstance(entry, Mapping):
        raise ConfigError("Описание транспорта должно быть объектом")
    platform = str(entry.get("platform") or "").strip().lower()
    if platform not in _PLATFORMS:
        raise ConfigError(f"Неизвестная платформа доставки: {platform or 'не указана'}")
    default_title = f"Wiki Monitor: {site}" if site else "Wiki Monitor"
    title = str(entry.get("title") or default_title)

    if platform in {"discord", "slack"}:
        url = entry.get("url")
        if platform == "discord" and not url and entry.get("id") and entry.get("token"):
            url = _DISCORD_WEBHOOK_URL.format(id=entry["id"], token=entry["token"])
        if not isinstance(url, str) or not url.startswith("https://"):
            raise ConfigError(f"Для {platform} нужен url вебхука")
        return SinkConfig(platform=platform, url=url, title=title)

    if platform == "telegram":
        token = entry.get("token")
        chat_id = entry.get("chat_id")
        if not isinstance(token, str) or not token or chat_id in (None, ""):
            raise ConfigError("Для Telegram нужны token и chat_id")
        thread_id = entry.get("thread_id")
        if thread_id is not None:
            try:
                thread_id = int(thread_id)
            except (TypeError, ValueError) as exc:
                raise ConfigError("thread_id должен быть числом") from exc
        return SinkConfig(
            platform=platform,
            token=token,
            chat_id=str(chat_id),
            thread_id=thread_id,
            title=title,
        )

    return SinkConfig(platform=platform, title=title)


def _parse_sinks(site: str, entry: Mapping[str, Any]) -> tuple[SinkConfig, ...]:
    raw: Any
    if "transports" in entry:
        raw = entry["transports"]
        if not isinstance(raw, list):
            raise ConfigError("transports должен быть списком")
    elif "transport" in entry:
        raw = [entry["transport"]]
    else:
        raise ConfigError("Не задан ни один транспорт")
    sinks = tuple(parse_sink(item, site=site) for item in raw)
    if not sinks:
        raise ConfigError("Не задан ни один транспорт")
    return sinks


def _str_list(entry: Mapping[str, Any], key: str) -> list[str]:
    value = entry.get(key)
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{key} должен быть списком строк")
    return [item.strip() for item in value if item.strip()]


def _filter_ids(value: Any) -> frozenset[int]:
    if value is None:
        return frozenset()
    if not isinstance(value, list):
        raise ConfigError("excludefilter должен быть списком")
    result: set[int] = set()
    for item in value:
        if isinstance(item, bool):
            raise ConfigError(f"Некорректный номер фильтра: {item!r}")
        try:
            result.add(int(item))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Некорректный номер фильтра: {item!r}") from exc
    return frozenset(result)


def _non_negative_int(value: Any, default: int, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{key} должен быть числом")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} должен быть числом") from exc
    if parsed < 0:
        raise ConfigError(f"{key} не может быть отрицательным")
    return parsed


def _unique(items: Any) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return tuple(seen)
