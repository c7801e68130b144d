"""Miscellaneous helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import quote


class InFlightGuard:
    """Track which (site, source) passes are currently running."""

    def __init__(self) -> None:
        self._active: set[tuple[str, str]] = set()

    def is_busy(self, site: str, source: str) -> bool:
        return (site, source) in self._active

    def try_acquire(self, site: str, source: str) -> bool:
        """Mark the pair as running; return False if it already is."""

        key = (site, source)
        if key in self._active:
            return False
        self._active.add(key)
        return True

    def release(self, site: str, source: str) -> None:
        self._active.discard((site, source))


def parse_interval_setting(value: object, default: float = 0.5) -> float:
    """Convert a millisecond interval from configuration into seconds.

    Integers are treated as milliseconds, strings containing a dot or an
    exponent are treated as seconds, as in ``parse_delay_setting``.
    """

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        parsed = float(value) / 1000
        return parsed if parsed > 0 else default
    return parse_delay_setting(str(value), default) or default


def parse_delay_setting(value: str | None, default: float = 0.0) -> float:
    if value is None:
        return default
    stripped = value.strip()
    if not stripped:
        return default
    try:
        if any(symbol in stripped for symbol in ".eE"):
            parsed = float(stripped)
        else:
            parsed = float(int(stripped) / 1000)
    except ValueError:
        return default
    return max(0.0, parsed)


def parse_bool(value: object, default: bool = False) -> bool:
    """Parse textual boolean configuration values.

    Supported truthy values: ``on``, ``true``, ``yes``, ``1`` (case-insensitive).
    Supported falsy values: ``off``, ``false``, ``no``, ``0``.
    Real booleans are returned as is; any other value returns ``default``.
    """

    if isinstance(value, bool):
        return value
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if not normalized:
        return default
    if normalized in {"on", "true", "yes", "1"}:
        return True
    if normalized in {"off", "false", "no", "0"}:
        return False
    return default


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def encode_page_name(name: str) -> str:
    """Encode a page title the way wiki article URLs expect it."""

    return quote(name.replace(" ", "_"), safe=":/@")
