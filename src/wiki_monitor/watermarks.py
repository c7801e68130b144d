"""Per-site, per-source progress markers."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping

from .models import OFFSET_SOURCES
from .utils import parse_timestamp

Watermark = str | int


def _ordering_key(source: str, value: object) -> datetime | int | None:
    if isinstance(value, bool):
        return None
    if source in OFFSET_SOURCES:
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        return None
    if not isinstance(value, str):
        return None
    return parse_timestamp(value)


def is_newer(source: str, candidate: object, current: object) -> bool:
    """Return True if ``candidate`` is strictly newer than ``current``.

    A missing ``current`` marker makes every valid candidate newer.
    """

    candidate_key = _ordering_key(source, candidate)
    if candidate_key is None:
        return False
    if current is None:
        return True
    current_key = _ordering_key(source, current)
    if current_key is None:
        return True
    return candidate_key > current_key  # type: ignore[operator]


def newest(source: str, values: Iterable[object]) -> Watermark | None:
    """Pick the newest valid marker from an iterable of candidates."""

    best: Watermark | None = None
    for value in values:
        if is_newer(source, value, best):
            best = value  # type: ignore[assignment]
    return best


class WatermarkStore:
    """Hold the last seen marker for each (site, source) pair.

    Markers only move forward: ``advance`` ignores anything that is not
    strictly newer than the stored value, so out-of-order responses are
    harmless.
    """

    def __init__(self) -> None:
        self._marks: dict[tuple[str, str], Watermark] = {}

    def get(self, site: str, source: str) -> Watermark | None:
        return self._marks.get((site, source))

    def advance(self, site: str, source: str, candidate: object) -> bool:
        key = (site, source)
        if not is_newer(source, candidate, self._marks.get(key)):
            return False
        self._marks[key] = candidate  # type: ignore[assignment]
        return True

    def seed(self, site: str, source: str, value: object) -> bool:
        if (site, source) in self._marks:
            return False
        return self.advance(site, source, value)

    def forget(self, site: str) -> None:
        for key in [key for key in self._marks if key[0] == site]:
            del self._marks[key]

    def snapshot(self, site: str) -> dict[str, Watermark]:
        return {source: value for (name, source), value in self._marks.items() if name == site}

    def load(self, site: str, values: Mapping[str, object]) -> None:
        for source, value in values.items():
            self.advance(site, source, value)
