"""Error taxonomy shared by fetchers, the API client and configuration."""

from __future__ import annotations


class WikiMonitorError(Exception):
    """Base class for recoverable monitor failures."""


class MalformedResponse(WikiMonitorError):
    """The API answered, but the payload is missing a required field."""

    def __init__(self, site: str, field: str, detail: str | None = None):
        message = f"{site}: поле '{field}' отсутствует или имеет неверный формат"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.site = site
        self.field = field


class TransientNetworkError(WikiMonitorError):
    """The request failed before a usable response was received."""

    def __init__(self, site: str, detail: str, status: int | None = None):
        super().__init__(f"{site}: {detail}")
        self.site = site
        self.status = status


class ConfigError(WikiMonitorError):
    """Site configuration is invalid; fatal to the affected site only."""


class UnrecognizedRecordShape(WikiMonitorError):
    """A known action lacks the fields it needs; the record is passed through."""
