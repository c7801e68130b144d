from __future__ import annotations

import json
from pathlib import Path

import pytest

from wiki_monitor.config import load_config, parse_config, parse_site, parse_sink
from wiki_monitor.errors import ConfigError
from wiki_monitor.models import ABUSE_LOG, DEFAULT_SOURCES, LOG_EVENTS, NEW_WIKIS, RECENT_CHANGES


def test_minimal_site_gets_defaults() -> None:
    site = parse_site(
        "community",
        {"transport": {"platform": "discord", "id": "1", "token": "abc"}},
    )

    assert site.api_url == "https://community.fandom.com/api.php"
    assert site.language == "en"
    assert site.sources == DEFAULT_SOURCES
    assert site.interval == 0.5
    assert site.welcome is False
    assert site.diff_threshold == 1000
    assert site.sinks[0].url == "https://discord.com/api/webhooks/1/abc"
    assert site.sinks[0].title == "Wiki Monitor: community"


def test_full_site_entry() -> None:
    site = parse_site(
        "wiki",
        {
            "api_url": "https://wiki.example/api.php",
            "language": "ru",
            "fetch": ["rc", "Log", "abuselog", "newwikis", "rc"],
            "bots": ["Robot"],
            "excludeuser": "Spammer",
            "excludefilter": [1, "2"],
            "logs": ["delete", "block"],
            "interval": 2000,
            "welcome": "yes",
            "diff_threshold": 500,
            "transports": [
                {"platform": "slack", "url": "https://hooks.slack.example/x"},
                {"platform": "telegram", "token": "t", "chat_id": -100, "thread_id": "7"},
                {"platform": "desktop", "title": "Wiki"},
            ],
        },
    )

    assert site.sources == (RECENT_CHANGES, LOG_EVENTS, ABUSE_LOG, NEW_WIKIS)
    assert site.bots == frozenset({"Robot"})
    assert site.excluded_user == "Spammer"
    assert site.excluded_filters == frozenset({1, 2})
    assert site.log_types == ("delete", "block")
    assert site.interval == 2.0
    assert site.welcome is True
    assert site.diff_threshold == 500
    assert [sink.platform for sink in site.sinks] == ["slack", "telegram", "desktop"]
    assert site.sinks[1].chat_id == "-100"
    assert site.sinks[1].thread_id == 7
    assert site.sinks[2].title == "Wiki"


@pytest.mark.parametrize(
    "entry",
    [
        {},
        {"transports": []},
        {"transport": {"platform": "irc"}},
        {"transport": {"platform": "discord", "url": "http://insecure.example"}},
        {"transport": {"platform": "telegram", "token": "t"}},
        {"transport": {"platform": "telegram", "token": "t", "chat_id": 1, "thread_id": "x"}},
        {"fetch": ["watchlist"], "transport": {"platform": "desktop"}},
        {"fetch": [], "transport": {"platform": "desktop"}},
        {"excludefilter": ["abc"], "transport": {"platform": "desktop"}},
        {"diff_threshold": -1, "transport": {"platform": "desktop"}},
        {"api_url": "ftp://wiki.example", "transport": {"platform": "desktop"}},
    ],
)
def test_invalid_site_entries(entry: dict) -> None:
    with pytest.raises(ConfigError):
        parse_site("wiki", entry)


def test_broken_site_does_not_block_others() -> None:
    config = parse_config(
        {
            "good": {"transport": {"platform": "desktop"}},
            "bad": {"transport": {"platform": "irc"}},
        }
    )

    assert [site.name for site in config.sites] == ["good"]
    assert set(config.errors) == {"bad"}


def test_load_config_reads_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"wiki": {"transport": {"platform": "desktop"}}}), encoding="utf-8"
    )

    config = load_config(path)

    assert [site.name for site in config.sites] == ["wiki"]


def test_load_config_rejects_bad_files(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    listing = tmp_path / "list.json"
    listing.write_text("[]", encoding="utf-8")

    for path in (broken, listing, tmp_path / "missing.json"):
        with pytest.raises(ConfigError):
            load_config(path)


def test_sink_title_fallbacks() -> None:
    assert parse_sink({"platform": "desktop"}).title == "Wiki Monitor"
    assert parse_sink({"platform": "desktop"}, site="w").title == "Wiki Monitor: w"
