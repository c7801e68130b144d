from __future__ import annotations

import json
from typing import Any, Mapping

import pytest

from wiki_monitor.i18n import load_strings
from wiki_monitor.models import ABUSE_LOG, LOG_EVENTS, NEW_WIKIS, RECENT_CHANGES
from wiki_monitor.normalizer import EventNormalizer
from wiki_monitor.threads import ThreadResolver


async def _no_query(params: Mapping[str, Any]) -> Mapping[str, Any]:
    return {}


def _normalizer(**cached: tuple[str, str]) -> EventNormalizer:
    resolver = ThreadResolver(_no_query, placeholder="Message")
    resolver.load(cached)
    return EventNormalizer(resolver, load_strings("en"))


def test_edit_maps_to_positional_args() -> None:
    event = _normalizer().normalize(
        {
            "type": "edit",
            "user": "Editor",
            "title": "Main Page",
            "oldlen": 100,
            "newlen": 75,
            "revid": 42,
            "comment": "tidy",
            "ns": 0,
        },
        RECENT_CHANGES,
    )

    assert event is not None
    assert event.as_list() == ["edit", "Editor", "Main Page", -25, 42, "tidy"]


def test_new_page_without_comment() -> None:
    event = _normalizer().normalize(
        {"type": "new", "user": "A", "title": "Fresh", "oldlen": 0, "newlen": 12, "ns": 0},
        RECENT_CHANGES,
    )

    assert event is not None
    assert event.as_list() == ["new", "A", "Fresh", 12, ""]


def test_thread_edit_uses_cached_title_and_board() -> None:
    normalizer = _normalizer(**{"Message Wall:Foo/@comment-1": ("Thread:77", "Hello there")})
    event = normalizer.normalize(
        {
            "type": "edit",
            "user": "A",
            "title": "Message Wall:Foo/@comment-1/@comment-2",
            "ns": 1201,
            "oldlen": 10,
            "newlen": 20,
            "revid": 5,
            "comment": "",
        },
        RECENT_CHANGES,
    )

    assert event is not None
    assert event.as_list() == [
        "editthread",
        "A",
        "Thread:77",
        "Hello there",
        1201,
        "Foo",
        10,
        5,
        "",
    ]


def test_uncached_thread_gets_placeholder() -> None:
    event = _normalizer().normalize(
        {
            "type": "new",
            "user": "A",
            "title": "Board Thread:Games/@comment-9",
            "ns": 2001,
            "oldlen": 0,
            "newlen": 5,
        },
        RECENT_CHANGES,
    )

    assert event is not None
    assert event.kind == "newthread"
    assert event.args[1:5] == ("Board Thread:Games/@comment-9", "Message", 2001, "Games")


@pytest.mark.parametrize(
    ("action", "kind"),
    [
        ("wall_archive", "threadclose"),
        ("wall_remove", "threadremove"),
        ("wall_admindelete", "threaddelete"),
        ("wall_restore", "threadrestore"),
    ],
)
def test_wall_actions_in_recent_changes(action: str, kind: str) -> None:
    event = _normalizer().normalize(
        {
            "type": "log",
            "logtype": 0,
            "logaction": action,
            "user": "Mod",
            "title": "Message Wall:Foo/@comment-1",
            "ns": 1201,
            "comment": "spam",
        },
        RECENT_CHANGES,
    )

    assert event is not None
    assert event.kind == kind
    assert event.args[0] == "Mod"
    assert event.args[-1] == "spam"


def test_regular_log_entries_in_recent_changes_are_ignored() -> None:
    record = {"type": "log", "logtype": "delete", "logaction": "delete", "user": "A"}
    assert _normalizer().normalize(record, RECENT_CHANGES) is None


def test_reblock_scenario() -> None:
    event = _normalizer().normalize(
        {
            "type": "block",
            "action": "reblock",
            "user": "A",
            "title": "User:B",
            "block": {"duration": "1 day", "flags": "nocreate"},
            "comment": "x",
        },
        LOG_EVENTS,
    )

    assert event is not None
    assert event.as_list() == ["reblock", "A", "User:B", "1 day", "nocreate", "x"]


def test_block_reads_params_shape_and_flag_lists() -> None:
    event = _normalizer().normalize(
        {
            "type": "block",
            "action": "block",
            "user": "A",
            "title": "User:B",
            "params": {"duration": "infinite", "flags": ["nocreate", "noemail"]},
        },
        LOG_EVENTS,
    )

    assert event is not None
    assert event.as_list() == ["block", "A", "User:B", "infinite", "nocreate,noemail", ""]


def test_block_without_details_passes_through() -> None:
    record = {"type": "block", "action": "block", "user": "A", "title": "User:B"}

    event = _normalizer().normalize(record, LOG_EVENTS)

    assert event is not None
    assert event.kind == "debug"
    assert json.loads(event.args[0]) == record


def test_unknown_action_passes_through_serialized_record() -> None:
    record = {"type": "wikifeatures", "action": "x", "user": "A"}
    unknown = {"type": "brandnew", "action": "whatever", "user": "A", "extra": [1, 2]}

    assert _normalizer().normalize(record, LOG_EVENTS).kind == "wikifeatures"  # type: ignore[union-attr]
    event = _normalizer().normalize(unknown, LOG_EVENTS)
    assert event is not None
    assert event.kind == "debug"
    assert event.args == (json.dumps(unknown, ensure_ascii=False, sort_keys=True),)


def test_non_numeric_sizes_pass_through() -> None:
    record = {"type": "edit", "user": "A", "title": "P", "oldlen": "a", "newlen": 3, "revid": 1}

    event = _normalizer().normalize(record, RECENT_CHANGES)

    assert event is not None
    assert event.kind == "debug"


@pytest.mark.parametrize(
    "record",
    [
        {"type": "patrol", "action": "patrol", "user": "A"},
        {"type": "templateclassification", "action": "tc-changed", "user": "A"},
        {"type": "protect", "action": "move_prot", "user": "A", "title": "P"},
    ],
)
def test_ignored_actions_yield_nothing(record: dict[str, Any]) -> None:
    assert _normalizer().normalize(record, LOG_EVENTS) is None


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        (
            {"type": "move", "action": "move_redir", "user": "A", "title": "Old",
             "move": {"new_title": "New"}, "comment": "c"},
            ["moveredir", "A", "Old", "New", "c"],
        ),
        (
            {"type": "rights", "action": "rights", "user": "A", "title": "User:B",
             "rights": {"old": "", "new": "sysop"}},
            ["rights", "A", "User:B", "", "sysop", ""],
        ),
        (
            {"type": "upload", "action": "overwrite", "user": "A", "title": "File:X.png"},
            ["reupload", "A", "File:X.png", ""],
        ),
        (
            {"type": "chatban", "action": "chatbanadd", "user": "A", "title": "User:B",
             "2": "1 day"},
            ["chatbanadd", "A", "User:B", "1 day", ""],
        ),
        (
            {"type": "protect", "action": "modify", "user": "A", "title": "P",
             "0": "[edit=sysop]"},
            ["reprotect", "A", "P", "[edit=sysop]", ""],
        ),
        (
            {"type": "abusefilter", "action": "modify", "user": "A", "0": 900, "1": 12},
            ["abusefilter", "A", 12, 900],
        ),
        (
            {"type": "maps", "action": "delete_pin", "user": "A", "title": "Map:World"},
            ["deletepin", "A", "Map:World"],
        ),
        (
            {"type": "newusers", "action": "create", "user": "Newbie"},
            ["newusers", "Newbie"],
        ),
        (
            {"type": "useravatar", "action": "avatar_rem", "user": "A", "title": "User:B"},
            ["remavatar", "A", "User:B"],
        ),
    ],
)
def test_log_mapping_table(record: dict[str, Any], expected: list[Any]) -> None:
    event = _normalizer().normalize(record, LOG_EVENTS)

    assert event is not None
    assert event.as_list() == expected


def test_abuse_log_localizes_result() -> None:
    event = _normalizer().normalize(
        {
            "user": "A",
            "filter_id": "3",
            "filter": "Spam",
            "action": "edit",
            "title": "P",
            "result": "disallow",
        },
        ABUSE_LOG,
    )

    assert event is not None
    assert event.as_list() == ["abuselog", "A", "3", "Spam", "edit", "P", "disallow"]


def test_registry_record() -> None:
    event = _normalizer().normalize({"domain": "new.fandom.com"}, NEW_WIKIS)

    assert event is not None
    assert event.as_list() == ["newwikis", "new.fandom.com"]
