from __future__ import annotations

import asyncio
from typing import Any, Mapping

from wiki_monitor.errors import TransientNetworkError
from wiki_monitor.threads import (
    ThreadResolver,
    board_name,
    container_key,
    extract_thread_title,
)


class DummyRevisionQuery:
    def __init__(self, content: str, page_id: str = "555") -> None:
        self.content = content
        self.page_id = page_id
        self.calls: list[dict[str, Any]] = []
        self.release = asyncio.Event()

    async def __call__(self, params: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append(dict(params))
        await self.release.wait()
        return {"pages": {self.page_id: {"revisions": [{"*": self.content}]}}}


def test_container_key_and_board_name() -> None:
    title = "Message Wall:Foo/@comment-1/@comment-2"
    assert container_key(title) == "Message Wall:Foo/@comment-1"
    assert board_name(title) == "Foo"
    assert board_name("Plain") == "Plain"


def test_extract_thread_title_decodes_entities() -> None:
    content = '<ac_metadata title="Tom &amp; Jerry &quot;rules&quot;"> </ac_metadata>Body'
    assert extract_thread_title(content) == 'Tom & Jerry "rules"'
    assert extract_thread_title("no metadata") is None


def test_resolve_returns_placeholder_then_cached_title() -> None:
    query = DummyRevisionQuery('<ac_metadata title="Welcome!"></ac_metadata>')
    resolver = ThreadResolver(query, placeholder="Message")
    page = "Message Wall:Foo/@comment-1/@comment-2"

    async def runner() -> None:
        first = resolver.resolve(page)
        again = resolver.resolve(page)
        assert (first.page, first.title) == (page, "Message")
        assert again.title == "Message"
        assert resolver.is_pending(page)

        query.release.set()
        await resolver.wait_pending()

        resolved = resolver.resolve(page)
        assert (resolved.page, resolved.title) == ("Thread:555", "Welcome!")

    asyncio.run(runner())

    # One lookup per container key.
    assert len(query.calls) == 1
    assert query.calls[0] == {
        "prop": "revisions",
        "titles": "Message Wall:Foo/@comment-1",
        "rvlimit": 1,
        "rvprop": "content",
    }
    assert resolver.snapshot() == {"Message Wall:Foo/@comment-1": ("Thread:555", "Welcome!")}


def test_placeholder_defaults_to_path_segment() -> None:
    async def never(params: Mapping[str, Any]) -> Mapping[str, Any]:
        return {}

    resolver = ThreadResolver(never)

    async def runner() -> None:
        resolved = resolver.resolve("Board Thread:Games/@comment-9/@comment-10")
        assert resolved.title == "@comment-9"
        await resolver.wait_pending()

    asyncio.run(runner())


def test_close_discards_in_flight_results() -> None:
    query = DummyRevisionQuery('<ac_metadata title="Late"></ac_metadata>')
    resolver = ThreadResolver(query, placeholder="Message")

    async def runner() -> None:
        resolver.resolve("Message Wall:Foo/@comment-1")
        resolver.close()
        query.release.set()
        await resolver.wait_pending()

    asyncio.run(runner())

    assert resolver.snapshot() == {}


def test_lookup_failures_keep_placeholder() -> None:
    async def failing(params: Mapping[str, Any]) -> Mapping[str, Any]:
        raise TransientNetworkError("wiki", "timeout")

    resolver = ThreadResolver(failing, placeholder="Message")

    async def runner() -> None:
        resolver.resolve("Message Wall:Foo/@comment-1")
        await resolver.wait_pending()
        assert resolver.resolve("Message Wall:Foo/@comment-1").title == "Message"
        await resolver.wait_pending()

    asyncio.run(runner())


def test_snapshot_round_trip_through_load() -> None:
    async def never(params: Mapping[str, Any]) -> Mapping[str, Any]:
        return {}

    resolver = ThreadResolver(never)
    resolver.load({"Message Wall:Foo/@comment-1": ["Thread:1", "Hi"], "bad": "value"})

    resolved = resolver.resolve("Message Wall:Foo/@comment-1/@comment-3")
    assert (resolved.page, resolved.title) == ("Thread:1", "Hi")
    assert list(resolver.snapshot()) == ["Message Wall:Foo/@comment-1"]
