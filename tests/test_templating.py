from __future__ import annotations

import pytest

from wiki_monitor.errors import ConfigError
from wiki_monitor.i18n import load_strings
from wiki_monitor.models import CanonicalEvent, SiteInfo
from wiki_monitor.templating import (
    DiscordRenderer,
    Invocation,
    MarkupRenderer,
    PlainRenderer,
    RenderContext,
    SlackRenderer,
    TelegramRenderer,
    build_renderer,
    parse_template,
    render,
    render_event,
)

ZWSP = "\u200b"


def _context(threshold: int = 1000) -> RenderContext:
    site = SiteInfo(
        server="https://wiki.example",
        namespaces={1200: "Message Wall", 2000: "Board"},
    )
    return RenderContext(site=site, strings=load_strings("en"), diff_threshold=threshold)


def test_parse_template_splits_literals_and_spans() -> None:
    segments = parse_template("a {{link|$1|x\\|y}} b \\{\\{not}} {{broken")

    assert segments[0] == "a "
    assert segments[1] == Invocation(name="link", params=("$1", "x|y"), source="{{link|$1|x\\|y}}")
    assert segments[2] == " b {{not}} {{broken"


@pytest.mark.parametrize(
    ("renderer_cls", "expected"),
    [
        (DiscordRenderer, "```X```"),
        (SlackRenderer, "```X```"),
        (TelegramRenderer, "<pre>X</pre>"),
        (PlainRenderer, "```X```"),
    ],
)
def test_debug_renders_code_block_for_every_destination(
    renderer_cls: type[MarkupRenderer], expected: str
) -> None:
    assert render("{{debug|X}}", [], renderer_cls(_context())) == expected


def test_arguments_cannot_inject_template_markup() -> None:
    renderer = DiscordRenderer(_context())

    rendered = render("{{summary|$1}} and $1", ["{{debug|pwn}} | }}"], renderer)

    assert "```" not in rendered
    assert rendered == "(*\\{\\{debug\\|pwn\\}\\} \\| \\}\\}*) and \\{\\{debug\\|pwn\\}\\} \\| \\}\\}"


def test_discord_escaping_and_mentions() -> None:
    renderer = DiscordRenderer(_context())

    assert renderer.escape("*bold* _it_ [x]") == "\\*bold\\* \\_it\\_ \\[x\\]"
    assert renderer.escape("ping @everyone and @here") == f"ping @{ZWSP}everyone and @{ZWSP}here"


def test_discord_summary_suppresses_link_previews() -> None:
    renderer = DiscordRenderer(_context())

    rendered = render("{{summary|$1}}", ["see https://x.example/a and http://y.example"], renderer)

    assert rendered == "(*see htt\u0440s://x.example/a and htt\u0440://y.example*)"
    assert render("{{summary|$1}}", ["  \n "], renderer) == ""


def test_diff_size_emphasis_and_sign() -> None:
    discord = DiscordRenderer(_context(threshold=1000))
    slack = SlackRenderer(_context(threshold=1000))
    telegram = TelegramRenderer(_context(threshold=1000))

    assert render("{{diffSize|$1}}", [25], discord) == "*(+25)*"
    assert render("{{diffSize|$1}}", [-1500], discord) == "**(-1500)**"
    assert render("{{diffSize|$1}}", [0], discord) == "*(0)*"
    assert render("{{diffSize|$1}}", [1001], slack) == "*(+1001)*"
    assert render("{{diffSize|$1}}", [10], slack) == "_(+10)_"
    assert render("{{diffSize|$1}}", [2000], telegram) == "<b>(+2000)</b>"
    assert render("{{diffSize|$1}}", [3], PlainRenderer(_context())) == "(+3)"


def test_user_and_links_per_destination() -> None:
    discord = render("{{user|$1}}", ["Some One"], DiscordRenderer(_context()))
    assert discord == (
        "[Some One](<https://wiki.example/wiki/User:Some_One>) "
        "([talk](<https://wiki.example/wiki/User_talk:Some_One>)|"
        "[contribs](<https://wiki.example/wiki/Special:Contributions/Some_One>))"
    )

    slack = render("{{link|$1|$2}}", ["Main Page", "home"], SlackRenderer(_context()))
    assert slack == "<https://wiki.example/wiki/Main_Page|home>"

    telegram = render("{{userlink|$1}}", ["User:A<b>"], TelegramRenderer(_context()))
    assert telegram == '<a href="https://wiki.example/wiki/User:A%3Cb%3E">A&lt;b&gt;</a>'

    plain = render("{{link|$1}}", ["Main Page"], PlainRenderer(_context()))
    assert plain == "Main Page"


def test_diff_and_wiki_links() -> None:
    renderer = DiscordRenderer(_context())

    assert render("{{diff|$1}}", [42], renderer) == "([diff](<https://wiki.example/?diff=42>))"
    assert render("{{wiki|$1}}", ["new.fandom.com"], renderer) == "<http://new.fandom.com>"
    assert render("{{wiki|$1}}", ["new.fandom.com"], SlackRenderer(_context())) == (
        "http://new.fandom.com"
    )


def test_board_link_uses_namespace_and_label() -> None:
    discord = render("{{board|$1|$2}}", [1201, "Foo"], DiscordRenderer(_context()))
    assert discord == "[Foo's Message Wall](<https://wiki.example/wiki/Message_Wall:Foo>)"

    slack = render("{{board|$1|$2}}", [2001, "Games"], SlackRenderer(_context()))
    assert slack == "<https://wiki.example/wiki/Board:Games|Board:Games>"


def test_unknown_template_renders_escaped_source() -> None:
    renderer = DiscordRenderer(_context())

    assert render("{{mystery|$1}}", ["a*b"], renderer) == "\\{\\{mystery\\|a\\*b\\}\\}"


def test_literal_arguments_are_escaped_per_destination() -> None:
    assert render("for $1", ["<1 day>"], TelegramRenderer(_context())) == "for &lt;1 day&gt;"
    assert render("for $1", ["<1 day>"], SlackRenderer(_context())) == "for &lt;1 day&gt;"
    assert render("for $1 $9", ["x"], PlainRenderer(_context())) == "for x $9"


def test_render_event_uses_localized_template() -> None:
    context = _context()
    event = CanonicalEvent("newwikis", ("new.fandom.com",))

    text = render_event(event, context.strings, SlackRenderer(context))

    assert text == "A new wiki was created: http://new.fandom.com"


def test_render_event_without_template_falls_back_to_debug() -> None:
    context = _context()
    event = CanonicalEvent("nonexistent", ("a", 1))

    text = render_event(event, context.strings, DiscordRenderer(context))

    assert text == '```["nonexistent", "a", 1]```'


def test_render_event_strips_empty_summary() -> None:
    context = _context()
    event = CanonicalEvent("delete", ("Admin", "Page", ""))

    text = render_event(event, context.strings, PlainRenderer(context))

    assert text == "Admin (talk|contribs) deleted Page"


def test_build_renderer_rejects_unknown_platform() -> None:
    assert isinstance(build_renderer("telegram", _context()), TelegramRenderer)
    with pytest.raises(ConfigError):
        build_renderer("irc", _context())
