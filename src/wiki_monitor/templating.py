"""Inline ``{{name|arg}}`` markup of localized messages and its renderers."""

from __future__ import annotations

import html
import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, Sequence

from .errors import ConfigError
from .models import CanonicalEvent, SiteInfo

_ARG_RE = re.compile(r"\$(\d+)")
_ESCAPABLE = frozenset("{}|")
_MASS_MENTION_RE = re.compile(r"@(everyone|here)\b")
_PREVIEW_RE = re.compile(r"http(s?)://")
_DISCORD_SPECIAL_RE = re.compile(r"([\\*_~`|\[\]{}>])")
_SLACK_SPECIAL_RE = re.compile(r"([*_~`])")
_ZERO_WIDTH_SPACE = "\u200b"
_CYRILLIC_ER = "\u0440"
_CODE_FENCE = "```"

# Namespace names used when siteinfo does not list the board namespace.
_BOARD_NAMESPACES = {1200: "Message Wall", 2000: "Board"}


@dataclass(slots=True, frozen=True)
class Invocation:
    """A parsed ``{{name|param|...}}`` span."""

    name: str
    params: tuple[str, ...]
    source: str


Segment = str | Invocation


class Renderer(Protocol):
    def escape(self, value: str) -> str: ...

    def invoke(self, name: str, params: Sequence[str]) -> str | None: ...


def parse_template(source: str) -> list[Segment]:
    """Split a template into literal text and invocations.

    ``\\{``, ``\\}`` and ``\\|`` stand for the literal characters. An
    unterminated ``{{`` is kept as text.
    """

    segments: list[Segment] = []
    buffer: list[str] = []
    index = 0
    length = len(source)
    while index < length:
        char = source[index]
        if char == "\\" and index + 1 < length and source[index + 1] in _ESCAPABLE:
            buffer.append(source[index + 1])
            index += 2
            continue
        if source.startswith("{{", index):
            parsed = _parse_invocation(source, index)
            if parsed is not None:
                invocation, index = parsed
                if buffer:
                    segments.append("".join(buffer))
                    buffer = []
                segments.append(invocation)
                continue
        buffer.append(char)
        index += 1
    if buffer:
        segments.append("".join(buffer))
    return segments


def _parse_invocation(source: str, start: int) -> tuple[Invocation, int] | None:
    parts: list[str] = []
    current: list[str] = []
    index = start + 2
    length = len(source)
    while index < length:
        char = source[index]
        if char == "\\" and index + 1 < length and source[index + 1] in _ESCAPABLE:
            current.append(source[index + 1])
            index += 2
            continue
        if source.startswith("}}", index):
            parts.append("".join(current))
            end = index + 2
            invocation = Invocation(
                name=parts[0].strip(),
                params=tuple(parts[1:]),
                source=source[start:end],
            )
            return invocation, end
        if char == "|":
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1
    return None


def _substitute(text: str, values: Sequence[str], transform: Callable[[str], str]) -> str:
    def replace(match: re.Match[str]) -> str:
        position = int(match.group(1)) - 1
        if 0 <= position < len(values):
            return transform(values[position])
        return match.group(0)

    return _ARG_RE.sub(replace, text)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _raw(value: str) -> str:
    return value


def render(template: str, args: Sequence[Any], renderer: Renderer) -> str:
    """Render ``template`` with positional ``args`` for one destination.

    Spans are parsed before any substitution, so argument values can never
    change the structure of the template. Literal ``$N`` receives the escaped
    value; span parameters receive the raw value and the renderer escapes
    whatever it shows.
    """

    values = [_as_text(arg) for arg in args]
    parts: list[str] = []
    for segment in parse_template(template):
        if isinstance(segment, Invocation):
            params = [_substitute(param, values, _raw) for param in segment.params]
            rendered = renderer.invoke(segment.name, params)
            if rendered is None:
                rendered = renderer.escape(_substitute(segment.source, values, _raw))
            parts.append(rendered)
        else:
            parts.append(_substitute(segment, values, renderer.escape))
    return "".join(parts)


def render_event(
    event: CanonicalEvent, strings: Mapping[str, str], renderer: Renderer
) -> str:
    template = strings.get(event.kind)
    if template is None:
        dumped = json.dumps(event.as_list(), ensure_ascii=False, default=str)
        return render("{{debug|$1}}", [dumped], renderer)
    return render(template, event.args, renderer).strip()


def suppress_previews(text: str) -> str:
    """Swap the Latin ``p`` of ``http`` for a Cyrillic one so chats skip the embed."""

    return _PREVIEW_RE.sub(lambda match: f"htt{_CYRILLIC_ER}{match.group(1)}://", text)


def neutralize_mentions(text: str) -> str:
    return _MASS_MENTION_RE.sub(lambda match: f"@{_ZERO_WIDTH_SPACE}{match.group(1)}", text)


def _param(params: Sequence[str], index: int) -> str:
    return params[index] if index < len(params) else ""


@dataclass(slots=True)
class RenderContext:
    """Site data the renderers need to build links and labels."""

    site: SiteInfo
    strings: Mapping[str, str] = field(default_factory=dict)
    diff_threshold: int = 1000


class MarkupRenderer:
    """Template handlers shared by every destination.

    Subclasses provide the markup primitives: ``escape``, ``link``,
    ``emphasis``, ``code_block`` and ``external``.
    """

    def __init__(self, context: RenderContext):
        self._context = context
        self._handlers: dict[str, Callable[[Sequence[str]], str]] = {
            "diff": self._diff,
            "diffSize": self._diff_size,
            "user": self._user,
            "link": self._link,
            "userlink": self._userlink,
            "summary": self._summary,
            "debug": self._debug,
            "wiki": self._wiki,
            "board": self._board,
        }

    @property
    def context(self) -> RenderContext:
        return self._context

    def invoke(self, name: str, params: Sequence[str]) -> str | None:
        handler = self._handlers.get(name)
        if handler is None:
            return None
        return handler(params)

    def escape(self, value: str) -> str:
        return value

    def link(self, url: str, text: str) -> str:
        return text

    def emphasis(self, text: str, strong: bool = False) -> str:
        return text

    def code_block(self, text: str) -> str:
        return f"{_CODE_FENCE}{text}{_CODE_FENCE}"

    def external(self, url: str, text: str) -> str:
        return url

    def summary_text(self, text: str) -> str:
        return self.escape(text)

    def _label(self, key: str) -> str:
        return self.escape(self._context.strings.get(key, key))

    def _page_link(self, page: str, text: str) -> str:
        return self.link(self._context.site.article_url(page), self.escape(text))

    def _diff(self, params: Sequence[str]) -> str:
        url = self._context.site.diff_url(_param(params, 0))
        return f"({self.link(url, self._label('diff'))})"

    def _diff_size(self, params: Sequence[str]) -> str:
        raw = _param(params, 0).strip()
        try:
            size = int(raw)
        except ValueError:
            return self.escape(raw)
        label = f"+{size}" if size > 0 else str(size)
        return self.emphasis(f"({label})", strong=abs(size) > self._context.diff_threshold)

    def _user(self, params: Sequence[str]) -> str:
        name = _param(params, 0)
        site = self._context.site
        user = self._page_link(f"User:{name}", name)
        talk = self.link(site.article_url(f"User talk:{name}"), self._label("talk"))
        contribs = self.link(
            site.article_url(f"Special:Contributions/{name}"), self._label("contribs")
        )
        return f"{user} ({talk}|{contribs})"

    def _link(self, params: Sequence[str]) -> str:
        page = _param(params, 0)
        text = _param(params, 1) or page
        return self._page_link(page, text)

    def _userlink(self, params: Sequence[str]) -> str:
        page = _param(params, 0)
        _, sep, name = page.partition(":")
        return self._page_link(page, name if sep else page)

    def _summary(self, params: Sequence[str]) -> str:
        text = " ".join(_param(params, 0).split("\n")).strip()
        if not text:
            return ""
        return f"({self.emphasis(self.summary_text(text))})"

    def _debug(self, params: Sequence[str]) -> str:
        return self.code_block(_param(params, 0))

    def _wiki(self, params: Sequence[str]) -> str:
        domain = _param(params, 0).strip()
        return self.external(f"http://{domain}", domain)

    def _board(self, params: Sequence[str]) -> str:
        name = _param(params, 1)
        try:
            namespace = int(_param(params, 0))
        except ValueError:
            return self.escape(name)
        board_namespace = namespace - 1
        prefix = self._context.site.namespace_name(
            board_namespace, _BOARD_NAMESPACES.get(board_namespace, "")
        )
        page = f"{prefix}:{name}" if prefix else name
        template = self._context.strings.get(f"board-{namespace}")
        label = render(template, [name], self) if template else self.escape(name)
        return self.link(self._context.site.article_url(page), label)


class DiscordRenderer(MarkupRenderer):
    """Discord flavoured markdown."""

    def escape(self, value: str) -> str:
        return neutralize_mentions(_DISCORD_SPECIAL_RE.sub(r"\\\1", value))

    def link(self, url: str, text: str) -> str:
        return f"[{text}](<{url.replace(')', '%29')}>)"

    def emphasis(self, text: str, strong: bool = False) -> str:
        marker = "**" if strong else "*"
        return f"{marker}{text}{marker}"

    def code_block(self, text: str) -> str:
        safe = text.replace(_CODE_FENCE, f"`{_ZERO_WIDTH_SPACE}`{_ZERO_WIDTH_SPACE}`")
        return f"{_CODE_FENCE}{safe}{_CODE_FENCE}"

    def external(self, url: str, text: str) -> str:
        return f"<{url}>"

    def summary_text(self, text: str) -> str:
        return suppress_previews(self.escape(text))


class SlackRenderer(MarkupRenderer):
    """Slack ``mrkdwn``."""

    def escape(self, value: str) -> str:
        escaped = value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        escaped = _SLACK_SPECIAL_RE.sub(f"{_ZERO_WIDTH_SPACE}\\1", escaped)
        return neutralize_mentions(escaped)

    def link(self, url: str, text: str) -> str:
        label = text.replace("|", "\u00a6")
        return f"<{url}|{label}>"

    def emphasis(self, text: str, strong: bool = False) -> str:
        marker = "*" if strong else "_"
        return f"{marker}{text}{marker}"

    def code_block(self, text: str) -> str:
        escaped = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        return f"{_CODE_FENCE}{escaped}{_CODE_FENCE}"

    def summary_text(self, text: str) -> str:
        return suppress_previews(self.escape(text))


class TelegramRenderer(MarkupRenderer):
    """Telegram Bot API ``parse_mode=HTML``."""

    def escape(self, value: str) -> str:
        return html.escape(value, quote=False)

    def link(self, url: str, text: str) -> str:
        return f'<a href="{html.escape(url, quote=True)}">{text}</a>'

    def emphasis(self, text: str, strong: bool = False) -> str:
        tag = "b" if strong else "i"
        return f"<{tag}>{text}</{tag}>"

    def code_block(self, text: str) -> str:
        return f"<pre>{html.escape(text, quote=False)}</pre>"

    def external(self, url: str, text: str) -> str:
        return self.link(url, self.escape(text))


class PlainRenderer(MarkupRenderer):
    """Plain text for desktop notifications."""


_RENDERERS: dict[str, type[MarkupRenderer]] = {
    "discord": DiscordRenderer,
    "slack": SlackRenderer,
    "telegram": TelegramRenderer,
    "desktop": PlainRenderer,
}


def build_renderer(platform: str, context: RenderContext) -> MarkupRenderer:
    renderer_cls = _RENDERERS.get(platform)
    if renderer_cls is None:
        raise ConfigError(f"Неизвестная платформа доставки: {platform}")
    return renderer_cls(context)
