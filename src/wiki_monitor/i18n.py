"""Localized message templates.

Every template receives the positional arguments of its canonical event as
``$1``, ``$2`` and so on. Languages without a table, and keys missing from a
table, fall back to English.
"""

from __future__ import annotations

import logging

DEFAULT_LANGUAGE = "en"

_THREAD_TARGET = "{{link|$2|$3}} ({{board|$4|$5}})"

STRINGS: dict[str, dict[str, str]] = {
    "en": {
        "start": "Wiki Monitor is now watching $1.",
        "diff": "diff",
        "talk": "talk",
        "contribs": "contribs",
        "message": "Message",
        "board-1201": "$1's Message Wall",
        "board-2001": "Board:$1",
        "debug": "{{debug|$1}}",
        "new": "{{user|$1}} created {{link|$2}} {{diffSize|$3}} {{summary|$4}}",
        "edit": "{{user|$1}} edited {{link|$2}} {{diffSize|$3}} {{diff|$4}} {{summary|$5}}",
        "newthread": (
            "{{user|$1}} created thread " + _THREAD_TARGET + " {{diffSize|$6}} {{summary|$7}}"
        ),
        "editthread": (
            "{{user|$1}} edited thread "
            + _THREAD_TARGET
            + " {{diffSize|$6}} {{diff|$7}} {{summary|$8}}"
        ),
        "threadclose": "{{user|$1}} closed thread " + _THREAD_TARGET + " {{summary|$6}}",
        "threadremove": "{{user|$1}} removed thread " + _THREAD_TARGET + " {{summary|$6}}",
        "threaddelete": "{{user|$1}} deleted thread " + _THREAD_TARGET + " {{summary|$6}}",
        "threadrestore": "{{user|$1}} restored thread " + _THREAD_TARGET + " {{summary|$6}}",
        "block": "{{user|$1}} blocked {{userlink|$2}} for $3 ($4) {{summary|$5}}",
        "reblock": "{{user|$1}} changed the block of {{userlink|$2}} to $3 ($4) {{summary|$5}}",
        "unblock": "{{user|$1}} unblocked {{userlink|$2}} {{summary|$3}}",
        "newusers": "{{user|$1}} created an account",
        "avatar": "{{user|$1}} changed their avatar",
        "remavatar": "{{user|$1}} removed the avatar of {{userlink|$2}}",
        "delete": "{{user|$1}} deleted {{link|$2}} {{summary|$3}}",
        "restore": "{{user|$1}} restored {{link|$2}} {{summary|$3}}",
        "move": "{{user|$1}} moved {{link|$2}} to {{link|$3}} {{summary|$4}}",
        "moveredir": (
            "{{user|$1}} moved {{link|$2}} to {{link|$3}} over a redirect {{summary|$4}}"
        ),
        "rights": (
            "{{user|$1}} changed group membership of {{userlink|$2}} from $3 to $4 "
            "{{summary|$5}}"
        ),
        "upload": "{{user|$1}} uploaded {{link|$2}} {{summary|$3}}",
        "reupload": "{{user|$1}} uploaded a new version of {{link|$2}} {{summary|$3}}",
        "chatbanadd": "{{user|$1}} banned {{userlink|$2}} from chat for $3 {{summary|$4}}",
        "chatbanchange": (
            "{{user|$1}} changed the chat ban of {{userlink|$2}} to $3 {{summary|$4}}"
        ),
        "chatbanremove": "{{user|$1}} unbanned {{userlink|$2}} from chat {{summary|$3}}",
        "protect": "{{user|$1}} protected {{link|$2}} $3 {{summary|$4}}",
        "reprotect": "{{user|$1}} changed protection of {{link|$2}} $3 {{summary|$4}}",
        "unprotect": "{{user|$1}} removed protection from {{link|$2}} {{summary|$3}}",
        "merge": "{{user|$1}} merged {{link|$2}} into {{link|$3}} {{summary|$4}}",
        "abusefilter": (
            "{{user|$1}} modified {{link|Special:AbuseFilter/$2|abuse filter $2}} "
            "({{link|Special:AbuseFilter/history/$2/diff/prev/$3|changes}})"
        ),
        "wikifeatures": "{{user|$1}} changed wiki features {{summary|$2}}",
        "import": "{{user|$1}} imported {{link|$2}} {{summary|$3}}",
        "createpin": "{{user|$1}} added a pin to {{link|$2}} {{summary|$3}}",
        "updatepin": "{{user|$1}} updated a pin on {{link|$2}} {{summary|$3}}",
        "createmap": "{{user|$1}} created the map {{link|$2}} {{summary|$3}}",
        "deletepin": "{{user|$1}} deleted a pin from {{link|$2}}",
        "deletemap": "{{user|$1}} deleted a map",
        "renameuser": "{{user|$1}} renamed a user {{summary|$2}}",
        "abuselog": (
            "{{user|$1}} triggered {{link|Special:AbuseFilter/$2|$3}} by performing "
            '"$4" on {{link|$5}}. Actions taken: $6'
        ),
        "newwikis": "A new wiki was created: {{wiki|$1}}",
        "action-": "none",
        "action-disallow": "disallow",
        "action-warn": "warn",
        "action-tag": "tag",
        "action-throttle": "throttle",
        "action-blockautopromote": "remove autoconfirmed status",
        "action-block": "block",
        "action-degroup": "remove from groups",
    },
    "ru": {
        "start": "Wiki Monitor начал наблюдение за $1.",
        "diff": "разн.",
        "talk": "обс.",
        "contribs": "вклад",
        "message": "Сообщение",
        "board-1201": "Стена обсуждения $1",
        "board-2001": "Форум:$1",
        "debug": "{{debug|$1}}",
        "new": "{{user|$1}} создал(а) {{link|$2}} {{diffSize|$3}} {{summary|$4}}",
        "edit": (
            "{{user|$1}} отредактировал(а) {{link|$2}} {{diffSize|$3}} {{diff|$4}} "
            "{{summary|$5}}"
        ),
        "newthread": (
            "{{user|$1}} создал(а) тему " + _THREAD_TARGET + " {{diffSize|$6}} {{summary|$7}}"
        ),
        "editthread": (
            "{{user|$1}} отредактировал(а) тему "
            + _THREAD_TARGET
            + " {{diffSize|$6}} {{diff|$7}} {{summary|$8}}"
        ),
        "threadclose": "{{user|$1}} закрыл(а) тему " + _THREAD_TARGET + " {{summary|$6}}",
        "threadremove": "{{user|$1}} убрал(а) тему " + _THREAD_TARGET + " {{summary|$6}}",
        "threaddelete": "{{user|$1}} удалил(а) тему " + _THREAD_TARGET + " {{summary|$6}}",
        "threadrestore": (
            "{{user|$1}} восстановил(а) тему " + _THREAD_TARGET + " {{summary|$6}}"
        ),
        "block": "{{user|$1}} заблокировал(а) {{userlink|$2}} на $3 ($4) {{summary|$5}}",
        "reblock": (
            "{{user|$1}} изменил(а) блокировку {{userlink|$2}}: $3 ($4) {{summary|$5}}"
        ),
        "unblock": "{{user|$1}} разблокировал(а) {{userlink|$2}} {{summary|$3}}",
        "newusers": "{{user|$1}} зарегистрировался(ась)",
        "avatar": "{{user|$1}} сменил(а) аватар",
        "remavatar": "{{user|$1}} удалил(а) аватар {{userlink|$2}}",
        "delete": "{{user|$1}} удалил(а) {{link|$2}} {{summary|$3}}",
        "restore": "{{user|$1}} восстановил(а) {{link|$2}} {{summary|$3}}",
        "move": "{{user|$1}} переименовал(а) {{link|$2}} в {{link|$3}} {{summary|$4}}",
        "moveredir": (
            "{{user|$1}} переименовал(а) {{link|$2}} в {{link|$3}} поверх перенаправления "
            "{{summary|$4}}"
        ),
        "rights": (
            "{{user|$1}} изменил(а) группы {{userlink|$2}} с $3 на $4 {{summary|$5}}"
        ),
        "upload": "{{user|$1}} загрузил(а) {{link|$2}} {{summary|$3}}",
        "reupload": "{{user|$1}} загрузил(а) новую версию {{link|$2}} {{summary|$3}}",
        "chatbanadd": "{{user|$1}} забанил(а) {{userlink|$2}} в чате на $3 {{summary|$4}}",
        "chatbanchange": (
            "{{user|$1}} изменил(а) бан {{userlink|$2}} в чате: $3 {{summary|$4}}"
        ),
        "chatbanremove": "{{user|$1}} разбанил(а) {{userlink|$2}} в чате {{summary|$3}}",
        "protect": "{{user|$1}} защитил(а) {{link|$2}} $3 {{summary|$4}}",
        "reprotect": "{{user|$1}} изменил(а) защиту {{link|$2}} $3 {{summary|$4}}",
        "unprotect": "{{user|$1}} снял(а) защиту с {{link|$2}} {{summary|$3}}",
        "merge": "{{user|$1}} объединил(а) {{link|$2}} с {{link|$3}} {{summary|$4}}",
        "abusefilter": (
            "{{user|$1}} изменил(а) {{link|Special:AbuseFilter/$2|фильтр $2}} "
            "({{link|Special:AbuseFilter/history/$2/diff/prev/$3|изменения}})"
        ),
        "wikifeatures": "{{user|$1}} изменил(а) возможности вики {{summary|$2}}",
        "import": "{{user|$1}} импортировал(а) {{link|$2}} {{summary|$3}}",
        "createpin": "{{user|$1}} добавил(а) метку на {{link|$2}} {{summary|$3}}",
        "updatepin": "{{user|$1}} обновил(а) метку на {{link|$2}} {{summary|$3}}",
        "createmap": "{{user|$1}} создал(а) карту {{link|$2}} {{summary|$3}}",
        "deletepin": "{{user|$1}} удалил(а) метку с {{link|$2}}",
        "deletemap": "{{user|$1}} удалил(а) карту",
        "renameuser": "{{user|$1}} переименовал(а) участника {{summary|$2}}",
        "abuselog": (
            "{{user|$1}} вызвал(а) {{link|Special:AbuseFilter/$2|$3}}, выполнив "
            "действие «$4» на странице {{link|$5}}. Принятые меры: $6"
        ),
        "newwikis": "Создана новая вики: {{wiki|$1}}",
        "action-": "нет",
        "action-disallow": "запрет",
        "action-warn": "предупреждение",
        "action-tag": "метка",
        "action-throttle": "ограничение частоты",
        "action-blockautopromote": "снятие статуса автоподтверждённого",
        "action-block": "блокировка",
        "action-degroup": "исключение из групп",
    },
}


logger = logging.getLogger(__name__)


def load_strings(language: str | None) -> dict[str, str]:
    """Return the string table for ``language`` merged over the English one."""

    strings = dict(STRINGS[DEFAULT_LANGUAGE])
    code = (language or DEFAULT_LANGUAGE).strip().lower()
    if code == DEFAULT_LANGUAGE:
        return strings
    table = STRINGS.get(code)
    if table is None:
        logger.warning("Язык '%s' не найден, используется '%s'", code, DEFAULT_LANGUAGE)
        return strings
    strings.update(table)
    return strings
