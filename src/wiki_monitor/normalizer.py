"""Conversion of raw API records into canonical events."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping

from .errors import UnrecognizedRecordShape
from .models import ABUSE_LOG, NEW_WIKIS, RECENT_CHANGES, CanonicalEvent
from .threads import THREAD_NAMESPACES, ThreadResolver, board_name

Record = Mapping[str, Any]

# Log types that never produce a message.
IGNORED_LOG_TYPES: frozenset[str] = frozenset({"patrol", "templateclassification"})

_WALL_ACTIONS = {
    "wall_archive": "threadclose",
    "wall_remove": "threadremove",
    "wall_admindelete": "threaddelete",
    "wall_restore": "threadrestore",
}


logger = logging.getLogger(__name__)


def passthrough(record: Record) -> CanonicalEvent:
    """Wrap a record the normalizer does not understand into a debug event."""

    dumped = json.dumps(record, ensure_ascii=False, sort_keys=True, default=str)
    return CanonicalEvent("debug", (dumped,))


class EventNormalizer:
    """Map raw records of one site onto the canonical event vocabulary."""

    def __init__(
        self,
        resolver: ThreadResolver,
        strings: Mapping[str, str] | None = None,
    ):
        self._resolver = resolver
        self._strings = strings or {}
        self._log_handlers: dict[str, Callable[[Record], CanonicalEvent | None]] = {
            "block": self._block,
            "newusers": self._newusers,
            "useravatar": self._useravatar,
            "delete": self._delete,
            "move": self._move,
            "rights": self._rights,
            "upload": self._upload,
            "chatban": self._chatban,
            "protect": self._protect,
            "merge": self._merge,
            "abusefilter": self._abusefilter,
            "wikifeatures": self._wikifeatures,
            "import": self._import,
            "maps": self._maps,
            "renameuser": self._renameuser,
        }

    def normalize(self, record: Record, source: str) -> CanonicalEvent | None:
        try:
            if source == ABUSE_LOG:
                return self._abuse_log(record)
            if source == NEW_WIKIS:
                return self._new_wiki(record)
            if source == RECENT_CHANGES:
                return self._recent_change(record)
            return self._log_event(record)
        except (UnrecognizedRecordShape, KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.debug("Запись неожиданной формы (%s): %s", exc, record)
            return passthrough(record)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------
    def _recent_change(self, record: Record) -> CanonicalEvent | None:
        entry_type = record.get("type")
        if entry_type == "new":
            if _is_thread(record):
                return CanonicalEvent(
                    "newthread",
                    (
                        _user(record),
                        *self._thread_args(record),
                        _size_delta(record),
                        _comment(record),
                    ),
                )
            return CanonicalEvent(
                "new", (_user(record), _title(record), _size_delta(record), _comment(record))
            )
        if entry_type == "edit":
            if _is_thread(record):
                return CanonicalEvent(
                    "editthread",
                    (
                        _user(record),
                        *self._thread_args(record),
                        _size_delta(record),
                        record["revid"],
                        _comment(record),
                    ),
                )
            return CanonicalEvent(
                "edit",
                (
                    _user(record),
                    _title(record),
                    _size_delta(record),
                    record["revid"],
                    _comment(record),
                ),
            )
        if entry_type == "log":
            # Regular log entries arrive through the log source as well.
            if str(record.get("logtype")) != "0":
                return None
            kind = _WALL_ACTIONS.get(str(record.get("logaction")))
            if kind is None:
                return passthrough(record)
            return CanonicalEvent(
                kind, (_user(record), *self._thread_args(record), _comment(record))
            )
        return passthrough(record)

    def _log_event(self, record: Record) -> CanonicalEvent | None:
        log_type = record.get("type")
        if not isinstance(log_type, str):
            return passthrough(record)
        if log_type in IGNORED_LOG_TYPES:
            return None
        handler = self._log_handlers.get(log_type)
        if handler is None:
            return passthrough(record)
        return handler(record)

    def _abuse_log(self, record: Record) -> CanonicalEvent:
        result = str(record.get("result") or "")
        label = self._strings.get(f"action-{result}", result)
        return CanonicalEvent(
            "abuselog",
            (
                _user(record),
                record["filter_id"],
                str(record.get("filter") or ""),
                str(record.get("action") or ""),
                _title(record),
                label,
            ),
        )

    def _new_wiki(self, record: Record) -> CanonicalEvent:
        domain = record["domain"]
        if not isinstance(domain, str) or not domain:
            raise UnrecognizedRecordShape("domain")
        return CanonicalEvent("newwikis", (domain,))

    def _thread_args(self, record: Record) -> tuple[Any, ...]:
        title = _title(record)
        resolved = self._resolver.resolve(title)
        return (resolved.page, resolved.title, int(record["ns"]), board_name(title))

    # ------------------------------------------------------------------
    # Log types
    # ------------------------------------------------------------------
    def _block(self, record: Record) -> CanonicalEvent:
        action = record.get("action")
        if action in {"block", "reblock"}:
            details = _details(record, "block")
            if not details:
                raise UnrecognizedRecordShape("block")
            return CanonicalEvent(
                action,
                (
                    _user(record),
                    _title(record),
                    str(details.get("duration") or ""),
                    _flags(details.get("flags")),
                    _comment(record),
                ),
            )
        if action == "unblock":
            return CanonicalEvent("unblock", (_user(record), _title(record), _comment(record)))
        return passthrough(record)

    def _newusers(self, record: Record) -> CanonicalEvent:
        return CanonicalEvent("newusers", (_user(record),))

    def _useravatar(self, record: Record) -> CanonicalEvent:
        action = record.get("action")
        if action == "avatar_chn":
            return CanonicalEvent("avatar", (_user(record),))
        if action == "avatar_rem":
            return CanonicalEvent("remavatar", (_user(record), _title(record)))
        return passthrough(record)

    def _delete(self, record: Record) -> CanonicalEvent:
        action = record.get("action")
        if action in {"delete", "restore"}:
            return CanonicalEvent(action, (_user(record), _title(record), _comment(record)))
        return passthrough(record)

    def _move(self, record: Record) -> CanonicalEvent:
        action = record.get("action")
        kinds = {"move": "move", "move_redir": "moveredir"}
        if action not in kinds:
            return passthrough(record)
        details = _details(record, "move")
        target = details.get("new_title") or details.get("target_title")
        if not target:
            raise UnrecognizedRecordShape("move.new_title")
        return CanonicalEvent(
            kinds[action], (_user(record), _title(record), str(target), _comment(record))
        )

    def _rights(self, record: Record) -> CanonicalEvent:
        if record.get("action") != "rights":
            return passthrough(record)
        details = _details(record, "rights")
        old = details.get("old", details.get("oldgroups"))
        new = details.get("new", details.get("newgroups"))
        if old is None or new is None:
            raise UnrecognizedRecordShape("rights")
        return CanonicalEvent(
            "rights",
            (_user(record), _title(record), _groups(old), _groups(new), _comment(record)),
        )

    def _upload(self, record: Record) -> CanonicalEvent:
        kinds = {"upload": "upload", "overwrite": "reupload"}
        kind = kinds.get(str(record.get("action")))
        if kind is None:
            return passthrough(record)
        return CanonicalEvent(kind, (_user(record), _title(record), _comment(record)))

    def _chatban(self, record: Record) -> CanonicalEvent:
        action = record.get("action")
        if action in {"chatbanadd", "chatbanchange"}:
            return CanonicalEvent(
                action,
                (_user(record), _title(record), str(record.get("2", "")), _comment(record)),
            )
        if action == "chatbanremove":
            return CanonicalEvent(
                "chatbanremove", (_user(record), _title(record), _comment(record))
            )
        return passthrough(record)

    def _protect(self, record: Record) -> CanonicalEvent | None:
        action = record.get("action")
        if action == "move_prot":
            return None
        if action in {"protect", "modify"}:
            kind = "protect" if action == "protect" else "reprotect"
            description = record.get("0", _details(record, "params").get("description", ""))
            return CanonicalEvent(
                kind, (_user(record), _title(record), str(description), _comment(record))
            )
        if action == "unprotect":
            return CanonicalEvent("unprotect", (_user(record), _title(record), _comment(record)))
        return passthrough(record)

    def _merge(self, record: Record) -> CanonicalEvent:
        destination = record.get("0", _details(record, "params").get("dest_title"))
        if not destination:
            raise UnrecognizedRecordShape("merge.destination")
        return CanonicalEvent(
            "merge", (_user(record), _title(record), str(destination), _comment(record))
        )

    def _abusefilter(self, record: Record) -> CanonicalEvent:
        params = _details(record, "params")
        filter_id = record.get("1", params.get("newId"))
        change_id = record.get("0", params.get("historyId"))
        if filter_id is None or change_id is None:
            raise UnrecognizedRecordShape("abusefilter")
        return CanonicalEvent("abusefilter", (_user(record), filter_id, change_id))

    def _wikifeatures(self, record: Record) -> CanonicalEvent:
        return CanonicalEvent("wikifeatures", (_user(record), _comment(record)))

    def _import(self, record: Record) -> CanonicalEvent:
        if record.get("action") != "upload":
            return passthrough(record)
        return CanonicalEvent("import", (_user(record), _title(record), _comment(record)))

    def _maps(self, record: Record) -> CanonicalEvent:
        action = record.get("action")
        summary = str(record.get("summary") or record.get("comment") or "")
        if action in {"create_pin", "update_pin", "create_map"}:
            kind = action.replace("_", "")
            return CanonicalEvent(kind, (_user(record), _title(record), summary))
        if action == "delete_pin":
            return CanonicalEvent("deletepin", (_user(record), _title(record)))
        if action == "delete_map":
            return CanonicalEvent("deletemap", (_user(record),))
        return passthrough(record)

    def _renameuser(self, record: Record) -> CanonicalEvent:
        return CanonicalEvent("renameuser", (_user(record), _comment(record)))


def _is_thread(record: Record) -> bool:
    try:
        return int(record.get("ns", 0)) in THREAD_NAMESPACES
    except (TypeError, ValueError):
        return False


def _user(record: Record) -> str:
    user = record.get("user")
    if not isinstance(user, str):
        raise UnrecognizedRecordShape("user")
    return user


def _title(record: Record) -> str:
    title = record.get("title")
    if not isinstance(title, str):
        raise UnrecognizedRecordShape("title")
    return title


def _comment(record: Record) -> str:
    return str(record.get("comment") or "")


def _size_delta(record: Record) -> int:
    old = record.get("oldlen", 0)
    new = record.get("newlen", 0)
    if isinstance(old, bool) or isinstance(new, bool):
        raise UnrecognizedRecordShape("sizes")
    return int(new) - int(old)


def _details(record: Record, name: str) -> Mapping[str, Any]:
    details = record.get(name)
    if isinstance(details, Mapping):
        return details
    params = record.get("params")
    if isinstance(params, Mapping):
        return params
    return {}


def _flags(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    return str(value or "")


def _groups(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)
