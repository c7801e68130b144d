"""MediaWiki API client and webhook poster."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import aiohttp

from .errors import MalformedResponse, TransientNetworkError
from .models import DeliveryResult

_DEFAULT_USER_AGENT = "wiki-monitor/1.0 (activity relay)"
_REQUEST_TIMEOUT = 15.0


logger = logging.getLogger(__name__)


class MediaWikiClient:
    """Thin asynchronous wrapper around ``api.php`` and chat webhooks."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        user_agent: str | None = None,
        timeout: float = _REQUEST_TIMEOUT,
    ):
        self._session = session
        self._user_agent = user_agent or _DEFAULT_USER_AGENT
        self._timeout = timeout

    async def api_query(
        self, site: str, api_url: str, params: Mapping[str, Any]
    ) -> Mapping[str, Any]:
        """Run ``action=query`` and return the ``query`` object of the reply."""

        request_params = {"action": "query", "format": "json"}
        request_params.update({key: _stringify(value) for key, value in params.items()})
        headers = {
            "User-Agent": self._user_agent,
            "Accept": "application/json",
        }
        try:
            timeout_cfg = aiohttp.ClientTimeout(total=self._timeout)
            async with self._session.get(
                api_url,
                params=request_params,
                headers=headers,
                timeout=timeout_cfg,
            ) as resp:
                if resp.status >= 400:
                    await resp.read()
                    raise TransientNetworkError(
                        site, f"API ответил статусом {resp.status}", status=resp.status
                    )
                try:
                    data = await resp.json(content_type=None)
                except ValueError as exc:
                    raise MalformedResponse(site, "query", "ответ не является JSON") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransientNetworkError(site, f"запрос к API не удался: {exc}") from exc

        if not isinstance(data, Mapping):
            raise MalformedResponse(site, "query", "ответ не является объектом")
        error = data.get("error")
        if isinstance(error, Mapping):
            raise MalformedResponse(
                site,
                "query",
                f"ошибка API {error.get('code')}: {error.get('info')}",
            )
        query = data.get("query")
        if not isinstance(query, Mapping):
            raise MalformedResponse(site, "query")
        return query

    async def post_webhook(
        self,
        url: str,
        body: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> DeliveryResult:
        request_headers = {"User-Agent": self._user_agent}
        if headers:
            request_headers.update(headers)
        try:
            timeout_cfg = aiohttp.ClientTimeout(total=self._timeout)
            async with self._session.post(
                url,
                json=dict(body),
                headers=request_headers,
                timeout=timeout_cfg,
            ) as resp:
                status = resp.status
                if status == 429:
                    payload = await _read_json(resp)
                    return DeliveryResult(
                        ok=False,
                        rate_limited=True,
                        retry_after=_retry_after(resp.headers, payload),
                        status=status,
                    )
                if status >= 400:
                    text = await resp.text(errors="replace")
                    return DeliveryResult(ok=False, status=status, error=text[:300])
                await resp.read()
                return DeliveryResult(ok=True, status=status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Не удалось отправить сообщение в webhook: %s", exc)
            return DeliveryResult(ok=False, error=str(exc) or type(exc).__name__)


async def _read_json(resp: aiohttp.ClientResponse) -> Any:
    try:
        return await resp.json(content_type=None)
    except (ValueError, aiohttp.ContentTypeError):
        return None


def _retry_after(headers: Mapping[str, str], payload: Any) -> float:
    """Extract the server-specified delay in seconds from a 429 reply."""

    candidates: list[Any] = []
    if isinstance(payload, Mapping):
        candidates.append(payload.get("retry_after"))
        parameters = payload.get("parameters")
        if isinstance(parameters, Mapping):
            candidates.append(parameters.get("retry_after"))
    candidates.append(headers.get("Retry-After"))
    for candidate in candidates:
        if candidate is None or isinstance(candidate, bool):
            continue
        try:
            value = float(candidate)
        except (TypeError, ValueError):
            continue
        if value >= 0:
            return value
    return 1.0


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (list, tuple, set, frozenset)):
        return "|".join(str(item) for item in value)
    return str(value)
