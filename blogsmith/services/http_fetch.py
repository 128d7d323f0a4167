from __future__ import annotations

import http.client
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, cast
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import HTTPRedirectHandler, OpenerDirector, Request, build_opener

LOGGER = logging.getLogger("blogsmith.http")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
# Characters left as-is when percent-encoding a request target.
_URL_SAFE_CHARS = ":/?#[]@!$&'()*+,;=%"
RATE_LIMIT_STATUSES: frozenset[int] = frozenset({429, 503})
TRANSIENT_STATUSES: frozenset[int] = frozenset({408, 425, 500, 502, 504})


class HttpFetchError(RuntimeError):
    def __init__(self, message: str, *, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TransientNetworkError(HttpFetchError):
    pass


class RateLimitedError(HttpFetchError):
    pass


class HttpStatusError(HttpFetchError):
    pass


@dataclass(frozen=True)
class HttpResponse:
    url: str
    status: int
    body: str


class _BoundedRedirectHandler(HTTPRedirectHandler):
    def __init__(self, max_redirects: int) -> None:
        super().__init__()
        self.max_redirections = max_redirects


class HttpClient:
    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = 15.0,
        max_redirects: int = 5,
    ) -> None:
        self._user_agent = user_agent.strip() or DEFAULT_USER_AGENT
        self._timeout_seconds = max(1.0, timeout_seconds)
        self._max_redirects = max(0, max_redirects)

    @property
    def user_agent(self) -> str:
        return self._user_agent

    def get_text(
        self,
        url: str,
        *,
        params: Mapping[str, str | int] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> HttpResponse:
        target = url
        if params:
            separator = "&" if "?" in url else "?"
            target = f"{url}{separator}{urlencode(dict(params))}"
        request_headers = {
            "Accept": HTML_ACCEPT,
            "Accept-Language": "en-US,en;q=0.5",
            "User-Agent": self._user_agent,
        }
        if headers:
            request_headers.update(headers)
        request = Request(quote_url(target), headers=request_headers, method="GET")
        return self._send(request, timeout_seconds=timeout_seconds)

    def send_json(
        self,
        method: str,
        url: str,
        *,
        payload: Mapping[str, Any] | None = None,
        params: Mapping[str, str | int] | None = None,
        timeout_seconds: float | None = None,
    ) -> dict[str, Any]:
        target = url
        if params:
            target = f"{url}?{urlencode(dict(params))}"
        data = None
        request_headers = {
            "Accept": "application/json",
            "User-Agent": self._user_agent,
        }
        if payload is not None:
            data = json.dumps(dict(payload), ensure_ascii=True).encode("utf-8")
            request_headers["Content-Type"] = "application/json"
        request = Request(
            quote_url(target),
            data=data,
            headers=request_headers,
            method=method.upper(),
        )
        response = self._send(request, timeout_seconds=timeout_seconds)
        try:
            parsed = cast(object, json.loads(response.body))
        except json.JSONDecodeError as exc:
            raise HttpStatusError(
                f"invalid_json_response:{exc.msg}",
                url=target,
                status_code=response.status,
            ) from exc
        if not isinstance(parsed, dict):
            raise HttpStatusError(
                "unexpected_json_shape",
                url=target,
                status_code=response.status,
            )
        return cast(dict[str, Any], parsed)

    def _opener(self) -> OpenerDirector:
        return build_opener(_BoundedRedirectHandler(self._max_redirects))

    def _send(self, request: Request, *, timeout_seconds: float | None) -> HttpResponse:
        url = request.full_url
        timeout = self._timeout_seconds if timeout_seconds is None else max(1.0, timeout_seconds)
        try:
            with self._opener().open(request, timeout=timeout) as response:
                body = _decode_body(response.read(), response.headers.get_content_charset())
                return HttpResponse(
                    url=response.geturl() or url,
                    status=int(getattr(response, "status", 200) or 200),
                    body=body,
                )
        except HTTPError as exc:
            raise _classify_http_error(url, int(exc.code)) from exc
        except (URLError, TimeoutError, OSError, http.client.HTTPException, ValueError) as exc:
            LOGGER.debug("http request failed url=%s error=%s", url, type(exc).__name__)
            raise TransientNetworkError(
                f"network_error:{type(exc).__name__}",
                url=url,
            ) from exc


def _classify_http_error(url: str, status_code: int) -> HttpFetchError:
    if status_code in RATE_LIMIT_STATUSES:
        return RateLimitedError(f"http_{status_code}", url=url, status_code=status_code)
    if status_code in TRANSIENT_STATUSES:
        return TransientNetworkError(f"http_{status_code}", url=url, status_code=status_code)
    return HttpStatusError(f"http_{status_code}", url=url, status_code=status_code)


def quote_url(url: str) -> str:
    """Percent-encode characters `http.client` cannot put on the request line."""
    return quote(url, safe=_URL_SAFE_CHARS)


def _decode_body(raw: bytes, charset: str | None) -> str:
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        LOGGER.debug("unknown response charset=%s; decoding as utf-8", charset)
        return raw.decode("utf-8", errors="replace")
