from __future__ import annotations

from typing import Any

import pytest

from blogsmith.services.http_fetch import (
    HttpFetchError,
    HttpResponse,
    RateLimitedError,
    TransientNetworkError,
)
from blogsmith.services.reference_search import (
    DEFAULT_EXCLUDED_DOMAINS,
    ReferenceSearchClient,
    SearchResult,
    is_excluded_url,
)

_RESULTS_HTML = """
<html><body>
  <div class="g"><a href="https://blog.example.com/chatbots"><h3>Chatbots explained</h3></a></div>
  <div class="g"><a href="https://www.youtube.com/watch?v=1"><h3>Video about chatbots</h3></a></div>
  <div class="g"><a href="/url?q=https://news.example.org/ai-support&sa=U"><h3>AI in support</h3></a></div>
  <div class="g"><a href="https://blog.example.com/chatbots"><h3>Duplicate entry</h3></a></div>
  <div class="g"><a href="https://en.wikipedia.org/wiki/Chatbot"><h3>Chatbot - Wikipedia</h3></a></div>
  <div class="g"><span>No heading here</span><a href="https://nohead.example.com">x</a></div>
  <div class="g"><a href="https://third.example.net/guide"><h3>A practical guide</h3></a></div>
</body></html>
"""


class _ScriptedHttpClient:
    def __init__(self, outcomes: list[str | Exception]) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    def get_text(self, url: str, **kwargs: Any) -> HttpResponse:
        self.calls.append({"url": url, **kwargs})
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return HttpResponse(url=url, status=200, body=outcome)


def _client(
    outcomes: list[str | Exception],
    sleeps: list[float],
    *,
    excluded: tuple[str, ...] = DEFAULT_EXCLUDED_DOMAINS,
) -> tuple[ReferenceSearchClient, _ScriptedHttpClient]:
    http_client = _ScriptedHttpClient(outcomes)
    client = ReferenceSearchClient(
        http_client=http_client,  # type: ignore[arg-type]
        excluded_domains=excluded,
        retry_base_delay_seconds=2.0,
        sleep=sleeps.append,
    )
    return client, http_client


def test_search_parses_filters_and_dedupes_results() -> None:
    client, http_client = _client([_RESULTS_HTML], [])

    results = client.search("chatbots for support", 2)

    assert results == [
        SearchResult(title="Chatbots explained", url="https://blog.example.com/chatbots"),
        SearchResult(title="AI in support", url="https://news.example.org/ai-support"),
    ]
    params = http_client.calls[0]["params"]
    assert params["q"] == "chatbots for support blog OR article"
    assert params["num"] == 7
    assert params["hl"] == "en"


def test_search_returns_requested_count_at_most() -> None:
    client, _ = _client([_RESULTS_HTML], [])

    results = client.search("chatbots", 10)

    assert [result.url for result in results] == [
        "https://blog.example.com/chatbots",
        "https://news.example.org/ai-support",
        "https://third.example.net/guide",
    ]


def test_search_on_rate_limit_returns_empty_list() -> None:
    url = "https://www.google.com/search"
    client, _ = _client([RateLimitedError("http_429", url=url, status_code=429)], [])

    assert client.search("anything", 2) == []


def test_search_with_retry_backs_off_linearly_then_succeeds() -> None:
    url = "https://www.google.com/search"
    sleeps: list[float] = []
    client, http_client = _client(
        [
            TransientNetworkError("network_error:URLError", url=url),
            TransientNetworkError("http_502", url=url, status_code=502),
            _RESULTS_HTML,
        ],
        sleeps,
    )

    results = client.search_with_retry("chatbots", 1, max_retries=3)

    assert [result.url for result in results] == ["https://blog.example.com/chatbots"]
    assert len(http_client.calls) == 3
    assert sleeps == [2.0, 4.0]
    assert sum(sleeps) >= 6.0


def test_search_with_retry_exhausted_returns_empty_list() -> None:
    url = "https://www.google.com/search"
    sleeps: list[float] = []
    client, http_client = _client(
        [HttpFetchError("boom", url=url) for _ in range(3)],
        sleeps,
    )

    assert client.search_with_retry("chatbots", 2, max_retries=3) == []
    assert len(http_client.calls) == 3
    assert sleeps == [2.0, 4.0]


def test_search_with_retry_survives_unexpected_parser_errors() -> None:
    sleeps: list[float] = []
    client, _ = _client([ValueError("bad markup"), _RESULTS_HTML], sleeps)

    results = client.search_with_retry("chatbots", 1, max_retries=2)

    assert len(results) == 1
    assert sleeps == [2.0]


def test_source_host_can_be_excluded() -> None:
    client, _ = _client([_RESULTS_HTML], [], excluded=DEFAULT_EXCLUDED_DOMAINS + ("example.com",))

    results = client.search("chatbots", 5)

    assert [result.url for result in results] == [
        "https://news.example.org/ai-support",
        "https://third.example.net/guide",
    ]


@pytest.mark.parametrize(
    ("url", "excluded"),
    [
        ("https://www.youtube.com/watch?v=abc", True),
        ("https://m.facebook.com/page", True),
        ("https://en.wikipedia.org/wiki/AI", True),
        ("https://notyoutube.com/article", False),
        ("https://example.com/post", False),
        ("ftp://example.com/file", True),
        ("/relative/path", True),
    ],
)
def test_is_excluded_url(url: str, excluded: bool) -> None:
    assert is_excluded_url(url, DEFAULT_EXCLUDED_DOMAINS) is excluded
