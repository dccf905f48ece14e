from __future__ import annotations

import threading
from typing import Any, Dict, List

import httpx
import pytest

from pressphrase.config import Settings
from pressphrase.content_fetcher import (
    ContentFetcher,
    count_words,
    extract_main_text,
    normalize_whitespace,
    prepare_text,
    preview,
)
from pressphrase.errors import FetchError, FetchErrorKind


def _html_handler(body: str, status_code: int = 200, seen: List[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, text=body, headers={"content-type": "text/html"})

    return handler


def test_fetch_extracts_article_body(article_html: str, client_factory) -> None:
    settings = Settings(fetch_user_agent="PressPhraseTest/1.0")
    seen: List[httpx.Request] = []
    fetcher = ContentFetcher(settings, client=client_factory(_html_handler(article_html, seen=seen)))

    content = fetcher.fetch("https://news.example.com/acme")

    assert content.is_valid
    assert "Acme Corp announced a $5 million Series A" in content.text
    assert "should never appear" not in content.text
    assert "Careers" not in content.text
    assert content.word_count == count_words(content.text)
    assert content.fetch_time_ms >= 0
    assert seen[0].headers["User-Agent"] == "PressPhraseTest/1.0"
    assert "text/html" in seen[0].headers["Accept"]


def test_fetch_truncates_long_content(article_html: str, client_factory) -> None:
    settings = Settings(max_content_chars=150)
    fetcher = ContentFetcher(settings, client=client_factory(_html_handler(article_html)))

    content = fetcher.fetch("https://news.example.com/acme")

    assert len(content.text) <= 150


def test_fetch_maps_non_success_status_to_http_error(client_factory) -> None:
    fetcher = ContentFetcher(Settings(), client=client_factory(_html_handler("missing", status_code=404)))

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://news.example.com/missing")

    assert excinfo.value.kind is FetchErrorKind.HTTP_ERROR
    assert excinfo.value.status_code == 404
    assert "404" in excinfo.value.message


@pytest.mark.parametrize(
    ("exception", "kind"),
    [
        (httpx.ReadTimeout, FetchErrorKind.TIMEOUT),
        (httpx.ConnectError, FetchErrorKind.UNREACHABLE),
    ],
)
def test_fetch_maps_transport_errors(
    exception: type[httpx.HTTPError], kind: FetchErrorKind, client_factory
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exception("boom", request=request)

    fetcher = ContentFetcher(Settings(), client=client_factory(handler))

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://news.example.com/slow")

    assert excinfo.value.kind is kind


@pytest.mark.parametrize("url", ["", "not a url", "ftp://example.com/file", "https://"])
def test_fetch_rejects_invalid_urls_without_network(url: str, client_factory) -> None:
    calls: Dict[str, Any] = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(200, text="")

    fetcher = ContentFetcher(Settings(), client=client_factory(handler))

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch(url)

    assert excinfo.value.kind is FetchErrorKind.INVALID_URL
    assert calls["count"] == 0


def test_fetch_flags_thin_pages_as_too_short(client_factory) -> None:
    html = "<html><body><article><p>Only a few words here.</p></article></body></html>"
    fetcher = ContentFetcher(Settings(), client=client_factory(_html_handler(html)))

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://news.example.com/thin")

    assert excinfo.value.kind is FetchErrorKind.TOO_SHORT


def test_extract_main_text_prefers_longest_candidate() -> None:
    long_text = "Longer body text that carries the actual announcement details. " * 4
    html = (
        "<html><body>"
        "<article>Short teaser paragraph.</article>"
        f"<div class='post-content'>{long_text}</div>"
        "</body></html>"
    )

    assert extract_main_text(html).startswith("Longer body text")


def test_extract_main_text_falls_back_to_body() -> None:
    body_text = "Plain body paragraph without any semantic container at all. " * 3
    html = f"<html><body><div>{body_text}</div><footer>footer links</footer></body></html>"

    text = extract_main_text(html)

    assert text.startswith("Plain body paragraph")
    assert "footer links" not in text


def test_normalize_whitespace_collapses_runs() -> None:
    assert normalize_whitespace("  a \t b \n\n  c  \r\n d ") == "a b\nc\nd"


def test_preview_appends_ellipsis_only_when_truncated() -> None:
    assert preview("short text", max_len=20) == "short text"
    assert preview("x" * 25, max_len=20) == "x" * 20 + "..."
    assert preview("y" * 1000) == "y" * 1000


def test_prepare_text_reports_validity() -> None:
    short = prepare_text("too short", min_chars=100, min_words=20, max_chars=50_000)
    long = prepare_text("word " * 30, min_chars=100, min_words=20, max_chars=50_000)

    assert not short.is_valid
    assert long.is_valid
    assert long.word_count == 30


def test_lazy_client_is_created_once_across_threads() -> None:
    fetcher = ContentFetcher(Settings())
    barrier = threading.Barrier(8)
    clients: List[httpx.Client] = []

    def grab() -> None:
        barrier.wait()
        clients.append(fetcher._http())

    threads = [threading.Thread(target=grab) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    try:
        assert len({id(client) for client in clients}) == 1
    finally:
        fetcher.close()
    assert clients[0].is_closed


def test_close_leaves_injected_client_open(client_factory) -> None:
    client = client_factory(_html_handler("unused"))
    fetcher = ContentFetcher(Settings(), client=client)

    fetcher.close()

    assert not client.is_closed
