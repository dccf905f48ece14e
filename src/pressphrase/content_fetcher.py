"""Download a web page and reduce it to the readable body text."""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from .config import Settings
from .errors import FetchError, FetchErrorKind
from .observability import MetricsRecorder

logger = logging.getLogger(__name__)

_ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
_NOISE_TAGS = ("script", "style", "nav", "header", "footer", "aside", "noscript")
_CONTENT_SELECTORS = (
    "article",
    '[role="main"]',
    ".content",
    ".article-content",
    ".post-content",
    ".entry-content",
    "main",
    ".main-content",
)
_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
_NEWLINE_RUN_RE = re.compile(r"\s*\n\s*")
_PREVIEW_SUFFIX = "..."


@dataclass(frozen=True, slots=True)
class NormalizedContent:
    text: str
    word_count: int
    fetch_time_ms: int
    is_valid: bool


def normalize_whitespace(text: str) -> str:
    """Collapse blank runs to one space and newline runs to one newline."""

    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _HORIZONTAL_WS_RE.sub(" ", cleaned)
    cleaned = _NEWLINE_RUN_RE.sub("\n", cleaned)
    return cleaned.strip()


def count_words(text: str) -> int:
    return len(text.split())


def preview(text: str, max_len: int = 1000) -> str:
    """Return ``text`` unchanged when short enough, otherwise its head plus an ellipsis."""

    if len(text) <= max_len:
        return text
    return text[:max_len] + _PREVIEW_SUFFIX


def validate_url(url: str) -> str:
    """Return the trimmed URL or raise ``FetchError(INVALID_URL)``."""

    candidate = (url or "").strip()
    parsed = urlparse(candidate)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise FetchError(FetchErrorKind.INVALID_URL, "Invalid URL format")
    return candidate


def prepare_text(
    text: str,
    *,
    min_chars: int,
    min_words: int,
    max_chars: int,
    fetch_time_ms: int = 0,
) -> NormalizedContent:
    """Normalize raw text, flag whether it is long enough, and truncate it."""

    normalized = normalize_whitespace(text or "")
    is_valid = len(normalized) >= min_chars and count_words(normalized) >= min_words
    if len(normalized) > max_chars:
        normalized = normalized[:max_chars].rstrip()
    return NormalizedContent(
        text=normalized,
        word_count=count_words(normalized),
        fetch_time_ms=fetch_time_ms,
        is_valid=is_valid,
    )


def extract_main_text(html: str, *, min_chars: int = 100) -> str:
    """Return the longest main-content candidate, falling back to the page body."""

    soup = BeautifulSoup(html, "html.parser")
    for element in soup(list(_NOISE_TAGS)):
        element.decompose()

    best = ""
    for selector in _CONTENT_SELECTORS:
        for element in soup.select(selector):
            text = normalize_whitespace(element.get_text(separator="\n"))
            if len(text) > len(best):
                best = text
    if len(best) >= min_chars:
        return best

    root = soup.body or soup
    fallback = normalize_whitespace(root.get_text(separator="\n"))
    return fallback if len(fallback) > len(best) else best


class ContentFetcher:
    """Fetch a URL and return validated, normalized article text."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: httpx.Client | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._owns_client = client is None
        self._client_lock = threading.Lock()
        self._metrics = metrics or MetricsRecorder(enabled=False)
        self._headers = {
            "User-Agent": settings.fetch_user_agent,
            "Accept": _ACCEPT_HEADER,
        }

    def fetch(self, url: str) -> NormalizedContent:
        target = validate_url(url)
        logger.info("fetch.start url=%s", target)
        start = time.perf_counter()
        try:
            with self._metrics.track_timing("fetch.duration"):
                content = self._download(target, start)
        except FetchError as exc:
            logger.warning("fetch.failed url=%s kind=%s error=%s", target, exc.kind.value, exc)
            self._metrics.increment("fetch.failures", kind=exc.kind.value)
            raise
        logger.info(
            "fetch.completed url=%s words=%s chars=%s elapsed_ms=%s",
            target,
            content.word_count,
            len(content.text),
            content.fetch_time_ms,
        )
        return content

    def close(self) -> None:
        with self._client_lock:
            if self._owns_client and self._client is not None:
                self._client.close()
                self._client = None

    def _download(self, url: str, start: float) -> NormalizedContent:
        timeout = self._settings.fetch_timeout
        try:
            response = self._http().get(
                url,
                headers=self._headers,
                timeout=timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException as exc:
            raise FetchError(
                FetchErrorKind.TIMEOUT,
                f"Request timeout: URL did not respond within {timeout:g} seconds",
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(FetchErrorKind.UNREACHABLE, f"Failed to fetch URL: {exc}") from exc

        if not response.is_success:
            reason = response.reason_phrase or "error"
            raise FetchError(
                FetchErrorKind.HTTP_ERROR,
                f"Failed to fetch URL: HTTP {response.status_code} {reason}",
                status_code=response.status_code,
            )

        settings = self._settings
        text = extract_main_text(response.text, min_chars=settings.min_content_chars)
        elapsed_ms = int(round((time.perf_counter() - start) * 1000))
        content = prepare_text(
            text,
            min_chars=settings.min_content_chars,
            min_words=settings.min_content_words,
            max_chars=settings.max_content_chars,
            fetch_time_ms=elapsed_ms,
        )
        if not content.is_valid:
            raise FetchError(
                FetchErrorKind.TOO_SHORT,
                "Insufficient content extracted from URL; the page may be dynamic or protected",
            )
        return content

    def _http(self) -> httpx.Client:
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client()
            return self._client


__all__ = [
    "ContentFetcher",
    "NormalizedContent",
    "count_words",
    "extract_main_text",
    "normalize_whitespace",
    "prepare_text",
    "preview",
    "validate_url",
]
