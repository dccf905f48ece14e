"""Rule-based keyword extraction and the phrase hygiene shared with the model path.

The fallback extractor never calls out of process and never raises: for every
category of the active schema it gathers candidates from three independent
sources, then cleans, filters and deduplicates them.

1. Pattern hits from the category's matchers (literal substrings).
2. Short windows cut around the cue word of sentences and clauses whose
   length sits in a configured band.
3. The most frequent word n-grams (n = 2..4) of the whole text, adopted by
   categories that opt into them.

The confidence score is a volume heuristic (``total * 1.2`` clamped to
[50, 90]); it says how much was found, not how good it is.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Pattern, Sequence

from .categories import CategorySchema, CategorySpec
from .config import Settings

logger = logging.getLogger(__name__)

_STOPWORDS = {
    "a",
    "an",
    "and",
    "are",
    "as",
    "at",
    "be",
    "but",
    "by",
    "for",
    "from",
    "has",
    "have",
    "in",
    "into",
    "is",
    "it",
    "its",
    "of",
    "on",
    "or",
    "our",
    "that",
    "the",
    "their",
    "this",
    "to",
    "was",
    "we",
    "were",
    "which",
    "will",
    "with",
}

_WHITESPACE_RE = re.compile(r"\s+")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?\n]+")
_LEADING_EDGE_RE = re.compile(r"^[^\w$€£]+")
_TRAILING_EDGE_RE = re.compile(r"[^\w%]+$")
_SENTENCE_END_RE = re.compile(r"[.!?][\"')\]]*$")
_CLAUSE_BREAK_RE = re.compile(r"[;:]|,(?!\d)")
_TOKEN_EDGE_CHARS = "\"'“”‘’()[]{}.,;:!?"

CONFIDENCE_FLOOR = 50
CONFIDENCE_CEILING = 90
_CONFIDENCE_PER_KEYWORD = 1.2


@dataclass(slots=True)
class CategorizedKeywords:
    """Phrases grouped by category key plus a 0-100 confidence score."""

    categories: dict[str, list[str]]
    confidence_score: int

    @classmethod
    def from_mapping(
        cls,
        schema: CategorySchema,
        mapping: Mapping[str, Sequence[str]],
        confidence_score: int,
    ) -> "CategorizedKeywords":
        """Build a result holding every schema category, in schema order."""

        categories = {key: list(mapping.get(key, ())) for key in schema.keys()}
        return cls(categories=categories, confidence_score=int(confidence_score))

    def get(self, key: str) -> list[str]:
        return list(self.categories.get(key, []))

    def counts(self) -> dict[str, int]:
        return {key: len(phrases) for key, phrases in self.categories.items()}

    def total_keywords(self) -> int:
        return sum(len(phrases) for phrases in self.categories.values())

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {key: list(phrases) for key, phrases in self.categories.items()}
        payload["confidenceScore"] = self.confidence_score
        return payload


def normalize_phrase(phrase: str) -> str:
    """Collapse internal whitespace and trim punctuation and stop words from both ends.

    Currency signs survive at the start and percent signs at the end so that
    amounts such as "$5 million" or "12% growth" keep their meaning. Stop words
    are trimmed only when written in lower case, which keeps "Series A".
    """

    cleaned = _WHITESPACE_RE.sub(" ", str(phrase)).strip()
    while True:
        before = cleaned
        cleaned = _LEADING_EDGE_RE.sub("", cleaned)
        cleaned = _TRAILING_EDGE_RE.sub("", cleaned)
        tokens = cleaned.split(" ")
        while tokens and _is_edge_stopword(tokens[0]):
            tokens.pop(0)
        while tokens and _is_edge_stopword(tokens[-1]):
            tokens.pop()
        cleaned = " ".join(tokens).strip()
        if cleaned == before:
            return cleaned


def _is_edge_stopword(token: str) -> bool:
    bare = token.strip(_TOKEN_EDGE_CHARS)
    return bare.islower() and bare in _STOPWORDS


def count_phrase_words(phrase: str) -> int:
    return len(phrase.split())


class PhraseFilter:
    """Cleans phrases and enforces the word band, brand blacklist and per-category cap."""

    def __init__(
        self,
        *,
        min_words: int = 2,
        max_words: int = 6,
        blacklist: Iterable[str] = (),
        limit: int = 15,
    ) -> None:
        self.min_words = max(1, min_words)
        self.max_words = max(self.min_words, max_words)
        self.limit = max(0, limit)
        self._blacklist = tuple(term.lower() for term in blacklist if term and term.strip())

    @classmethod
    def from_settings(cls, settings: Settings) -> "PhraseFilter":
        min_words, max_words = settings.word_band
        return cls(
            min_words=min_words,
            max_words=max_words,
            blacklist=settings.brand_blacklist,
            limit=settings.keyword_max_per_category,
        )

    def mentions_brand(self, phrase: str) -> bool:
        lowered = phrase.lower()
        return any(term in lowered for term in self._blacklist)

    def within_band(self, phrase: str) -> bool:
        return self.min_words <= count_phrase_words(phrase) <= self.max_words

    def clean(self, phrases: Iterable[str], *, brandless: bool = True) -> List[str]:
        """Normalize phrases, dropping those outside the band or naming a blacklisted brand."""

        accepted: list[str] = []
        for raw in phrases:
            if not raw:
                continue
            phrase = normalize_phrase(raw)
            if not phrase or not self.within_band(phrase):
                continue
            if brandless and self.mentions_brand(phrase):
                continue
            accepted.append(phrase)
        return accepted

    def apply(self, phrases: Iterable[str], *, brandless: bool = True) -> List[str]:
        return dedupe_phrases(self.clean(phrases, brandless=brandless), limit=self.limit)


def dedupe_phrases(phrases: Iterable[str], *, limit: int | None = None) -> List[str]:
    """Case-insensitive dedupe preserving first-seen order and casing."""

    seen: set[str] = set()
    unique: list[str] = []
    for phrase in phrases:
        if limit is not None and len(unique) >= limit:
            break
        key = phrase.lower()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(phrase)
    return unique


def split_segments(text: str, *, min_chars: int = 30, max_chars: int = 300) -> List[str]:
    """Return sentences and comma clauses whose stripped length is within the band."""

    segments: list[str] = []
    seen: set[str] = set()
    for sentence in _SENTENCE_SPLIT_RE.split(text):
        pieces = [sentence]
        if "," in sentence:
            pieces.extend(sentence.split(","))
        for piece in pieces:
            segment = _WHITESPACE_RE.sub(" ", piece).strip()
            if not (min_chars <= len(segment) <= max_chars):
                continue
            if segment in seen:
                continue
            seen.add(segment)
            segments.append(segment)
    return segments


def cue_window(segment: str, cue: Pattern[str], *, max_words: int, lead: int = 2) -> str:
    """Cut a short phrase around the first cue match of ``segment``.

    The window stays inside the clause holding the cue, starts up to ``lead``
    words before it and spans at most ``max_words`` words. Returns an empty
    string when the cue does not occur.
    """

    match = cue.search(segment)
    if match is None or max_words <= 0:
        return ""
    start, end = 0, len(segment)
    for brk in _CLAUSE_BREAK_RE.finditer(segment):
        if brk.end() <= match.start():
            start = brk.end()
        elif brk.start() >= match.end():
            end = brk.start()
            break
    clause = segment[start:end]
    prefix = clause[: match.start() - start]
    index = len(prefix.split())
    if prefix and not prefix[-1].isspace():
        # cue begins inside a word
        index -= 1
    words = clause.split()
    first = max(0, max(index, 0) - lead)
    return normalize_phrase(" ".join(words[first : first + max_words]))


def extract_ngrams(
    text: str,
    *,
    sizes: Sequence[int] = (2, 3, 4),
    top_k: int = 50,
    min_chars: int = 10,
    max_chars: int = 100,
) -> List[str]:
    """Return the ``top_k`` most frequent n-grams, ties broken by first occurrence.

    N-grams never span sentence punctuation and never start or end on a stop
    word. Counting is case-insensitive; the first surface form is returned.
    """

    if top_k <= 0:
        return []
    tokens = text.split()
    counter: Counter[str] = Counter()
    first_seen: dict[str, int] = {}
    surface: dict[str, str] = {}
    position = 0
    for index in range(len(tokens)):
        for size in sizes:
            window = tokens[index : index + size]
            if len(window) < size:
                continue
            if any(_SENTENCE_END_RE.search(token) for token in window[:-1]):
                continue
            first = window[0].strip(_TOKEN_EDGE_CHARS).lower()
            last = window[-1].strip(_TOKEN_EDGE_CHARS).lower()
            if not first or not last or first in _STOPWORDS or last in _STOPWORDS:
                continue
            phrase = normalize_phrase(" ".join(window))
            if not (min_chars <= len(phrase) <= max_chars):
                continue
            key = phrase.lower()
            counter[key] += 1
            if key not in first_seen:
                first_seen[key] = position
                surface[key] = phrase
                position += 1
    ranked = sorted(counter.items(), key=lambda item: (-item[1], first_seen[item[0]]))
    return [surface[key] for key, _ in ranked[:top_k]]


def confidence_for(total_keywords: int) -> int:
    """Volume heuristic: 1.2 points per phrase, clamped to [50, 90]."""

    score = round(max(0, total_keywords) * _CONFIDENCE_PER_KEYWORD)
    return int(min(CONFIDENCE_CEILING, max(CONFIDENCE_FLOOR, score)))


class FallbackKeywordExtractor:
    """Deterministic, pattern and frequency based categorizer."""

    def __init__(self, settings: Settings, schema: CategorySchema | None = None) -> None:
        self._settings = settings
        self._schema = schema or settings.resolve_category_schema()
        self._filter = PhraseFilter.from_settings(settings)

    @property
    def schema(self) -> CategorySchema:
        return self._schema

    def extract(self, text: str) -> CategorizedKeywords:
        source = text or ""
        if not source.strip():
            logger.debug("keyword.fallback.empty_input schema=%s", self._schema.name)
            return CategorizedKeywords.from_mapping(self._schema, {}, CONFIDENCE_FLOOR)

        settings = self._settings
        segments = split_segments(
            source,
            min_chars=settings.keyword_segment_min_chars,
            max_chars=settings.keyword_segment_max_chars,
        )
        ngrams = extract_ngrams(source, top_k=settings.keyword_ngram_top_k)

        results: dict[str, list[str]] = {}
        for category in self._schema.categories:
            try:
                candidates = self._category_candidates(category, source, segments, ngrams)
            except Exception as exc:  # pragma: no cover
                logger.warning(
                    "keyword.fallback.category_failed category=%s error=%s",
                    category.key,
                    exc,
                )
                candidates = []
            results[category.key] = self._filter.apply(candidates)

        total = sum(len(phrases) for phrases in results.values())
        confidence = confidence_for(total)
        logger.info(
            "keyword.fallback.completed schema=%s segments=%s ngrams=%s keywords=%s confidence=%s",
            self._schema.name,
            len(segments),
            len(ngrams),
            total,
            confidence,
        )
        return CategorizedKeywords.from_mapping(self._schema, results, confidence)

    def _category_candidates(
        self,
        category: CategorySpec,
        text: str,
        segments: Sequence[str],
        ngrams: Sequence[str],
    ) -> list[str]:
        settings = self._settings
        pattern_hits = self._filter.clean(category.match(text))
        candidates = dedupe_phrases(pattern_hits, limit=settings.keyword_pattern_limit)

        if category.cue is not None and settings.keyword_segment_limit > 0:
            windows = (
                cue_window(segment, category.cue, max_words=self._filter.max_words)
                for segment in segments
                if category.sniff(segment)
            )
            sniffed = dedupe_phrases(self._filter.clean(windows), limit=settings.keyword_segment_limit)
            candidates.extend(sniffed)

        if category.use_ngrams and settings.keyword_ngram_limit > 0:
            adopted = self._filter.clean(phrase for phrase in ngrams if category.adopts_ngram(phrase))
            candidates.extend(adopted[: settings.keyword_ngram_limit])

        return candidates


__all__ = [
    "CONFIDENCE_CEILING",
    "CONFIDENCE_FLOOR",
    "CategorizedKeywords",
    "FallbackKeywordExtractor",
    "PhraseFilter",
    "confidence_for",
    "count_phrase_words",
    "cue_window",
    "dedupe_phrases",
    "extract_ngrams",
    "normalize_phrase",
    "split_segments",
]
