"""Keyword extraction through a hosted (OpenAI) or local (Ollama) language model."""

from __future__ import annotations

import json
import logging
import math
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import httpx
from openai import OpenAI, RateLimitError

from .categories import CategorySchema
from .config import Settings
from .errors import AiError, AiErrorKind
from .keywords import CategorizedKeywords, PhraseFilter

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = "You extract searchable keyword phrases from press releases and return strict JSON."
_HEALTH_PROMPT = "Health check - respond with 'OK'"
_RATE_LIMIT_RE = re.compile(
    r"(?<![a-z])rate(?:[\s_-]?limit|\b)|\bquota\b|\b429\b|too many requests",
    re.IGNORECASE,
)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(slots=True)
class ModelHealth:
    """Outcome of a lightweight model round trip.

    ``status`` is one of ``available``, ``rate_limited`` or ``unavailable``, or
    ``disabled`` when no model backend is configured and nothing was called.
    """

    status: str
    response_time_ms: int
    error: str | None = None

    @property
    def available(self) -> bool:
        return self.status == "available"


def build_response_schema(schema: CategorySchema) -> dict[str, Any]:
    """JSON schema for the model reply: one string array per category plus a confidence."""

    properties: dict[str, Any] = {
        key: {"type": "array", "items": {"type": "string"}} for key in schema.keys()
    }
    properties["confidenceScore"] = {"type": "number"}
    return {
        "type": "object",
        "properties": properties,
        "required": [*schema.keys(), "confidenceScore"],
        "additionalProperties": False,
    }


def build_prompt(schema: CategorySchema, text: str, *, min_words: int, max_words: int) -> str:
    lines = list(schema.instructions)
    lines.append("")
    lines.append("Return a JSON object with these fields:")
    for category in schema.categories:
        entry = f"- {category.key}: {category.instruction}"
        if category.brandless:
            entry += " Exclude company and brand names."
        lines.append(entry)
    lines.append("- confidenceScore: a number from 0 to 100 describing how well the phrases cover the text.")
    lines.append("")
    lines.append(
        f"Every phrase must contain between {min_words} and {max_words} words "
        "and must appear verbatim in the text. Use an empty array when a category has no phrases."
    )
    lines.append("Return only the JSON object.")
    lines.append("")
    lines.append("Text:")
    lines.append(text)
    return "\n".join(lines)


def parse_model_payload(raw_response: str) -> object | None:
    """Decode JSON from a model reply that may carry prose or code fences around it."""

    decoder = json.JSONDecoder()

    def _attempt(candidate: str) -> object | None:
        candidate = candidate.strip()
        if not candidate:
            return None
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            pass

        for token in ("{", "["):
            idx = candidate.find(token)
            while idx != -1:
                try:
                    parsed, _ = decoder.raw_decode(candidate[idx:])
                    return parsed
                except json.JSONDecodeError:
                    idx = candidate.find(token, idx + 1)
        return None

    primary = _attempt(raw_response)
    if primary is not None:
        return primary

    fenced_match = re.search(r"```(?:json)?\s*(.*?)```", raw_response, re.DOTALL)
    if fenced_match:
        return _attempt(fenced_match.group(1))
    return None


def grounding_ratio(phrases: Iterable[str], source: str) -> float:
    """Fraction of phrases found verbatim (case-insensitively) in ``source``; 1.0 when empty."""

    haystack = _WHITESPACE_RE.sub(" ", source).lower()
    candidates = [_WHITESPACE_RE.sub(" ", phrase).strip().lower() for phrase in phrases]
    candidates = [phrase for phrase in candidates if phrase]
    if not candidates:
        return 1.0
    found = sum(1 for phrase in candidates if phrase in haystack)
    return found / len(candidates)


def classify_error(exc: BaseException) -> AiErrorKind:
    if isinstance(exc, RateLimitError):
        return AiErrorKind.RATE_LIMITED
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
        return AiErrorKind.RATE_LIMITED
    if _RATE_LIMIT_RE.search(str(exc)):
        return AiErrorKind.RATE_LIMITED
    return AiErrorKind.UNAVAILABLE


def _coerce_confidence(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _response_text(response: object) -> str:
    texts: list[str] = []
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", "") == "output_text":
            texts.append(getattr(item, "text", "") or "")
            continue
        for part in getattr(item, "content", None) or []:
            if getattr(part, "type", "") == "output_text":
                texts.append(getattr(part, "text", "") or "")
    if texts:
        return "\n".join(texts).strip()
    return str(getattr(response, "output_text", "") or "").strip()


class ModelKeywordExtractor:
    """Ask the configured model for categorized phrases and verify them against the source."""

    def __init__(
        self,
        settings: Settings,
        schema: CategorySchema | None = None,
        *,
        client: Any | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings
        self._schema = schema or settings.resolve_category_schema()
        self._openai_client = client
        self._http_client = http_client
        self._client_lock = threading.Lock()
        self._filter = PhraseFilter.from_settings(settings)
        self._response_schema = build_response_schema(self._schema)

    @property
    def schema(self) -> CategorySchema:
        return self._schema

    @property
    def enabled(self) -> bool:
        return self._settings.model_enabled

    @property
    def backend(self) -> str:
        return self._settings.model_backend.strip().lower()

    def extract(self, text: str) -> CategorizedKeywords:
        """Return model-derived keywords or raise :class:`AiError`."""

        if not self.enabled:
            raise AiError(AiErrorKind.UNAVAILABLE, "Model backend is disabled")
        min_words, max_words = self._settings.word_band
        prompt = build_prompt(self._schema, text, min_words=min_words, max_words=max_words)
        start = time.perf_counter()
        raw = self._invoke(prompt, json_schema=self._response_schema)
        payload = self._decode(raw)
        keywords = self._to_keywords(payload, text)
        logger.info(
            "model.extract.completed backend=%s keywords=%s confidence=%s elapsed_ms=%s",
            self.backend,
            keywords.total_keywords(),
            keywords.confidence_score,
            int(round((time.perf_counter() - start) * 1000)),
        )
        return keywords

    def check_health(self) -> ModelHealth:
        """Probe the backend with a tiny prompt. Never raises."""

        if not self.enabled:
            return ModelHealth(status="disabled", response_time_ms=0, error="Model backend is disabled")
        start = time.perf_counter()
        try:
            reply = self._invoke(_HEALTH_PROMPT, json_schema=None, health=True)
        except AiError as exc:
            status = "rate_limited" if exc.kind is AiErrorKind.RATE_LIMITED else "unavailable"
            return ModelHealth(status=status, response_time_ms=_elapsed_ms(start), error=exc.message)
        status = "available" if "OK" in reply else "unavailable"
        logger.info("model.health backend=%s status=%s", self.backend, status)
        return ModelHealth(status=status, response_time_ms=_elapsed_ms(start))

    def _invoke(self, prompt: str, *, json_schema: dict[str, Any] | None, health: bool = False) -> str:
        try:
            if self._settings.is_openai_backend:
                logger.info("model.backend.openai.invoke health=%s", health)
                return self._invoke_openai(prompt, json_schema=json_schema, health=health)
            logger.info("model.backend.ollama.invoke model=%s health=%s", self._settings.ollama_model, health)
            return self._invoke_ollama(prompt, json_schema=json_schema)
        except AiError:
            raise
        except Exception as exc:
            kind = classify_error(exc)
            logger.warning("model.backend.error backend=%s kind=%s error=%s", self.backend, kind.value, exc)
            raise AiError(kind, f"Model request failed: {exc}") from exc

    def _invoke_openai(self, prompt: str, *, json_schema: dict[str, Any] | None, health: bool) -> str:
        client = self._get_openai_client()
        model = self._settings.openai_health_model if health else self._settings.openai_model
        request: dict[str, Any] = {
            "model": model,
            "input": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "timeout": self._settings.model_timeout,
        }
        if json_schema is not None:
            request["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": f"{self._schema.name}_keywords",
                    "schema": json_schema,
                    "strict": True,
                }
            }
        response = client.responses.create(**request)
        result = _response_text(response)
        logger.info("model.backend.openai.success model=%s chars=%s", model, len(result))
        return result

    def _invoke_ollama(self, prompt: str, *, json_schema: dict[str, Any] | None) -> str:
        model = (self._settings.ollama_model or "").strip()
        if not model:
            raise AiError(AiErrorKind.UNAVAILABLE, "OLLAMA_MODEL must be set when using the Ollama backend")

        url = f"{self._settings.ollama_base_url.rstrip('/')}/api/chat"
        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "options": {"temperature": 0},
        }
        if json_schema is not None:
            payload["format"] = json_schema

        http = self._http_client or httpx
        response = http.post(url, json=payload, timeout=self._settings.model_timeout)
        response.raise_for_status()
        data = response.json()
        message = data.get("message") or {}
        content = message.get("content") or data.get("response", "")
        text = str(content).strip() if content else ""
        logger.info("model.backend.ollama.success model=%s chars=%s", model, len(text))
        return text

    def _get_openai_client(self) -> Any:
        with self._client_lock:
            if self._openai_client is None:
                if not self._settings.openai_api_key:
                    raise AiError(
                        AiErrorKind.UNAVAILABLE,
                        "OPENAI_API_KEY must be set for the OpenAI backend",
                    )
                self._openai_client = OpenAI(api_key=self._settings.openai_api_key)
            return self._openai_client

    @staticmethod
    def _decode(raw: str) -> Mapping[str, Any]:
        if not raw or not raw.strip():
            raise AiError(AiErrorKind.INVALID_RESPONSE, "Empty response from model")
        payload = parse_model_payload(raw)
        if payload is None:
            raise AiError(AiErrorKind.INVALID_RESPONSE, "Model response was not valid JSON")
        if not isinstance(payload, dict):
            raise AiError(AiErrorKind.INVALID_RESPONSE, "Model response must be a JSON object")
        return payload

    def _to_keywords(self, payload: Mapping[str, Any], text: str) -> CategorizedKeywords:
        returned: dict[str, list[str]] = {}
        for category in self._schema.categories:
            value = payload.get(category.key)
            if not isinstance(value, list):
                raise AiError(
                    AiErrorKind.INVALID_RESPONSE,
                    f"Model response field {category.key!r} must be a list",
                )
            returned[category.key] = [item.strip() for item in value if isinstance(item, str) and item.strip()]

        confidence = _coerce_confidence(payload.get("confidenceScore"))
        if confidence is None:
            raise AiError(AiErrorKind.INVALID_RESPONSE, "Model response confidenceScore must be a number")

        all_phrases = [phrase for phrases in returned.values() for phrase in phrases]
        ratio = grounding_ratio(all_phrases, text)
        threshold = self._schema.grounding_threshold
        if ratio < threshold:
            logger.warning(
                "model.extract.low_grounding ratio=%.2f threshold=%.2f phrases=%s",
                ratio,
                threshold,
                len(all_phrases),
            )
            raise AiError(
                AiErrorKind.LOW_GROUNDING_RATIO,
                f"Too many keywords not found in content ({ratio:.0%} grounded, {threshold:.0%} required)",
            )

        filtered = {
            category.key: self._filter.apply(returned[category.key], brandless=category.brandless)
            for category in self._schema.categories
        }
        score = int(round(min(100.0, max(0.0, confidence))))
        return CategorizedKeywords.from_mapping(self._schema, filtered, score)


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


__all__ = [
    "ModelHealth",
    "ModelKeywordExtractor",
    "build_prompt",
    "build_response_schema",
    "classify_error",
    "grounding_ratio",
    "parse_model_payload",
]
