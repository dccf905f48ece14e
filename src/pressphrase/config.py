"""Configuration helpers for the PressPhrase service."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import TYPE_CHECKING, Final

from dotenv import load_dotenv

if TYPE_CHECKING:
    from .categories import CategorySchema
    from .observability import MetricsRecorder

load_dotenv()

_DEFAULT_MODEL_BACKEND: Final[str] = "openai"
_DEFAULT_OPENAI_MODEL: Final[str] = "gpt-4o-mini"
_DEFAULT_OPENAI_HEALTH_MODEL: Final[str] = "gpt-4o-mini"
_DEFAULT_OLLAMA_URL: Final[str] = "http://localhost:11434"
_DEFAULT_OLLAMA_MODEL: Final[str] = "llama3.1:8b"
_DEFAULT_MODEL_TIMEOUT: Final[float] = 60.0
_DEFAULT_FETCH_TIMEOUT: Final[float] = 30.0
_DEFAULT_FETCH_USER_AGENT: Final[str] = "Mozilla/5.0 (compatible; PressPhrase/1.0)"
_DEFAULT_MAX_CONTENT_CHARS: Final[int] = 50_000
_DEFAULT_MIN_CONTENT_CHARS: Final[int] = 100
_DEFAULT_MIN_CONTENT_WORDS: Final[int] = 20
_DEFAULT_PREVIEW_CHARS: Final[int] = 1000
_DEFAULT_CATEGORY_SCHEMA: Final[str] = "press_release"
_DEFAULT_KEYWORD_MIN_WORDS: Final[int] = 2
_DEFAULT_KEYWORD_MAX_WORDS: Final[int] = 6
_DEFAULT_KEYWORD_MAX_PER_CATEGORY: Final[int] = 15
_DEFAULT_KEYWORD_PATTERN_LIMIT: Final[int] = 15
_DEFAULT_KEYWORD_SEGMENT_LIMIT: Final[int] = 10
_DEFAULT_KEYWORD_NGRAM_LIMIT: Final[int] = 10
_DEFAULT_KEYWORD_NGRAM_TOP_K: Final[int] = 50
_DEFAULT_KEYWORD_SEGMENT_MIN_CHARS: Final[int] = 30
_DEFAULT_KEYWORD_SEGMENT_MAX_CHARS: Final[int] = 300
_DEFAULT_RECENT_ACTIVITY_LIMIT: Final[int] = 5
_DEFAULT_LOG_LEVEL: Final[str] = "INFO"

# Wire services and distribution boilerplate that should never surface as a search phrase.
DEFAULT_BRAND_BLACKLIST: Final[tuple[str, ...]] = (
    "PR Newswire",
    "PRNewswire",
    "Business Wire",
    "BusinessWire",
    "GlobeNewswire",
    "GLOBE NEWSWIRE",
    "Accesswire",
    "EIN Presswire",
    "Newsfile",
    "Cision",
    "PRWeb",
)


def _env_optional_bool(name: str) -> bool | None:
    """Read an optional boolean environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    msg = f"Environment variable {name} must be a boolean value (true/false)."
    raise ValueError(msg)


def _env_bool(name: str, default: bool) -> bool:
    value = _env_optional_bool(name)
    if value is None:
        return default
    return value


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    """Read an integer environment variable, clamping to ``minimum`` when given."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        value = default
    else:
        try:
            value = int(raw.strip())
        except ValueError as exc:
            raise ValueError(f"Environment variable {name} must be an integer") from exc
    if minimum is not None:
        value = max(minimum, value)
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """Read a comma separated list; an empty value disables the list entirely."""

    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(slots=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    model_backend: str = _DEFAULT_MODEL_BACKEND
    openai_api_key: str | None = None
    openai_model: str = _DEFAULT_OPENAI_MODEL
    openai_health_model: str = _DEFAULT_OPENAI_HEALTH_MODEL
    ollama_base_url: str = _DEFAULT_OLLAMA_URL
    ollama_model: str = _DEFAULT_OLLAMA_MODEL
    model_timeout: float = _DEFAULT_MODEL_TIMEOUT
    fetch_timeout: float = _DEFAULT_FETCH_TIMEOUT
    fetch_user_agent: str = _DEFAULT_FETCH_USER_AGENT
    max_content_chars: int = _DEFAULT_MAX_CONTENT_CHARS
    min_content_chars: int = _DEFAULT_MIN_CONTENT_CHARS
    min_content_words: int = _DEFAULT_MIN_CONTENT_WORDS
    preview_chars: int = _DEFAULT_PREVIEW_CHARS
    category_schema: str = _DEFAULT_CATEGORY_SCHEMA
    keyword_min_words: int = _DEFAULT_KEYWORD_MIN_WORDS
    keyword_max_words: int = _DEFAULT_KEYWORD_MAX_WORDS
    keyword_max_per_category: int = _DEFAULT_KEYWORD_MAX_PER_CATEGORY
    keyword_pattern_limit: int = _DEFAULT_KEYWORD_PATTERN_LIMIT
    keyword_segment_limit: int = _DEFAULT_KEYWORD_SEGMENT_LIMIT
    keyword_ngram_limit: int = _DEFAULT_KEYWORD_NGRAM_LIMIT
    keyword_ngram_top_k: int = _DEFAULT_KEYWORD_NGRAM_TOP_K
    keyword_segment_min_chars: int = _DEFAULT_KEYWORD_SEGMENT_MIN_CHARS
    keyword_segment_max_chars: int = _DEFAULT_KEYWORD_SEGMENT_MAX_CHARS
    brand_blacklist: tuple[str, ...] = field(default_factory=lambda: DEFAULT_BRAND_BLACKLIST)
    recent_activity_limit: int = _DEFAULT_RECENT_ACTIVITY_LIMIT
    log_level: str = _DEFAULT_LOG_LEVEL
    observability_metrics_enabled: bool = True
    observability_namespace: str = "pressphrase"
    observability_prometheus_enabled: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings by reading environment variables."""

        return cls(
            model_backend=os.getenv("MODEL_BACKEND", _DEFAULT_MODEL_BACKEND),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", _DEFAULT_OPENAI_MODEL),
            openai_health_model=os.getenv("OPENAI_HEALTH_MODEL", _DEFAULT_OPENAI_HEALTH_MODEL),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", _DEFAULT_OLLAMA_URL),
            ollama_model=os.getenv("OLLAMA_MODEL", _DEFAULT_OLLAMA_MODEL),
            model_timeout=_env_float("MODEL_TIMEOUT", _DEFAULT_MODEL_TIMEOUT),
            fetch_timeout=_env_float("FETCH_TIMEOUT", _DEFAULT_FETCH_TIMEOUT),
            fetch_user_agent=os.getenv("FETCH_USER_AGENT", _DEFAULT_FETCH_USER_AGENT),
            max_content_chars=_env_int("MAX_CONTENT_CHARS", _DEFAULT_MAX_CONTENT_CHARS, minimum=1),
            min_content_chars=_env_int("MIN_CONTENT_CHARS", _DEFAULT_MIN_CONTENT_CHARS, minimum=0),
            min_content_words=_env_int("MIN_CONTENT_WORDS", _DEFAULT_MIN_CONTENT_WORDS, minimum=0),
            preview_chars=_env_int("PREVIEW_CHARS", _DEFAULT_PREVIEW_CHARS, minimum=1),
            category_schema=os.getenv("CATEGORY_SCHEMA", _DEFAULT_CATEGORY_SCHEMA),
            keyword_min_words=_env_int("KEYWORD_MIN_WORDS", _DEFAULT_KEYWORD_MIN_WORDS, minimum=1),
            keyword_max_words=_env_int("KEYWORD_MAX_WORDS", _DEFAULT_KEYWORD_MAX_WORDS, minimum=1),
            keyword_max_per_category=_env_int(
                "KEYWORD_MAX_PER_CATEGORY", _DEFAULT_KEYWORD_MAX_PER_CATEGORY, minimum=1
            ),
            keyword_pattern_limit=_env_int(
                "KEYWORD_PATTERN_LIMIT", _DEFAULT_KEYWORD_PATTERN_LIMIT, minimum=0
            ),
            keyword_segment_limit=_env_int(
                "KEYWORD_SEGMENT_LIMIT", _DEFAULT_KEYWORD_SEGMENT_LIMIT, minimum=0
            ),
            keyword_ngram_limit=_env_int("KEYWORD_NGRAM_LIMIT", _DEFAULT_KEYWORD_NGRAM_LIMIT, minimum=0),
            keyword_ngram_top_k=_env_int("KEYWORD_NGRAM_TOP_K", _DEFAULT_KEYWORD_NGRAM_TOP_K, minimum=0),
            keyword_segment_min_chars=_env_int(
                "KEYWORD_SEGMENT_MIN_CHARS", _DEFAULT_KEYWORD_SEGMENT_MIN_CHARS, minimum=0
            ),
            keyword_segment_max_chars=_env_int(
                "KEYWORD_SEGMENT_MAX_CHARS", _DEFAULT_KEYWORD_SEGMENT_MAX_CHARS, minimum=1
            ),
            brand_blacklist=_env_list("BRAND_BLACKLIST", DEFAULT_BRAND_BLACKLIST),
            recent_activity_limit=_env_int(
                "RECENT_ACTIVITY_LIMIT", _DEFAULT_RECENT_ACTIVITY_LIMIT, minimum=0
            ),
            log_level=os.getenv("LOG_LEVEL", _DEFAULT_LOG_LEVEL),
            observability_metrics_enabled=_env_bool("OBSERVABILITY_METRICS_ENABLED", True),
            observability_namespace=os.getenv("OBSERVABILITY_NAMESPACE", "pressphrase"),
            observability_prometheus_enabled=_env_bool("OBSERVABILITY_PROMETHEUS_ENABLED", False),
        )

    @property
    def is_openai_backend(self) -> bool:
        """Return True when the model adapter should call the OpenAI Responses API."""

        return self.model_backend.strip().lower() == "openai"

    @property
    def is_ollama_backend(self) -> bool:
        """Return True when the model adapter targets an Ollama-hosted model."""

        return self.model_backend.strip().lower() == "ollama"

    @property
    def model_enabled(self) -> bool:
        return self.is_openai_backend or self.is_ollama_backend

    @property
    def word_band(self) -> tuple[int, int]:
        """Return the inclusive (min, max) word count accepted for a phrase."""

        low = max(1, self.keyword_min_words)
        return low, max(low, self.keyword_max_words)

    def resolve_category_schema(self) -> "CategorySchema":
        """Look up the configured category schema, raising ``ValueError`` when unknown."""

        from .categories import get_schema

        return get_schema(self.category_schema)

    def build_metrics_recorder(self) -> "MetricsRecorder":
        """Instantiate the configured metrics recorder."""

        from .observability import MetricsRecorder

        return MetricsRecorder(
            enabled=self.observability_metrics_enabled,
            namespace=self.observability_namespace,
            prometheus_enabled=self.observability_prometheus_enabled,
        )
