"""Category schemas and the phrase matchers that back each category.

A schema is the unit of configuration for both extractors: it names the
categories a deployment reports, and for every category bundles

* ``matchers``: small functions returning literal substrings of the text,
* ``cue``: vocabulary that marks a sentence or clause as relevant,
* ``ngram_cue``: vocabulary a frequent n-gram must carry to be adopted,
* ``instruction``: the prompt text describing the category to the model.

Matchers are plain module-level functions so each rule can be tested on its
own. Two schema variants are registered; a deployment picks one through
``Settings.category_schema``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Pattern, Sequence

PhraseMatcher = Callable[[str], list[str]]

_MONTHS = (
    r"(?:January|February|March|April|May|June|July|August|September|October|November|December"
    r"|Jan\.|Feb\.|Aug\.|Sept?\.|Oct\.|Nov\.|Dec\.)"
)
_ACTION_VERBS = (
    r"(?:announce[sd]?|launch(?:es|ed)?|introduce[sd]?|release[sd]?|unveil(?:s|ed)?"
    r"|expand(?:s|ed)?|partner(?:s|ed)?|acquire[sd]?|develop(?:s|ed)?|create[sd]?)"
)
# Up to five following tokens that stay inside the sentence.
_TAIL = r"(?:\s+[^\s.!?;:]+){1,5}"

_CURRENCY_RE = re.compile(
    r"[$€£]\s?\d[\d,]*(?:\.\d+)?"
    r"(?:\s?(?:million|billion|thousand|trillion)\b|[MBK]\b)?"
    r"(?:\s+(?:per|a)\s+(?:month|year|visit|session|user|patient|member)\b)?",
    re.IGNORECASE,
)
_PERCENT_CHANGE_RE = re.compile(
    r"\b\d+(?:\.\d+)?%\s+(?:year-over-year\s+)?(?:growth|increase|decrease|decline|rise|drop|improvement)\b",
    re.IGNORECASE,
)
_AMOUNT_OF_RE = re.compile(
    r"\b(?:revenue|funding|financing|investment|valuation|sales)\s+of\s+[$€£]\d[\d,]*(?:\.\d+)?"
    r"(?:\s?(?:million|billion|thousand)\b)?",
    re.IGNORECASE,
)
_FUNDING_ROUND_RE = re.compile(r"\b(?:Series\s+[A-F]|seed|pre-seed)\s+(?:funding|round|financing)\b")
_PRICING_TERMS_RE = re.compile(
    r"\b(?:flat[- ](?:fee|rate)|affordable|low[- ]cost|no[- ]cost|transparent|discounted|free)"
    r"(?:\s+[a-z][\w-]*){1,3}",
    re.IGNORECASE,
)
_CALENDAR_DATE_RE = re.compile(
    rf"\b{_MONTHS}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}\b",
    re.IGNORECASE,
)
_NUMERIC_DATE_RE = re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b")
_QUARTER_RE = re.compile(
    r"\b(?:Q[1-4]|(?:first|second|third|fourth)\s+quarter(?:\s+of)?)\s+(?:fiscal\s+(?:year\s+)?)?\d{4}\b",
    re.IGNORECASE,
)
_YEAR_EVENT_RE = re.compile(
    r"\b\d{4}\s+(?:conference|summit|event|meeting|expo|forum|symposium)\b",
    re.IGNORECASE,
)
_NAMED_EVENT_RE = re.compile(
    r"\b(?:[A-Z][\w&'-]*\s+){1,4}(?:Conference|Summit|Expo|Forum|Symposium|Week)\b"
)
_CITY_STATE_RE = re.compile(
    r"\b(?!(?:In|At|From|The|Of|And|Based|Near|To)\b)[A-Z][a-z]+(?:\s[A-Z][a-z]+)?,\s?[A-Z]{2}\b"
)
_DATELINE_RE = re.compile(
    rf"\b[A-Z]{{3,}}(?:\s[A-Z]{{3,}})?,\s(?!{_MONTHS})[A-Z][a-z]+\.?(?=[\s,]|$)"
)
_HEADQUARTERS_RE = re.compile(
    r"\b(?:headquartered|headquarters|based|located|offices?)\s+in\s+[A-Z][A-Za-z.]+(?:,?\s[A-Z][A-Za-z.]+){0,2}"
)
_QUOTE_RE = re.compile(r"[\"“]([^\"”]{20,200})[\"”]")
_ANNOUNCEMENT_RE = re.compile(rf"\b{_ACTION_VERBS}{_TAIL}", re.IGNORECASE)
_COMPANY_ACTION_RE = re.compile(
    rf"\b[A-Z][\w&.-]*(?:\s+[A-Z][\w&.-]*){{0,2}}\s+{_ACTION_VERBS}(?:\s+[^\s.!?;:,]+){{1,3}}"
)
_PRODUCT_RE = re.compile(
    r"\b[A-Z][\w-]*(?:\s+[A-Z][\w-]*){0,3}\s+"
    r"(?i:platform|service|product|solution|technology|software|application|app|system|suite|tool)s?\b"
)
_HEADLINE_LINE_RE = re.compile(r"^[^\n]{20,100}$", re.MULTILINE)
_TITLE_CASE_RE = re.compile(r"\b[A-Z][\w'&-]*(?: +(?:[A-Z][\w'&-]*|&|of|and|for)){1,5}")
_SERVICE_RE = re.compile(
    r"\b(?:[\w-]+\s+){0,3}(?:telehealth|telemedicine|virtual\s+care|primary\s+care|urgent\s+care"
    r"|mental\s+health|therapy|counseling|consultations?|visits?|screenings?|services?)\b",
    re.IGNORECASE,
)
_CONDITION_RE = re.compile(
    r"\b(?:[\w-]+\s+){0,2}(?:diabetes|hypertension|anxiety|depression|obesity|asthma|arthritis"
    r"|insomnia|adhd|migraines?|allergies|infections?|covid-19|weight\s+loss|chronic\s+pain"
    r"|heart\s+disease|high\s+blood\s+pressure)"
    r"(?:\s+(?:treatment|care|management|therapy|medication|support|screening)s?)?\b",
    re.IGNORECASE,
)
_PLATFORM_RE = re.compile(
    r"\b(?:[\w-]+\s+){0,2}(?:mobile\s+app|app|apps|online|portal|platform|website|virtual|digital"
    r"|video\s+visits?|smartphone)\b(?:\s+[\w-]+){0,2}",
    re.IGNORECASE,
)
_HEALTHCARE_RE = re.compile(
    r"\b(?:[\w-]+\s+){0,2}(?:doctors?|physicians?|providers?|clinicians?|nurses?|patients?"
    r"|healthcare|health\s+care|medical|prescriptions?|pharmacy|insurance)\b(?:\s+[\w-]+){0,2}",
    re.IGNORECASE,
)


def _finditer(pattern: Pattern[str], text: str, *, group: int = 0) -> list[str]:
    matches: list[str] = []
    for match in pattern.finditer(text):
        value = (match.group(group) or "").strip()
        if value:
            matches.append(value)
    return matches


def match_currency_amounts(text: str) -> list[str]:
    """Currency figures with an optional magnitude and billing period ("$5 million", "$49 per month")."""

    return _finditer(_CURRENCY_RE, text)


def match_percent_changes(text: str) -> list[str]:
    return _finditer(_PERCENT_CHANGE_RE, text)


def match_amount_of(text: str) -> list[str]:
    """Phrases such as "revenue of $12 million" or "funding of $5,000,000"."""

    return _finditer(_AMOUNT_OF_RE, text)


def match_funding_rounds(text: str) -> list[str]:
    return _finditer(_FUNDING_ROUND_RE, text)


def match_pricing_terms(text: str) -> list[str]:
    """Price positioning language ("flat fee visits", "affordable online therapy")."""

    return _finditer(_PRICING_TERMS_RE, text)


def match_calendar_dates(text: str) -> list[str]:
    return _finditer(_CALENDAR_DATE_RE, text) + _finditer(_NUMERIC_DATE_RE, text)


def match_quarters(text: str) -> list[str]:
    return _finditer(_QUARTER_RE, text)


def match_events(text: str) -> list[str]:
    return _finditer(_YEAR_EVENT_RE, text) + _finditer(_NAMED_EVENT_RE, text)


def match_city_state(text: str) -> list[str]:
    """US style "City, ST" references, optionally with a two-word city name."""

    return _finditer(_CITY_STATE_RE, text)


def match_datelines(text: str) -> list[str]:
    """Wire-style datelines such as "AUSTIN, Texas" or "SAN FRANCISCO, Calif."."""

    return _finditer(_DATELINE_RE, text)


def match_headquarters(text: str) -> list[str]:
    return _finditer(_HEADQUARTERS_RE, text)


def match_quotes(text: str) -> list[str]:
    return _finditer(_QUOTE_RE, text, group=1)


def match_announcements(text: str) -> list[str]:
    return _finditer(_ANNOUNCEMENT_RE, text)


def match_company_actions(text: str) -> list[str]:
    return _finditer(_COMPANY_ACTION_RE, text)


def match_product_names(text: str) -> list[str]:
    return _finditer(_PRODUCT_RE, text)


def match_headline_lines(text: str) -> list[str]:
    return _finditer(_HEADLINE_LINE_RE, text)


def match_title_case_runs(text: str) -> list[str]:
    return _finditer(_TITLE_CASE_RE, text)


def match_service_phrases(text: str) -> list[str]:
    return _finditer(_SERVICE_RE, text)


def match_condition_phrases(text: str) -> list[str]:
    return _finditer(_CONDITION_RE, text)


def match_platform_phrases(text: str) -> list[str]:
    return _finditer(_PLATFORM_RE, text)


def match_healthcare_phrases(text: str) -> list[str]:
    return _finditer(_HEALTHCARE_RE, text)


def _cue(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class CategorySpec:
    """Rules and prompt text for a single keyword category."""

    key: str
    label: str
    instruction: str
    matchers: tuple[PhraseMatcher, ...] = ()
    cue: Pattern[str] | None = None
    ngram_cue: Pattern[str] | None = None
    use_ngrams: bool = False
    brandless: bool = False

    def match(self, text: str) -> list[str]:
        """Run every matcher in declaration order and concatenate the hits."""

        hits: list[str] = []
        for matcher in self.matchers:
            hits.extend(matcher(text))
        return hits

    def sniff(self, segment: str) -> bool:
        return self.cue is not None and self.cue.search(segment) is not None

    def adopts_ngram(self, phrase: str) -> bool:
        if not self.use_ngrams:
            return False
        return self.ngram_cue is None or self.ngram_cue.search(phrase) is not None


@dataclass(frozen=True, slots=True)
class CategorySchema:
    """A named, ordered set of categories shared by both extractors."""

    name: str
    categories: tuple[CategorySpec, ...]
    grounding_threshold: float
    instructions: tuple[str, ...] = field(default_factory=tuple)

    def keys(self) -> list[str]:
        return [category.key for category in self.categories]

    def get(self, key: str) -> CategorySpec:
        for category in self.categories:
            if category.key == key:
                return category
        raise KeyError(key)

    def empty(self) -> dict[str, list[str]]:
        return {category.key: [] for category in self.categories}


_ANNOUNCE_CUE = _cue(r"\b(?:announces?|launch(?:es|ed)?|introduces?)\b")

PRESS_RELEASE_SCHEMA = CategorySchema(
    name="press_release",
    grounding_threshold=0.7,
    instructions=(
        "Analyze this press release and extract searchable keyword phrases that actually exist in the text.",
        "Be thorough: cover every category, preferring more relevant phrases over missing important ones.",
        "Copy phrases exactly as written; do not paraphrase, summarize or invent wording.",
    ),
    categories=(
        CategorySpec(
            key="headlinePhrases",
            label="Headline Phrases",
            instruction="Significant phrases from the headline, subheadings and titles.",
            matchers=(match_headline_lines, match_title_case_runs),
            use_ngrams=True,
        ),
        CategorySpec(
            key="keyAnnouncements",
            label="Key Announcements",
            instruction="What is being announced, launched, released or introduced.",
            matchers=(match_announcements,),
            cue=_ANNOUNCE_CUE,
        ),
        CategorySpec(
            key="companyActions",
            label="Company Actions",
            instruction="A company name followed by its action (launches, partners, acquires, expands).",
            matchers=(match_company_actions,),
            cue=_cue(r"\b(?:partners?|expands?|acquires?)\b"),
        ),
        CategorySpec(
            key="datesAndEvents",
            label="Dates & Events",
            instruction="Specific dates, quarters, years, timeframes and named events or conferences.",
            matchers=(match_calendar_dates, match_quarters, match_events),
            cue=_cue(r"\b(?:conference|summit|event|meeting|quarter)\b"),
        ),
        CategorySpec(
            key="productServiceNames",
            label="Product & Service Names",
            instruction="Names of products, services, platforms and technologies.",
            matchers=(match_product_names,),
            ngram_cue=_cue(r"\b(?:platform|service|product|solution|technology)\b"),
            use_ngrams=True,
        ),
        CategorySpec(
            key="executiveQuotes",
            label="Executive Quotes",
            instruction="Meaningful phrases quoted from executives and spokespeople.",
            matchers=(match_quotes,),
            cue=_cue(r"\b(?:said|stated)\b"),
        ),
        CategorySpec(
            key="financialMetrics",
            label="Financial Metrics",
            instruction="Funding amounts, revenue figures, growth percentages, valuations and user counts.",
            matchers=(match_currency_amounts, match_amount_of, match_percent_changes, match_funding_rounds),
            cue=_cue(r"(?:\brevenue\b|\bfunding\b|\bgrowth\b|\$|%)"),
        ),
        CategorySpec(
            key="locations",
            label="Locations",
            instruction="Cities, states, countries, regions, headquarters and office locations.",
            matchers=(match_city_state, match_datelines, match_headquarters),
            cue=_cue(r"\b(?:headquarters|based in|located)\b"),
        ),
    ),
)

HEALTHCARE_SEARCH_SCHEMA = CategorySchema(
    name="healthcare_search",
    grounding_threshold=0.8,
    instructions=(
        "Extract short search queries a patient might type after reading this announcement.",
        "Every phrase must appear verbatim in the text.",
        "Never include company, brand, product or wire-service names.",
    ),
    categories=(
        CategorySpec(
            key="serviceSearches",
            label="Service Searches",
            instruction="Care services offered, such as telehealth visits or online therapy.",
            matchers=(match_service_phrases,),
            cue=_cue(r"\b(?:services?|telehealth|telemedicine|virtual care|consultations?)\b"),
            ngram_cue=_cue(r"\b(?:services?|telehealth|telemedicine|care)\b"),
            use_ngrams=True,
            brandless=True,
        ),
        CategorySpec(
            key="pricingSearches",
            label="Pricing Searches",
            instruction="Prices, fees and affordability language.",
            matchers=(match_currency_amounts, match_pricing_terms),
            cue=_cue(r"(?:\$|\b(?:price|pricing|cost|fee|affordable|insurance|copay)\b)"),
            brandless=True,
        ),
        CategorySpec(
            key="conditionSearches",
            label="Condition Searches",
            instruction="Medical conditions treated and the treatment offered for them.",
            matchers=(match_condition_phrases,),
            cue=_cue(
                r"\b(?:diabetes|hypertension|anxiety|depression|obesity|asthma|arthritis|insomnia"
                r"|migraines?|chronic|condition|treatment)\b"
            ),
            brandless=True,
        ),
        CategorySpec(
            key="platformSearches",
            label="Platform Searches",
            instruction="How care is accessed: apps, online portals, virtual or mobile platforms.",
            matchers=(match_platform_phrases,),
            cue=_cue(r"\b(?:app|online|platform|portal|mobile|digital)\b"),
            brandless=True,
        ),
        CategorySpec(
            key="healthcareSearches",
            label="Healthcare Searches",
            instruction="General healthcare terms: providers, patients, prescriptions, insurance.",
            matchers=(match_healthcare_phrases,),
            cue=_cue(r"\b(?:doctors?|physicians?|providers?|patients?|clinicians?|medical|healthcare)\b"),
            ngram_cue=_cue(r"\b(?:health|medical|patients?|providers?)\b"),
            use_ngrams=True,
            brandless=True,
        ),
        CategorySpec(
            key="announcementSearches",
            label="Announcement Searches",
            instruction="What was announced or launched, phrased as a search query.",
            matchers=(match_announcements,),
            cue=_ANNOUNCE_CUE,
            brandless=True,
        ),
    ),
)

SCHEMAS: dict[str, CategorySchema] = {
    PRESS_RELEASE_SCHEMA.name: PRESS_RELEASE_SCHEMA,
    HEALTHCARE_SEARCH_SCHEMA.name: HEALTHCARE_SEARCH_SCHEMA,
}


def get_schema(name: str) -> CategorySchema:
    key = (name or "").strip().lower()
    schema = SCHEMAS.get(key)
    if schema is None:
        available = ", ".join(sorted(SCHEMAS))
        raise ValueError(f"Unknown category schema '{name}' (available: {available})")
    return schema


def schema_names() -> Sequence[str]:
    return sorted(SCHEMAS)


__all__ = [
    "CategorySchema",
    "CategorySpec",
    "HEALTHCARE_SEARCH_SCHEMA",
    "PRESS_RELEASE_SCHEMA",
    "PhraseMatcher",
    "SCHEMAS",
    "get_schema",
    "match_amount_of",
    "match_announcements",
    "match_calendar_dates",
    "match_city_state",
    "match_company_actions",
    "match_condition_phrases",
    "match_currency_amounts",
    "match_datelines",
    "match_events",
    "match_funding_rounds",
    "match_headline_lines",
    "match_headquarters",
    "match_healthcare_phrases",
    "match_percent_changes",
    "match_platform_phrases",
    "match_pricing_terms",
    "match_product_names",
    "match_quarters",
    "match_quotes",
    "match_service_phrases",
    "match_title_case_runs",
    "schema_names",
]
