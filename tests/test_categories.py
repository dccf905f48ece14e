from __future__ import annotations

import pytest

from pressphrase.categories import (
    HEALTHCARE_SEARCH_SCHEMA,
    PRESS_RELEASE_SCHEMA,
    get_schema,
    match_calendar_dates,
    match_city_state,
    match_currency_amounts,
    match_datelines,
    match_events,
    match_funding_rounds,
    match_headline_lines,
    match_headquarters,
    match_percent_changes,
    match_product_names,
    match_quarters,
    match_quotes,
    schema_names,
)


def test_currency_amounts_keep_magnitude_and_period() -> None:
    text = "Acme raised $5 million and charges $49 per month, up from $1.2B in bookings."

    assert match_currency_amounts(text) == ["$5 million", "$49 per month", "$1.2B"]


def test_calendar_dates_cover_long_and_numeric_forms() -> None:
    assert match_calendar_dates("Launched on March 3, 2024 and again on 4/15/2024.") == [
        "March 3, 2024",
        "4/15/2024",
    ]


def test_quarters_and_events() -> None:
    assert match_quarters("Results for Q1 2025 beat the fourth quarter of 2024.") == [
        "Q1 2025",
        "fourth quarter of 2024",
    ]
    assert match_events("See us at the 2024 Rural Health Summit.") == ["Rural Health Summit"]


def test_city_state_skips_leading_preposition() -> None:
    assert match_city_state("In Austin, TX and San Francisco, CA today.") == [
        "Austin, TX",
        "San Francisco, CA",
    ]


def test_datelines_match_wire_style_openers() -> None:
    assert match_datelines("AUSTIN, Texas, March 3, 2024 -- Acme") == ["AUSTIN, Texas"]
    assert match_datelines("SAN FRANCISCO, Calif. -- Acme") == ["SAN FRANCISCO, Calif."]
    assert match_datelines("NEW YORK, March 3, 2024") == []


def test_headquarters_phrases() -> None:
    assert match_headquarters("The company, headquartered in Austin, Texas, grew.") == [
        "headquartered in Austin, Texas",
    ]


def test_quotes_return_inner_text() -> None:
    text = '"Affordable care matters to every family," said Jane Smith.'

    assert match_quotes(text) == ["Affordable care matters to every family,"]


def test_financial_matchers() -> None:
    assert match_percent_changes("The company reported 35% growth in revenue.") == ["35% growth"]
    assert match_funding_rounds("Acme closed a Series B round led by Foo.") == ["Series B round"]


def test_product_names_and_headlines() -> None:
    assert match_product_names("It will expand the CarePoint Platform to clinics.") == ["CarePoint Platform"]
    text = "Tiny\nAcme Launches Flat Fee Telehealth Platform\n" + "word " * 40
    assert match_headline_lines(text) == ["Acme Launches Flat Fee Telehealth Platform"]


def test_press_release_schema_shape() -> None:
    assert PRESS_RELEASE_SCHEMA.keys() == [
        "headlinePhrases",
        "keyAnnouncements",
        "companyActions",
        "datesAndEvents",
        "productServiceNames",
        "executiveQuotes",
        "financialMetrics",
        "locations",
    ]
    assert PRESS_RELEASE_SCHEMA.grounding_threshold == pytest.approx(0.7)
    assert PRESS_RELEASE_SCHEMA.empty() == {key: [] for key in PRESS_RELEASE_SCHEMA.keys()}


def test_healthcare_schema_is_brandless() -> None:
    assert len(HEALTHCARE_SEARCH_SCHEMA.categories) == 6
    assert all(category.brandless for category in HEALTHCARE_SEARCH_SCHEMA.categories)
    assert HEALTHCARE_SEARCH_SCHEMA.grounding_threshold == pytest.approx(0.8)


def test_schema_lookup() -> None:
    assert get_schema(" Press_Release ") is PRESS_RELEASE_SCHEMA
    assert list(schema_names()) == ["healthcare_search", "press_release"]
    with pytest.raises(ValueError, match="available"):
        get_schema("legal_filings")
    with pytest.raises(KeyError):
        PRESS_RELEASE_SCHEMA.get("unknown")


def test_category_sniff_and_ngram_adoption() -> None:
    announcements = PRESS_RELEASE_SCHEMA.get("keyAnnouncements")
    products = PRESS_RELEASE_SCHEMA.get("productServiceNames")
    headlines = PRESS_RELEASE_SCHEMA.get("headlinePhrases")

    assert announcements.sniff("Acme announces a new partnership with Foo")
    assert not announcements.sniff("Nothing happened here today at all")
    assert not headlines.sniff("Acme announces a new partnership with Foo")
    assert products.adopts_ngram("CarePoint Platform")
    assert not products.adopts_ngram("rural clinics")
    assert headlines.adopts_ngram("rural clinics")
    assert not announcements.adopts_ngram("rural clinics")
