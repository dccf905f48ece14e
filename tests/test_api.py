from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from pressphrase.app import create_app
from pressphrase.config import Settings
from pressphrase.content_fetcher import ContentFetcher


def _app(settings: Settings, handler) -> TestClient:
    fetcher = ContentFetcher(settings, client=httpx.Client(transport=httpx.MockTransport(handler)))
    return TestClient(create_app(settings=settings, fetcher=fetcher))


def _not_found(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, text="gone")


@pytest.fixture()
def api_client(offline_settings: Settings) -> TestClient:
    return _app(offline_settings, _not_found)


def test_missing_url_returns_400_and_counts_failure(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/extract-keywords",
        json={"url": "https://news.example.com/missing", "inputType": "url"},
    )

    assert response.status_code == 400
    assert "404" in response.json()["error"]

    stats = api_client.get("/api/stats").json()
    assert stats["totalRequests"] == 1
    assert stats["failedRequests"] == 1
    assert stats["successRate"] == 0.0


def test_short_text_returns_400(api_client: TestClient) -> None:
    response = api_client.post("/api/extract-keywords", json={"text": "x" * 50, "inputType": "text"})

    assert response.status_code == 400
    assert "at least 100 characters" in response.json()["error"]


def test_url_and_text_together_are_rejected(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/extract-keywords",
        json={"url": "https://news.example.com/a", "text": "some text"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Please provide either a URL or text content, but not both"


def test_malformed_body_is_invalid_input(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/extract-keywords",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert api_client.get("/api/stats").json()["failedRequests"] == 1


def test_text_extraction_falls_back_offline(api_client: TestClient, press_release_text: str) -> None:
    response = api_client.post("/api/extract-keywords", json={"text": press_release_text, "inputType": "text"})

    assert response.status_code == 200
    body = response.json()
    assert body["extractionMethod"] == "fallback"
    assert body["inputType"] == "text"
    assert 50 <= body["confidenceScore"] <= 90
    assert "$5 million" in body["financialMetrics"]
    assert body["stats"]["wordCount"] > 20

    stats = api_client.get("/api/stats").json()
    assert stats["successRate"] == 100.0
    assert stats["recentActivity"][0]["id"] == body["id"]
    assert stats["recentActivity"][0]["method"] == "fallback"
    assert stats["recentActivity"][0]["totalKeywords"] == body["stats"]["totalKeywords"]


def test_url_extraction_and_fetch_preview(offline_settings: Settings, article_html: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=article_html, headers={"content-type": "text/html"})

    client = _app(offline_settings, handler)

    preview = client.post("/api/fetch-content", json={"url": "https://news.example.com/acme"})
    assert preview.status_code == 200
    assert preview.json()["isValid"] is True
    assert "Acme Corp" in preview.json()["content"]

    response = client.post("/api/extract-keywords", json={"url": "https://news.example.com/acme"})
    assert response.status_code == 200
    assert response.json()["url"] == "https://news.example.com/acme"
    assert response.json()["inputType"] == "url"


def test_fetch_content_requires_url(api_client: TestClient) -> None:
    response = api_client.post("/api/fetch-content", json={})

    assert response.status_code == 400


def test_fetch_timeout_maps_to_408(offline_settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = _app(offline_settings, handler)

    response = client.post("/api/extract-keywords", json={"url": "https://news.example.com/slow"})

    assert response.status_code == 408


def test_health_reports_degraded_without_model(api_client: TestClient) -> None:
    response = api_client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["modelStatus"] == "disabled"
    assert body["lastChecked"]


def test_stats_start_empty(api_client: TestClient) -> None:
    body = api_client.get("/api/stats").json()

    assert body["totalRequests"] == 0
    assert body["successRate"] == 100.0
    assert body["avgResponseTime"] == 0.0
    assert body["recentActivity"] == []


def test_metrics_endpoint_disabled_by_default(api_client: TestClient) -> None:
    assert api_client.get("/metrics").status_code == 404


def test_metrics_endpoint_exports_prometheus(press_release_text: str) -> None:
    settings = Settings(model_backend="none", observability_prometheus_enabled=True)
    client = _app(settings, _not_found)

    client.post("/api/extract-keywords", json={"text": press_release_text})
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "pressphrase_extraction_requests" in response.text


class _TrackingFetcher(ContentFetcher):
    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.closed = 0

    def close(self) -> None:
        self.closed += 1
        super().close()


def test_shutdown_closes_fetcher(offline_settings: Settings) -> None:
    fetcher = _TrackingFetcher(offline_settings)
    http_client = fetcher._http()

    with TestClient(create_app(settings=offline_settings, fetcher=fetcher)) as client:
        assert client.get("/api/stats").status_code == 200
        assert fetcher.closed == 0

    assert fetcher.closed == 1
    assert http_client.is_closed
