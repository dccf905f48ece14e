from __future__ import annotations

import httpx
import pytest

from pressphrase.config import Settings

PRESS_RELEASE = (
    "Acme Health Launches Flat Fee Telehealth Platform for Rural Patients\n"
    "AUSTIN, Texas, March 3, 2024 /PRNewswire/ -- Acme Corp announced a $5 million Series A "
    "funding round in Austin, TX on March 3, 2024. The company, headquartered in Austin, Texas, "
    "will use the funding to expand the CarePoint Platform to rural clinics.\n"
    '"Affordable care matters to every family," said Jane Smith, chief executive officer of Acme Corp.\n'
    "Acme Corp partners with Lone Star Clinics to offer online therapy and diabetes management "
    "for $49 per month. The company reported 35% growth in revenue during Q4 2023 and will "
    "present at the 2024 Rural Health Summit."
)

ARTICLE_HTML = f"""
<html>
  <head><title>Acme news</title><style>.x {{ color: red; }}</style></head>
  <body>
    <nav>Home | About | Careers</nav>
    <header>Site header boilerplate</header>
    <article>
      {"".join(f"<p>{line}</p>" for line in PRESS_RELEASE.splitlines())}
    </article>
    <script>window.tracking = "should never appear";</script>
    <footer>Copyright footer text</footer>
  </body>
</html>
"""


@pytest.fixture
def press_release_text() -> str:
    return PRESS_RELEASE


@pytest.fixture
def article_html() -> str:
    return ARTICLE_HTML


@pytest.fixture
def offline_settings() -> Settings:
    """Settings with the model disabled so only rule-based extraction runs."""

    return Settings(model_backend="none")


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def client_factory():
    return mock_client
