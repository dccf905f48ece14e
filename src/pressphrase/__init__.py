"""PressPhrase keyword extraction package."""

from __future__ import annotations

from .config import Settings
from .keywords import CategorizedKeywords, FallbackKeywordExtractor

__all__ = [
    "CategorizedKeywords",
    "ExtractionOrchestrator",
    "FallbackKeywordExtractor",
    "Settings",
    "create_app",
]


def __getattr__(name: str):  # pragma: no cover - small helper
    if name == "ExtractionOrchestrator":
        from .orchestrator import ExtractionOrchestrator

        return ExtractionOrchestrator
    if name == "create_app":
        from .app import create_app

        return create_app
    raise AttributeError(f"module 'pressphrase' has no attribute {name}")
