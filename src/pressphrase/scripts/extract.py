"""CLI for extracting keyword phrases from a URL, a file or standard input."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from pressphrase.app import create_app
from pressphrase.categories import schema_names
from pressphrase.config import Settings
from pressphrase.errors import OrchestrationError
from pressphrase.orchestrator import ExtractionRequest


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract categorized search phrases from a press release")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--url", help="Fetch the press release from this URL")
    source.add_argument(
        "--file",
        help="Read the press release text from this file ('-' or omitted reads standard input)",
    )
    parser.add_argument(
        "--schema",
        choices=list(schema_names()),
        help="Category schema to extract (defaults to CATEGORY_SCHEMA)",
    )
    parser.add_argument(
        "--backend",
        choices=["openai", "ollama", "none"],
        help="Model backend override; 'none' uses rule-based extraction only",
    )
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation (default: 2)")
    return parser


def _read_text(path: str | None) -> str:
    if path is None or path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.schema:
        settings.category_schema = args.schema
    if args.backend:
        settings.model_backend = args.backend

    if args.url:
        request = ExtractionRequest(input_type="url", url=args.url)
    else:
        try:
            text = _read_text(args.file)
        except OSError as exc:  # pragma: no cover - CLI validation
            parser.error(f"Unable to read {args.file}: {exc}")
            return 1
        request = ExtractionRequest(input_type="text", text=text)

    app = create_app(settings=settings)
    orchestrator = app.state.services.orchestrator
    try:
        result = orchestrator.run(request)
    except OrchestrationError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_response(), indent=args.indent, ensure_ascii=False))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
