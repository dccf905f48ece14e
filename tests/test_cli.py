from __future__ import annotations

import io
import json

from pressphrase.scripts.extract import build_parser, main


def test_cli_extracts_from_file(tmp_path, capsys, press_release_text: str) -> None:
    source = tmp_path / "release.txt"
    source.write_text(press_release_text, encoding="utf-8")

    exit_code = main(["--backend", "none", "--file", str(source), "--indent", "0"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["extractionMethod"] == "fallback"
    assert "$5 million" in payload["financialMetrics"]


def test_cli_reads_stdin_and_honours_schema(monkeypatch, capsys, press_release_text: str) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO(press_release_text))

    exit_code = main(["--backend", "none", "--schema", "healthcare_search"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert "serviceSearches" in payload
    assert "financialMetrics" not in payload


def test_cli_reports_short_input(monkeypatch, capsys) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("too short"))

    exit_code = main(["--backend", "none"])

    assert exit_code == 1
    assert "at least" in capsys.readouterr().err


def test_parser_accepts_url_source() -> None:
    parser = build_parser()

    args = parser.parse_args(["--url", "https://news.example.com/a"])

    assert args.url == "https://news.example.com/a"
    assert args.file is None
