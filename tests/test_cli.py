"""Tests for the command-line entry point."""

import json

import pytest
from unittest.mock import patch

from seoaudit.cli import main
from tests.conftest import KEYWORD, PAGE_URL, FakeFetcher


@pytest.fixture
def patched_fetcher():
    with patch("seoaudit.orchestrator.PageFetcher", return_value=FakeFetcher()) as mock_fetcher:
        yield mock_fetcher


def test_grade_json(patched_fetcher, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--log-level", "WARNING", "grade", PAGE_URL, "--keyword", KEYWORD, "--json"])

    assert excinfo.value.code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["overallGrade"] == "A"
    assert payload["keyword"]["mentions"] == 4
    assert payload["keyword"]["positions"] == ["title", "H1", "meta description", "first paragraph"]


def test_grade_report_to_file(patched_fetcher, tmp_path):
    output = tmp_path / "grade.md"
    with pytest.raises(SystemExit) as excinfo:
        main(["grade", PAGE_URL, "--scope", "performance", "--output-file", str(output)])

    assert excinfo.value.code == 0
    report = output.read_text()
    assert "| Render blocking |" in report
    assert "## Keyword" not in report


def test_audit_without_credentials_exits_2(patched_fetcher, capsys):
    with patch.dict("os.environ", {}, clear=True):
        with pytest.raises(SystemExit) as excinfo:
            main(["audit", PAGE_URL, "--no-save"])

    assert excinfo.value.code == 2
    assert "OPENAI_API_KEY" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    main([])
    assert "usage" in capsys.readouterr().out.lower()
