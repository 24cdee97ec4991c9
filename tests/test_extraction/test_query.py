"""Tests for structural query loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from docuforce.config import GRAMMAR_MODULES
from docuforce.extraction.query import StructuralQuery
from docuforce.resilience.errors import QueryConfigError


@pytest.mark.parametrize("language", sorted(GRAMMAR_MODULES))
def test_bundled_query_loads(language: str) -> None:
    query = StructuralQuery.load(language)
    assert query.language == language


def test_missing_capture_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "no_body.scm"
    path.write_text(
        "((line_comment)* @comment . "
        "(function_item name: (identifier) @identifier))\n"
    )

    with pytest.raises(QueryConfigError, match="@body"):
        StructuralQuery.load("rust", path)


def test_query_without_any_captures_lists_all(tmp_path: Path) -> None:
    path = tmp_path / "bare.scm"
    path.write_text("(function_item)\n")

    with pytest.raises(QueryConfigError) as exc_info:
        StructuralQuery.load("rust", path)
    message = str(exc_info.value)
    for capture in ("@comment", "@identifier", "@body"):
        assert capture in message


def test_malformed_query_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "broken.scm"
    path.write_text("((function_item @body\n")

    with pytest.raises(QueryConfigError, match="does not compile"):
        StructuralQuery.load("rust", path)


def test_unknown_node_type_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "unknown.scm"
    path.write_text(
        "((line_comment)* @comment . "
        "(no_such_node name: (identifier) @identifier) @body)\n"
    )

    with pytest.raises(QueryConfigError):
        StructuralQuery.load("rust", path)


def test_unreadable_query_path(tmp_path: Path) -> None:
    with pytest.raises(QueryConfigError, match="cannot read"):
        StructuralQuery.load("rust", tmp_path / "missing.scm")


def test_unsupported_language() -> None:
    with pytest.raises(QueryConfigError, match="unsupported language"):
        StructuralQuery.load("cobol")


def test_extra_captures_are_tolerated(tmp_path: Path) -> None:
    path = tmp_path / "extra.scm"
    path.write_text(
        "((line_comment)* @comment . "
        "(function_item name: (identifier) @identifier "
        "parameters: (parameters) @params) @body)\n"
    )

    query = StructuralQuery.load("rust", path)
    assert query.language == "rust"
