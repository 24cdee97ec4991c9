"""Load and validate the structural query for one subject language."""

from __future__ import annotations

import importlib
import logging
from importlib import resources
from pathlib import Path

import tree_sitter

from docuforce.config import GRAMMAR_MODULES
from docuforce.constants import REQUIRED_CAPTURES
from docuforce.resilience.errors import QueryConfigError

logger = logging.getLogger(__name__)

# (pattern_index, capture name → captured nodes)
QueryMatch = tuple[int, dict[str, list[tree_sitter.Node]]]


class StructuralQuery:
    """A parser plus a validated query for a single subject language.

    Construction fails with :class:`QueryConfigError` unless the query
    compiles and exposes every capture in ``REQUIRED_CAPTURES``; a
    half-usable query is never handed to the extractor.
    """

    def __init__(
        self,
        language: str,
        grammar: tree_sitter.Language,
        query_source: str,
    ) -> None:
        try:
            query = tree_sitter.Query(grammar, query_source)
        except tree_sitter.QueryError as exc:
            raise QueryConfigError(
                f"{language} query does not compile: {exc}"
            ) from exc

        names = {
            query.capture_name(i) for i in range(query.capture_count)
        }
        missing = [c for c in REQUIRED_CAPTURES if c not in names]
        if missing:
            raise QueryConfigError(
                f"{language} query is missing capture(s): "
                + ", ".join(f"@{m}" for m in missing)
            )
        extra = names.difference(REQUIRED_CAPTURES)
        if extra:
            logger.debug(
                "event=query_extra_captures language=%s captures=%s",
                language,
                ",".join(sorted(extra)),
            )

        self.language = language
        self._parser = tree_sitter.Parser(grammar)
        self._query = query

    @classmethod
    def load(
        cls, language: str, query_path: Path | None = None
    ) -> StructuralQuery:
        """Build the query for *language*.

        Uses the bundled ``queries/<language>.scm`` unless *query_path*
        points at a replacement file.
        """
        grammar = _load_grammar(language)
        if query_path is not None:
            try:
                source = query_path.read_text(encoding="utf-8")
            except OSError as exc:
                raise QueryConfigError(
                    f"cannot read query file {query_path}: {exc}"
                ) from exc
        else:
            source = _bundled_query(language)
        return cls(language, grammar, source)

    def parse(self, source: bytes) -> tree_sitter.Tree:
        return self._parser.parse(source)

    def matches(self, root: tree_sitter.Node) -> list[QueryMatch]:
        cursor = tree_sitter.QueryCursor(self._query)
        return cursor.matches(root)


def _bundled_query(language: str) -> str:
    """Read the query file shipped inside the package."""
    resource = resources.files("docuforce.extraction").joinpath(
        "queries", f"{language}.scm"
    )
    try:
        return resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as exc:
        raise QueryConfigError(
            f"no bundled query for language {language!r}"
        ) from exc


# ---------------------------------------------------------------------------
# Grammar cache
# ---------------------------------------------------------------------------

_grammar_cache: dict[str, tree_sitter.Language] = {}


def _load_grammar(language: str) -> tree_sitter.Language:
    """Get or import the tree-sitter grammar for *language*."""
    if language in _grammar_cache:
        return _grammar_cache[language]

    module_name = GRAMMAR_MODULES.get(language)
    if module_name is None:
        raise QueryConfigError(f"unsupported language {language!r}")

    try:
        mod = importlib.import_module(module_name)
        capsule: object = mod.language()
        grammar = tree_sitter.Language(capsule)
    except (ImportError, AttributeError) as exc:
        raise QueryConfigError(
            f"grammar {module_name} is not available: {exc}"
        ) from exc
    _grammar_cache[language] = grammar
    return grammar
