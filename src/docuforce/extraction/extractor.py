"""Pair every function with the doc comments immediately above it."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import tree_sitter

from docuforce.constants import CaptureName
from docuforce.extraction.query import StructuralQuery
from docuforce.extraction.schemas import (
    UNDOCUMENTED_POSITION,
    FunctionRecord,
    SourcePosition,
)
from docuforce.resilience.errors import ExtractionError

logger = logging.getLogger(__name__)


@dataclass
class _Candidate:
    body: tree_sitter.Node
    identifier: tree_sitter.Node
    comments: list[tree_sitter.Node]


def extract_functions(
    source: str, structural_query: StructuralQuery
) -> list[FunctionRecord]:
    """Return one record per matched function, in source order.

    Functions without leading comments are included with an empty
    ``doc_string``. A source file that does not parse cleanly raises
    :class:`ExtractionError`; nothing is extracted from it.
    """
    source_bytes = source.encode("utf-8")
    tree = structural_query.parse(source_bytes)
    root = tree.root_node
    if root.has_error:
        row, column = _first_error_point(root)
        raise ExtractionError(
            f"{structural_query.language} source has a syntax error "
            f"near line {row + 1}, column {column + 1}"
        )

    # One function can match several times: once per suffix of its
    # comment run, and once per pattern that wraps it (an export
    # statement around a declaration). Keep the longest comment run,
    # then the widest body.
    candidates: dict[tuple[int, int], _Candidate] = {}
    for _pattern, captures in structural_query.matches(root):
        bodies = captures.get(CaptureName.BODY, [])
        identifiers = captures.get(CaptureName.IDENTIFIER, [])
        if len(bodies) != 1 or len(identifiers) != 1:
            logger.debug(
                "event=match_skipped bodies=%d identifiers=%d",
                len(bodies),
                len(identifiers),
            )
            continue

        body = bodies[0]
        comments = sorted(
            captures.get(CaptureName.COMMENT, []),
            key=lambda n: n.start_byte,
        )
        candidate = _Candidate(
            body=body,
            identifier=identifiers[0],
            comments=_adjacent_run(comments, body),
        )
        key = (identifiers[0].start_byte, identifiers[0].end_byte)
        existing = candidates.get(key)
        if existing is None or _rank(candidate) > _rank(existing):
            candidates[key] = candidate

    records = [
        _to_record(c, source_bytes)
        for c in sorted(
            candidates.values(), key=lambda c: c.body.start_byte
        )
    ]
    logger.info(
        "event=extraction_complete language=%s functions=%d documented=%d",
        structural_query.language,
        len(records),
        sum(1 for r in records if r.documented),
    )
    return records


def _rank(candidate: _Candidate) -> tuple[int, int]:
    body = candidate.body
    return len(candidate.comments), body.end_byte - body.start_byte


def _to_record(
    candidate: _Candidate, source_bytes: bytes
) -> FunctionRecord:
    comments = candidate.comments
    if comments:
        first = comments[0].start_point
        position = SourcePosition(row=first.row, column=first.column)
        # The run is contiguous, so one slice keeps the line breaks
        # between comments that the grammar leaves outside the nodes.
        doc_string = source_bytes[
            comments[0].start_byte:comments[-1].end_byte
        ].decode("utf-8")
    else:
        position = UNDOCUMENTED_POSITION
        doc_string = ""

    return FunctionRecord(
        name=_text(candidate.identifier, source_bytes),
        doc_string=doc_string,
        body=_text(candidate.body, source_bytes),
        position=position,
    )


def _adjacent_run(
    comments: list[tree_sitter.Node], body: tree_sitter.Node
) -> list[tree_sitter.Node]:
    """Keep the trailing comments that touch the function.

    Walks backwards from the function; stops at the first comment that
    is separated from what follows it by a blank line, or that is not
    the previous named sibling of what follows it (the next comment in
    the run, or the function itself).
    """
    run: list[tree_sitter.Node] = []
    follower = body
    for comment in reversed(comments):
        sibling = comment.next_named_sibling
        if sibling is None or sibling != follower:
            break
        if sibling.start_point.row - _last_row(comment) > 1:
            break
        run.append(comment)
        follower = comment
    run.reverse()
    return run


def _last_row(node: tree_sitter.Node) -> int:
    """Row holding the node's final character.

    Line comments may include their trailing newline, which puts
    ``end_point`` at column 0 of the following row.
    """
    row, column = node.end_point
    if column == 0 and row > node.start_point.row:
        return row - 1
    return row


def _text(node: tree_sitter.Node, source_bytes: bytes) -> str:
    return source_bytes[node.start_byte:node.end_byte].decode("utf-8")


def _first_error_point(root: tree_sitter.Node) -> tuple[int, int]:
    """Locate the first ERROR or MISSING node for the error message."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_error or node.is_missing:
            point = node.start_point
            return point.row, point.column
        stack.extend(reversed(node.children))
    point = root.start_point
    return point.row, point.column
