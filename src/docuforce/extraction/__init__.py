"""Structural extraction of (doc comment, function) pairs."""

from docuforce.extraction.extractor import extract_functions
from docuforce.extraction.query import StructuralQuery
from docuforce.extraction.schemas import (
    UNDOCUMENTED_POSITION,
    FunctionRecord,
    SourcePosition,
)

__all__ = [
    "UNDOCUMENTED_POSITION",
    "FunctionRecord",
    "SourcePosition",
    "StructuralQuery",
    "extract_functions",
]
