"""Pydantic models for extraction output."""

from pydantic import BaseModel, ConfigDict


class SourcePosition(BaseModel):
    """Zero-based row/column of a node's first byte."""

    model_config = ConfigDict(frozen=True)

    row: int = 0
    column: int = 0


# Position given to functions that have no leading comment. It is NOT
# "documented at the start of the file"; check FunctionRecord.documented.
UNDOCUMENTED_POSITION = SourcePosition()


class FunctionRecord(BaseModel):
    """One function found in source, with its leading doc comments.

    ``doc_string`` and ``body`` are copied byte-for-byte from the source;
    no whitespace or case normalization happens before fingerprinting.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    doc_string: str = ""
    body: str
    position: SourcePosition = UNDOCUMENTED_POSITION

    @property
    def documented(self) -> bool:
        return bool(self.doc_string)
