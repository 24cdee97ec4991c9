"""Content fingerprint used as the cache key for a function record."""

from __future__ import annotations

import hashlib

from docuforce.extraction.schemas import FunctionRecord


def compute_fingerprint(
    record: FunctionRecord, *, include_name: bool = False
) -> str:
    """SHA-256 hex digest of the doc string bytes followed by the body bytes.

    Name and position are ignored by default, so a renamed function with
    untouched doc and body reuses its earlier verdict (whose stored name
    is then stale). ``include_name=True`` prefixes the name and a NUL
    byte, which makes a rename invalidate the verdict instead.
    """
    digest = hashlib.sha256()
    if include_name:
        digest.update(record.name.encode("utf-8"))
        digest.update(b"\x00")
    digest.update(record.doc_string.encode("utf-8"))
    digest.update(record.body.encode("utf-8"))
    return digest.hexdigest()
