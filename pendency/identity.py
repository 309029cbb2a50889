"""Deterministic identifiers for records and notes.

The spreadsheet's own id column is unreliable (missing, duplicated, reused),
so identity is derived from the business key instead. Same key, same id, on
every fetch.
"""

from .fields import clean_key

NOTE_TEXT_PREFIX = 10


def record_id(document_number: str, series: str) -> str:
    """Return the stable id for a (document number, series) pair."""
    return f"rec-{document_number}-{series}"


def note_id(record_ref: str, author: str, date: str, text: str) -> str:
    """Return a stable id for a note the source did not identify.

    Built from the record, author, date and the first characters of the text
    so a retried submission resolves to the same id instead of a duplicate.
    """
    snippet = (text or "")[:NOTE_TEXT_PREFIX]
    return (
        f"note-{record_ref}-{clean_key(author)}-{clean_key(date)}-{clean_key(snippet)}"
    )
