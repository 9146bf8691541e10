"""Editable documents that skill output merges into."""

from paidmedia.documents.brief import BRIEF_LAYOUT, BRIEF_SECTION_KEYS, new_brief_store
from paidmedia.documents.store import DocumentStore, Section

__all__ = [
    "BRIEF_LAYOUT",
    "BRIEF_SECTION_KEYS",
    "new_brief_store",
    "DocumentStore",
    "Section",
]
