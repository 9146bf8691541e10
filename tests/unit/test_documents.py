"""
tests/unit/test_documents.py — Document Store Tests
"""

from __future__ import annotations

import pytest

from paidmedia.documents.brief import BRIEF_LAYOUT, BRIEF_SECTION_KEYS, new_brief_store
from paidmedia.documents.store import DocumentStore
from paidmedia.exceptions import DocumentError, SectionNotFoundError


class TestDocumentStore:
    def test_brief_layout(self):
        store = new_brief_store()
        assert store.section_keys == list(BRIEF_SECTION_KEYS)
        assert len(store.section_keys) == 11
        assert store.value("primaryGoals") == []
        assert store.value("brandProduct") == ""
        assert store.owner_of("phases") == "budget"
        assert store.owner_of("nope") is None

    def test_duplicate_field_owner_rejected(self):
        with pytest.raises(ValueError, match="listed in both"):
            DocumentStore({"a": ("x",), "b": ("x",)})

    def test_get_returns_copy(self):
        store = new_brief_store()
        section = store.get("goals")
        section.fields["primaryGoals"].append("leak")
        section.locked = True
        assert store.value("primaryGoals") == []
        assert store.get("goals").locked is False

    def test_unknown_section(self):
        store = new_brief_store()
        with pytest.raises(SectionNotFoundError):
            store.get("nope")
        with pytest.raises(SectionNotFoundError):
            store.set_locked("nope", True)

    def test_set_fields_rejects_foreign_fields(self):
        store = new_brief_store()
        with pytest.raises(DocumentError):
            store.set_fields("goals", {"brandProduct": "x"})

    def test_set_fields_skips_locked_section(self):
        store = new_brief_store()
        store.set_locked("goals", True)
        assert store.set_fields("goals", {"primaryGoals": ["a"]}) == []
        assert store.value("primaryGoals") == []
        assert store.set_fields("goals", {"primaryGoals": ["a"]}, skip_locked=False) == ["primaryGoals"]

    def test_edit_field_marks_user_edited(self):
        store = new_brief_store()
        store.edit_field("timeline", "timelineStart", "2025-07-01")
        section = store.get("timeline")
        assert "timelineStart" in section.user_edited_fields
        assert section.is_protected("timelineStart")
        assert not section.is_protected("timelineEnd")

        store.clear_user_edit("timeline", "timelineStart")
        assert not store.get("timeline").user_edited_fields

    def test_edit_field_wrong_section(self):
        store = new_brief_store()
        with pytest.raises(DocumentError):
            store.edit_field("timeline", "brandProduct", "x")

    def test_toggle_lock_and_notes(self):
        store = new_brief_store()
        assert store.toggle_lock("channels") is True
        assert store.toggle_lock("channels") is False
        store.set_notes("channels", "Meta only in Q3")
        assert store.snapshot()["channels"]["notes"] == "Meta only in Q3"
        store.set_notes("channels", "")
        assert "notes" not in store.snapshot()["channels"]

    def test_flat_has_every_field(self):
        flat = new_brief_store().flat()
        expected = {f for fields in BRIEF_LAYOUT.values() for f in fields}
        assert set(flat) == expected
