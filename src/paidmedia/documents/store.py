"""
documents/store.py — Section-Based Document Store

A document is a fixed set of named Sections, each owning a fixed list of
fields. Two kinds of writer touch it:

  - the user, through edit_field / set_locked / set_notes. A user edit
    records the field in the section's user_edited_fields.
  - the merge engine, through set_fields(..., skip_locked=True). It checks
    locks and user edits itself before calling in.

Every method is synchronous. A merge runs to completion before control
returns to the event loop, so a user edit never lands mid-merge.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from paidmedia.exceptions import DocumentError, SectionNotFoundError
from paidmedia.observability.logger import get_logger

log = get_logger(__name__)


@dataclass
class Section:
    key: str
    fields: dict[str, Any] = field(default_factory=dict)
    locked: bool = False
    user_edited_fields: set[str] = field(default_factory=set)
    notes: Optional[str] = None

    def is_protected(self, field_name: str) -> bool:
        return self.locked or field_name in self.user_edited_fields

    def copy(self) -> "Section":
        return Section(
            key=self.key,
            fields=copy.deepcopy(self.fields),
            locked=self.locked,
            user_edited_fields=set(self.user_edited_fields),
            notes=self.notes,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "fields": copy.deepcopy(self.fields),
            "locked": self.locked,
            "userEditedFields": sorted(self.user_edited_fields),
        }
        if self.notes:
            d["notes"] = self.notes
        return d


class DocumentStore:
    """
    In-memory document made of Sections.

    layout maps each section key to the field names it owns. A field name
    belongs to exactly one section.
    """

    def __init__(
        self,
        layout: Mapping[str, Sequence[str]],
        defaults: Optional[Mapping[str, Any]] = None,
        name: str = "document",
    ) -> None:
        self.name = name
        self._sections: dict[str, Section] = {}
        self._owners: dict[str, str] = {}
        defaults = defaults or {}

        for section_key, field_names in layout.items():
            for f in field_names:
                if f in self._owners:
                    raise ValueError(
                        f"Field '{f}' is listed in both '{self._owners[f]}' "
                        f"and '{section_key}'."
                    )
                self._owners[f] = section_key
            self._sections[section_key] = Section(
                key=section_key,
                fields={f: copy.deepcopy(defaults.get(f)) for f in field_names},
            )

    # ── Read ──────────────────────────────────────────────────────────────────

    @property
    def section_keys(self) -> list[str]:
        return list(self._sections)

    def get(self, section_key: str) -> Section:
        """Return a copy of the section. Raises SectionNotFoundError."""
        return self._section(section_key).copy()

    def owner_of(self, field_name: str) -> Optional[str]:
        """Section key owning field_name, or None if no section declares it."""
        return self._owners.get(field_name)

    def value(self, field_name: str) -> Any:
        owner = self._owners.get(field_name)
        if owner is None:
            raise DocumentError(f"Field '{field_name}' is not part of {self.name}.")
        return copy.deepcopy(self._sections[owner].fields[field_name])

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {key: s.to_dict() for key, s in self._sections.items()}

    def flat(self) -> dict[str, Any]:
        """Every field of every section in one dict."""
        out: dict[str, Any] = {}
        for s in self._sections.values():
            out.update(copy.deepcopy(s.fields))
        return out

    # ── Merge-engine write ────────────────────────────────────────────────────

    def set_fields(
        self,
        section_key: str,
        fields: Mapping[str, Any],
        skip_locked: bool = True,
    ) -> list[str]:
        """
        Overwrite the given fields of one section. Returns the fields written.

        A locked section is left untouched when skip_locked is True. Fields
        not mentioned are never removed.
        """
        section = self._section(section_key)
        foreign = [f for f in fields if self._owners.get(f) != section_key]
        if foreign:
            raise DocumentError(
                f"Fields {foreign} do not belong to section '{section_key}'."
            )
        if section.locked and skip_locked:
            log.debug("document.set_fields_locked", section=section_key)
            return []

        for f, v in fields.items():
            section.fields[f] = copy.deepcopy(v)
        return list(fields)

    # ── User writes ───────────────────────────────────────────────────────────

    def edit_field(self, section_key: str, field_name: str, value: Any) -> None:
        """User edit: write the value and protect the field from merges."""
        section = self._section(section_key)
        if self._owners.get(field_name) != section_key:
            raise DocumentError(
                f"Field '{field_name}' does not belong to section '{section_key}'."
            )
        section.fields[field_name] = copy.deepcopy(value)
        section.user_edited_fields.add(field_name)

    def clear_user_edit(self, section_key: str, field_name: str) -> None:
        """Hand a field back to automated merges."""
        self._section(section_key).user_edited_fields.discard(field_name)

    def set_locked(self, section_key: str, locked: bool) -> None:
        self._section(section_key).locked = locked

    def toggle_lock(self, section_key: str) -> bool:
        section = self._section(section_key)
        section.locked = not section.locked
        return section.locked

    def set_notes(self, section_key: str, notes: Optional[str]) -> None:
        self._section(section_key).notes = notes or None

    # ── Internal ──────────────────────────────────────────────────────────────

    def _section(self, section_key: str) -> Section:
        section = self._sections.get(section_key)
        if section is None:
            raise SectionNotFoundError(section_key, list(self._sections))
        return section

    def __repr__(self) -> str:
        locked = [k for k, s in self._sections.items() if s.locked]
        return f"<DocumentStore name={self.name!r} sections={len(self._sections)} locked={locked}>"
