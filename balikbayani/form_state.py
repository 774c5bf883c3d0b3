# balikbayani/form_state.py
from __future__ import annotations
from typing import Any
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType

from .schemas import ProgramSchema

# ===================================================================
# 1. DOCUMENTS
# ===================================================================

@dataclass(frozen=True, eq=False)
class UploadedFile:
    """
    A file held in memory for one form session.

    `from_existing` marks files rebuilt from a previously stored document; only
    files the applicant attached in this session count as new uploads.
    Equality is identity, two uploads of the same bytes are still two files.
    """
    name: str
    content: bytes
    content_type: str = 'application/octet-stream'
    from_existing: bool = False

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ExistingRef:
    id: str
    file_name: str
    mime_type: str = ''


@dataclass
class DocumentSlot:
    key: str
    file: UploadedFile | None = None
    existing_ref: ExistingRef | None = None

    def is_filled(self) -> bool:
        return self.file is not None or self.existing_ref is not None

    def has_new_file(self) -> bool:
        return self.file is not None and not self.file.from_existing

    @property
    def current(self) -> UploadedFile | ExistingRef | None:
        # A newly attached file wins over the stored one.
        return self.file if self.file is not None else self.existing_ref

# ===================================================================
# 2. THE FORM STATE STORE
# ===================================================================

class FormState:
    """Current values and document slots of one applicant form, keyed by schema field key."""

    def __init__(self, schema: ProgramSchema) -> None:
        self.schema = schema
        self.values: dict[str, Any] = schema.defaults()
        self.documents: dict[str, DocumentSlot] = {key: DocumentSlot(key) for key in schema.slots}

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if key not in self.schema.fields:
            raise KeyError(f"Unknown field '{key}'")
        self.values[key] = value

    def slot(self, key: str) -> DocumentSlot:
        return self.documents[key]

    def replace(self, values: Mapping[str, Any],
                documents: Mapping[str, DocumentSlot] | None = None) -> None:
        """Wholesale replacement (load from server or reset). Unknown keys are dropped."""
        fresh = self.schema.defaults()
        fresh.update({k: v for k, v in values.items() if k in fresh})
        self.values = fresh
        self.documents = {key: DocumentSlot(key) for key in self.schema.slots}
        for key, slot in (documents or {}).items():
            if key in self.documents:
                self.documents[key] = slot

    def reset(self) -> None:
        self.replace({})

    def merge(self, saved: Mapping[str, Any]) -> None:
        """Shallow merge of saved values over the current ones, limited to schema fields."""
        for key, value in saved.items():
            if key in self.values:
                self.values[key] = value

    def form_values(self) -> dict[str, Any]:
        return {k: v for k, v in self.values.items() if k not in self.schema.meta_keys}

    def doc_meta(self) -> dict[str, Any]:
        return {k: v for k, v in self.values.items() if k in self.schema.meta_keys}

    def context(self, today: date) -> ValidationContext:
        return ValidationContext(self, today)


class ValidationContext:
    """Read-only view handed to validators and `depends_on` gates."""

    def __init__(self, state: FormState, today: date) -> None:
        self._state = state
        self.today = today

    def get(self, key: str, default: Any = None) -> Any:
        return self._state.get(key, default)

    def slot_filled(self, slot_key: str) -> bool:
        slot = self._state.documents.get(slot_key)
        return slot is not None and slot.is_filled()

# ===================================================================
# 3. THE BASELINE FOR CORRECTIONS
# ===================================================================

@dataclass(frozen=True)
class InitialSnapshot:
    values: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    files: Mapping[str, UploadedFile | None] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def capture(cls, state: FormState) -> InitialSnapshot:
        return cls(
            values=MappingProxyType(dict(state.values)),
            files=MappingProxyType({key: slot.file for key, slot in state.documents.items()}),
        )
