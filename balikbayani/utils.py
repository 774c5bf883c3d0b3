# balikbayani/utils.py
from __future__ import annotations
from typing import Any, NotRequired, TypedDict
from collections.abc import Callable
from dataclasses import dataclass

from .validation import ValidatorFunc, DateHorizon, RuleContext

# ===================================================================
# 1. CORE DATA STRUCTURES & TYPE ALIASES
# ===================================================================

@dataclass(frozen=True)
class FormField:
    """Defines everything about a form field in one place."""
    key: str
    label: str
    kind: str = 'text'  # text | date | select | radio | file | number
    required: bool = False
    # Column name on the backend; correction flags use this name.
    db_column: str | None = None
    # Name on the create request when it differs from `key` (camelCase multipart fields).
    form_name: str | None = None
    options: list[str] | dict[str, str] | None = None
    default_value: Any = ''
    max_length: int | None = None
    # Entry-time normalization (uppercase, phone prefix, identifiers).
    normalizer: Callable[[str], str] | None = None
    # Type conversion for JSON create payloads (numbers, yes/no -> bool).
    coerce: Callable[[Any], Any] | None = None
    # Backend columns tried in order when loading an existing application.
    source_columns: tuple[str, ...] = ()
    min_date: DateHorizon | None = None
    max_date: DateHorizon | None = None

    @property
    def correction_key(self) -> str:
        return self.db_column or self.key

    @property
    def wire_name(self) -> str:
        return self.form_name or self.key

    @property
    def load_columns(self) -> tuple[str, ...]:
        return self.source_columns or (self.correction_key,)


@dataclass(frozen=True)
class CompositeField:
    """A value the backend stores as one column but the form splits into parts (full name)."""
    key: str
    label: str
    parts: tuple[str, ...]


@dataclass(frozen=True)
class DocumentSlotDef:
    """One upload target and the metadata fields that belong to it."""
    key: str
    label: str
    required: bool = False
    form_name: str | None = None
    document_type: str | None = None
    meta_fields: tuple[str, ...] = ()

    @property
    def server_type(self) -> str:
        return self.document_type or self.key

    @property
    def correction_key(self) -> str:
        return f"document_{self.server_type}"

    @property
    def wire_name(self) -> str:
        return self.form_name or self.key


@dataclass(frozen=True)
class DependsOn:
    """
    Gate for a conditional rule: either a document slot has to be filled
    (new file or a previously uploaded one), or another field has to hold a value.
    """
    slot: str | None = None
    field: str | None = None
    equals: Any = None

    def is_met(self, ctx: RuleContext) -> bool:
        if self.slot is not None:
            return ctx.slot_filled(self.slot)
        if self.field is not None:
            return ctx.get(self.field) == self.equals
        return True


class FieldConfig(TypedDict):
    field: FormField
    validators: list[ValidatorFunc]
    depends_on: NotRequired[DependsOn]

class DocumentConfig(TypedDict):
    slot: DocumentSlotDef
    validators: list[ValidatorFunc]

class StepDefinition(TypedDict):
    id: str
    title: str
    subtitle: str
    fields: list[FieldConfig]
    documents: list[DocumentConfig]
    # Summary toast shown when the step does not validate.
    error_title: str
    error_detail: str
    enter_message: NotRequired[str]

# ===================================================================
# 2. CENTRALIZED CONSTANTS & SESSION MANAGEMENT
# ===================================================================

STEP_KEY: str = 'step'
FORM_STATE_KEY: str = 'formState'
DOC_META_KEY: str = 'docMeta'
GENERIC_CORRECTION_MESSAGE: str = 'This field needs correction.'
REVIEW_STEP: str = 'review'
