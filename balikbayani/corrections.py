# balikbayani/corrections.py
from __future__ import annotations
import logging
import re
from typing import Any
from collections.abc import Iterable, Mapping

from .form_state import FormState, InitialSnapshot, UploadedFile
from .schemas import ProgramSchema
from .utils import CompositeField, GENERIC_CORRECTION_MESSAGE

logger = logging.getLogger(__name__)

# Backend column names the staff side flags, as applicants see them.
CORRECTION_FIELD_LABELS: dict[str, str] = {
    'name': 'Name',
    'name_of_worker': 'Name of Worker',
    'email': 'Email',
    'cellphone': 'Phone Number',
    'raw_salary': 'Salary',
    'salary': 'Salary',
    'salary_currency': 'Salary Currency',
    'jobsite': 'Job Site',
    'passport_validity': 'Passport Validity',
    'with_taiwan_work_experience': 'Taiwan Work Experience',
    'with_job_experience': 'Other Job Experience',
    'document_passport': 'Passport',
    'document_work_visa': 'Work Visa',
    'document_employment_contract': 'Employment Contract',
    'document_tesda_license': 'TESDA / PRC License',
}

_WHITESPACE = re.compile(r'\s+')

# ===================================================================
# 1. FLAGS, LABELS AND REASONS
# ===================================================================

def correction_label(correction_key: str, schema: ProgramSchema | None = None) -> str:
    if correction_key in CORRECTION_FIELD_LABELS:
        return CORRECTION_FIELD_LABELS[correction_key]
    if schema is not None:
        field = schema.field_for_correction(correction_key)
        if field is not None:
            return field.label
        slot = schema.slot_for_correction(correction_key)
        if slot is not None:
            return slot.label
        if correction_key in schema.composites:
            return schema.composites[correction_key].label
    return correction_key.replace('_', ' ').title()

def is_field_flagged(key: str, schema: ProgramSchema, needs_correction: bool,
                     correction_fields: Iterable[str]) -> bool:
    if not needs_correction:
        return False
    return schema.correction_key_for(key) in set(correction_fields)

def is_field_editable(key: str, schema: ProgramSchema, needs_correction: bool,
                      correction_fields: Iterable[str]) -> bool:
    """Outside correction mode everything is editable; inside it, only flagged fields."""
    if not needs_correction:
        return True
    return schema.correction_key_for(key) in set(correction_fields)

def correction_reason(key: str, schema: ProgramSchema, reasons: Mapping[str, str]) -> str:
    return reasons.get(schema.correction_key_for(key)) or GENERIC_CORRECTION_MESSAGE

def decode_corrections(items: Iterable[Any]) -> tuple[set[str], dict[str, str]]:
    """Turns correction items (`field_key`, `message`) into the flag set and the reason map."""
    flags: set[str] = set()
    reasons: dict[str, str] = {}
    for item in items:
        key = getattr(item, 'field_key', None)
        if not key:
            continue
        flags.add(key)
        message = getattr(item, 'message', None)
        if message:
            reasons[key] = message
    return flags, reasons

# ===================================================================
# 2. THE DIFFER
# ===================================================================

def files_equivalent(current: UploadedFile | None, initial: UploadedFile | None) -> bool:
    """
    Presence first, then identity, then name and size.
    The last check is a heuristic, two different files can share both.
    """
    if (current is None) != (initial is None):
        return False
    if current is None or initial is None or current is initial:
        return True
    return current.name == initial.name and current.size == initial.size

def document_changed(state: FormState, snapshot: InitialSnapshot | None, slot_key: str) -> bool:
    """Only a newly attached file counts. Clearing a stored document is not something a resubmission can carry."""
    slot = state.slot(slot_key)
    if not slot.has_new_file():
        return False
    return snapshot is None or not files_equivalent(slot.file, snapshot.files.get(slot_key))

def composite_value(values: Mapping[str, Any], composite: CompositeField) -> str:
    joined = ' '.join(str(values.get(part) or '') for part in composite.parts)
    return _WHITESPACE.sub(' ', joined).strip().upper()

def as_text(value: Any) -> str:
    return '' if value is None else str(value)

def has_correction_changes(needs_correction: bool, correction_fields: Iterable[str],
                           state: FormState, snapshot: InitialSnapshot | None) -> bool:
    """
    Whether resubmission is unlocked.

    Normal submissions are never blocked. In correction mode nothing counts as changed
    until the snapshot exists, and only flagged keys are compared.
    """
    if not needs_correction:
        return True
    if snapshot is None:
        return False
    schema = state.schema
    for correction_key in correction_fields:
        if correction_key in schema.composites:
            composite = schema.composites[correction_key]
            if composite_value(state.values, composite) != composite_value(snapshot.values, composite):
                return True
            continue
        slot = schema.slot_for_correction(correction_key)
        if slot is not None:
            if document_changed(state, snapshot, slot.key):
                return True
            continue
        field = schema.field_for_correction(correction_key)
        if field is None:
            logger.debug(f"Correction flag '{correction_key}' has no field on this form.")
            continue
        if as_text(state.get(field.key)) != as_text(snapshot.values.get(field.key)):
            return True
    return False
