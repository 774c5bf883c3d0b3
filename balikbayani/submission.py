# balikbayani/submission.py
from __future__ import annotations
import logging
from enum import Enum
from typing import Any, Literal
from collections.abc import Iterable
from dataclasses import dataclass, field
from urllib.parse import quote

from .api import Ok, Err, PortalApiClient
from .config import LOGIN_ROUTE, STATUS_ROUTE
from .corrections import as_text, composite_value, document_changed
from .form_data_builder import ProgramType, PROGRAM_REGISTRY
from .form_state import FormState, InitialSnapshot
from .validation import normalize_amount

logger = logging.getLogger(__name__)

FileTuple = tuple[str, tuple[str, bytes, str]]

# ===================================================================
# 1. ERRORS & OUTCOMES
# ===================================================================

class ErrorCategory(Enum):
    VALIDATION = 'validation'
    SESSION = 'session'
    CONFLICT = 'conflict'
    PAYLOAD_TOO_LARGE = 'payload_too_large'
    SERVER = 'server'


ERROR_TITLES: dict[ErrorCategory, str] = {
    ErrorCategory.VALIDATION: 'Submission failed',
    ErrorCategory.SESSION: 'Session expired',
    ErrorCategory.CONFLICT: 'Application already exists',
    ErrorCategory.PAYLOAD_TOO_LARGE: 'Files too large',
    ErrorCategory.SERVER: 'Submission failed',
}

SESSION_EXPIRED_MESSAGE = 'Your session has expired. Please log in again to submit your application.'
UNAUTHORIZED_MESSAGE = 'Please log in again to submit your application.'
VALIDATION_FALLBACK_MESSAGE = 'Please check all required fields and try again.'
PAYLOAD_TOO_LARGE_MESSAGE = 'File size too large. Please reduce the size of your documents and try again.'
SERVER_ERROR_MESSAGE = 'Server error. Please try again later or contact support if the problem persists.'
SUBMISSION_FAILED_MESSAGE = 'Submission failed. Please try again.'


class SubmissionError(Exception):
    def __init__(self, category: ErrorCategory, message: str, *,
                 status: int | None = None, redirect_to: str | None = None) -> None:
        super().__init__(message)
        self.category = category
        self.message = message
        self.status = status
        self.redirect_to = redirect_to

    @property
    def title(self) -> str:
        return ERROR_TITLES[self.category]


@dataclass(frozen=True)
class SubmissionRequest:
    encoding: Literal['json', 'multipart']
    json_body: dict[str, Any] | None = None
    data: dict[str, str] = field(default_factory=dict)
    files: list[FileTuple] = field(default_factory=list)


@dataclass(frozen=True)
class SubmissionOutcome:
    success: bool
    message: str = ''
    control_number: str | None = None
    category: ErrorCategory | None = None
    redirect_to: str | None = None

# ===================================================================
# 2. ROUTES
# ===================================================================

def start_route(program: ProgramType) -> str:
    return f"/applicant/start/{program.slug}"

def session_expired_url(program: ProgramType) -> str:
    return f"{LOGIN_ROUTE}?from={start_route(program)}&sessionExpired=true"

def unauthorized_url(program: ProgramType) -> str:
    return f"{LOGIN_ROUTE}?from={start_route(program)}"

def success_url(program: ProgramType, control_number: str | None) -> str:
    if not control_number:
        return STATUS_ROUTE
    return f"{STATUS_ROUTE}?submitted={program.slug}&control={quote(control_number, safe='')}"

# ===================================================================
# 3. PAYLOAD ASSEMBLY
# ===================================================================

def _normalized_number(value: Any) -> str:
    try:
        return normalize_amount(value)
    except ValueError:
        return str(value)

def build_create_request(program: ProgramType, state: FormState) -> SubmissionRequest:
    """
    Every schema field goes out. Multipart programs send strings under their wire names
    plus every attached file; JSON programs send coerced values (numbers, booleans).
    """
    schema = state.schema
    if PROGRAM_REGISTRY[program]['create_encoding'] == 'json':
        body: dict[str, Any] = {}
        for key, form_field in schema.fields.items():
            value = state.get(key)
            body[form_field.wire_name] = form_field.coerce(value) if form_field.coerce else value
        return SubmissionRequest('json', json_body=body)

    data: dict[str, str] = {}
    for key, form_field in schema.fields.items():
        value = state.get(key)
        if value is None:
            continue
        # Metadata of documents that were never filled in stays off the wire.
        if key in schema.meta_keys and value == '':
            continue
        data[form_field.wire_name] = _normalized_number(value) if form_field.kind == 'number' else str(value)
    files: list[FileTuple] = []
    for slot_key, slot in state.documents.items():
        if slot.file is not None:
            files.append((schema.slot(slot_key).wire_name, (slot.file.name, slot.file.content, slot.file.content_type)))
    return SubmissionRequest('multipart', data=data, files=files)

def build_correction_request(state: FormState, correction_fields: Iterable[str],
                             snapshot: InitialSnapshot | None) -> SubmissionRequest:
    """
    Only flagged keys the applicant actually changed go out, keyed by their correction key.
    A newly attached flagged document switches the whole request to multipart.
    """
    schema = state.schema
    payload: dict[str, Any] = {}
    new_uploads = []
    for correction_key in sorted(set(correction_fields)):
        if correction_key in schema.composites:
            composite = schema.composites[correction_key]
            current = composite_value(state.values, composite)
            if snapshot is None or current != composite_value(snapshot.values, composite):
                payload[correction_key] = current
            continue
        slot_def = schema.slot_for_correction(correction_key)
        if slot_def is not None:
            if document_changed(state, snapshot, slot_def.key):
                new_uploads.append(slot_def)
            continue
        form_field = schema.field_for_correction(correction_key)
        if form_field is None:
            continue
        value = state.get(form_field.key)
        if snapshot is None or as_text(value) != as_text(snapshot.values.get(form_field.key)):
            payload[correction_key] = value

    if not new_uploads:
        return SubmissionRequest('json', json_body={'payload': payload})

    data = {key: as_text(value) for key, value in payload.items()}
    files: list[FileTuple] = []
    for slot_def in new_uploads:
        uploaded = state.slot(slot_def.key).file
        assert uploaded is not None
        files.append((slot_def.wire_name, (uploaded.name, uploaded.content, uploaded.content_type)))
        for meta_key in slot_def.meta_fields:
            meta_value = state.get(meta_key)
            if meta_value not in (None, ''):
                data[schema.field(meta_key).wire_name] = str(meta_value)
    return SubmissionRequest('multipart', data=data, files=files)

# ===================================================================
# 4. SENDING
# ===================================================================

def categorize_failure(program: ProgramType, err: Err) -> SubmissionError:
    if err.code == 0:
        return SubmissionError(ErrorCategory.SERVER, err.message or SERVER_ERROR_MESSAGE, status=0)
    if err.code == 409:
        return SubmissionError(ErrorCategory.CONFLICT, PROGRAM_REGISTRY[program]['conflict_message'], status=409)
    if err.code == 400:
        return SubmissionError(ErrorCategory.VALIDATION, err.message or VALIDATION_FALLBACK_MESSAGE, status=400)
    if err.code == 401:
        return SubmissionError(ErrorCategory.SESSION, UNAUTHORIZED_MESSAGE, status=401,
                               redirect_to=unauthorized_url(program))
    if err.code == 413:
        return SubmissionError(ErrorCategory.PAYLOAD_TOO_LARGE, PAYLOAD_TOO_LARGE_MESSAGE, status=413)
    if err.code >= 500:
        return SubmissionError(ErrorCategory.SERVER, SERVER_ERROR_MESSAGE, status=err.code)
    return SubmissionError(ErrorCategory.VALIDATION, err.message or SUBMISSION_FAILED_MESSAGE, status=err.code)

async def ensure_session(api: PortalApiClient, program: ProgramType) -> None:
    if not await api.validate_session():
        raise SubmissionError(ErrorCategory.SESSION, SESSION_EXPIRED_MESSAGE,
                              redirect_to=session_expired_url(program))

async def send_request(api: PortalApiClient, program: ProgramType, request: SubmissionRequest,
                       application_id: str | None = None) -> Any:
    """Creates (no id) or resolves corrections (with id). Returns the response data, raises SubmissionError."""
    kwargs: dict[str, Any] = {}
    if request.encoding == 'json':
        kwargs['json_body'] = request.json_body
    else:
        kwargs['data'] = request.data
        kwargs['files'] = request.files
    if application_id is None:
        result = await api.create_application(program, **kwargs)
    else:
        result = await api.resolve_corrections(program, application_id, **kwargs)
    if isinstance(result, Err):
        logger.warning(f"{program.value} submission rejected ({result.code}): {result.message}")
        raise categorize_failure(program, result)
    assert isinstance(result, Ok)
    return result.data

def control_number_of(data: Any) -> str | None:
    if isinstance(data, dict):
        control = data.get('controlNumber') or data.get('control_number')
        return str(control) if control else None
    return None
