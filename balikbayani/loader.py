# balikbayani/loader.py
from __future__ import annotations
import asyncio
import logging
from typing import Any
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from .api import Err, DocumentRecord, PortalApiClient
from .corrections import decode_corrections
from .form_data_builder import ProgramType, PROGRAM_REGISTRY
from .form_state import DocumentSlot, ExistingRef, UploadedFile
from .schemas import ProgramSchema, SCHEMAS, split_full_name
from .utils import FormField
from .validation import normalize_amount

logger = logging.getLogger(__name__)


@dataclass
class LoadedApplication:
    values: dict[str, Any] = field(default_factory=dict)
    documents: dict[str, DocumentSlot] = field(default_factory=dict)
    correction_fields: set[str] = field(default_factory=set)
    reasons: dict[str, str] = field(default_factory=dict)
    # Converted salary the backend already stored, shown while the salary is untouched.
    stored_usd: Any = None

# ===================================================================
# 1. SERVER RECORD -> FORM VALUES
# ===================================================================

def _to_form_value(form_field: FormField, raw: Any) -> Any:
    if isinstance(raw, bool):
        if isinstance(form_field.options, dict) and 'yes' in form_field.options:
            return 'yes' if raw else 'no'
        return str(raw).lower()
    if form_field.kind == 'date':
        return str(raw)[:10]
    if isinstance(raw, (int, float)):
        try:
            return normalize_amount(raw)
        except ValueError:
            return str(raw)
    return str(raw)

def values_from_record(schema: ProgramSchema, record: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, form_field in schema.fields.items():
        raw = next((record[c] for c in form_field.load_columns if record.get(c) is not None), None)
        if raw is not None:
            values[key] = _to_form_value(form_field, raw)
    for composite in schema.composites.values():
        full_value = record.get(composite.key)
        if full_value and not any(values.get(part) for part in composite.parts):
            values.update(split_full_name(str(full_value), composite.parts))
    return values

def _stored_usd(record: Mapping[str, Any]) -> Any:
    # `salary` holds the USD figure only when the raw amount is kept separately.
    if record.get('salary_usd') is not None:
        return record['salary_usd']
    if record.get('raw_salary') is not None:
        return record.get('salary')
    return None

# ===================================================================
# 2. THE LOAD CHAIN
# ===================================================================

async def _fetch_file(api: PortalApiClient, record: DocumentRecord) -> UploadedFile | None:
    result = await api.fetch_document(record.id)
    if isinstance(result, Err):
        logger.warning(f"Could not fetch document {record.id} ({record.document_type}): {result.message or result.code}")
        return None
    return UploadedFile(
        name=record.file_name,
        content=result.data.content,
        content_type=record.mime_type or result.data.content_type,
        from_existing=True,
    )

async def load_application(api: PortalApiClient, program: ProgramType, application_id: str, *,
                           is_alive: Callable[[], bool] = lambda: True) -> LoadedApplication | None:
    """
    application -> corrections -> documents -> all binaries at once.

    Returns None when the application itself cannot be read or the session went away
    in the meantime. Corrections, documents and binaries degrade to empty/absent.
    """
    schema = SCHEMAS[program]
    template = PROGRAM_REGISTRY[program]

    app_result = await api.get_application(program, application_id)
    if isinstance(app_result, Err):
        logger.warning(f"Could not load {template['name']} application {application_id}: "
                       f"{app_result.message or app_result.code}")
        return None
    if not is_alive():
        return None
    record = app_result.data
    loaded = LoadedApplication(values=values_from_record(schema, record), stored_usd=_stored_usd(record))

    corrections = await api.get_corrections(program, application_id)
    if isinstance(corrections, Err):
        logger.warning(f"Could not load corrections for {application_id}: {corrections.message or corrections.code}")
    else:
        loaded.correction_fields, loaded.reasons = decode_corrections(corrections.data)
    if not is_alive():
        return None

    if schema.slots:
        documents = await api.list_documents(application_id, template['application_type'])
        if not is_alive():
            return None
        if isinstance(documents, Err):
            logger.warning(f"Could not list documents for {application_id}: {documents.message or documents.code}")
        else:
            matched: list[tuple[str, DocumentRecord]] = []
            for doc in documents.data:
                slot_def = schema.slot_for_document_type(doc.document_type)
                if slot_def is None:
                    continue
                loaded.documents[slot_def.key] = DocumentSlot(
                    slot_def.key, existing_ref=ExistingRef(doc.id, doc.file_name, doc.mime_type)
                )
                for meta_key in slot_def.meta_fields:
                    meta_field = schema.field(meta_key)
                    meta_value = doc.meta.get(meta_key, doc.meta.get(meta_field.wire_name))
                    if meta_value not in (None, ''):
                        loaded.values[meta_key] = _to_form_value(meta_field, meta_value)
                matched.append((slot_def.key, doc))

            files = await asyncio.gather(*(_fetch_file(api, doc) for _, doc in matched))
            if not is_alive():
                return None
            for (slot_key, _), uploaded in zip(matched, files):
                loaded.documents[slot_key].file = uploaded

    return loaded
