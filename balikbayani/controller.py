# balikbayani/controller.py
from __future__ import annotations
import logging
from typing import Any
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date

from .api import PortalApiClient
from .config import REDIRECT_DELAY_MS, STATUS_ROUTE
from .corrections import (
    is_field_editable, is_field_flagged, correction_reason as reason_for, has_correction_changes
)
from .currency import usd_equivalent
from .drafts import DraftPayload, DraftPersister, DraftStore
from .form_data_builder import ProgramType, PROGRAM_REGISTRY, get_program
from .form_state import FormState, InitialSnapshot, UploadedFile
from .loader import load_application
from .navigation import advance, retreat, validate_all
from .notify import LogNotifier, Notifier, Redirector
from .schemas import SCHEMAS
from .step_definitions import STEPS_BY_PROGRAM
from .submission import (
    ErrorCategory, SubmissionError, SubmissionOutcome,
    build_create_request, build_correction_request, control_number_of,
    ensure_session, send_request, success_url
)
from .utils import REVIEW_STEP
from .validation import clamp_date, first_error, is_allowed_upload

logger = logging.getLogger(__name__)

SALARY_KEYS: tuple[str, ...] = ('salary_amount', 'salary')
CURRENCY_KEY: str = 'salary_currency'


@dataclass(frozen=True)
class ChecklistItem:
    key: str
    label: str
    complete: bool


class FormController:
    """
    One applicant form session: state, step, errors, corrections and drafts.

    The UI calls the operations and re-renders afterwards; nothing here renders.
    """

    def __init__(self, program: ProgramType | str, api: PortalApiClient, notifier: Notifier | None,
                 draft_store: DraftStore, *, application_id: str | None = None,
                 needs_correction: bool = False, correction_fields: Iterable[str] = (),
                 today: date | None = None, redirector: Redirector | None = None) -> None:
        self.program = get_program(program)
        self.template = PROGRAM_REGISTRY[self.program]
        self.schema = SCHEMAS[self.program]
        self.steps = STEPS_BY_PROGRAM[self.program]
        self.api = api
        self.notifier: Notifier = notifier or LogNotifier()
        self.redirector = redirector
        self.application_id = application_id
        self.needs_correction = needs_correction
        self.correction_fields: set[str] = set(correction_fields)
        self.reasons: dict[str, str] = {}
        self._today = today

        self.state = FormState(self.schema)
        self.step: str = self.template['step_sequence'][0]
        self.errors: dict[str, str] = {}
        self.snapshot: InitialSnapshot | None = None
        # Drafts belong to new applications only.
        self.drafts = DraftPersister(draft_store, self.template['draft_key'], enabled=application_id is None)
        self.alive = True
        self.loading = False
        self.submitting = False
        self.stored_usd: Any = None
        self._salary_touched = False

    @property
    def today(self) -> date:
        return self._today or date.today()

    @property
    def in_correction(self) -> bool:
        return self.needs_correction and self.application_id is not None

    # ===================================================================
    # LIFECYCLE
    # ===================================================================

    def mount(self) -> None:
        draft = self.drafts.load()
        if draft is not None:
            self.state.merge(draft.form_state)
            self.state.merge(draft.doc_meta)
            if draft.step in self.template['step_sequence']:
                self.step = draft.step
            logger.info(f"Restored draft '{self.drafts.key}' at step '{self.step}'.")
        self.drafts.mount()

    def close(self) -> None:
        self.alive = False
        self.state.reset()

    async def load_existing(self) -> bool:
        if self.application_id is None:
            return False
        self.loading = True
        try:
            loaded = await load_application(self.api, self.program, self.application_id,
                                            is_alive=lambda: self.alive)
        finally:
            self.loading = False
        if loaded is None or not self.alive:
            return False
        self.state.replace(loaded.values, loaded.documents)
        self.correction_fields |= loaded.correction_fields
        self.reasons.update(loaded.reasons)
        self.stored_usd = loaded.stored_usd
        self._salary_touched = False
        if self.needs_correction:
            self.snapshot = InitialSnapshot.capture(self.state)
        logger.info(f"Loaded {self.template['name']} application {self.application_id} "
                    f"({len(self.correction_fields)} flagged).")
        return True

    def _persist(self) -> None:
        self.drafts.save(DraftPayload(self.state.form_values(), self.state.doc_meta(), self.step))

    # ===================================================================
    # EDITING
    # ===================================================================

    def is_editable(self, key: str) -> bool:
        return is_field_editable(key, self.schema, self.needs_correction, self.correction_fields)

    def is_flagged(self, key: str) -> bool:
        return is_field_flagged(key, self.schema, self.needs_correction, self.correction_fields)

    def correction_reason(self, key: str) -> str:
        return reason_for(key, self.schema, self.reasons)

    def _rule_filter(self) -> Callable[[str], bool] | None:
        # During a correction only editable keys are checked.
        return self.is_editable if self.in_correction else None

    def update_field(self, key: str, value: Any) -> bool:
        form_field = self.schema.field(key)
        if not self.is_editable(key):
            logger.info(f"Ignoring edit of locked field '{key}'.")
            return False
        if isinstance(value, str) and form_field.normalizer:
            value = form_field.normalizer(value)
        if form_field.kind == 'date' and value and (form_field.min_date or form_field.max_date):
            value = clamp_date(value, self.today, form_field.min_date, form_field.max_date)
        self.state.set(key, value)
        self.errors.pop(key, None)
        if key in SALARY_KEYS or key == CURRENCY_KEY:
            self._salary_touched = True
        self._persist()
        return True

    def attach_document(self, slot_key: str, uploaded: UploadedFile) -> bool:
        slot_def = self.schema.slot(slot_key)
        if not self.is_editable(slot_key):
            logger.info(f"Ignoring upload to locked slot '{slot_key}'.")
            return False
        if not is_allowed_upload(uploaded.name, uploaded.content_type):
            self.notifier.notify('negative', 'Unsupported file type',
                                 f"{slot_def.label} must be a PDF or an image (PNG, JPEG or GIF).")
            return False
        self.state.slot(slot_key).file = uploaded
        self.errors.pop(slot_key, None)
        self._persist()
        return True

    def remove_document(self, slot_key: str) -> bool:
        self.schema.slot(slot_key)
        if not self.is_editable(slot_key):
            return False
        slot = self.state.slot(slot_key)
        slot.file = None
        slot.existing_ref = None
        self.errors.pop(slot_key, None)
        self._persist()
        return True

    # ===================================================================
    # NAVIGATION
    # ===================================================================

    def go_next(self) -> bool:
        transition = advance(self.step, self.template, self.steps, self.state, self.today,
                             self._rule_filter())
        self.errors = transition.errors
        if not transition.ok:
            step_def = self.steps[transition.step]
            self.notifier.notify('negative', step_def['error_title'],
                                 first_error(transition.errors) or step_def['error_detail'])
            self.step = transition.step
            self._persist()
            return False
        if transition.step == REVIEW_STEP and self.in_correction and not self.has_changes():
            self.notifier.notify('warning', 'No changes yet', 'Update at least one of the highlighted fields.')
            return False
        moved = transition.step != self.step
        self.step = transition.step
        enter_message = self.steps[self.step].get('enter_message')
        if moved and enter_message:
            self.notifier.notify('info', enter_message)
        self._persist()
        return moved

    def go_back(self) -> None:
        self.step = retreat(self.step, self.template).step
        self.errors = {}
        self._persist()

    def has_changes(self) -> bool:
        return has_correction_changes(self.needs_correction, self.correction_fields, self.state, self.snapshot)

    # ===================================================================
    # SUBMISSION
    # ===================================================================

    async def submit(self) -> SubmissionOutcome:
        if self.submitting:
            return SubmissionOutcome(False, 'Submission already in progress.')
        failure = validate_all(self.template, self.steps, self.state, self.today, self._rule_filter())
        if failure is not None:
            self.errors, self.step = failure.errors, failure.step
            step_def = self.steps[failure.step]
            message = first_error(failure.errors) or step_def['error_detail']
            self.notifier.notify('negative', step_def['error_title'], message)
            return SubmissionOutcome(False, message, category=ErrorCategory.VALIDATION)

        correcting = self.in_correction
        if correcting and not self.has_changes():
            message = 'Update at least one of the highlighted fields.'
            self.notifier.notify('warning', 'No changes to submit', message)
            return SubmissionOutcome(False, message, category=ErrorCategory.VALIDATION)
        if correcting:
            request = build_correction_request(self.state, self.correction_fields, self.snapshot)
        else:
            request = build_create_request(self.program, self.state)

        self.submitting = True
        try:
            await ensure_session(self.api, self.program)
            self.notifier.notify('info', 'Submitting application...', 'Please wait while we process your submission.')
            data = await send_request(self.api, self.program, request,
                                      self.application_id if correcting else None)
        except SubmissionError as e:
            return self._fail(e)
        finally:
            self.submitting = False

        if correcting:
            message = 'Your corrections have been submitted for review.'
            self.notifier.notify('positive', 'Corrections submitted', message)
            logger.info(f"Corrections for {self.template['name']} application {self.application_id} submitted.")
            self._redirect(STATUS_ROUTE)
            return SubmissionOutcome(True, message, redirect_to=STATUS_ROUTE)

        self.drafts.clear()
        self.state.reset()
        control_number = control_number_of(data)
        message = f"Your {self.template['name']} application has been submitted."
        if control_number:
            message += f" Control number: {control_number}."
        self.notifier.notify('positive', 'Application submitted', message)
        logger.info(f"{self.template['name']} application submitted, control number {control_number}.")
        redirect_to = success_url(self.program, control_number)
        self._redirect(redirect_to)
        return SubmissionOutcome(True, message, control_number=control_number, redirect_to=redirect_to)

    def _fail(self, error: SubmissionError) -> SubmissionOutcome:
        self.notifier.notify('negative', error.title, error.message)
        if error.redirect_to:
            self._redirect(error.redirect_to, REDIRECT_DELAY_MS)
        return SubmissionOutcome(False, error.message, category=error.category, redirect_to=error.redirect_to)

    def _redirect(self, url: str, delay_ms: int = 0) -> None:
        if self.redirector is not None:
            self.redirector.redirect(url, delay_ms)

    # ===================================================================
    # DISPLAY HELPERS
    # ===================================================================

    def document_checklist(self) -> list[ChecklistItem]:
        items: list[ChecklistItem] = []
        for slot_def in self.schema.slots.values():
            if not slot_def.required:
                continue
            filled = self.state.slot(slot_def.key).is_filled()
            meta_done = all(str(self.state.get(k) or '').strip() for k in slot_def.meta_fields)
            items.append(ChecklistItem(slot_def.key, slot_def.label, filled and meta_done))
        return items

    def usd_equivalent(self) -> str:
        salary_key = next((k for k in SALARY_KEYS if k in self.schema.fields), None)
        if salary_key is None:
            return ''
        return usd_equivalent(
            self.state.get(salary_key), self.state.get(CURRENCY_KEY) or '',
            stored_usd=self.stored_usd, touched=self._salary_touched,
        )
