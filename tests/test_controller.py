# tests/test_controller.py
from __future__ import annotations

import sys
import asyncio
import json
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from balikbayani.controller import FormController
from balikbayani.drafts import DraftPayload, MappingDraftStore
from balikbayani.form_data_builder import ProgramType
from balikbayani.form_state import UploadedFile
from balikbayani.notify import LogNotifier
from balikbayani.submission import ErrorCategory
from conftest import TODAY, FakeBackend, RecordingNotifier, RecordingRedirector, raise_connect_error

DH = ProgramType.DIRECT_HIRE
DRAFT_KEY = 'bb_applicant_direct_hire_form_v1'

DH_RECORD = {
    'id': '9', 'name': 'JUAN DELA CRUZ SANTOS', 'sex': 'male', 'email': 'a@x.com',
    'cellphone': '09171234567', 'jobsite': 'TAIPEI', 'position': 'WELDER', 'job_type': 'professional',
    'employer': 'ACME', 'raw_salary': 50000, 'salary': 900.0, 'salary_currency': 'PHP',
}

STORED_DOCUMENTS = [
    {'id': 1, 'document_type': 'passport', 'file_name': 'passport.pdf', 'mime_type': 'application/pdf',
     'meta': {'passport_number': 'P1234567', 'passport_expiry': '2027-01-01'}},
    {'id': 2, 'document_type': 'work_visa', 'file_name': 'visa.pdf', 'mime_type': 'application/pdf',
     'meta': json.dumps({'visa_category': 'Work Permit', 'visa_type': 'Professional',
                         'visa_number': 'V778', 'visa_validity': '2026-01-01'})},
    {'id': 3, 'document_type': 'employment_contract', 'file_name': 'contract.pdf', 'mime_type': 'application/pdf',
     'meta': {'ec_issued_date': '2025-01-15', 'ec_verification': 'for_mwo_polo'}},
    {'id': 4, 'document_type': 'tesda_license', 'file_name': 'tesda.png', 'mime_type': 'image/png'},
]

def _pdf(name: str) -> UploadedFile:
    return UploadedFile(name, b'%PDF-1.4 ' + name.encode(), 'application/pdf')

def _serve_stored_application(backend: FakeBackend) -> None:
    backend.on('GET', '/applicant/direct-hire/9', (200, {'success': True, 'data': DH_RECORD}))
    backend.on('GET', '/direct-hire/9/corrections', (200, {'success': True, 'data': []}))
    backend.on('GET', '/documents', (200, {'success': True, 'data': STORED_DOCUMENTS}))
    for doc in STORED_DOCUMENTS:
        backend.on('GET', f"/documents/{doc['id']}/view", (200, f"stored-{doc['id']}".encode()))

def _new_controller(backend: FakeBackend, notifier: RecordingNotifier, redirector: RecordingRedirector,
                    storage: dict[str, Any] | None = None) -> FormController:
    controller = FormController(DH, backend.client(), notifier, MappingDraftStore({} if storage is None else storage),
                                today=TODAY, redirector=redirector)
    controller.mount()
    return controller

def _fill_valid_direct_hire(controller: FormController) -> None:
    controller.state.values.update({
        'first_name': 'JUAN', 'last_name': 'CRUZ', 'contact_email': 'juan@x.com',
        'contact_number': '09171234567', 'jobsite': 'TAIPEI', 'position': 'WELDER',
        'salary_amount': '1500', 'salary_currency': 'USD',
        'passport_number': 'P1234567', 'passport_expiry': '2026-03-10',
        'visa_category': 'Work Permit', 'visa_type': 'Professional', 'visa_number': 'V1',
        'visa_validity': '2025-03-11', 'ec_issued_date': '2025-03-10', 'ec_verification': 'others',
    })
    for slot_key in ('passport', 'work_visa', 'employment_contract', 'tesda_license'):
        controller.state.slot(slot_key).file = _pdf(f'{slot_key}.pdf')

# ===================================================================
# EDITING
# ===================================================================

def test_update_field_normalizes_and_persists(backend, notifier, redirector) -> None:
    storage: dict[str, Any] = {}
    controller = _new_controller(backend, notifier, redirector, storage)
    assert controller.update_field('contact_number', '917 123 4567')
    assert controller.state.get('contact_number') == '09171234567', "Phone input is auto-corrected"
    assert controller.update_field('passport_number', 'p12-34 567')
    assert controller.state.get('passport_number') == 'P1234567'

    saved = DraftPayload.from_json(storage[DRAFT_KEY])
    assert saved.form_state['contact_number'] == '09171234567', "Every edit is saved as a draft"
    assert saved.doc_meta['passport_number'] == 'P1234567', "Document details go to the metadata section"
    assert saved.step == 'info'

def test_picked_dates_are_clamped_to_their_window(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    controller.update_field('passport_expiry', '2025-12-31')
    assert controller.state.get('passport_expiry') == '2026-03-10', "Expiry cannot be picked inside the next year"
    controller.update_field('ec_issued_date', '2030-01-01')
    assert controller.state.get('ec_issued_date') == '2025-03-10', "Issued dates cannot be in the future"
    controller.update_field('ec_issued_date', 'garbage')
    assert controller.state.get('ec_issued_date') == ''

def test_draft_is_restored_on_mount(backend, notifier, redirector) -> None:
    draft = DraftPayload({'first_name': 'ANA', 'not_a_field': 'x'}, {'passport_number': 'P9'}, 'documents')
    storage: dict[str, Any] = {DRAFT_KEY: draft.to_json()}
    controller = _new_controller(backend, notifier, redirector, storage)
    assert controller.state.get('first_name') == 'ANA'
    assert controller.state.get('passport_number') == 'P9'
    assert controller.step == 'documents', "The saved step is restored"
    assert 'not_a_field' not in controller.state.values

def test_unknown_draft_step_is_ignored(backend, notifier, redirector) -> None:
    storage: dict[str, Any] = {DRAFT_KEY: DraftPayload({}, {}, 'experience').to_json()}
    controller = _new_controller(backend, notifier, redirector, storage)
    assert controller.step == 'info', "Steps from another program fall back to the first step"

def test_unsupported_upload_is_rejected(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    assert not controller.attach_document('passport', UploadedFile('notes.txt', b'hello', 'text/plain'))
    assert controller.state.slot('passport').file is None
    assert notifier.titles() == ['Unsupported file type']
    assert controller.attach_document('passport', UploadedFile('scan.JPG', b'\xff\xd8', ''))
    assert controller.state.slot('passport').is_filled(), "Known extensions are accepted without a type"

def test_document_checklist_needs_file_and_details(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    controller.attach_document('passport', _pdf('passport.pdf'))
    controller.attach_document('tesda_license', _pdf('tesda.pdf'))
    checklist = {item.key: item.complete for item in controller.document_checklist()}
    assert checklist == {
        'passport': False, 'work_visa': False, 'employment_contract': False, 'tesda_license': True,
    }, "Only required documents are listed; a passport without details is incomplete"
    controller.update_field('passport_number', 'P1')
    controller.update_field('passport_expiry', '2027-01-01')
    assert next(i for i in controller.document_checklist() if i.key == 'passport').complete

def test_missing_notifier_falls_back_to_logging(backend) -> None:
    controller = FormController('direct-hire', backend.client(), None, MappingDraftStore({}), today=TODAY)
    assert isinstance(controller.notifier, LogNotifier)
    assert controller.program is DH, "Program slugs are accepted"

# ===================================================================
# NAVIGATION
# ===================================================================

def test_negative_salary_blocks_the_first_step(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    _fill_valid_direct_hire(controller)
    controller.update_field('salary_amount', '-5')
    assert not controller.go_next()
    assert controller.step == 'info'
    assert controller.errors == {'salary_amount': 'Enter a positive salary'}
    assert notifier.messages[-1] == ('negative', 'Complete required fields', 'Enter a positive salary')

def test_next_step_announces_documents(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    _fill_valid_direct_hire(controller)
    assert controller.go_next()
    assert controller.step == 'documents'
    assert notifier.messages[-1] == ('info', 'Step 2: Documents', '')

def test_passport_expiry_boundary(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    _fill_valid_direct_hire(controller)
    controller.step = 'documents'

    controller.state.values['passport_expiry'] = '2026-03-09'
    assert not controller.go_next(), "One day short of a year is rejected"
    assert controller.step == 'documents'
    assert controller.errors['passport_expiry'] == 'Expiry date must be at least 1 year from today.'

    controller.state.values['passport_expiry'] = '2026-03-10'
    assert controller.go_next(), "Exactly one year from today is accepted"
    assert controller.step == 'review'

def test_advancing_reroutes_to_first_invalid_step(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    _fill_valid_direct_hire(controller)
    controller.step = 'documents'
    controller.state.values['first_name'] = ''
    assert not controller.go_next()
    assert controller.step == 'info', "Earlier steps are re-checked before moving on"
    assert controller.errors == {'first_name': 'First name is required'}

def test_missing_required_document(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    _fill_valid_direct_hire(controller)
    controller.step = 'documents'
    controller.remove_document('tesda_license')
    assert not controller.go_next()
    assert controller.errors == {'tesda_license': 'TESDA/PRC License is required'}

def test_go_back_clears_errors(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    controller.step = 'documents'
    controller.errors = {'passport': 'Passport is required'}
    controller.go_back()
    assert controller.step == 'info' and controller.errors == {}
    controller.go_back()
    assert controller.step == 'info', "The first step has nothing before it"

# ===================================================================
# SUBMISSION
# ===================================================================

def _submit(controller: FormController):
    async def scenario():
        async with controller.api:
            return await controller.submit()
    return asyncio.run(scenario())

def test_successful_submission_clears_draft_and_redirects(backend, notifier, redirector) -> None:
    storage: dict[str, Any] = {}
    backend.on('POST', '/applicant/direct-hire',
               (201, {'success': True, 'data': {'controlNumber': 'DHPSW-2025-001'}}))
    controller = _new_controller(backend, notifier, redirector, storage)
    _fill_valid_direct_hire(controller)
    controller.update_field('employer', 'acme')
    assert DRAFT_KEY in storage

    outcome = _submit(controller)
    assert outcome.success and outcome.control_number == 'DHPSW-2025-001'
    assert DRAFT_KEY not in storage, "A submitted application leaves no draft behind"
    assert controller.state.get('employer') == '', "The submitted form starts over"
    assert redirector.redirects == [('/applicant/status?submitted=direct-hire&control=DHPSW-2025-001', 0)]
    assert notifier.titles()[-2:] == ['Submitting application...', 'Application submitted']

    sent = backend.last('POST', '/applicant/direct-hire')
    assert sent.headers['content-type'].startswith('multipart/form-data'), "Direct Hire submits a multipart form"
    assert b'name="employer"' in sent.content and b'ACME' in sent.content
    assert b'filename="passport.pdf"' in sent.content

def test_invalid_form_is_not_sent(backend, notifier, redirector) -> None:
    controller = _new_controller(backend, notifier, redirector)
    _fill_valid_direct_hire(controller)
    controller.remove_document('work_visa')
    controller.step = 'review'
    outcome = _submit(controller)
    assert not outcome.success and outcome.category is ErrorCategory.VALIDATION
    assert controller.step == 'documents', "The form jumps to the step that failed"
    assert backend.paths() == [], "Nothing reaches the backend"

def _failed_submission(backend, notifier, redirector, response) -> Any:
    backend.on('POST', '/applicant/direct-hire', response)
    controller = _new_controller(backend, notifier, redirector)
    _fill_valid_direct_hire(controller)
    return _submit(controller)

def test_duplicate_application(backend, notifier, redirector) -> None:
    outcome = _failed_submission(backend, notifier, redirector, (409, {'success': False, 'error': 'Duplicate'}))
    assert outcome.category is ErrorCategory.CONFLICT
    assert notifier.messages[-1] == (
        'negative', 'Application already exists',
        'You already have a Direct Hire application. Please track its status instead.',
    )
    assert redirector.redirects == []

def test_oversized_upload(backend, notifier, redirector) -> None:
    outcome = _failed_submission(backend, notifier, redirector, (413, {'success': False}))
    assert outcome.category is ErrorCategory.PAYLOAD_TOO_LARGE
    assert notifier.titles()[-1] == 'Files too large'

def test_server_error(backend, notifier, redirector) -> None:
    outcome = _failed_submission(backend, notifier, redirector, (500, {'success': False, 'error': 'boom'}))
    assert outcome.category is ErrorCategory.SERVER
    assert outcome.message.startswith('Server error.'), "Server details are not shown to applicants"

def test_network_error(backend, notifier, redirector) -> None:
    outcome = _failed_submission(backend, notifier, redirector, raise_connect_error)
    assert outcome.category is ErrorCategory.SERVER
    assert outcome.message.startswith('Network error')

def test_rejected_token_redirects_to_login(backend, notifier, redirector) -> None:
    outcome = _failed_submission(backend, notifier, redirector, (401, {'success': False, 'error': 'Unauthorized'}))
    assert outcome.category is ErrorCategory.SESSION
    assert redirector.redirects == [('/login?from=/applicant/start/direct-hire', 2000)]

def test_expired_session_is_caught_before_sending(backend, notifier, redirector) -> None:
    backend.on('POST', '/auth/validate', (401, {'success': False, 'error': 'Invalid token'}))
    outcome = _failed_submission(backend, notifier, redirector, (201, {'success': True, 'data': {}}))
    assert outcome.category is ErrorCategory.SESSION
    assert notifier.titles()[-1] == 'Session expired'
    assert redirector.redirects == [('/login?from=/applicant/start/direct-hire&sessionExpired=true', 2000)]
    assert backend.paths('POST') == ['/api/auth/validate'], "The application is never posted"

# ===================================================================
# CORRECTIONS
# ===================================================================

def _correction_controller(backend, notifier, redirector, flags: list[str]) -> FormController:
    _serve_stored_application(backend)
    controller = FormController(DH, backend.client(), notifier, MappingDraftStore({}), application_id='9',
                                needs_correction=True, correction_fields=flags, today=TODAY,
                                redirector=redirector)
    controller.mount()
    return controller

def test_correction_sends_only_changed_flagged_fields(backend, notifier, redirector) -> None:
    backend.on('POST', '/direct-hire/9/corrections/resolve', (200, {'success': True, 'data': {}}))
    controller = _correction_controller(backend, notifier, redirector, ['email', 'document_passport'])

    async def scenario():
        async with controller.api:
            assert await controller.load_existing()
            assert controller.state.get('contact_email') == 'a@x.com'
            assert not controller.has_changes(), "Nothing differs from the loaded application yet"
            assert not controller.update_field('jobsite', 'DUBAI'), "Unflagged fields are locked"
            assert controller.update_field('contact_email', 'b@x.com')
            assert controller.go_next() and controller.go_next()
            assert controller.step == 'review'
            return await controller.submit()

    outcome = asyncio.run(scenario())
    assert outcome.success
    resolve = backend.last('POST', '/direct-hire/9/corrections/resolve')
    assert json.loads(resolve.content) == {'payload': {'email': 'b@x.com'}}, \
        "Only the changed flagged field is resubmitted"
    assert redirector.redirects == [('/applicant/status', 0)]
    assert notifier.titles()[-1] == 'Corrections submitted'
    assert '/api/applicant/direct-hire' not in backend.paths('POST'), "Corrections never create a new application"

def test_correction_review_waits_for_a_change(backend, notifier, redirector) -> None:
    controller = _correction_controller(backend, notifier, redirector, ['email'])

    async def scenario():
        async with controller.api:
            await controller.load_existing()
            controller.go_next()
            moved = controller.go_next()
            outcome = await controller.submit()
            return moved, outcome

    moved, outcome = asyncio.run(scenario())
    assert not moved and controller.step == 'documents', "Review stays closed until something changes"
    assert notifier.titles()[-2:] == ['No changes yet', 'No changes to submit']
    assert not outcome.success
    assert backend.paths('POST') == [], "An unchanged correction is never sent"

def test_locked_fields_are_not_revalidated_during_correction(backend, notifier, redirector) -> None:
    backend.on('POST', '/direct-hire/9/corrections/resolve', (200, {'success': True, 'data': {}}))
    controller = _correction_controller(backend, notifier, redirector, ['email'])
    # The stored passport now expires within a year of today.
    stale_passport = dict(STORED_DOCUMENTS[0], meta={'passport_number': 'P1234567', 'passport_expiry': '2025-12-01'})
    backend.on('GET', '/documents', (200, {'success': True, 'data': [stale_passport, *STORED_DOCUMENTS[1:]]}))

    async def scenario():
        async with controller.api:
            assert await controller.load_existing()
            assert controller.state.get('passport_expiry') == '2025-12-01'
            assert not controller.update_field('passport_expiry', '2027-01-01'), "The expiry is not flagged"
            assert controller.update_field('contact_email', 'b@x.com')
            assert controller.go_next(), "The info step passes"
            assert controller.go_next(), "A locked expiry does not hold the documents step"
            assert controller.step == 'review'
            return await controller.submit()

    outcome = asyncio.run(scenario())
    assert outcome.success
    resolve = backend.last('POST', '/direct-hire/9/corrections/resolve')
    assert json.loads(resolve.content) == {'payload': {'email': 'b@x.com'}}

def test_clearing_a_flagged_stored_document_is_not_a_change(backend, notifier, redirector) -> None:
    backend.on('POST', '/direct-hire/9/corrections/resolve', (200, {'success': True, 'data': {}}))
    controller = _correction_controller(backend, notifier, redirector, ['document_clearance'])
    clearance = {'id': 5, 'document_type': 'clearance', 'file_name': 'clearance.pdf', 'mime_type': 'application/pdf'}
    backend.on('GET', '/documents', (200, {'success': True, 'data': [*STORED_DOCUMENTS, clearance]}))
    backend.on('GET', '/documents/5/view', (200, b'stored-5'))

    async def scenario():
        async with controller.api:
            assert await controller.load_existing()
            assert controller.state.slot('clearance').file is not None
            assert controller.remove_document('clearance')
            removed = controller.has_changes()
            outcome = await controller.submit()
            assert notifier.titles()[-1] == 'No changes to submit'
            assert backend.paths('POST') == [], "An empty correction payload is never sent"
            assert controller.attach_document('clearance', _pdf('new-clearance.pdf'))
            assert controller.has_changes(), "A replacement file is a change"
            resent = await controller.submit()
            return removed, outcome, resent

    removed, outcome, resent = asyncio.run(scenario())
    assert not removed, "An emptied slot has nothing to resubmit"
    assert not outcome.success
    assert resent.success
    resolve = backend.last('POST', '/direct-hire/9/corrections/resolve')
    assert resolve.headers['content-type'].startswith('multipart/form-data')
    assert b'filename="new-clearance.pdf"' in resolve.content

def test_correction_reasons_and_flags(backend, notifier, redirector) -> None:
    controller = _correction_controller(backend, notifier, redirector, ['name'])
    controller.reasons = {'name': 'Use your passport name.'}
    assert controller.is_flagged('middle_name'), "Name parts share the name flag"
    assert controller.is_editable('first_name')
    assert not controller.is_editable('passport'), "Unflagged documents are locked"
    assert controller.correction_reason('last_name') == 'Use your passport name.'
    assert controller.correction_reason('passport').startswith('This field')

def test_loaded_salary_shows_stored_usd_until_edited(backend, notifier, redirector) -> None:
    controller = _correction_controller(backend, notifier, redirector, ['raw_salary'])

    async def scenario():
        async with controller.api:
            await controller.load_existing()

    asyncio.run(scenario())
    assert controller.state.get('salary_amount') == '50000'
    assert controller.usd_equivalent() == 'USD 900.00', "The converted value on file is shown first"
    controller.update_field('salary_amount', '10000')
    assert controller.usd_equivalent() == 'USD 180.00', "Editing the salary recomputes the equivalent"
    assert controller.has_changes()

def test_existing_applications_never_touch_drafts(backend, notifier, redirector) -> None:
    storage: dict[str, Any] = {DRAFT_KEY: DraftPayload({'first_name': 'DRAFT'}, {}, 'documents').to_json()}
    _serve_stored_application(backend)
    controller = FormController(DH, backend.client(), notifier, MappingDraftStore(storage), application_id='9',
                                today=TODAY, redirector=redirector)
    controller.mount()
    assert controller.step == 'info' and controller.state.get('first_name') == '', "Drafts are not restored"
    controller.update_field('jobsite', 'DUBAI')
    assert json.loads(storage[DRAFT_KEY])['formState'] == {'first_name': 'DRAFT'}, "Drafts are not overwritten"
