# ===================================================================
# 1. IMPORTS
# ===================================================================
import logging
from typing import Any, cast
from collections.abc import Callable

from nicegui import ui, app, events, Client
from starlette.requests import Request

# Local application imports
from .api import PortalApiClient
from .config import API_BASE_URL, AUTH_COOKIE, DRAFT_BACKEND, PORT, STORAGE_SECRET, STATUS_ROUTE
from .controller import FormController
from .drafts import DraftStore, MappingDraftStore, SqliteDraftStore, setup_database
from .form_data_builder import PROGRAM_REGISTRY, get_program
from .form_state import UploadedFile
from .notify import NiceGuiNotifier, NiceGuiRedirector
from .submission import unauthorized_url
from .utils import FormField, DocumentSlotDef, StepDefinition, REVIEW_STEP

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# ===================================================================
# 2. SESSION HELPERS
# ===================================================================

def get_draft_store() -> DraftStore:
    """Browser-scoped drafts by default, the SQLite table when configured."""
    if DRAFT_BACKEND == 'sqlite':
        return SqliteDraftStore(owner=str(app.storage.browser['id']))
    return MappingDraftStore(cast(dict[str, Any], app.storage.user))

def parse_correction_fields(raw: str | None) -> list[str]:
    return [key.strip() for key in (raw or '').split(',') if key.strip()]

# ===================================================================
# 3. FIELD RENDERING
# ===================================================================

def _create_text_input(f: FormField, v: Any, on_change: Callable[[Any], None]) -> ui.input:
    return ui.input(label=f.label, value=v, on_change=lambda e: on_change(e.value))

def _create_number_input(f: FormField, v: Any, on_change: Callable[[Any], None]) -> ui.input:
    return ui.input(label=f.label, value=v, on_change=lambda e: on_change(e.value)).props('type=number min=0')

def _create_date_input(f: FormField, v: Any, on_change: Callable[[Any], None]) -> ui.input:
    return ui.input(label=f.label, value=v, on_change=lambda e: on_change(e.value)).props('type=date stack-label')

def _create_select_input(f: FormField, v: Any, on_change: Callable[[Any], None]) -> ui.select:
    return ui.select(options=f.options or [], label=f.label, value=v or None, on_change=lambda e: on_change(e.value))

def _create_radio_buttons(f: FormField, v: Any, on_change: Callable[[Any], None]) -> ui.radio:
    ui.label(f.label).classes('text-caption')
    return ui.radio(options=f.options or [], value=v or None, on_change=lambda e: on_change(e.value)).props('inline')

def field_props(field_definition: FormField, *, has_error: bool, editable: bool) -> list[str]:
    """Quasar props for a field. Messages are rendered as labels, never as prop values."""
    is_radio = field_definition.kind == 'radio'
    props_list: list[str] = [] if is_radio else ['outlined', 'dense']
    if field_definition.max_length:
        props_list.append(f"maxlength={field_definition.max_length}")
    if has_error:
        props_list.append('error')
    if not editable:
        props_list.append('disable' if is_radio else 'readonly')
    return props_list

def create_field(controller: FormController, field_definition: FormField,
                 after_change: Callable[[], None] | None = None) -> None:
    """Creates a UI element for a schema field, wired to the controller."""
    key = field_definition.key
    creator_map: dict[str, Callable[..., Any]] = {
        'text': _create_text_input,
        'number': _create_number_input,
        'date': _create_date_input,
        'select': _create_select_input,
        'radio': _create_radio_buttons,
    }
    creator = creator_map.get(field_definition.kind)
    if not creator: raise ValueError(f"Unsupported UI type: {field_definition.kind}")

    element: Any = None

    def handle_change(value: Any) -> None:
        if value == controller.state.get(key):
            return
        controller.update_field(key, value)
        stored = controller.state.get(key)
        # Normalization (uppercase, phone prefix, clamped dates) is shown right away.
        if element is not None and element.value != stored and field_definition.kind != 'radio':
            element.value = stored
        if after_change: after_change()

    with ui.column().classes('w-full no-wrap q-mb-sm'):
        element = creator(field_definition, controller.state.get(key), handle_change)
        error_message = controller.errors.get(key)
        editable = controller.is_editable(key)
        props_list = field_props(field_definition, has_error=bool(error_message), editable=editable)
        if not editable:
            element.classes('bg-grey-2')
        if props_list:
            element.props(' '.join(props_list))
        if field_definition.kind != 'radio':
            element.classes('w-full')
        if error_message:
            ui.label(error_message).classes('text-negative text-caption')
        if controller.is_flagged(key):
            ui.label(controller.correction_reason(key)).classes('text-negative text-caption')


def create_document_slot(controller: FormController, slot_def: DocumentSlotDef, refresh: Callable[[], None]) -> None:
    slot = controller.state.slot(slot_def.key)
    editable = controller.is_editable(slot_def.key)

    async def handle_upload(e: events.UploadEventArguments) -> None:
        uploaded = UploadedFile(name=e.name, content=e.content.read(), content_type=e.type or '')
        if controller.attach_document(slot_def.key, uploaded):
            refresh()

    def handle_remove() -> None:
        if controller.remove_document(slot_def.key):
            refresh()

    with ui.card().classes('w-full q-mb-md').props('bordered flat'):
        with ui.row().classes('w-full justify-between items-center no-wrap'):
            ui.label(slot_def.label + (' *' if slot_def.required else '')).classes('text-bold text-body1')
            current = slot.current
            if current is not None:
                name = current.name if isinstance(current, UploadedFile) else current.file_name
                with ui.row().classes('items-center no-wrap'):
                    ui.label(name).classes('text-grey-8')
                    if editable:
                        ui.button(icon='delete_outline', on_click=handle_remove, color='grey-6') \
                            .props('flat dense round padding=xs')
        if controller.is_flagged(slot_def.key):
            ui.label(controller.correction_reason(slot_def.key)).classes('text-negative text-caption')
        if editable and slot.current is None:
            ui.upload(on_upload=handle_upload, auto_upload=True, max_files=1) \
                .props('accept=".pdf,.png,.jpg,.jpeg,.gif" flat bordered').classes('w-full')
        if controller.errors.get(slot_def.key):
            ui.label(controller.errors[slot_def.key]).classes('text-negative text-caption')
        # Metadata belongs under its document and only once the document is there.
        if slot.is_filled():
            for meta_key in slot_def.meta_fields:
                create_field(controller, controller.schema.field(meta_key))

# ===================================================================
# 4. STEP RENDERING
# ===================================================================

def render_generic_step(controller: FormController, step_def: StepDefinition, refresh: Callable[[], None]) -> None:
    ui.label(step_def['title']).classes('text-h6 q-mb-xs')
    ui.markdown(step_def['subtitle'])

    meta_keys = controller.schema.meta_keys
    usd_label: ui.label | None = None

    def update_usd() -> None:
        if usd_label is not None:
            usd_label.text = controller.usd_equivalent()
        next_button.set_enabled(controller.has_changes() or controller.step != _last_before_review(controller))

    for field_conf in step_def.get('fields', []):
        if field_conf['field'].key in meta_keys:
            continue  # rendered under their document
        create_field(controller, field_conf['field'], after_change=update_usd)
    if any(f['field'].key in ('salary_amount', 'salary') for f in step_def.get('fields', [])):
        usd_label = ui.label(controller.usd_equivalent()).classes('text-caption text-grey-8')

    for doc_conf in step_def.get('documents', []):
        create_document_slot(controller, doc_conf['slot'], refresh)

    def go_next() -> None:
        controller.go_next()
        refresh()

    def go_back() -> None:
        controller.go_back()
        refresh()

    with ui.row().classes('w-full q-mt-lg justify-between items-center'):
        if controller.step != controller.template['step_sequence'][0]:
            ui.button("← Back", on_click=go_back).props('flat color=grey')
        else:
            ui.label()
        next_button = ui.button("Continue →", on_click=go_next).props('color=primary unelevated')
    update_usd()

def _last_before_review(controller: FormController) -> str:
    return controller.template['step_sequence'][-2]

def render_review_step(controller: FormController, step_def: StepDefinition, refresh: Callable[[], None]) -> None:
    ui.label(step_def['title']).classes('text-h6 q-mb-xs')
    ui.markdown(step_def['subtitle'])

    with ui.card().classes('w-full').props('bordered flat'):
        with ui.grid(columns=2).classes('w-full'):
            for key in controller.schema.info_keys():
                form_field = controller.schema.field(key)
                value = controller.state.get(key)
                if isinstance(form_field.options, dict):
                    value = form_field.options.get(value, value)
                ui.label(form_field.label).classes('text-grey-7')
                ui.label(str(value or '-'))
        usd = controller.usd_equivalent()
        if usd:
            ui.label(f"Salary (USD equivalent): {usd}").classes('text-caption q-mt-sm')

    checklist = controller.document_checklist()
    if checklist:
        ui.label('Documents').classes('text-subtitle1 q-mt-md')
        for item in checklist:
            with ui.row().classes('items-center no-wrap'):
                ui.icon('check_circle' if item.complete else 'error', color='positive' if item.complete else 'negative')
                ui.label(item.label)

    async def handle_submit(button: ui.button) -> None:
        button.disable()
        try:
            outcome = await controller.submit()
        finally:
            button.enable()
        if not outcome.success:
            refresh()

    def go_back() -> None:
        controller.go_back()
        refresh()

    with ui.row().classes('w-full q-mt-md justify-between items-center'):
        ui.button("← Back & Edit", on_click=go_back).props('flat color=grey')
        submit_button = ui.button("Submit application").props('color=primary unelevated icon=send')
        submit_button.on('click', lambda: handle_submit(submit_button))
        if controller.in_correction and not controller.has_changes():
            submit_button.disable()

# ===================================================================
# 5. PAGE ROUTING
# ===================================================================

@ui.page('/applicant/start/{program}')
async def applicant_start_page(program: str, request: Request, client: Client,
                               id: str | None = None, correction: str | None = None,
                               fields: str | None = None) -> None:
    try:
        program_type = get_program(program)
    except KeyError:
        ui.label(f"Unknown program '{program}'.").classes('text-negative text-h6 absolute-center')
        return

    token = request.cookies.get(AUTH_COOKIE)
    if not token:
        ui.navigate.to(unauthorized_url(program_type))
        return

    api = PortalApiClient(API_BASE_URL, token=token)
    controller = FormController(
        program_type, api, NiceGuiNotifier(), get_draft_store(),
        application_id=id,
        needs_correction=correction in ('1', 'true', 'yes'),
        correction_fields=parse_correction_fields(fields),
        redirector=NiceGuiRedirector(),
    )

    async def teardown() -> None:
        controller.close()
        await api.aclose()
    client.on_disconnect(teardown)

    @ui.refreshable
    def update_step_content() -> None:
        if controller.loading:
            ui.spinner(size='lg').classes('self-center')
            return
        step_def = controller.steps.get(controller.step)
        if not step_def:
            ui.label(f"Unknown step ({controller.step})").classes('text-negative text-h6')
            return
        if controller.step == REVIEW_STEP:
            render_review_step(controller, step_def, update_step_content.refresh)
        else:
            render_generic_step(controller, step_def, update_step_content.refresh)

    ui.query('body').style('background-color: #f0f2f5;')
    with ui.header(elevated=True).classes('bg-primary text-white q-pa-sm items-center'):
        ui.label(f"BalikBayani Portal – {PROGRAM_REGISTRY[program_type]['name']}").classes('text-h5')
        ui.space()
        ui.button('My applications', on_click=lambda: ui.navigate.to(STATUS_ROUTE), color='white') \
            .props('flat dense')

    with ui.column().classes('w-full items-center q-pa-md'):
        with ui.card().classes('q-pa-md shadow-4').style('width: 95%; max-width: 900px;'):
            if controller.in_correction:
                ui.label('Only the highlighted fields can be changed.').classes('text-negative')
            with ui.column().classes('w-full'):
                update_step_content()

    await client.connected()
    controller.mount()
    if id is not None:
        controller.loading = True
        update_step_content.refresh()
        await controller.load_existing()
    update_step_content.refresh()


@ui.page('/applicant/status')
def applicant_status_page(submitted: str | None = None, control: str | None = None) -> None:
    with ui.card().classes('absolute-center q-pa-lg'):
        ui.label('Application status').classes('text-h6')
        if submitted and control:
            try:
                name = PROGRAM_REGISTRY[get_program(submitted)]['name']
            except KeyError:
                name = submitted
            ui.label(f"Your {name} application was received.")
            ui.label(f"Control number: {control}").classes('text-bold')
        else:
            ui.label('Your latest submission is being processed.')
        ui.button('Start another application', on_click=lambda: ui.navigate.to('/applicant/start/direct-hire')) \
            .props('flat color=primary')


if __name__ in {"__main__", "__mp_main__"}:
    if DRAFT_BACKEND == 'sqlite':
        setup_database()

    ui.run(
        host='0.0.0.0',
        port=PORT,
        title='BalikBayani Applicant Portal',
        storage_secret=STORAGE_SECRET,
    )
