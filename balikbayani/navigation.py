# balikbayani/navigation.py
from __future__ import annotations
from typing import Any
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date

from .form_data_builder import ProgramTemplate
from .form_state import FormState
from .utils import StepDefinition
from .validation import ValidatorFunc, RuleContext

# ===================================================================
# 1. RULE EVALUATION
# ===================================================================

def _validate_simple_field(field_key: str, validator_list: list[ValidatorFunc], value: Any,
                           ctx: RuleContext, errors: dict[str, str]) -> bool:
    for validator_func in validator_list:
        is_valid, msg = validator_func(value, ctx)
        if not is_valid:
            if field_key not in errors: errors[field_key] = msg
            return False
    return True

EditablePredicate = Callable[[str], bool]

def execute_step_validators(step_def: StepDefinition, state: FormState, today: date,
                            editable: EditablePredicate | None = None) -> tuple[bool, dict[str, str]]:
    """
    Runs every rule of a step against the current state.
    Rules whose `depends_on` gate is closed are skipped entirely, and so are rules
    for fields or slots `editable` rejects (locked during a correction).
    Document slots report their errors under the slot key.
    """
    ctx = state.context(today)
    new_errors: dict[str, str] = {}
    is_step_valid = True
    for field_conf in step_def.get('fields', []):
        gate = field_conf.get('depends_on')
        if gate is not None and not gate.is_met(ctx):
            continue
        key = field_conf['field'].key
        if editable is not None and not editable(key):
            continue
        if not _validate_simple_field(key, field_conf['validators'], state.get(key), ctx, new_errors):
            is_step_valid = False
    for doc_conf in step_def.get('documents', []):
        key = doc_conf['slot'].key
        if editable is not None and not editable(key):
            continue
        if not _validate_simple_field(key, doc_conf['validators'], state.slot(key).current, ctx, new_errors):
            is_step_valid = False
    return is_step_valid, new_errors

# ===================================================================
# 2. STEP SEQUENCE
# ===================================================================

def calculate_next_step(current_step: str, form_template: ProgramTemplate) -> str:
    """Calculates the id of the next step in the sequence."""
    step_sequence = form_template['step_sequence']
    try:
        current_index = step_sequence.index(current_step)
    except ValueError:
        return step_sequence[0]  # Go to start if current step isn't in sequence
    if current_index < len(step_sequence) - 1:
        return step_sequence[current_index + 1]
    return current_step  # Stay on the last step if there's no next one

def calculate_prev_step(current_step: str, form_template: ProgramTemplate) -> str:
    step_sequence = form_template['step_sequence']
    try:
        current_index = step_sequence.index(current_step)
    except ValueError:
        return step_sequence[0]
    return step_sequence[current_index - 1] if current_index > 0 else step_sequence[0]

# ===================================================================
# 3. GUARDED TRANSITIONS
# ===================================================================

@dataclass(frozen=True)
class StepTransition:
    step: str
    errors: dict[str, str] = field(default_factory=dict)
    # Step whose rules failed, None when the move went through.
    failed_step: str | None = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None


def advance(current_step: str, form_template: ProgramTemplate,
            steps: dict[str, StepDefinition], state: FormState, today: date,
            editable: EditablePredicate | None = None) -> StepTransition:
    """
    Moves forward one step. Every step up to and including the current one is
    re-validated in order, and the first one that fails becomes the new step.
    """
    step_sequence = form_template['step_sequence']
    if current_step not in step_sequence:
        return StepTransition(step=step_sequence[0])
    current_index = step_sequence.index(current_step)
    for step_id in step_sequence[:current_index + 1]:
        is_valid, errors = execute_step_validators(steps[step_id], state, today, editable)
        if not is_valid:
            return StepTransition(step=step_id, errors=errors, failed_step=step_id)
    return StepTransition(step=calculate_next_step(current_step, form_template))

def retreat(current_step: str, form_template: ProgramTemplate) -> StepTransition:
    """Backward moves are unconditional and start with a clean error map."""
    return StepTransition(step=calculate_prev_step(current_step, form_template))

def validate_all(form_template: ProgramTemplate, steps: dict[str, StepDefinition],
                 state: FormState, today: date,
                 editable: EditablePredicate | None = None) -> StepTransition | None:
    """Final gate before submission. Returns the failing transition, or None when everything passes."""
    for step_id in form_template['step_sequence']:
        is_valid, errors = execute_step_validators(steps[step_id], state, today, editable)
        if not is_valid:
            return StepTransition(step=step_id, errors=errors, failed_step=step_id)
    return None
