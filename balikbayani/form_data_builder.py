from __future__ import annotations
from enum import Enum
from typing import Literal, TypedDict

# ===================================================================
# 1. THE DEPLOYMENT PROGRAMS AN APPLICANT CAN START
# ===================================================================

class ProgramType(Enum):
    DIRECT_HIRE = 'direct_hire'
    BALIK_MANGGAGAWA = 'balik_manggagawa'
    GOV_TO_GOV = 'gov_to_gov'

    @property
    def slug(self) -> str:
        """URL form used by the applicant pages (direct-hire, gov-to-gov...)."""
        return self.value.replace('_', '-')

# ===================================================================
# 2. THE BLUEPRINT FOR EACH PROGRAM
# ===================================================================

class ProgramEndpoints(TypedDict):
    """Paths relative to the API base URL. `{id}` is the application id."""
    application: str
    corrections: str
    resolve: str
    create: str

class ProgramTemplate(TypedDict):
    name: str
    description: str
    application_type: str
    draft_key: str
    # The ordered sequence of step ids; the last one is always the review step.
    step_sequence: list[str]
    create_encoding: Literal['multipart', 'json']
    endpoints: ProgramEndpoints
    conflict_message: str

# ===================================================================
# 3. THE REGISTRY OF ALL BLUEPRINTS
# ===================================================================

PROGRAM_REGISTRY: dict[ProgramType, ProgramTemplate] = {
    ProgramType.DIRECT_HIRE: {
        'name': 'Direct Hire',
        'description': 'Workers hired directly by a foreign employer without a licensed agency.',
        'application_type': 'direct_hire',
        'draft_key': 'bb_applicant_direct_hire_form_v1',
        'step_sequence': ['info', 'documents', 'review'],
        'create_encoding': 'multipart',
        'endpoints': {
            'application': '/applicant/direct-hire/{id}',
            'corrections': '/direct-hire/{id}/corrections',
            'resolve': '/direct-hire/{id}/corrections/resolve',
            'create': '/applicant/direct-hire',
        },
        'conflict_message': 'You already have a Direct Hire application. Please track its status instead.',
    },
    ProgramType.BALIK_MANGGAGAWA: {
        'name': 'Balik Manggagawa',
        'description': 'Returning workers going back to the same employer.',
        'application_type': 'balik_manggagawa',
        'draft_key': 'bb_applicant_bm_form_v1',
        'step_sequence': ['info', 'review'],
        'create_encoding': 'json',
        'endpoints': {
            'application': '/applicant/balik-manggagawa/{id}',
            'corrections': '/balik-manggagawa/clearance/{id}/corrections',
            'resolve': '/balik-manggagawa/clearance/{id}/corrections/resolve',
            'create': '/applicant/balik-manggagawa',
        },
        'conflict_message': 'You already have a Balik Manggagawa application. Please track its status instead.',
    },
    ProgramType.GOV_TO_GOV: {
        'name': 'Gov-to-Gov',
        'description': 'Placement under government-to-government hiring agreements.',
        'application_type': 'gov_to_gov',
        'draft_key': 'bb_applicant_gov_to_gov_form_v1',
        'step_sequence': ['details', 'experience', 'review'],
        'create_encoding': 'json',
        'endpoints': {
            'application': '/applicant/gov-to-gov/{id}',
            'corrections': '/gov-to-gov/{id}/corrections',
            'resolve': '/gov-to-gov/{id}/corrections/resolve',
            'create': '/applicant/gov-to-gov',
        },
        'conflict_message': 'You already submitted a Gov-to-Gov application. Please track its status instead.',
    },
}

def get_program(name: str | ProgramType) -> ProgramType:
    """Accepts 'direct_hire', 'direct-hire' or the enum member name. Raises KeyError otherwise."""
    if isinstance(name, ProgramType):
        return name
    normalized = name.strip().lower().replace('-', '_')
    for program in ProgramType:
        if program.value == normalized:
            return program
    return ProgramType[name.upper()]
