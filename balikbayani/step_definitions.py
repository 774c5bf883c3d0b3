# balikbayani/step_definitions.py
from __future__ import annotations

from .form_data_builder import ProgramType
from .schemas import DirectHireSchema as DH, BalikManggagawaSchema as BM, GovToGovSchema as G2G
from .utils import DependsOn, StepDefinition
from .validation import (
    required, required_choice, valid_email, valid_phone, positive_number, max_length,
    date_on_or_after, date_on_or_before, is_year_after,
    passport_min_date, visa_validity_min_date, same_day
)

REVIEW_STEP_DEF: StepDefinition = {
    'id': 'review', 'title': 'Review your application',
    'subtitle': 'Your application will no longer be editable once submitted.',
    'fields': [], 'documents': [],
    'error_title': '', 'error_detail': '',
}

# ===================================================================
# DIRECT HIRE
# ===================================================================

DIRECT_HIRE_STEPS: dict[str, StepDefinition] = {
    'info': {
        'id': 'info', 'title': 'Personal & Job Information',
        'subtitle': 'Tell us who you are and where you will be working.',
        'error_title': 'Complete required fields',
        'error_detail': 'Please review the highlighted fields.',
        'fields': [
            {'field': DH.FIRST_NAME, 'validators': [required('First name is required')]},
            {'field': DH.MIDDLE_NAME, 'validators': []},
            {'field': DH.LAST_NAME, 'validators': [required('Last name is required')]},
            {'field': DH.SEX, 'validators': [required_choice('Select sex')]},
            {'field': DH.CONTACT_EMAIL, 'validators': [valid_email('Enter a valid email address')]},
            {'field': DH.CONTACT_NUMBER, 'validators': [
                valid_phone('Phone number must start with 09 and contain 11 digits', allow_prefix_only=True)
            ]},
            {'field': DH.JOBSITE, 'validators': [required('Job site is required')]},
            {'field': DH.POSITION, 'validators': [required('Position is required')]},
            {'field': DH.JOB_TYPE, 'validators': [required_choice('Select a job type')]},
            {'field': DH.EMPLOYER, 'validators': [max_length(120, 'Employer name is too long')]},
            {'field': DH.SALARY_AMOUNT, 'validators': [positive_number('Enter a positive salary')]},
            {'field': DH.SALARY_CURRENCY, 'validators': [required_choice('Select a currency')]},
        ],
        'documents': [],
    },
    'documents': {
        'id': 'documents', 'title': 'Documents',
        'subtitle': 'Please upload all required documents and fill in their details.',
        'enter_message': 'Step 2: Documents',
        'error_title': 'Upload required documents',
        'error_detail': 'Please upload all required documents and complete their details.',
        'documents': [
            {'slot': DH.PASSPORT, 'validators': [required('Passport is required')]},
            {'slot': DH.WORK_VISA, 'validators': [required('Work Visa is required')]},
            {'slot': DH.EMPLOYMENT_CONTRACT, 'validators': [required('Employment Contract is required')]},
            {'slot': DH.TESDA_LICENSE, 'validators': [required('TESDA/PRC License is required')]},
            {'slot': DH.COUNTRY_SPECIFIC, 'validators': []},
            {'slot': DH.COMPLIANCE_FORM, 'validators': []},
            {'slot': DH.MEDICAL_CERTIFICATE, 'validators': []},
            {'slot': DH.PEOS_CERTIFICATE, 'validators': []},
            {'slot': DH.CLEARANCE, 'validators': []},
            {'slot': DH.INSURANCE_COVERAGE, 'validators': []},
            {'slot': DH.EREGISTRATION, 'validators': []},
            {'slot': DH.PDOS_CERTIFICATE, 'validators': []},
        ],
        # Metadata only matters once its document is there.
        'fields': [
            {'field': DH.PASSPORT_NUMBER, 'depends_on': DependsOn(slot='passport'),
             'validators': [required('Passport number is required')]},
            {'field': DH.PASSPORT_EXPIRY, 'depends_on': DependsOn(slot='passport'),
             'validators': [
                 required('Passport expiry date is required'),
                 date_on_or_after(passport_min_date, 'Expiry date must be at least 1 year from today.'),
             ]},
            {'field': DH.VISA_CATEGORY, 'depends_on': DependsOn(slot='work_visa'),
             'validators': [required_choice('Visa category is required')]},
            {'field': DH.VISA_TYPE, 'depends_on': DependsOn(slot='work_visa'),
             'validators': [required_choice('Visa type is required')]},
            {'field': DH.VISA_NUMBER, 'depends_on': DependsOn(slot='work_visa'),
             'validators': [required('Visa number is required')]},
            {'field': DH.VISA_VALIDITY, 'depends_on': DependsOn(slot='work_visa'),
             'validators': [
                 required('Visa validity date is required'),
                 date_on_or_after(visa_validity_min_date, 'Validity date must be in the future.'),
             ]},
            {'field': DH.EC_ISSUED_DATE, 'depends_on': DependsOn(slot='employment_contract'),
             'validators': [
                 required('Issued date is required'),
                 date_on_or_before(same_day, 'Employment contract issued date cannot be in the future.'),
             ]},
            {'field': DH.EC_VERIFICATION, 'depends_on': DependsOn(slot='employment_contract'),
             'validators': [required_choice('Verification type is required')]},
        ],
    },
    'review': REVIEW_STEP_DEF,
}

# ===================================================================
# BALIK MANGGAGAWA
# ===================================================================

BALIK_MANGGAGAWA_STEPS: dict[str, StepDefinition] = {
    'info': {
        'id': 'info', 'title': 'Worker Information',
        'subtitle': 'Details of your return to your employer abroad.',
        'error_title': 'Complete required fields',
        'error_detail': 'Please review the highlighted fields.',
        'fields': [
            {'field': BM.NAME_OF_WORKER, 'validators': [required('Name is required')]},
            {'field': BM.SEX, 'validators': [required_choice('Sex is required')]},
            {'field': BM.DESTINATION, 'validators': [required('Destination is required')]},
            {'field': BM.POSITION, 'validators': [required('Position is required')]},
            {'field': BM.JOB_TYPE, 'validators': [required_choice('Job type is required')]},
            {'field': BM.EMPLOYER, 'validators': [required('Employer is required')]},
            {'field': BM.SALARY, 'validators': [positive_number('Salary is required')]},
            {'field': BM.SALARY_CURRENCY, 'validators': [required_choice('Currency is required')]},
        ],
        'documents': [],
    },
    'review': REVIEW_STEP_DEF,
}

# ===================================================================
# GOV-TO-GOV
# ===================================================================

GOV_TO_GOV_STEPS: dict[str, StepDefinition] = {
    'details': {
        'id': 'details', 'title': 'Personal Information',
        'subtitle': 'Your personal details and how we can reach you.',
        'error_title': 'Please correct the highlighted fields',
        'error_detail': 'Complete your personal information before continuing.',
        'fields': [
            {'field': G2G.FIRST_NAME, 'validators': [required('First name is required.')]},
            {'field': G2G.MIDDLE_NAME, 'validators': []},
            {'field': G2G.LAST_NAME, 'validators': [required('Last name is required.')]},
            {'field': G2G.SEX, 'validators': [required_choice('Please select sex.')]},
            {'field': G2G.DATE_OF_BIRTH, 'validators': [
                required('Date of birth is required.'),
                date_on_or_before(same_day, 'Date of birth cannot be in the future.'),
            ]},
            {'field': G2G.HEIGHT, 'validators': [positive_number('Enter a valid height (cm).')]},
            {'field': G2G.WEIGHT, 'validators': [positive_number('Enter a valid weight (kg).')]},
            {'field': G2G.EDUCATIONAL_ATTAINMENT, 'validators': [
                required_choice('Select educational attainment.')
            ]},
            {'field': G2G.PRESENT_ADDRESS, 'validators': [required('Present address is required.')]},
            {'field': G2G.EMAIL_ADDRESS, 'validators': [
                required('Enter a valid email address.'),
                valid_email('Enter a valid email address.'),
            ]},
            {'field': G2G.CONTACT_NUMBER, 'validators': [
                required('Phone number must start with 09 and be 11 digits.'),
                valid_phone('Phone number must start with 09 and be 11 digits.'),
            ]},
        ],
        'documents': [],
    },
    'experience': {
        'id': 'experience', 'title': 'IDs & Experience',
        'subtitle': 'Passport details and previous work abroad.',
        'error_title': 'Incomplete experience details',
        'error_detail': 'Fill out all required fields before reviewing your application.',
        'fields': [
            {'field': G2G.PASSPORT_NUMBER, 'validators': [required('Passport number is required.')]},
            {'field': G2G.PASSPORT_VALIDITY, 'validators': [
                required('Passport validity date is required.'),
                date_on_or_after(same_day, 'Passport validity must be in the future.'),
            ]},
            {'field': G2G.WITH_TAIWAN_EXPERIENCE, 'validators': [required_choice('Please answer yes or no.')]},
            {'field': G2G.TAIWAN_COMPANY, 'depends_on': DependsOn(field='with_taiwan_experience', equals='yes'),
             'validators': [required('Company name is required.')]},
            {'field': G2G.TAIWAN_YEAR_STARTED, 'depends_on': DependsOn(field='with_taiwan_experience', equals='yes'),
             'validators': [required_choice('Start year is required.')]},
            {'field': G2G.TAIWAN_YEAR_ENDED, 'depends_on': DependsOn(field='with_taiwan_experience', equals='yes'),
             'validators': [
                 required_choice('End year is required.'),
                 is_year_after('taiwan_year_started', 'End year cannot be before the start year.'),
             ]},
            {'field': G2G.WITH_OTHER_EXPERIENCE, 'validators': [required_choice('Please answer yes or no.')]},
            {'field': G2G.OTHER_COMPANY, 'depends_on': DependsOn(field='with_other_experience', equals='yes'),
             'validators': [required('Company name is required.')]},
            {'field': G2G.OTHER_YEAR_STARTED, 'depends_on': DependsOn(field='with_other_experience', equals='yes'),
             'validators': [required_choice('Start year is required.')]},
            {'field': G2G.OTHER_YEAR_ENDED, 'depends_on': DependsOn(field='with_other_experience', equals='yes'),
             'validators': [
                 required_choice('End year is required.'),
                 is_year_after('other_year_started', 'End year cannot be before the start year.'),
             ]},
        ],
        'documents': [],
    },
    'review': REVIEW_STEP_DEF,
}

STEPS_BY_PROGRAM: dict[ProgramType, dict[str, StepDefinition]] = {
    ProgramType.DIRECT_HIRE: DIRECT_HIRE_STEPS,
    ProgramType.BALIK_MANGGAGAWA: BALIK_MANGGAGAWA_STEPS,
    ProgramType.GOV_TO_GOV: GOV_TO_GOV_STEPS,
}
