# balikbayani/schemas.py
from __future__ import annotations
from typing import Any
from datetime import date

from .para import (
    sex_options, job_types, yes_no, education_levels,
    visa_categories, visa_types, ec_verification_types, currencies
)
from .form_data_builder import ProgramType
from .utils import FormField, CompositeField, DocumentSlotDef
from .validation import (
    normalize_phone, normalize_identifier, normalize_upper,
    passport_min_date, visa_validity_min_date, same_day
)

# --- Coercions for JSON create payloads ---
def to_number(value: Any) -> int | float | None:
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return int(number) if number.is_integer() else number

def yes_to_bool(value: Any) -> bool:
    return value == 'yes'

def stripped(value: Any) -> str:
    return str(value or '').strip()

YEAR_OPTIONS: list[str] = [str(year) for year in range(date.today().year, date.today().year - 51, -1)]

# ===================================================================
# 1. THE APPLICATION SCHEMAS (one per program)
# ===================================================================

class DirectHireSchema:
    """Direct Hire applicant form: personal/job info plus twelve document slots."""
    FIRST_NAME = FormField(key='first_name', label='First name', required=True, form_name='firstName',
                           normalizer=normalize_upper)
    MIDDLE_NAME = FormField(key='middle_name', label='Middle name', form_name='middleName',
                            normalizer=normalize_upper)
    LAST_NAME = FormField(key='last_name', label='Last name', required=True, form_name='lastName',
                          normalizer=normalize_upper)
    SEX = FormField(key='sex', label='Sex', kind='radio', required=True, options=sex_options, default_value='male')
    CONTACT_EMAIL = FormField(key='contact_email', label='Email', db_column='email', form_name='contactEmail')
    CONTACT_NUMBER = FormField(key='contact_number', label='Phone Number', db_column='cellphone',
                               form_name='contactNumber', default_value='09', normalizer=normalize_phone,
                               max_length=11)
    JOBSITE = FormField(key='jobsite', label='Job Site', required=True, normalizer=normalize_upper)
    POSITION = FormField(key='position', label='Position', required=True, normalizer=normalize_upper)
    JOB_TYPE = FormField(key='job_type', label='Job Type', kind='radio', required=True, form_name='jobType',
                         options=job_types, default_value='professional')
    EMPLOYER = FormField(key='employer', label='Employer', normalizer=normalize_upper)
    SALARY_AMOUNT = FormField(key='salary_amount', label='Salary', kind='number', required=True,
                              db_column='raw_salary', form_name='salaryAmount',
                              source_columns=('raw_salary', 'salary'))
    SALARY_CURRENCY = FormField(key='salary_currency', label='Salary Currency', kind='select', required=True,
                                form_name='salaryCurrency', options=currencies, default_value='USD')

    # Document metadata
    PASSPORT_NUMBER = FormField(key='passport_number', label='Passport Number', form_name='passportNumber',
                                normalizer=normalize_identifier)
    PASSPORT_EXPIRY = FormField(key='passport_expiry', label='Passport Expiry', kind='date',
                                db_column='passport_validity', form_name='passportExpiry',
                                min_date=passport_min_date)
    VISA_CATEGORY = FormField(key='visa_category', label='Visa Category', kind='select', form_name='visaCategory',
                              options=visa_categories)
    VISA_TYPE = FormField(key='visa_type', label='Visa Type', kind='select', form_name='visaType', options=visa_types)
    VISA_NUMBER = FormField(key='visa_number', label='Visa Number', form_name='visaNumber',
                            normalizer=normalize_identifier)
    VISA_VALIDITY = FormField(key='visa_validity', label='Visa Validity', kind='date', form_name='visaValidity',
                              min_date=visa_validity_min_date)
    EC_ISSUED_DATE = FormField(key='ec_issued_date', label='Employment Contract Issued Date', kind='date',
                               form_name='ecIssuedDate', max_date=same_day)
    EC_VERIFICATION = FormField(key='ec_verification', label='Employment Contract Verification Type',
                                kind='select', form_name='ecVerification', options=ec_verification_types)

    NAME = CompositeField(key='name', label='Name', parts=('first_name', 'middle_name', 'last_name'))

    PASSPORT = DocumentSlotDef(key='passport', label='Passport', required=True,
                               meta_fields=('passport_number', 'passport_expiry'))
    WORK_VISA = DocumentSlotDef(key='work_visa', label='Work Visa / Permit', required=True, form_name='workVisa',
                                meta_fields=('visa_category', 'visa_type', 'visa_number', 'visa_validity'))
    EMPLOYMENT_CONTRACT = DocumentSlotDef(key='employment_contract', label='Employment Contract', required=True,
                                          form_name='employmentContract',
                                          meta_fields=('ec_issued_date', 'ec_verification'))
    TESDA_LICENSE = DocumentSlotDef(key='tesda_license', label='TESDA / PRC License', required=True,
                                    form_name='tesdaLicense')
    COUNTRY_SPECIFIC = DocumentSlotDef(key='country_specific', label='Country-Specific Document',
                                       form_name='countrySpecific')
    COMPLIANCE_FORM = DocumentSlotDef(key='compliance_form', label='Compliance Form', form_name='complianceForm')
    MEDICAL_CERTIFICATE = DocumentSlotDef(key='medical_certificate', label='Medical Certificate',
                                          form_name='medicalCertificate')
    PEOS_CERTIFICATE = DocumentSlotDef(key='peos_certificate', label='PEOS Certificate',
                                       form_name='peosCertificate')
    CLEARANCE = DocumentSlotDef(key='clearance', label='Clearance')
    INSURANCE_COVERAGE = DocumentSlotDef(key='insurance_coverage', label='Insurance Coverage',
                                         form_name='insuranceCoverage')
    EREGISTRATION = DocumentSlotDef(key='eregistration', label='E-Registration')
    PDOS_CERTIFICATE = DocumentSlotDef(key='pdos_certificate', label='PDOS Certificate',
                                       form_name='pdosCertificate')


class BalikManggagawaSchema:
    NAME_OF_WORKER = FormField(key='name_of_worker', label='Name of Worker', required=True,
                               normalizer=normalize_upper)
    SEX = FormField(key='sex', label='Sex', kind='radio', required=True, options=sex_options)
    DESTINATION = FormField(key='destination', label='Destination', required=True, normalizer=normalize_upper)
    POSITION = FormField(key='position', label='Position', required=True, normalizer=normalize_upper)
    JOB_TYPE = FormField(key='job_type', label='Job Type', kind='select', required=True, options=job_types)
    EMPLOYER = FormField(key='employer', label='Employer', required=True, normalizer=normalize_upper)
    SALARY = FormField(key='salary', label='Salary (per month)', kind='number', required=True,
                       source_columns=('raw_salary', 'salary'), coerce=to_number)
    SALARY_CURRENCY = FormField(key='salary_currency', label='Currency', kind='select', required=True,
                                options=currencies, default_value='USD')


class GovToGovSchema:
    FIRST_NAME = FormField(key='first_name', label='First name', required=True, normalizer=normalize_upper)
    MIDDLE_NAME = FormField(key='middle_name', label='Middle name', normalizer=normalize_upper)
    LAST_NAME = FormField(key='last_name', label='Last name', required=True, normalizer=normalize_upper)
    SEX = FormField(key='sex', label='Sex', kind='radio', required=True, options=sex_options)
    DATE_OF_BIRTH = FormField(key='date_of_birth', label='Date of birth', kind='date', required=True,
                              max_date=same_day)
    HEIGHT = FormField(key='height', label='Height (cm)', kind='number', required=True, coerce=to_number)
    WEIGHT = FormField(key='weight', label='Weight (kg)', kind='number', required=True, coerce=to_number)
    EDUCATIONAL_ATTAINMENT = FormField(key='educational_attainment', label='Educational attainment',
                                       kind='select', required=True, options=education_levels)
    PRESENT_ADDRESS = FormField(key='present_address', label='Present address', required=True,
                                normalizer=normalize_upper)
    EMAIL_ADDRESS = FormField(key='email_address', label='Email address', required=True, coerce=stripped)
    CONTACT_NUMBER = FormField(key='contact_number', label='Contact number', required=True, default_value='09',
                               normalizer=normalize_phone, coerce=stripped, max_length=11)
    PASSPORT_NUMBER = FormField(key='passport_number', label='Passport number', required=True,
                                normalizer=normalize_identifier)
    PASSPORT_VALIDITY = FormField(key='passport_validity', label='Passport validity', kind='date', required=True,
                                  min_date=same_day)
    WITH_TAIWAN_EXPERIENCE = FormField(key='with_taiwan_experience', label='With Taiwan work experience?',
                                       kind='radio', options=yes_no, default_value='no',
                                       db_column='with_taiwan_work_experience',
                                       form_name='with_taiwan_work_experience', coerce=yes_to_bool)
    TAIWAN_COMPANY = FormField(key='taiwan_company', label='Taiwan company', normalizer=normalize_upper)
    TAIWAN_YEAR_STARTED = FormField(key='taiwan_year_started', label='Year started', kind='select',
                                    options=YEAR_OPTIONS)
    TAIWAN_YEAR_ENDED = FormField(key='taiwan_year_ended', label='Year ended', kind='select', options=YEAR_OPTIONS)
    WITH_OTHER_EXPERIENCE = FormField(key='with_other_experience', label='With other job experience?',
                                      kind='radio', options=yes_no, default_value='no',
                                      db_column='with_job_experience', form_name='with_job_experience',
                                      coerce=yes_to_bool)
    OTHER_COMPANY = FormField(key='other_company', label='Company', normalizer=normalize_upper)
    OTHER_YEAR_STARTED = FormField(key='other_year_started', label='Year started', kind='select',
                                   options=YEAR_OPTIONS)
    OTHER_YEAR_ENDED = FormField(key='other_year_ended', label='Year ended', kind='select', options=YEAR_OPTIONS)

# ===================================================================
# 2. LOOKUPS OVER A SCHEMA
# ===================================================================

class ProgramSchema:
    """Indexes a schema class so fields, slots and correction keys can be resolved by name."""

    def __init__(self, schema_cls: type) -> None:
        members = list(schema_cls.__dict__.values())
        self.fields: dict[str, FormField] = {m.key: m for m in members if isinstance(m, FormField)}
        self.composites: dict[str, CompositeField] = {m.key: m for m in members if isinstance(m, CompositeField)}
        self.slots: dict[str, DocumentSlotDef] = {m.key: m for m in members if isinstance(m, DocumentSlotDef)}
        self.meta_keys: frozenset[str] = frozenset(k for s in self.slots.values() for k in s.meta_fields)
        self._part_owner: dict[str, CompositeField] = {
            part: composite for composite in self.composites.values() for part in composite.parts
        }
        self._by_correction_key: dict[str, FormField] = {f.correction_key: f for f in self.fields.values()}
        self._slot_by_correction_key: dict[str, DocumentSlotDef] = {
            s.correction_key: s for s in self.slots.values()
        }

    def field(self, key: str) -> FormField:
        return self.fields[key]

    def slot(self, key: str) -> DocumentSlotDef:
        return self.slots[key]

    def info_keys(self) -> list[str]:
        return [k for k in self.fields if k not in self.meta_keys]

    def defaults(self) -> dict[str, Any]:
        return {k: f.default_value for k, f in self.fields.items()}

    def correction_key_for(self, key: str) -> str:
        """Correction flag that unlocks a form field or document slot."""
        if key in self.slots:
            return self.slots[key].correction_key
        composite = self._part_owner.get(key)
        if composite is not None:
            return composite.key
        if key in self.fields:
            return self.fields[key].correction_key
        return key

    def field_for_correction(self, correction_key: str) -> FormField | None:
        return self._by_correction_key.get(correction_key)

    def slot_for_correction(self, correction_key: str) -> DocumentSlotDef | None:
        return self._slot_by_correction_key.get(correction_key)

    def slot_for_document_type(self, document_type: str) -> DocumentSlotDef | None:
        for slot in self.slots.values():
            if slot.server_type == document_type:
                return slot
        return None


def split_full_name(full_name: str, parts: tuple[str, ...]) -> dict[str, str]:
    """'JUAN DELA CRUZ SANTOS' -> first 'JUAN', middle 'DELA CRUZ', last 'SANTOS'."""
    tokens = (full_name or '').split()
    values = {part: '' for part in parts}
    if not tokens or len(parts) < 2:
        return values
    first, last = parts[0], parts[-1]
    values[first] = tokens[0]
    if len(tokens) > 1:
        values[last] = tokens[-1]
    if len(parts) > 2:
        values[parts[1]] = ' '.join(tokens[1:-1])
    return values


SCHEMAS: dict[ProgramType, ProgramSchema] = {
    ProgramType.DIRECT_HIRE: ProgramSchema(DirectHireSchema),
    ProgramType.BALIK_MANGGAGAWA: ProgramSchema(BalikManggagawaSchema),
    ProgramType.GOV_TO_GOV: ProgramSchema(GovToGovSchema),
}
