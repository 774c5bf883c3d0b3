# balikbayani/validation.py
from __future__ import annotations
import math
import re
from re import Pattern
from typing import Any, Protocol
from collections.abc import Callable, Mapping
from datetime import date, datetime, timedelta


class RuleContext(Protocol):
    """What a validator may look at besides its own value."""
    today: date

    def get(self, key: str, default: Any = None) -> Any: ...
    def slot_filled(self, slot_key: str) -> bool: ...


# --- Type Aliases ---
ValidationResult = tuple[bool, str]
# The validator gets the value and the whole form context (other fields, document slots, today)
ValidatorFunc = Callable[[Any | None, RuleContext], ValidationResult]
DateHorizon = Callable[[date], date]

# --- Regex Patterns (centralized) ---
EMAIL_PATTERN: Pattern[str] = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]{2,}$', re.IGNORECASE)
PHONE_PREFIX: str = '09'
PHONE_LENGTH: int = 11
PHONE_PATTERN: Pattern[str] = re.compile(r'^09\d{9}$')
NON_DIGIT_PATTERN: Pattern[str] = re.compile(r'\D')
NON_IDENTIFIER_PATTERN: Pattern[str] = re.compile(r'[^A-Z0-9]')
DATE_FORMAT_STORAGE: str = '%Y-%m-%d'

# ===================================================================
# ENTRY-TIME NORMALIZERS
# ===================================================================

def normalize_phone(raw: str | None) -> str:
    """
    Auto-corrects a mobile number while the user types: keeps digits only,
    forces the 09 prefix and truncates to 11 digits.
    """
    digits = NON_DIGIT_PATTERN.sub('', raw or '')
    if not digits.startswith(PHONE_PREFIX):
        if digits.startswith('9'):
            digits = f'0{digits}'
        elif digits.startswith('0'):
            digits = f'{PHONE_PREFIX}{digits[1:]}'
        else:
            digits = f'{PHONE_PREFIX}{digits}'
    return digits[:PHONE_LENGTH]

def normalize_identifier(raw: str | None) -> str:
    """Passport / visa numbers: uppercase alphanumerics only."""
    return NON_IDENTIFIER_PATTERN.sub('', (raw or '').upper())

def normalize_upper(raw: str | None) -> str:
    return (raw or '').upper()

def normalize_amount(raw: Any) -> str:
    """Parses a monetary amount and re-stringifies it ('1500.00' -> '1500', '99.50' -> '99.5')."""
    value = float(str(raw).strip())
    if value.is_integer():
        return str(int(value))
    return repr(value)

# ===================================================================
# DATE HELPERS
# ===================================================================

def parse_iso_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT_STORAGE).date()
    except ValueError:
        return None

def add_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # Feb 29 rolls over to Mar 1, same as a calendar date overflow
        return date(day.year + years, 3, 1)

def passport_min_date(today: date) -> date:
    """Passports must stay valid for at least one more year."""
    return add_years(today, 1)

def visa_validity_min_date(today: date) -> date:
    return today + timedelta(days=1)

def same_day(today: date) -> date:
    return today

def clamp_date(value: Any, today: date,
               min_date: DateHorizon | None = None,
               max_date: DateHorizon | None = None) -> str:
    """Clamps a picked date into the allowed window. Unparseable input becomes ''."""
    picked = parse_iso_date(value)
    if picked is None:
        return ''
    if min_date and picked < min_date(today):
        picked = min_date(today)
    if max_date and picked > max_date(today):
        picked = max_date(today)
    return picked.strftime(DATE_FORMAT_STORAGE)

# ===================================================================
# GENERIC VALIDATOR GENERATORS (Our Reusable Building Blocks)
# ===================================================================

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, dict)) and not value:
        return True
    return False

def required(message: str = "This field is required.") -> ValidatorFunc:
    """Ensures a value is not None, not an empty string, and not just whitespace."""
    def validator(value: Any | None, ctx: RuleContext) -> ValidationResult:
        if _is_blank(value):
            return False, message
        return True, ""
    return validator

def required_choice(message: str = "Please make a selection.") -> ValidatorFunc:
    """Ensures a value from a select/radio is not None or empty/whitespace."""
    def validator(value: Any | None, ctx: RuleContext) -> ValidationResult:
        if value is None or (isinstance(value, str) and not value.strip()):
            return False, message
        return True, ""
    return validator

def match_pattern(pattern: Pattern[str], message: str) -> ValidatorFunc:
    """Ensures a string value matches a regex pattern."""
    def validator(value: Any | None, ctx: RuleContext) -> ValidationResult:
        # Empty values are `required`'s job.
        if not value or not isinstance(value, str):
            return True, ""
        if not pattern.match(value.strip()):
            return False, message
        return True, ""
    return validator

def max_length(limit: int, message: str) -> ValidatorFunc:
    def validator(value: Any | None, ctx: RuleContext) -> ValidationResult:
        if not value or not isinstance(value, str):
            return True, ""
        if len(value) > limit:
            return False, message
        return True, ""
    return validator

def valid_email(message: str = "Enter a valid email address") -> ValidatorFunc:
    return match_pattern(EMAIL_PATTERN, message)

def valid_phone(message: str = "Phone number must start with 09 and contain 11 digits",
                *, allow_prefix_only: bool = False) -> ValidatorFunc:
    """
    Strips formatting characters before checking the 09XXXXXXXXX shape.
    With `allow_prefix_only`, a number that is nothing but the prefix counts as left blank.
    """
    def validator(value: Any | None, ctx: RuleContext) -> ValidationResult:
        if not value or not isinstance(value, str):
            return True, ""
        digits = NON_DIGIT_PATTERN.sub('', value)
        if allow_prefix_only and digits == PHONE_PREFIX:
            return True, ""
        if not PHONE_PATTERN.match(digits):
            return False, message
        return True, ""
    return validator

def positive_number(message: str = "Enter a positive amount") -> ValidatorFunc:
    """Amounts must parse, be finite and be strictly greater than zero."""
    def validator(value: Any | None, ctx: RuleContext) -> ValidationResult:
        if _is_blank(value):
            return False, message
        try:
            amount = float(str(value).strip())
        except ValueError:
            return False, message
        if not math.isfinite(amount) or amount <= 0:
            return False, message
        return True, ""
    return validator

def date_on_or_after(horizon: DateHorizon, message: str) -> ValidatorFunc:
    """The date must be no earlier than horizon(today). The boundary itself passes."""
    def validator(value: Any | None, ctx: RuleContext) -> ValidationResult:
        if _is_blank(value):
            return True, ""
        picked = parse_iso_date(value)
        if picked is None:
            return False, "Invalid date format."
        if picked < horizon(ctx.today):
            return False, message
        return True, ""
    return validator

def date_on_or_before(horizon: DateHorizon, message: str) -> ValidatorFunc:
    def validator(value: Any | None, ctx: RuleContext) -> ValidationResult:
        if _is_blank(value):
            return True, ""
        picked = parse_iso_date(value)
        if picked is None:
            return False, "Invalid date format."
        if picked > horizon(ctx.today):
            return False, message
        return True, ""
    return validator

def is_year_after(other_field_key: str, message: str) -> ValidatorFunc:
    """An end year may not come before the start year held in another field."""
    def validator(value: Any | None, ctx: RuleContext) -> ValidationResult:
        other_value = ctx.get(other_field_key)
        if not value or not other_value:
            return True, ""
        try:
            if int(str(value)) < int(str(other_value)):
                return False, message
        except ValueError:
            return True, ""
        return True, ""
    return validator

# ===================================================================
# UPLOADS
# ===================================================================

ALLOWED_UPLOAD_TYPES: frozenset[str] = frozenset({
    'application/pdf', 'image/jpeg', 'image/png', 'image/gif',
})
ALLOWED_UPLOAD_SUFFIXES: frozenset[str] = frozenset({'.pdf', '.jpg', '.jpeg', '.png', '.gif'})

def is_allowed_upload(file_name: str, content_type: str | None) -> bool:
    if content_type and content_type in ALLOWED_UPLOAD_TYPES:
        return True
    lowered = file_name.lower()
    return any(lowered.endswith(suffix) for suffix in ALLOWED_UPLOAD_SUFFIXES)

def first_error(errors: Mapping[str, str]) -> str:
    return next(iter(errors.values()), '')
