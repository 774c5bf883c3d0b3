from typing import List

sex_options: dict[str, str] = {
    'male': 'Male',
    'female': 'Female',
}

job_types: dict[str, str] = {
    'professional': 'Professional',
    'household': 'Household',
}

yes_no: dict[str, str] = {
    'yes': 'Yes',
    'no': 'No',
}

education_levels: List[str] = [
    'POST GRADUATE',
    'COLLEGE GRADUATE',
    'VOCATIONAL GRADUATE',
    'COLLEGE LEVEL',
    'HIGH SCHOOL GRADUATE',
]

visa_categories: List[str] = [
    'Temporary Work Visa',
    'Permanent Residence',
    'Work Permit',
    'Employment Pass',
]

visa_types: List[str] = [
    'Skilled Worker',
    'Household Service Worker',
    'Seafarer',
    'Professional',
    'Others',
]

ec_verification_types: dict[str, str] = {
    'for_pe_pcg': 'For PE/PCG',
    'for_mwo_polo': 'For MWO/POLO',
    'others': 'Others',
}

# Most common currencies of deployment destinations first.
currencies: List[str] = [
    'USD', 'PHP', 'EUR', 'GBP', 'JPY', 'AUD', 'CAD', 'SGD', 'HKD', 'KRW',
    'TWD', 'CNY', 'MYR', 'THB', 'AED', 'SAR', 'QAR', 'KWD', 'BHD', 'OMR',
    'NZD', 'CHF', 'NOK', 'SEK', 'DKK', 'ILS', 'INR', 'IDR', 'VND',
]
