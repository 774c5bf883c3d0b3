# tests/test_currency.py
from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from balikbayani.currency import convert_to_usd, format_usd, parse_amount, usd_equivalent

def test_parse_amount() -> None:
    assert parse_amount(' 1500 ') == 1500.0
    assert parse_amount('-1') is None, "Non-positive amounts are not amounts"
    assert parse_amount('nan') is None
    assert parse_amount(None) is None

def test_conversion_and_format() -> None:
    assert convert_to_usd(1000, 'usd') == 1000.0, "Currency codes are case-insensitive"
    assert convert_to_usd(10000, 'PHP') == 180.0
    assert convert_to_usd(50, 'XYZ') == 50.0, "Unknown currencies convert one to one"
    assert format_usd(1234.5) == 'USD 1,234.50'

def test_usd_equivalent() -> None:
    assert usd_equivalent('10000', 'PHP') == 'USD 180.00'
    assert usd_equivalent('', 'PHP') == '', "No salary, no equivalent"
    assert usd_equivalent('10000', '') == '', "No currency, no equivalent"

def test_stored_value_wins_while_untouched() -> None:
    assert usd_equivalent('10000', 'PHP', stored_usd=175.5, touched=False) == 'USD 175.50', \
        "An untouched salary keeps the converted value already on file"
    assert usd_equivalent('10000', 'PHP', stored_usd=175.5, touched=True) == 'USD 180.00', \
        "Editing the salary recomputes"
    assert usd_equivalent('10000', 'PHP', stored_usd=None, touched=False) == 'USD 180.00'
