# balikbayani/currency.py
from __future__ import annotations
import logging
from typing import Any

logger = logging.getLogger(__name__)

# USD per one unit of currency. Anything missing converts 1:1 so the display never breaks.
USD_RATES: dict[str, float] = {
    'USD': 1.0, 'PHP': 0.018, 'EUR': 1.09, 'GBP': 1.27, 'JPY': 0.0067,
    'AUD': 0.66, 'CAD': 0.74, 'SGD': 0.74, 'HKD': 0.13, 'KRW': 0.00076,
    'INR': 0.012, 'CNY': 0.14, 'TWD': 0.031, 'THB': 0.027, 'MYR': 0.21,
    'IDR': 0.000061, 'VND': 0.000039, 'AED': 0.2723, 'SAR': 0.2667,
    'QAR': 0.2747, 'KWD': 3.25, 'BHD': 2.65, 'OMR': 2.60, 'NOK': 0.093,
    'SEK': 0.093, 'DKK': 0.145, 'NZD': 0.60, 'CHF': 1.12, 'ILS': 0.26,
}

def parse_amount(raw: Any) -> float | None:
    try:
        amount = float(str(raw).strip())
    except (TypeError, ValueError):
        return None
    if amount != amount or amount <= 0:  # NaN or non-positive
        return None
    return amount

def convert_to_usd(amount: float, currency: str) -> float:
    rate = USD_RATES.get((currency or 'USD').upper(), 1.0)
    return round(amount * rate + 1e-9, 2)

def format_usd(amount: float) -> str:
    return f"USD {amount:,.2f}"

def usd_equivalent(raw_amount: Any, currency: str,
                   *, stored_usd: Any = None, touched: bool = True) -> str:
    """
    Formatted USD equivalent of a salary.

    When an existing application is being edited and neither the salary nor the
    currency was touched, the value stored by the backend wins over a recomputation,
    so today's rates do not silently drift the figure.
    """
    if not touched and stored_usd is not None:
        stored = parse_amount(stored_usd)
        if stored is not None:
            return format_usd(stored)
    amount = parse_amount(raw_amount)
    if amount is None or not currency:
        return ''
    if currency.upper() not in USD_RATES:
        logger.warning(f"No USD rate for currency '{currency}', converting 1:1.")
    return format_usd(convert_to_usd(amount, currency))
