"""
LEDGER CORE - DECIMAL PRECISION & MONEY UTILITIES

This module provides:
1. Decimal conversion for stored amounts (float/int/str/Decimal128)
2. Finite-number parsing for untrusted document fields
3. Rounding at the storage boundary only
4. Currency formatting for operator-facing messages
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Union
from bson import Decimal128
import logging

logger = logging.getLogger(__name__)

# Precision configuration
DECIMAL_PLACES = 2
QUANTIZE_PATTERN = Decimal('0.01')

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


class FinancialPrecisionError(Exception):
    """Raised when a value cannot be interpreted as money"""
    pass


def to_decimal(value: Union[float, int, str, Decimal, Decimal128]) -> Decimal:
    """
    Convert any numeric value to Decimal.
    Does NOT round - preserves full precision for intermediate calculations.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, bool):
        raise FinancialPrecisionError(f"Cannot convert {type(value)} to Decimal")
    if isinstance(value, (int, float)):
        # Convert via string to avoid float precision issues
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip().replace(",", ""))
        except InvalidOperation:
            raise FinancialPrecisionError(f"Cannot convert '{value}' to Decimal")
    raise FinancialPrecisionError(f"Cannot convert {type(value)} to Decimal")


def parse_amount(value) -> Optional[Decimal]:
    """
    Parse a stored money field.

    Returns None when the value is missing, non-numeric, NaN or infinite,
    so callers can decide whether that means "absent" or "corrupt".
    """
    if value is None:
        return None
    try:
        decimal_value = to_decimal(value)
    except FinancialPrecisionError:
        return None
    if not decimal_value.is_finite():
        return None
    return decimal_value


def round_financial(value: Union[float, int, str, Decimal]) -> Decimal:
    """
    Round a value to 2 decimal places (half-up).
    This should be called ONLY at calculation boundaries.
    """
    decimal_value = to_decimal(value)
    return decimal_value.quantize(QUANTIZE_PATTERN, rounding=ROUND_HALF_UP)


def to_float(value: Decimal) -> float:
    """
    Convert Decimal back to float for MongoDB storage.
    Rounds to 2 decimal places first.
    """
    return float(round_financial(value))


def is_positive_amount(value: Optional[Decimal]) -> bool:
    return value is not None and value > Decimal('0')


def format_currency(value: Union[float, int, Decimal], currency: str = "USD") -> str:
    """
    Format an amount for an operator-facing message.

    Example: format_currency(1234.5) = "$1,234.50"
             format_currency(10, "CHF") = "10.00 CHF"
    """
    rounded = round_financial(value)
    code = (currency or "USD").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        sign = "-" if rounded < 0 else ""
        return f"{sign}{symbol}{abs(rounded):,.2f}"
    return f"{rounded:,.2f} {code}"
