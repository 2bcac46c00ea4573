"""
Currency and Decimal Handling Module

Handles ISO 4217 currency precision and conversion of caller input into
Decimal values. NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from enum import Enum
import re

from .errors import InvalidInputError

# Set global decimal context for financial precision
getcontext().prec = 28  # High precision for financial calculations


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    KES = ("KES", 2)  # Kenyan Shilling, 2 decimal places
    UGX = ("UGX", 0)  # Ugandan Shilling, 0 decimal places
    TZS = ("TZS", 2)  # Tanzanian Shilling, 2 decimal places
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    EUR = ("EUR", 2)  # Euro, 2 decimal places
    JPY = ("JPY", 0)  # Japanese Yen, 0 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, e.g. Decimal('0.01')"""
        return Decimal('0.1') ** self.precision

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        for currency in cls:
            if currency.code == code.upper():
                return currency
        raise InvalidInputError(f"Unknown currency code: {code}")


# Plain decimal number, optionally signed, with ',' or '.' separators
_NUMBER_PATTERN = re.compile(r'^[+-]?[\d.,]+$')
_CURRENCY_SYMBOLS = '$€£¥'


def _strip_currency_markers(value: str) -> str:
    """Remove a leading or trailing ISO code, currency symbols and whitespace"""
    clean_value = value.strip()
    upper = clean_value.upper()
    for currency in Currency:
        if upper.startswith(currency.code):
            clean_value = clean_value[len(currency.code):]
            break
        if upper.endswith(currency.code):
            clean_value = clean_value[:-len(currency.code)]
            break
    for symbol in _CURRENCY_SYMBOLS:
        clean_value = clean_value.replace(symbol, '')
    return re.sub(r'\s+', '', clean_value)


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number

    Returns:
        Decimal value

    Raises:
        InvalidInputError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise InvalidInputError("Value must be a non-empty string")

    clean_value = _strip_currency_markers(value)
    if not _NUMBER_PATTERN.match(clean_value):
        raise InvalidInputError(f"Cannot convert '{value}' to Decimal")

    # Handle comma as decimal separator (European format)
    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Likely decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Likely thousands separator
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value:
        clean_value = clean_value.replace(',', '')

    try:
        result = Decimal(clean_value)
    except InvalidOperation:
        raise InvalidInputError(f"Cannot convert '{value}' to Decimal")
    if not result.is_finite():
        raise InvalidInputError(f"Cannot convert '{value}' to Decimal")
    return result


def to_decimal(value, field_name: str = "value") -> Decimal:
    """Convert an int, float, str or Decimal input to a finite Decimal"""
    if isinstance(value, bool):
        raise InvalidInputError(f"{field_name} must be a number, got bool")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # str() avoids carrying binary float artifacts into Decimal
        result = Decimal(str(value))
    elif isinstance(value, str):
        result = decimal_from_string(value)
    else:
        raise InvalidInputError(f"{field_name} must be a number, got {type(value).__name__}")

    if not result.is_finite():
        raise InvalidInputError(f"{field_name} must be finite")
    return result


def validate_decimal_precision(value: Decimal, currency: Currency) -> Decimal:
    """
    Validate and round decimal to currency precision

    Args:
        value: Decimal to validate
        currency: Currency defining precision

    Returns:
        Properly rounded Decimal
    """
    return value.quantize(currency.quantum, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal, currency: Currency) -> str:
    """Format for display"""
    rounded = validate_decimal_precision(amount, currency)
    if currency.precision == 0:
        return f"{currency.code} {rounded:,.0f}"
    return f"{currency.code} {rounded:,.{currency.precision}f}"
