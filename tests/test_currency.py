"""
Test suite for currency module

Tests currency precision, Decimal parsing of caller input and display
formatting. All monetary calculations must use Decimal precision.
"""

import pytest
from decimal import Decimal

from loan_engine.currency import (
    Currency, decimal_from_string, to_decimal, validate_decimal_precision, format_amount
)
from loan_engine.errors import InvalidInputError


class TestCurrency:
    """Test currency enumeration"""

    def test_precision(self):
        """Test currency precision and quantum"""
        assert Currency.KES.precision == 2
        assert Currency.KES.quantum == Decimal('0.01')
        assert Currency.UGX.precision == 0
        assert Currency.UGX.quantum == Decimal('1')

    def test_from_code(self):
        """Test lookup by ISO code"""
        assert Currency.from_code("kes") == Currency.KES
        assert Currency.from_code("USD") == Currency.USD

        with pytest.raises(InvalidInputError, match="Unknown currency"):
            Currency.from_code("ABC")


class TestDecimalParsing:
    """Test conversion of caller input to Decimal"""

    def test_decimal_from_string(self):
        """Test common string formats"""
        assert decimal_from_string("1234.56") == Decimal('1234.56')
        assert decimal_from_string("1,234.56") == Decimal('1234.56')
        assert decimal_from_string("KES 1,000") == Decimal('1000')
        assert decimal_from_string("12,5") == Decimal('12.5')
        assert decimal_from_string("1,234,567") == Decimal('1234567')
        assert decimal_from_string("-42") == Decimal('-42')

    def test_invalid_strings(self):
        """Test unparseable strings are rejected"""
        for value in ("", "abc", "nan", "1.2.3"):
            with pytest.raises(InvalidInputError):
                decimal_from_string(value)

        with pytest.raises(InvalidInputError):
            decimal_from_string(None)

    def test_to_decimal(self):
        """Test numeric inputs of every supported type"""
        assert to_decimal(Decimal('1.10')) == Decimal('1.10')
        assert to_decimal(5) == Decimal('5')
        assert to_decimal(0.1) == Decimal('0.1')
        assert to_decimal("250") == Decimal('250')

    def test_to_decimal_rejects(self):
        """Test non-numeric and non-finite inputs are rejected"""
        with pytest.raises(InvalidInputError, match="principal"):
            to_decimal(True, "principal")
        with pytest.raises(InvalidInputError):
            to_decimal([1, 2])
        with pytest.raises(InvalidInputError):
            to_decimal(Decimal('NaN'))
        with pytest.raises(InvalidInputError):
            to_decimal(float('inf'))

    def test_to_decimal_rejects_malformed_strings(self):
        """Test strings with stray characters are rejected, not truncated"""
        for value in ("12abc", "1e5", "abc12", "12 KES 5", "1_000", "12%"):
            with pytest.raises(InvalidInputError):
                to_decimal(value, "principal")

    def test_currency_markers(self):
        """Test ISO codes and symbols around the number are accepted"""
        assert to_decimal("UGX 1,500") == Decimal('1500')
        assert to_decimal("250.50 usd") == Decimal('250.50')
        assert to_decimal("$ 99.99") == Decimal('99.99')
        assert to_decimal("€12,5") == Decimal('12.5')


class TestRoundingAndFormatting:
    """Test rounding to currency precision and display"""

    def test_validate_decimal_precision(self):
        """Test half-up rounding to the currency precision"""
        assert validate_decimal_precision(Decimal('100.555'), Currency.KES) == Decimal('100.56')
        assert validate_decimal_precision(Decimal('100.554'), Currency.KES) == Decimal('100.55')
        assert validate_decimal_precision(Decimal('100.5'), Currency.UGX) == Decimal('101')

    def test_format_amount(self):
        """Test display formatting with thousands separators"""
        assert format_amount(Decimal('1234567.891'), Currency.KES) == "KES 1,234,567.89"
        assert format_amount(Decimal('1500'), Currency.UGX) == "UGX 1,500"
