"""
Interest Calculation Module

Standardized interest calculations for loan products. Supports flat rate
and reducing (declining) balance methods. Rates are annual percentages,
e.g. Decimal('12') for 12%.

Day-count policy: every schedule-facing calculation uses a fixed 30-day
month. The calendar-aware helpers (days_in_month, daily_interest_for_date)
are accrual utilities only and are never used to build schedules.
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import date
from dataclasses import dataclass, replace
from typing import Optional, Union
from enum import Enum
import calendar

from .currency import to_decimal
from .errors import InvalidInputError, UnsupportedMethodError


STANDARD_DAYS_IN_MONTH = 30
MONTHS_PER_YEAR = 12
MAX_ANNUAL_RATE = Decimal('100')

# Upper bound when solving for an implied rate; schedules can imply rates
# above the valid range for stored terms and the report must still show them
MAX_IMPLIED_RATE = Decimal('1000')


class CalculationMethod(Enum):
    """Interest calculation methods"""
    FLAT_RATE = "flat_rate"                # Interest on original principal for the whole term
    REDUCING_BALANCE = "reducing_balance"  # Interest on the outstanding balance (annuity)

    @classmethod
    def parse(cls, value: Union['CalculationMethod', str]) -> 'CalculationMethod':
        """Parse caller input, collapsing 'declining_balance' onto REDUCING_BALANCE"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized == "declining_balance":
                return cls.REDUCING_BALANCE
            for method in cls:
                if method.value == normalized:
                    return method
        raise UnsupportedMethodError(value)


class PaymentFrequency(Enum):
    """Payment frequency options (informational at this layer)"""
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


@dataclass(frozen=True)
class LoanTerms:
    """Loan terms a calculation is based on"""
    principal: Decimal
    annual_rate: Decimal            # Percentage, e.g. 12 for 12%
    term_in_months: int
    calculation_method: CalculationMethod
    payment_frequency: Optional[PaymentFrequency] = None

    def __post_init__(self):
        principal = to_decimal(self.principal, "principal")
        annual_rate = to_decimal(self.annual_rate, "annual_rate")

        if principal <= 0:
            raise InvalidInputError(f"Principal must be positive, got {principal}")
        _validate_rate(annual_rate)
        if isinstance(self.term_in_months, bool) or not isinstance(self.term_in_months, int):
            raise InvalidInputError("Term in months must be an integer")
        if self.term_in_months <= 0:
            raise InvalidInputError(f"Term in months must be positive, got {self.term_in_months}")

        frequency = self.payment_frequency
        if frequency is not None and not isinstance(frequency, PaymentFrequency):
            try:
                frequency = PaymentFrequency(str(frequency).strip().lower())
            except ValueError:
                raise InvalidInputError(f"Unsupported payment frequency: {self.payment_frequency}")

        object.__setattr__(self, 'principal', principal)
        object.__setattr__(self, 'annual_rate', annual_rate)
        object.__setattr__(self, 'calculation_method', CalculationMethod.parse(self.calculation_method))
        object.__setattr__(self, 'payment_frequency', frequency)

    @property
    def monthly_rate(self) -> Decimal:
        """Periodic (monthly) rate as a fraction"""
        return self.annual_rate / Decimal(100 * MONTHS_PER_YEAR)

    def with_rate(self, annual_rate) -> 'LoanTerms':
        """Copy of these terms with a different annual rate"""
        return replace(self, annual_rate=annual_rate)


@dataclass(frozen=True)
class InterestResult:
    """Derived interest figures for a set of loan terms"""
    daily_interest: Decimal
    monthly_interest: Decimal
    total_interest: Decimal
    monthly_payment: Decimal


def _validate_rate(annual_rate: Decimal) -> None:
    if annual_rate < 0 or annual_rate > MAX_ANNUAL_RATE:
        raise InvalidInputError(f"Annual rate must be between 0 and 100, got {annual_rate}")


def _validate_days(days_in_month) -> int:
    if isinstance(days_in_month, bool) or not isinstance(days_in_month, int):
        raise InvalidInputError("Days in month must be an integer")
    if days_in_month <= 0:
        raise InvalidInputError(f"Days in month must be positive, got {days_in_month}")
    return days_in_month


def _prepare(principal, annual_rate, days_in_month):
    principal = to_decimal(principal, "principal")
    annual_rate = to_decimal(annual_rate, "annual_rate")
    if principal < 0:
        raise InvalidInputError(f"Principal must not be negative, got {principal}")
    _validate_rate(annual_rate)
    return principal, annual_rate, _validate_days(days_in_month)


def daily_interest(principal, annual_rate, days_in_month: int = STANDARD_DAYS_IN_MONTH) -> Decimal:
    """
    Daily interest: (principal x annual rate%) / (12 x days in month)

    Args:
        principal: Loan principal
        annual_rate: Annual rate as a percentage
        days_in_month: Days in the month (default 30)

    Returns:
        Daily interest amount (unrounded)
    """
    principal, annual_rate, days = _prepare(principal, annual_rate, days_in_month)
    return principal * annual_rate / Decimal(100 * MONTHS_PER_YEAR * days)


def monthly_interest(principal, annual_rate, days_in_month: int = STANDARD_DAYS_IN_MONTH) -> Decimal:
    """Monthly interest: daily interest x days in month"""
    principal, annual_rate, days = _prepare(principal, annual_rate, days_in_month)
    # Single division so whole-unit results stay exact
    return principal * annual_rate * days / Decimal(100 * MONTHS_PER_YEAR * days)


def flat_rate_interest(terms: LoanTerms) -> InterestResult:
    """
    Flat rate interest on the original principal, fixed 30-day month.

    Interest does not decline as principal is repaid.
    """
    days = STANDARD_DAYS_IN_MONTH
    daily = daily_interest(terms.principal, terms.annual_rate, days)
    monthly = monthly_interest(terms.principal, terms.annual_rate, days)
    total = monthly * terms.term_in_months
    payment = terms.principal / Decimal(terms.term_in_months) + monthly

    return InterestResult(
        daily_interest=daily,
        monthly_interest=monthly,
        total_interest=total,
        monthly_payment=payment
    )


def annuity_payment(principal: Decimal, monthly_rate: Decimal, term: int) -> Decimal:
    """Equal installment payment: P * [r(1+r)^n] / [(1+r)^n - 1]"""
    if term <= 0:
        raise InvalidInputError("Term must be positive")
    if monthly_rate == 0:
        return principal / Decimal(term)
    factor = (Decimal('1') + monthly_rate) ** term
    return principal * (monthly_rate * factor) / (factor - Decimal('1'))


def _annuity_total_interest(principal: Decimal, monthly_rate: Decimal, term: int) -> Decimal:
    if monthly_rate == 0:
        return Decimal('0')
    return annuity_payment(principal, monthly_rate, term) * term - principal


def reducing_balance_interest(terms: LoanTerms) -> InterestResult:
    """
    Reducing balance interest via the annuity formula.

    monthly_interest and daily_interest in the result are averages over the
    term; actual per-period interest declines with the balance.
    """
    term = terms.term_in_months
    rate = terms.monthly_rate

    if rate == 0:
        return InterestResult(
            daily_interest=Decimal('0'),
            monthly_interest=Decimal('0'),
            total_interest=Decimal('0'),
            monthly_payment=terms.principal / Decimal(term)
        )

    payment = annuity_payment(terms.principal, rate, term)
    total = payment * term - terms.principal
    average_monthly = total / Decimal(term)

    return InterestResult(
        daily_interest=average_monthly / Decimal(STANDARD_DAYS_IN_MONTH),
        monthly_interest=average_monthly,
        total_interest=total,
        monthly_payment=payment
    )


def calculate_interest(terms: LoanTerms) -> InterestResult:
    """Calculate interest figures using the terms' calculation method"""
    method = CalculationMethod.parse(terms.calculation_method)
    if method == CalculationMethod.FLAT_RATE:
        return flat_rate_interest(terms)
    elif method == CalculationMethod.REDUCING_BALANCE:
        return reducing_balance_interest(terms)
    raise UnsupportedMethodError(method)


def days_in_month(value: date) -> int:
    """Number of calendar days in the month containing value"""
    return calendar.monthrange(value.year, value.month)[1]


def daily_interest_for_date(principal, annual_rate, value: date) -> Decimal:
    """Daily interest using the actual length of the month containing value"""
    return daily_interest(principal, annual_rate, days_in_month(value))


def implied_annual_rate(
    principal,
    term_in_months: int,
    total_interest,
    method: Union[CalculationMethod, str],
    precision: int = 4,
    iterations: int = 200
) -> Decimal:
    """
    Solve for the annual rate that produces total_interest.

    Inverse of flat_rate_interest (closed form) and reducing_balance_interest
    (bisection, total interest is increasing in the rate).

    Args:
        principal: Loan principal
        term_in_months: Number of monthly installments
        total_interest: Total interest to reproduce
        method: Calculation method of the loan
        precision: Decimal places of the returned rate
        iterations: Maximum bisection steps

    Returns:
        Annual rate as a percentage, rounded to precision
    """
    principal = to_decimal(principal, "principal")
    total_interest = to_decimal(total_interest, "total_interest")
    method = CalculationMethod.parse(method)
    if principal <= 0:
        raise InvalidInputError(f"Principal must be positive, got {principal}")
    if isinstance(term_in_months, bool) or not isinstance(term_in_months, int) or term_in_months <= 0:
        raise InvalidInputError(f"Term in months must be a positive integer, got {term_in_months}")

    quantum = Decimal('0.1') ** precision
    if total_interest <= 0:
        return Decimal('0').quantize(quantum)

    if method == CalculationMethod.FLAT_RATE:
        rate = total_interest * Decimal(100 * MONTHS_PER_YEAR) / (principal * term_in_months)
        return rate.quantize(quantum, rounding=ROUND_HALF_UP)

    periods = Decimal(100 * MONTHS_PER_YEAR)
    low = Decimal('0')
    high = MAX_IMPLIED_RATE
    if _annuity_total_interest(principal, high / periods, term_in_months) <= total_interest:
        return high.quantize(quantum)

    stop_width = quantum / 100
    for _ in range(iterations):
        mid = (low + high) / 2
        if _annuity_total_interest(principal, mid / periods, term_in_months) < total_interest:
            low = mid
        else:
            high = mid
        if high - low < stop_width:
            break

    return ((low + high) / 2).quantize(quantum, rounding=ROUND_HALF_UP)
