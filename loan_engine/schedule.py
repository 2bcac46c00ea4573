"""
Loan Schedule Module

Amortization schedule entries, payment records and schedule generation for
flat rate and reducing balance loans. Installments are monthly; every
amount is rounded to the currency precision and the final installment
absorbs the principal rounding residue.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, replace
from typing import Dict, List, Optional
from enum import Enum
import calendar

from .currency import Currency, to_decimal, validate_decimal_precision
from .errors import InvalidInputError
from .interest import (
    CalculationMethod, LoanTerms, annuity_payment, calculate_interest
)
from .logging_config import get_logger, log_action
from .repayment import LoanBalances


logger = get_logger("loan_engine.schedule")


class InstallmentStatus(Enum):
    """Payment status of a scheduled installment"""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


@dataclass(frozen=True)
class ScheduleEntry:
    """Single installment of an amortization schedule"""
    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    fee_amount: Decimal = Decimal('0')
    total_amount: Optional[Decimal] = None

    # Paid to date, per component
    principal_paid: Decimal = Decimal('0')
    interest_paid: Decimal = Decimal('0')
    fee_paid: Decimal = Decimal('0')

    def __post_init__(self):
        if isinstance(self.installment_number, bool) or not isinstance(self.installment_number, int) \
                or self.installment_number <= 0:
            raise InvalidInputError(f"Installment number must be a positive integer, got {self.installment_number}")
        if not isinstance(self.due_date, date):
            raise InvalidInputError("Due date must be a date")

        for name in ('principal_amount', 'interest_amount', 'fee_amount',
                     'principal_paid', 'interest_paid', 'fee_paid'):
            value = to_decimal(getattr(self, name), name)
            if value < 0:
                raise InvalidInputError(f"{name} must not be negative, got {value}")
            object.__setattr__(self, name, value)

        calculated_total = self.principal_amount + self.interest_amount + self.fee_amount
        if self.total_amount is None:
            object.__setattr__(self, 'total_amount', calculated_total)
        else:
            total = to_decimal(self.total_amount, "total_amount")
            # Validate that total equals principal + interest + fees
            if abs(total - calculated_total) > Decimal('0.01'):
                raise InvalidInputError(
                    f"Installment {self.installment_number} total {total} does not equal "
                    f"principal {self.principal_amount} + interest {self.interest_amount} "
                    f"+ fees {self.fee_amount}"
                )
            object.__setattr__(self, 'total_amount', total)

        if (self.principal_paid > self.principal_amount or
                self.interest_paid > self.interest_amount or
                self.fee_paid > self.fee_amount):
            raise InvalidInputError(f"Installment {self.installment_number} is paid beyond its amounts")

    @property
    def paid_amount(self) -> Decimal:
        return self.principal_paid + self.interest_paid + self.fee_paid

    @property
    def outstanding_amount(self) -> Decimal:
        return max(Decimal('0'), self.total_amount - self.paid_amount)

    @property
    def status(self) -> InstallmentStatus:
        if self.outstanding_amount == 0:
            return InstallmentStatus.PAID
        if self.paid_amount > 0:
            return InstallmentStatus.PARTIAL
        return InstallmentStatus.UNPAID

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID

    def balances(self) -> LoanBalances:
        """Unpaid components of this installment"""
        return LoanBalances(
            outstanding_principal=self.principal_amount - self.principal_paid,
            unpaid_interest=self.interest_amount - self.interest_paid,
            unpaid_fees=self.fee_amount - self.fee_paid
        )

    def unpaid(self) -> 'ScheduleEntry':
        """Copy of this installment with nothing paid"""
        return replace(
            self,
            principal_paid=Decimal('0'),
            interest_paid=Decimal('0'),
            fee_paid=Decimal('0')
        )

    def to_dict(self) -> Dict:
        """Convert to the persisted schedule row format"""
        return {
            'installment_number': self.installment_number,
            'due_date': self.due_date.isoformat(),
            'principal_amount': str(self.principal_amount),
            'interest_amount': str(self.interest_amount),
            'fee_amount': str(self.fee_amount),
            'total_amount': str(self.total_amount),
            'principal_paid': str(self.principal_paid),
            'interest_paid': str(self.interest_paid),
            'fee_paid': str(self.fee_paid),
            'paid_amount': str(self.paid_amount),
            'outstanding_amount': str(self.outstanding_amount),
            'payment_status': self.status.value
        }

    @classmethod
    def from_record(cls, data: Dict) -> 'ScheduleEntry':
        """
        Build an installment from a persisted schedule row.

        Aggregate paid columns are ignored; paid amounts are rebuilt from the
        payment history.
        """
        due_date = data['due_date']
        if isinstance(due_date, str):
            due_date = date.fromisoformat(due_date)
        return cls(
            installment_number=int(data['installment_number']),
            due_date=due_date,
            principal_amount=data['principal_amount'],
            interest_amount=data['interest_amount'],
            fee_amount=data.get('fee_amount') or Decimal('0'),
            total_amount=data.get('total_amount')
        )


@dataclass(frozen=True)
class LoanPayment:
    """Recorded payment against a loan"""
    payment_date: date
    amount: Decimal
    reference: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.payment_date, date):
            raise InvalidInputError("Payment date must be a date")
        amount = to_decimal(self.amount, "amount")
        if amount < 0:
            raise InvalidInputError(f"Payment amount must not be negative, got {amount}")
        object.__setattr__(self, 'amount', amount)

    @classmethod
    def from_record(cls, data: Dict) -> 'LoanPayment':
        payment_date = data['payment_date']
        if isinstance(payment_date, str):
            payment_date = date.fromisoformat(payment_date[:10])
        return cls(
            payment_date=payment_date,
            amount=data.get('payment_amount', data.get('amount')),
            reference=data.get('reference') or data.get('id')
        )


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def generate_schedule(
    terms: LoanTerms,
    first_due_date: date,
    installment_fee=Decimal('0'),
    disbursement_fee=Decimal('0'),
    currency: Currency = Currency.KES
) -> List[ScheduleEntry]:
    """
    Generate the monthly amortization schedule for loan terms

    Args:
        terms: Loan terms
        first_due_date: Due date of the first installment
        installment_fee: Fee added to every installment
        disbursement_fee: Fee added to the first installment only
        currency: Currency whose precision amounts are rounded to

    Returns:
        List of ScheduleEntry objects ordered by installment number
    """
    installment_fee = to_decimal(installment_fee, "installment_fee")
    disbursement_fee = to_decimal(disbursement_fee, "disbursement_fee")
    if installment_fee < 0 or disbursement_fee < 0:
        raise InvalidInputError("Fees must not be negative")

    def rounded(value: Decimal) -> Decimal:
        return validate_decimal_precision(value, currency)

    term = terms.term_in_months
    rate = terms.monthly_rate
    method = terms.calculation_method

    if method == CalculationMethod.FLAT_RATE:
        flat_interest = rounded(calculate_interest(terms).monthly_interest)
        payment = None
    else:
        flat_interest = None
        payment = annuity_payment(terms.principal, rate, term)

    equal_principal = rounded(terms.principal / Decimal(term))
    remaining_balance = terms.principal
    schedule = []

    for number in range(1, term + 1):
        if flat_interest is not None:
            interest_amount = flat_interest
            principal_amount = equal_principal
        elif rate == 0:
            interest_amount = Decimal('0').quantize(currency.quantum)
            principal_amount = equal_principal
        else:
            # Interest on the balance still outstanding
            interest_amount = rounded(remaining_balance * rate)
            principal_amount = rounded(max(payment - interest_amount, Decimal('0')))

        # Final installment pays off exactly what is left
        if number == term or principal_amount > remaining_balance:
            principal_amount = remaining_balance

        fee_amount = installment_fee
        if number == 1:
            fee_amount += disbursement_fee

        schedule.append(ScheduleEntry(
            installment_number=number,
            due_date=add_months(first_due_date, number - 1),
            principal_amount=principal_amount,
            interest_amount=interest_amount,
            fee_amount=rounded(fee_amount)
        ))
        remaining_balance -= principal_amount

    log_action(
        logger, "debug", "Schedule generated",
        action="generate_schedule",
        extra={
            "calculation_method": method.value,
            "installments": len(schedule),
            "principal": str(terms.principal),
            "annual_rate": str(terms.annual_rate)
        }
    )

    return schedule
