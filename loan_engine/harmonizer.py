"""
Loan Harmonization Module

Reconciles a loan's stored terms with its recorded schedule and payment
history. harmonize() reports the rate the schedule actually implies, whether
schedule and terms agree, and the outstanding and arrears figures;
reharmonize() regenerates the schedule under corrected terms and replays the
payment history onto it.

Drift between terms and schedule is reported, never raised. Callers must
serialize reharmonize() per loan: it is the compute step of a
read-compute-write sequence whose read and write belong to the caller.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .config import EngineConfig, get_config
from .currency import Currency
from .errors import InvalidInputError
from .interest import LoanTerms, calculate_interest, implied_annual_rate
from .logging_config import get_logger, log_action
from .repayment import LoanBalances, RepaymentStrategyType, allocate
from .schedule import LoanPayment, ScheduleEntry, generate_schedule


logger = get_logger("loan_engine.harmonizer")

# Installments fall due once per calendar month
MIN_MONTHLY_GAP_DAYS = 28
MAX_MONTHLY_GAP_DAYS = 31


@dataclass(frozen=True)
class HarmonizationReport:
    """Read-time consistency view of a loan"""
    corrected_interest_rate: Decimal    # Rate implied by the schedule, percentage
    schedule_consistent: bool
    total_scheduled_amount: Decimal
    total_paid_amount: Decimal
    calculated_outstanding: Decimal     # max(0, scheduled - paid)
    days_in_arrears: int
    overpaid_amount: Decimal = Decimal('0')  # Paid beyond the schedule; caller decides policy

    def to_dict(self) -> Dict:
        return {
            'corrected_interest_rate': str(self.corrected_interest_rate),
            'schedule_consistent': self.schedule_consistent,
            'total_scheduled_amount': str(self.total_scheduled_amount),
            'total_paid_amount': str(self.total_paid_amount),
            'calculated_outstanding': str(self.calculated_outstanding),
            'days_in_arrears': self.days_in_arrears,
            'overpaid_amount': str(self.overpaid_amount)
        }


class LoanHarmonizer:
    """
    Detects and corrects drift between loan terms and recorded schedules.

    Holds only immutable settings; safe to share between threads.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        config = config or get_config()
        self.currency = Currency.from_code(config.currency)
        self.rate_tolerance = config.rate_tolerance
        self.amount_tolerance = config.amount_tolerance
        self.rate_precision = config.rate_precision
        self.rate_solver_iterations = config.rate_solver_iterations
        self.strategy = RepaymentStrategyType.parse(config.default_repayment_strategy)

    def harmonize(
        self,
        terms: LoanTerms,
        schedule: Sequence[ScheduleEntry],
        payments: Sequence[LoanPayment],
        as_of: Optional[date] = None,
        loan_id: Optional[str] = None
    ) -> HarmonizationReport:
        """
        Check a loan's schedule and payments against its terms

        Args:
            terms: Stored loan terms
            schedule: Persisted amortization schedule
            payments: Recorded payment history
            as_of: Date arrears are measured at (defaults to today)
            loan_id: Loan identifier, used for logging only

        Returns:
            HarmonizationReport
        """
        as_of = as_of or date.today()
        ordered_schedule = sorted(schedule, key=lambda entry: entry.installment_number)

        total_scheduled = sum((entry.total_amount for entry in ordered_schedule), Decimal('0'))
        total_paid = sum((payment.amount for payment in payments), Decimal('0'))
        outstanding = max(Decimal('0'), total_scheduled - total_paid)
        overpaid = max(Decimal('0'), total_paid - total_scheduled)

        scheduled_principal = sum((entry.principal_amount for entry in ordered_schedule), Decimal('0'))
        scheduled_interest = sum((entry.interest_amount for entry in ordered_schedule), Decimal('0'))

        corrected_rate = implied_annual_rate(
            terms.principal,
            terms.term_in_months,
            scheduled_interest,
            terms.calculation_method,
            precision=self.rate_precision,
            iterations=self.rate_solver_iterations
        )

        # Expected figures come from the schedule these terms generate in this
        # currency, so per-installment rounding is part of the reference
        expected_interest = calculate_interest(terms).total_interest
        reference_rate = terms.annual_rate
        if ordered_schedule:
            reference = generate_schedule(terms, ordered_schedule[0].due_date, currency=self.currency)
            expected_interest = sum((entry.interest_amount for entry in reference), Decimal('0'))
            reference_rate = implied_annual_rate(
                terms.principal,
                terms.term_in_months,
                expected_interest,
                terms.calculation_method,
                precision=self.rate_precision,
                iterations=self.rate_solver_iterations
            )

        tolerance = max(self.amount_tolerance, self.currency.quantum) * max(len(ordered_schedule), 1)
        rate_matches = min(
            abs(corrected_rate - terms.annual_rate),
            abs(corrected_rate - reference_rate)
        ) <= self.rate_tolerance
        principal_matches = abs(scheduled_principal - terms.principal) <= tolerance
        interest_matches = abs(scheduled_interest - expected_interest) <= tolerance
        consistent = (
            bool(ordered_schedule)
            and rate_matches
            and principal_matches
            and interest_matches
            and has_monthly_due_dates(ordered_schedule)
        )

        days_in_arrears = 0
        if outstanding > 0:
            replayed, _ = self.apply_payments(ordered_schedule, payments)
            days_in_arrears = calculate_days_in_arrears(replayed, as_of)

        report = HarmonizationReport(
            corrected_interest_rate=corrected_rate,
            schedule_consistent=consistent,
            total_scheduled_amount=total_scheduled,
            total_paid_amount=total_paid,
            calculated_outstanding=outstanding,
            days_in_arrears=days_in_arrears,
            overpaid_amount=overpaid
        )

        if not consistent:
            log_action(
                logger, "warning", "Loan schedule drift detected",
                loan_id=loan_id, action="harmonize",
                extra={
                    "stored_rate": str(terms.annual_rate),
                    "implied_rate": str(corrected_rate),
                    "scheduled_principal": str(scheduled_principal),
                    "scheduled_interest": str(scheduled_interest),
                    "expected_interest": str(expected_interest),
                    "installments": len(ordered_schedule)
                }
            )
        else:
            log_action(
                logger, "debug", "Loan schedule consistent",
                loan_id=loan_id, action="harmonize",
                extra=report.to_dict()
            )

        return report

    def reharmonize(
        self,
        terms: LoanTerms,
        schedule: Sequence[ScheduleEntry],
        payments: Sequence[LoanPayment],
        first_due_date: Optional[date] = None,
        loan_id: Optional[str] = None
    ) -> List[ScheduleEntry]:
        """
        Regenerate the schedule under terms and replay every payment onto it

        The first due date and per-installment fees are carried over from the
        existing schedule. first_due_date is required only when the existing
        schedule is empty.

        Args:
            terms: Loan terms carrying the corrected rate
            schedule: Existing amortization schedule
            payments: Recorded payment history
            first_due_date: Due date of installment 1 when schedule is empty
            loan_id: Loan identifier, used for logging only

        Returns:
            New schedule with paid amounts rebuilt from the payment history
        """
        ordered_schedule = sorted(schedule, key=lambda entry: entry.installment_number)
        if ordered_schedule:
            first_due_date = ordered_schedule[0].due_date
        elif first_due_date is None:
            raise InvalidInputError("first_due_date is required when the existing schedule is empty")

        fees = {entry.installment_number: entry.fee_amount for entry in ordered_schedule}

        regenerated = [
            replace(entry, fee_amount=fees.get(entry.installment_number, Decimal('0')), total_amount=None)
            for entry in generate_schedule(terms, first_due_date, currency=self.currency)
        ]

        new_schedule, unapplied = self.apply_payments(regenerated, payments)

        log_action(
            logger, "info", "Loan schedule regenerated",
            loan_id=loan_id, action="reharmonize",
            extra={
                "annual_rate": str(terms.annual_rate),
                "calculation_method": terms.calculation_method.value,
                "installments": len(new_schedule),
                "payments_replayed": len(payments)
            }
        )
        if unapplied > 0:
            log_action(
                logger, "warning", "Payments exceed regenerated schedule",
                loan_id=loan_id, action="reharmonize",
                extra={"unapplied_amount": str(unapplied)}
            )

        return new_schedule

    def apply_payments(
        self,
        schedule: Sequence[ScheduleEntry],
        payments: Sequence[LoanPayment],
        strategy: Union[RepaymentStrategyType, str, None] = None
    ) -> Tuple[List[ScheduleEntry], Decimal]:
        """
        Replay payments onto installments in order.

        Each payment, in payment date order, is allocated to the earliest
        unpaid installment first and its remainder carried to the next.

        Returns:
            (schedule with paid components rebuilt, amount no installment absorbed)
        """
        strategy = RepaymentStrategyType.parse(strategy) if strategy else self.strategy
        entries = [entry.unpaid() for entry in sorted(schedule, key=lambda e: e.installment_number)]
        unapplied = Decimal('0')

        # sorted() is stable, so same-day payments keep their recorded order
        for payment in sorted(payments, key=lambda p: p.payment_date):
            remaining = payment.amount
            for index, entry in enumerate(entries):
                if remaining <= 0:
                    break
                if entry.is_paid:
                    continue
                allocation = allocate(remaining, entry.balances(), strategy)
                entries[index] = replace(
                    entry,
                    principal_paid=entry.principal_paid + allocation.principal,
                    interest_paid=entry.interest_paid + allocation.interest,
                    fee_paid=entry.fee_paid + allocation.fees
                )
                remaining = allocation.remainder
            unapplied += remaining

        return entries, unapplied


def schedule_balances(schedule: Sequence[ScheduleEntry]) -> LoanBalances:
    """Outstanding components left on a schedule"""
    principal = interest = fees = Decimal('0')
    for entry in schedule:
        balances = entry.balances()
        principal += balances.outstanding_principal
        interest += balances.unpaid_interest
        fees += balances.unpaid_fees
    return LoanBalances(
        outstanding_principal=principal,
        unpaid_interest=interest,
        unpaid_fees=fees
    )


def calculate_days_in_arrears(schedule: Sequence[ScheduleEntry], as_of: date) -> int:
    """Days since the due date of the earliest installment not fully paid"""
    for entry in sorted(schedule, key=lambda e: e.installment_number):
        if not entry.is_paid:
            return max(0, (as_of - entry.due_date).days)
    return 0


def has_monthly_due_dates(schedule: Sequence[ScheduleEntry]) -> bool:
    """True when consecutive due dates are one calendar month apart (28-31 days)"""
    ordered = sorted(schedule, key=lambda e: e.installment_number)
    for previous, current in zip(ordered, ordered[1:]):
        gap = (current.due_date - previous.due_date).days
        if not MIN_MONTHLY_GAP_DAYS <= gap <= MAX_MONTHLY_GAP_DAYS:
            return False
    return True


def harmonize(terms: LoanTerms, schedule: Sequence[ScheduleEntry],
              payments: Sequence[LoanPayment], as_of: Optional[date] = None) -> HarmonizationReport:
    """Harmonize with the configured settings"""
    return LoanHarmonizer().harmonize(terms, schedule, payments, as_of=as_of)


def reharmonize(terms: LoanTerms, schedule: Sequence[ScheduleEntry],
                payments: Sequence[LoanPayment],
                first_due_date: Optional[date] = None) -> List[ScheduleEntry]:
    """Reharmonize with the configured settings"""
    return LoanHarmonizer().reharmonize(terms, schedule, payments, first_due_date=first_due_date)
