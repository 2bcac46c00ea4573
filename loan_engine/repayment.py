"""
Repayment Allocation Module

Distributes a payment across a loan's outstanding components (penalties,
fees, interest, principal) in the fixed priority order of a repayment
strategy. Allocation is strictly lexicographic: a component only receives
money once every component ahead of it is fully covered.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import List, Tuple, Union
from enum import Enum

from .currency import Currency, format_amount, to_decimal
from .errors import InvalidInputError


class RepaymentComponent(Enum):
    """Balance components a payment can be applied to"""
    PRINCIPAL = "principal"
    INTEREST = "interest"
    FEES = "fees"
    PENALTIES = "penalties"


_P = RepaymentComponent.PRINCIPAL
_I = RepaymentComponent.INTEREST
_F = RepaymentComponent.FEES
_N = RepaymentComponent.PENALTIES


class RepaymentStrategyType(Enum):
    """Repayment strategies with their fixed allocation order"""
    PENALTIES_FEES_INTEREST_PRINCIPAL = ("penalties_fees_interest_principal", (_N, _F, _I, _P))
    INTEREST_PRINCIPAL_PENALTIES_FEES = ("interest_principal_penalties_fees", (_I, _P, _N, _F))
    INTEREST_PENALTIES_FEES_PRINCIPAL = ("interest_penalties_fees_principal", (_I, _N, _F, _P))
    PRINCIPAL_INTEREST_FEES_PENALTIES = ("principal_interest_fees_penalties", (_P, _I, _F, _N))

    def __init__(self, code: str, order: Tuple[RepaymentComponent, ...]):
        self.code = code
        self.order = order

    @classmethod
    def parse(cls, value: Union['RepaymentStrategyType', str]) -> 'RepaymentStrategyType':
        """Parse a strategy name from caller input"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for strategy in cls:
                if strategy.code == normalized:
                    return strategy
        raise InvalidInputError(f"Unknown repayment strategy: {value}")


DEFAULT_STRATEGY = RepaymentStrategyType.PENALTIES_FEES_INTEREST_PRINCIPAL


@dataclass(frozen=True)
class LoanBalances:
    """Snapshot of a loan's outstanding components"""
    outstanding_principal: Decimal = Decimal('0')
    unpaid_interest: Decimal = Decimal('0')
    unpaid_fees: Decimal = Decimal('0')
    unpaid_penalties: Decimal = Decimal('0')

    def __post_init__(self):
        for name in ('outstanding_principal', 'unpaid_interest', 'unpaid_fees', 'unpaid_penalties'):
            object.__setattr__(self, name, to_decimal(getattr(self, name), name))

    def amount_for(self, component: RepaymentComponent) -> Decimal:
        """Balance for a component"""
        if component == RepaymentComponent.PRINCIPAL:
            return self.outstanding_principal
        elif component == RepaymentComponent.INTEREST:
            return self.unpaid_interest
        elif component == RepaymentComponent.FEES:
            return self.unpaid_fees
        elif component == RepaymentComponent.PENALTIES:
            return self.unpaid_penalties
        raise InvalidInputError(f"Unknown repayment component: {component}")

    @property
    def total(self) -> Decimal:
        return (self.outstanding_principal + self.unpaid_interest +
                self.unpaid_fees + self.unpaid_penalties)


@dataclass(frozen=True)
class RepaymentAllocation:
    """How a single payment was split across components"""
    principal: Decimal = Decimal('0')
    interest: Decimal = Decimal('0')
    fees: Decimal = Decimal('0')
    penalties: Decimal = Decimal('0')
    remainder: Decimal = Decimal('0')  # Part of the payment no component absorbed

    def __post_init__(self):
        for name in ('principal', 'interest', 'fees', 'penalties', 'remainder'):
            object.__setattr__(self, name, to_decimal(getattr(self, name), name))

    def amount_for(self, component: RepaymentComponent) -> Decimal:
        return getattr(self, component.value)

    def to_dict(self) -> dict:
        return {
            'principal': str(self.principal),
            'interest': str(self.interest),
            'fees': str(self.fees),
            'penalties': str(self.penalties),
            'remainder': str(self.remainder)
        }


def allocate(
    payment_amount,
    balances: LoanBalances,
    strategy: Union[RepaymentStrategyType, str] = DEFAULT_STRATEGY
) -> RepaymentAllocation:
    """
    Allocate a payment according to a repayment strategy

    Args:
        payment_amount: Amount received, must not be negative
        balances: Current outstanding balances
        strategy: Allocation order to apply

    Returns:
        RepaymentAllocation whose components plus remainder equal payment_amount
    """
    payment = to_decimal(payment_amount, "payment_amount")
    if payment < 0:
        raise InvalidInputError(f"Payment amount must not be negative, got {payment}")
    strategy = RepaymentStrategyType.parse(strategy)

    remaining = payment
    allocated = {component: Decimal('0') for component in RepaymentComponent}

    for component in strategy.order:
        if remaining <= 0:
            break
        available = max(Decimal('0'), balances.amount_for(component))
        amount = min(remaining, available)
        allocated[component] = amount
        remaining -= amount

    return RepaymentAllocation(
        principal=allocated[RepaymentComponent.PRINCIPAL],
        interest=allocated[RepaymentComponent.INTEREST],
        fees=allocated[RepaymentComponent.FEES],
        penalties=allocated[RepaymentComponent.PENALTIES],
        remainder=remaining
    )


_EXCEEDS_MESSAGES = {
    RepaymentComponent.PRINCIPAL: "Principal allocation exceeds outstanding principal",
    RepaymentComponent.INTEREST: "Interest allocation exceeds unpaid interest",
    RepaymentComponent.FEES: "Fee allocation exceeds unpaid fees",
    RepaymentComponent.PENALTIES: "Penalty allocation exceeds unpaid penalties",
}


def validate_allocation(allocation: RepaymentAllocation, balances: LoanBalances) -> List[str]:
    """
    Check an allocation against the balances it was applied to.

    Returns a list of violations; empty when the allocation is valid.
    """
    errors = []

    for component in RepaymentComponent:
        if allocation.amount_for(component) > balances.amount_for(component):
            errors.append(_EXCEEDS_MESSAGES[component])

    for component in RepaymentComponent:
        if allocation.amount_for(component) < 0:
            errors.append(f"{component.value} allocation cannot be negative")

    return errors


def total_allocation(allocation: RepaymentAllocation) -> Decimal:
    """Total applied to loan components (remainder excluded)"""
    return allocation.principal + allocation.interest + allocation.fees + allocation.penalties


def format_allocation_breakdown(allocation: RepaymentAllocation,
                                currency: Currency = Currency.KES) -> str:
    """Human-readable breakdown, e.g. 'Penalties: KES 20.00, Fees: KES 50.00'"""
    labels = (
        (RepaymentComponent.PENALTIES, "Penalties"),
        (RepaymentComponent.FEES, "Fees"),
        (RepaymentComponent.INTEREST, "Interest"),
        (RepaymentComponent.PRINCIPAL, "Principal"),
    )
    parts = [
        f"{label}: {format_amount(allocation.amount_for(component), currency)}"
        for component, label in labels
        if allocation.amount_for(component) > 0
    ]
    return ", ".join(parts) if parts else "No allocation"
