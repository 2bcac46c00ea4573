"""
Test suite for repayment module

Tests payment allocation across penalties, fees, interest and principal
for every repayment strategy, allocation validation and display helpers.
"""

import pytest
from decimal import Decimal

from loan_engine.currency import Currency
from loan_engine.errors import InvalidInputError
from loan_engine.repayment import (
    RepaymentComponent, RepaymentStrategyType, LoanBalances, RepaymentAllocation,
    DEFAULT_STRATEGY, allocate, validate_allocation, total_allocation,
    format_allocation_breakdown
)


def standard_balances() -> LoanBalances:
    return LoanBalances(
        outstanding_principal=Decimal('5000'),
        unpaid_interest=Decimal('300'),
        unpaid_fees=Decimal('50'),
        unpaid_penalties=Decimal('20')
    )


class TestRepaymentStrategyType:
    """Test strategy enumeration"""

    def test_orders_cover_every_component(self):
        """Test each strategy orders all four components exactly once"""
        for strategy in RepaymentStrategyType:
            assert len(strategy.order) == 4
            assert set(strategy.order) == set(RepaymentComponent)

    def test_default_strategy(self):
        """Test penalties first is the default"""
        assert DEFAULT_STRATEGY == RepaymentStrategyType.PENALTIES_FEES_INTEREST_PRINCIPAL
        assert DEFAULT_STRATEGY.order == (
            RepaymentComponent.PENALTIES, RepaymentComponent.FEES,
            RepaymentComponent.INTEREST, RepaymentComponent.PRINCIPAL
        )

    def test_parse(self):
        """Test parsing strategy names at the input boundary"""
        assert (RepaymentStrategyType.parse("interest_principal_penalties_fees") ==
                RepaymentStrategyType.INTEREST_PRINCIPAL_PENALTIES_FEES)
        assert (RepaymentStrategyType.parse(" PRINCIPAL_INTEREST_FEES_PENALTIES ") ==
                RepaymentStrategyType.PRINCIPAL_INTEREST_FEES_PENALTIES)
        assert (RepaymentStrategyType.parse(RepaymentStrategyType.INTEREST_PENALTIES_FEES_PRINCIPAL) ==
                RepaymentStrategyType.INTEREST_PENALTIES_FEES_PRINCIPAL)

    def test_unknown_strategy(self):
        """Test unknown names fail instead of falling back to the default"""
        with pytest.raises(InvalidInputError, match="Unknown repayment strategy"):
            RepaymentStrategyType.parse("fees_first")

        with pytest.raises(InvalidInputError):
            allocate(Decimal('100'), standard_balances(), "fees_first")


class TestAllocate:
    """Test payment allocation"""

    def test_sufficient_payment_default_strategy(self):
        """Test a payment covering penalties, fees and interest spills into principal"""
        allocation = allocate(Decimal('400'), standard_balances())

        assert allocation.penalties == Decimal('20')
        assert allocation.fees == Decimal('50')
        assert allocation.interest == Decimal('300')
        assert allocation.principal == Decimal('30')
        assert allocation.remainder == Decimal('0')

    def test_insufficient_payment_default_strategy(self):
        """Test fees are partially covered and nothing reaches interest"""
        allocation = allocate(Decimal('50'), standard_balances())

        assert allocation.penalties == Decimal('20')
        assert allocation.fees == Decimal('30')
        assert allocation.interest == Decimal('0')
        assert allocation.principal == Decimal('0')
        assert allocation.remainder == Decimal('0')

    def test_overpayment_goes_to_remainder(self):
        """Test the excess over all balances is reported, not dropped"""
        allocation = allocate(Decimal('6000'), standard_balances())

        assert allocation.principal == Decimal('5000')
        assert allocation.interest == Decimal('300')
        assert allocation.fees == Decimal('50')
        assert allocation.penalties == Decimal('20')
        assert allocation.remainder == Decimal('630')

    def test_interest_principal_penalties_fees(self):
        """Test interest then principal ordering"""
        allocation = allocate(Decimal('320'), standard_balances(),
                              RepaymentStrategyType.INTEREST_PRINCIPAL_PENALTIES_FEES)

        assert allocation.interest == Decimal('300')
        assert allocation.principal == Decimal('20')
        assert allocation.penalties == Decimal('0')
        assert allocation.fees == Decimal('0')

    def test_interest_penalties_fees_principal(self):
        """Test interest then penalties ordering"""
        allocation = allocate(Decimal('340'), standard_balances(),
                              RepaymentStrategyType.INTEREST_PENALTIES_FEES_PRINCIPAL)

        assert allocation.interest == Decimal('300')
        assert allocation.penalties == Decimal('20')
        assert allocation.fees == Decimal('20')
        assert allocation.principal == Decimal('0')

    def test_principal_interest_fees_penalties(self):
        """Test principal first ordering"""
        allocation = allocate(Decimal('5310'), standard_balances(),
                              "principal_interest_fees_penalties")

        assert allocation.principal == Decimal('5000')
        assert allocation.interest == Decimal('300')
        assert allocation.fees == Decimal('10')
        assert allocation.penalties == Decimal('0')

    def test_negative_balances_treated_as_zero(self):
        """Test credit balances absorb nothing"""
        balances = LoanBalances(
            outstanding_principal=Decimal('100'),
            unpaid_interest=Decimal('10'),
            unpaid_fees=Decimal('0'),
            unpaid_penalties=Decimal('-15')
        )
        allocation = allocate(Decimal('50'), balances)

        assert allocation.penalties == Decimal('0')
        assert allocation.fees == Decimal('0')
        assert allocation.interest == Decimal('10')
        assert allocation.principal == Decimal('40')

    def test_zero_payment(self):
        """Test a zero payment allocates nothing"""
        allocation = allocate(Decimal('0'), standard_balances())
        assert allocation == RepaymentAllocation()

    def test_negative_payment(self):
        """Test negative payments are rejected"""
        with pytest.raises(InvalidInputError, match="must not be negative"):
            allocate(Decimal('-1'), standard_balances())

    def test_numeric_inputs(self):
        """Test int and string amounts are accepted"""
        allocation = allocate(400, LoanBalances(5000, "300", 50, 20))
        assert allocation.principal == Decimal('30')

    def test_allocation_invariants(self):
        """Test conservation, balance bounds and strict priority for all strategies"""
        balances = LoanBalances(
            outstanding_principal=Decimal('1000.50'),
            unpaid_interest=Decimal('120.25'),
            unpaid_fees=Decimal('35'),
            unpaid_penalties=Decimal('12.75')
        )
        payments = [Decimal(v) for v in ('0', '0.01', '12.75', '20', '47.75', '150',
                                           '168', '500', '1168.50', '2000')]

        for strategy in RepaymentStrategyType:
            for payment in payments:
                allocation = allocate(payment, balances, strategy)

                assert total_allocation(allocation) + allocation.remainder == payment
                assert allocation.remainder >= 0
                assert validate_allocation(allocation, balances) == []

                # A component is funded only if everything ahead of it is full
                for position, component in enumerate(strategy.order):
                    if allocation.amount_for(component) > 0:
                        for earlier in strategy.order[:position]:
                            assert allocation.amount_for(earlier) == balances.amount_for(earlier)

                if allocation.remainder > 0:
                    assert total_allocation(allocation) == balances.total


class TestValidateAllocation:
    """Test allocation validation findings"""

    def test_valid_allocation(self):
        """Test a valid allocation has no findings"""
        allocation = RepaymentAllocation(principal=Decimal('30'), interest=Decimal('300'),
                                         fees=Decimal('50'), penalties=Decimal('20'))
        assert validate_allocation(allocation, standard_balances()) == []

    def test_exceeding_balance(self):
        """Test each over-allocated component is flagged"""
        allocation = RepaymentAllocation(principal=Decimal('5000.01'), interest=Decimal('300'),
                                         fees=Decimal('51'), penalties=Decimal('0'))
        errors = validate_allocation(allocation, standard_balances())

        assert errors == [
            "Principal allocation exceeds outstanding principal",
            "Fee allocation exceeds unpaid fees"
        ]

    def test_negative_allocation(self):
        """Test negative components are flagged"""
        allocation = RepaymentAllocation(interest=Decimal('-5'))
        errors = validate_allocation(allocation, standard_balances())

        assert errors == ["interest allocation cannot be negative"]

    def test_never_raises(self):
        """Test validation returns findings instead of raising"""
        allocation = RepaymentAllocation(principal=Decimal('-1'), penalties=Decimal('999'))
        errors = validate_allocation(allocation, standard_balances())

        assert "Penalty allocation exceeds unpaid penalties" in errors
        assert "principal allocation cannot be negative" in errors
        assert len(errors) == 2


class TestAllocationHelpers:
    """Test totals, serialization and formatting"""

    def test_total_excludes_remainder(self):
        """Test total allocation ignores the remainder"""
        allocation = RepaymentAllocation(principal=Decimal('10'), interest=Decimal('5'),
                                         fees=Decimal('2'), penalties=Decimal('1'),
                                         remainder=Decimal('100'))
        assert total_allocation(allocation) == Decimal('18')

    def test_to_dict(self):
        """Test allocation serializes amounts as strings"""
        allocation = allocate(Decimal('400'), standard_balances())
        assert allocation.to_dict() == {
            'principal': '30',
            'interest': '300',
            'fees': '50',
            'penalties': '20',
            'remainder': '0'
        }

    def test_format_breakdown(self):
        """Test the display breakdown lists funded components only"""
        allocation = allocate(Decimal('400'), standard_balances())
        assert format_allocation_breakdown(allocation) == (
            "Penalties: KES 20.00, Fees: KES 50.00, Interest: KES 300.00, Principal: KES 30.00"
        )

        partial = allocate(Decimal('50'), standard_balances())
        assert format_allocation_breakdown(partial, Currency.USD) == "Penalties: USD 20.00, Fees: USD 30.00"

    def test_format_empty(self):
        """Test an empty allocation"""
        assert format_allocation_breakdown(RepaymentAllocation()) == "No allocation"
