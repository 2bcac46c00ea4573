#!/usr/bin/env python3
"""
Example: Detecting and correcting schedule drift

Builds a loan whose stored schedule was generated at the wrong rate,
reports the drift, regenerates the schedule under the stored terms and
replays the payment history onto it.
"""

import os
import sys
from decimal import Decimal
from datetime import date

# Add the loan engine module to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from loan_engine.config import get_config
from loan_engine.currency import Currency, format_amount
from loan_engine.harmonizer import LoanHarmonizer, schedule_balances
from loan_engine.interest import LoanTerms, calculate_interest
from loan_engine.logging_config import setup_logging_from_config
from loan_engine.repayment import LoanBalances, allocate, format_allocation_breakdown
from loan_engine.schedule import LoanPayment, generate_schedule


def main():
    config = get_config()
    setup_logging_from_config(config)
    currency = Currency.from_code(config.currency)

    print("Loan Engine - Harmonization Example")
    print("=" * 60)

    # 1. Terms and expected figures
    terms = LoanTerms(Decimal('120000'), Decimal('12'), 12, "flat_rate")
    result = calculate_interest(terms)
    print("\n1. Expected figures")
    print(f"   Monthly interest: {format_amount(result.monthly_interest, currency)}")
    print(f"   Monthly payment:  {format_amount(result.monthly_payment, currency)}")
    print(f"   Total interest:   {format_amount(result.total_interest, currency)}")

    # 2. A single payment allocation
    balances = LoanBalances(Decimal('5000'), Decimal('300'), Decimal('50'), Decimal('20'))
    allocation = allocate(Decimal('400'), balances)
    print("\n2. Allocating 400 against outstanding dues")
    print(f"   {format_allocation_breakdown(allocation, currency)}")

    # 3. Stored schedule generated at the wrong rate
    stored_schedule = generate_schedule(terms.with_rate(Decimal('15')), date(2024, 1, 31), currency=currency)
    payments = [
        LoanPayment(date(2024, 1, 31), Decimal('11500')),
        LoanPayment(date(2024, 3, 2), Decimal('6000')),
    ]

    harmonizer = LoanHarmonizer(config)
    report = harmonizer.harmonize(terms, stored_schedule, payments, as_of=date(2024, 4, 15), loan_id="EXAMPLE-1")
    print("\n3. Harmonization report")
    for key, value in report.to_dict().items():
        print(f"   {key}: {value}")

    # 4. Regenerate under the stored terms
    if not report.schedule_consistent:
        new_schedule = harmonizer.reharmonize(terms, stored_schedule, payments, loan_id="EXAMPLE-1")
        remaining = schedule_balances(new_schedule)
        print("\n4. Regenerated schedule")
        for entry in new_schedule[:3]:
            print(f"   #{entry.installment_number} {entry.due_date} "
                  f"{format_amount(entry.total_amount, currency)} {entry.status.value}")
        print(f"   Outstanding principal: {format_amount(remaining.outstanding_principal, currency)}")
        print(f"   Unpaid interest:       {format_amount(remaining.unpaid_interest, currency)}")


if __name__ == "__main__":
    main()
