"""
Loan Financial Engine

Interest calculation, repayment allocation and schedule harmonization for
loan products. All financial calculations use Decimal precision.
"""

__version__ = "1.0.0"
