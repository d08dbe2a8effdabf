"""Fixed-rate amortization.

PMT = P * r(1+r)^n / ((1+r)^n - 1), with r the monthly rate.
"""

from __future__ import annotations

import math


def round_half_away(value: float, digits: int = 2) -> float:
    scale = 10 ** digits
    return math.copysign(math.floor(abs(value) * scale + 0.5), value) / scale


def compute_monthly_payment(principal: float, annual_rate_percent: float, term_months: int) -> float:
    """Monthly payment for a fully amortizing loan.

    A zero rate degenerates to straight-line repayment, returned unrounded.
    ``term_months`` must be at least 1.
    """
    monthly_rate = annual_rate_percent / 100 / 12
    if monthly_rate == 0:
        return principal / term_months

    growth = (1 + monthly_rate) ** term_months
    payment = principal * monthly_rate * growth / (growth - 1)
    return round_half_away(payment, 2)


def compute_total_repayment(monthly_payment: float, term_months: int) -> float:
    return monthly_payment * term_months
