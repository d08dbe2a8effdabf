from __future__ import annotations

from lending.amortization import compute_monthly_payment
from lending.config import EligibilityPolicy
from lending.data_models import EligibilityResult, LoanApplication, Vehicle
from lending.valuation import current_year


class EligibilityEvaluator:
    """Apply the underwriting rules to an application.

    Every rule is checked; each failure adds a reason and deducts its penalty
    from a starting score of 100. The application is eligible only when no
    rule failed, so the score is informational.
    """

    def __init__(self, policy: EligibilityPolicy | None = None) -> None:
        self.policy = policy or EligibilityPolicy()

    def evaluate(
        self,
        application: LoanApplication,
        vehicle: Vehicle,
        vehicle_value: float,
        reference_year: int | None = None,
    ) -> EligibilityResult:
        p = self.policy
        reasons: list[str] = []
        score = 100

        if application.monthly_income < p.min_monthly_income:
            reasons.append(f"Monthly income below minimum requirement of ₦{p.min_monthly_income:,.0f}")
            score -= p.income_penalty

        if application.employment_status == "unemployed":
            reasons.append("Applicant must be employed or self-employed")
            score -= p.employment_penalty

        if vehicle_value > 0:
            ltv = application.requested_amount / vehicle_value
            if ltv > p.max_ltv:
                reasons.append(
                    f"Loan-to-value ratio ({ltv * 100:.1f}%) exceeds maximum {p.max_ltv * 100:.0f}%"
                )
                score -= p.ltv_penalty
        else:
            reasons.append("Loan-to-value ratio cannot be assessed without a positive vehicle value")
            score -= p.ltv_penalty

        year = reference_year if reference_year is not None else current_year()
        vehicle_age = year - vehicle.year
        if vehicle_age > p.max_vehicle_age:
            reasons.append(
                f"Vehicle is {vehicle_age} years old, maximum age is {p.max_vehicle_age} years"
            )
            score -= p.age_penalty

        estimated_payment = compute_monthly_payment(
            application.requested_amount, p.reference_rate_percent, p.reference_term_months,
        )
        if application.monthly_income > 0:
            dti = estimated_payment / application.monthly_income
            if dti > p.max_dti:
                reasons.append(
                    f"Debt-to-income ratio ({dti * 100:.1f}%) exceeds maximum {p.max_dti * 100:.0f}%"
                )
                score -= p.dti_penalty
        else:
            reasons.append("Debt-to-income ratio cannot be assessed without monthly income")
            score -= p.dti_penalty

        if application.requested_amount < p.min_loan_amount:
            reasons.append(f"Minimum loan amount is ₦{p.min_loan_amount:,.0f}")
            score -= p.amount_penalty

        return EligibilityResult(
            eligible=not reasons,
            reasons=tuple(reasons),
            score=max(0, score),
        )
