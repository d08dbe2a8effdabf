from __future__ import annotations

from typing import Sequence

from lending.amortization import compute_monthly_payment, compute_total_repayment
from lending.config import DEFAULT_OFFER_MENU, OfferTerms
from lending.data_models import LoanApplication, LoanOffer


class OfferGenerator:
    def __init__(self, menu: Sequence[OfferTerms] = DEFAULT_OFFER_MENU, max_ltv: float = 0.80) -> None:
        self.menu = tuple(menu)
        self.max_ltv = max_ltv

    def max_principal(self, requested_amount: float, vehicle_value: float) -> float:
        return min(requested_amount, vehicle_value * self.max_ltv)

    def generate(self, application: LoanApplication, vehicle_value: float) -> list[LoanOffer]:
        """One active offer per menu entry, in menu order, on the LTV-capped principal."""
        if application.id is None:
            raise ValueError("Offers require a persisted application")

        principal = self.max_principal(application.requested_amount, vehicle_value)
        offers: list[LoanOffer] = []
        for terms in self.menu:
            monthly_payment = compute_monthly_payment(principal, terms.annual_rate_percent, terms.term_months)
            offers.append(LoanOffer(
                application_id=application.id,
                approved_amount=principal,
                interest_rate=terms.annual_rate_percent,
                term_months=terms.term_months,
                monthly_payment=monthly_payment,
                total_repayment=compute_total_repayment(monthly_payment, terms.term_months),
                is_active=True,
            ))
        return offers
