from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ValuationConfig:
    exchange_rate: float = 1550.0  # local units per source-currency unit
    retail_markup: float = 1.15
    loan_value_adjustment: float = 1.10
    market_adjustment_factor: float = 0.90
    value_rounding_unit: float = 50_000.0
    minimum_value_floor: float = 500_000.0
    default_base_value: float = 3_500.0  # source currency, before conversion

    simulated_base_value: float = 8_000_000.0
    premium_brand_multiplier: float = 1.3
    premium_brands: tuple[str, ...] = ("mercedes", "bmw", "audi", "lexus", "toyota", "honda")
    annual_depreciation: float = 0.85
    expected_annual_mileage: int = 15_000
    simulated_rounding_unit: float = 50_000.0
    simulated_confidence: float = 0.80


@dataclass(frozen=True)
class EligibilityPolicy:
    min_monthly_income: float = 200_000.0
    max_ltv: float = 0.80
    max_vehicle_age: int = 10
    max_dti: float = 0.40
    min_loan_amount: float = 500_000.0
    reference_rate_percent: float = 12.0
    reference_term_months: int = 48

    income_penalty: int = 30
    employment_penalty: int = 40
    ltv_penalty: int = 25
    age_penalty: int = 20
    dti_penalty: int = 15
    amount_penalty: int = 10


@dataclass(frozen=True)
class OfferTerms:
    term_months: int
    annual_rate_percent: float


DEFAULT_OFFER_MENU: tuple[OfferTerms, ...] = (
    OfferTerms(term_months=48, annual_rate_percent=12.0),  # standard
    OfferTerms(term_months=36, annual_rate_percent=10.0),
    OfferTerms(term_months=60, annual_rate_percent=14.0),
)
