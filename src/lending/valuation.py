from __future__ import annotations

import math
from datetime import datetime, timezone

from lending.config import ValuationConfig
from lending.data_models import PricingResponse, ValuationEstimate, Vehicle


CONDITION_MULTIPLIERS: dict[str, float] = {
    "excellent": 1.1,
    "good": 1.0,
    "fair": 0.85,
    "poor": 0.65,
}

EXTERNAL_CONFIDENCE_BASE = 0.5
EXTERNAL_CONFIDENCE_CAP = 0.90
CONFIDENCE_WEIGHTS: dict[str, float] = {
    "retail": 0.25,
    "trade_in": 0.15,
    "loan": 0.10,
    "make_model": 0.10,
    "year": 0.10,
    "trim": 0.05,
    "msrp": 0.05,
}
MIN_PLAUSIBLE_YEAR = 1900


def current_year() -> int:
    return datetime.now(timezone.utc).year


def round_to_unit(value: float, unit: float) -> float:
    if unit <= 0:
        return value
    return math.floor(value / unit + 0.5) * unit


def _positive(value: float | None) -> float | None:
    if value is None or not math.isfinite(value) or value <= 0:
        return None
    return value


class ValuationEstimator:
    """Estimate vehicle value from a depreciation model or a pricing payload.

    Simulated estimates depend only on vehicle attributes and the reference
    year. External estimates convert a source-currency pricing response into
    local currency and score how complete the response was.
    """

    def __init__(self, config: ValuationConfig | None = None) -> None:
        self.config = config or ValuationConfig()

    # ── Simulated ───────────────────────────────────────────────────

    def simulate(self, vehicle: Vehicle, reference_year: int | None = None) -> ValuationEstimate:
        cfg = self.config
        year = reference_year if reference_year is not None else current_year()

        value = cfg.simulated_base_value
        if vehicle.make.strip().lower() in cfg.premium_brands:
            value *= cfg.premium_brand_multiplier

        age = max(0, year - vehicle.year)
        value *= cfg.annual_depreciation ** age

        expected_mileage = age * cfg.expected_annual_mileage
        excess_mileage = max(0, vehicle.mileage - expected_mileage)
        value *= max(0.5, 1 - (excess_mileage / 200_000) * 0.2)

        value *= CONDITION_MULTIPLIERS.get(vehicle.condition.lower(), 1.0)

        return ValuationEstimate(
            estimated_value=round_to_unit(value, cfg.simulated_rounding_unit),
            source="simulated",
            confidence_score=cfg.simulated_confidence,
        )

    # ── External ────────────────────────────────────────────────────

    def select_base_value(self, response: PricingResponse) -> float:
        cfg = self.config
        candidates = (
            (response.retail_value, 1.0),
            (response.adjusted_trade_in_value, cfg.retail_markup),
            (response.trade_in_value, cfg.retail_markup),
            (response.loan_value, cfg.loan_value_adjustment),
            (response.average_trade_in, cfg.retail_markup),
        )
        for raw_value, factor in candidates:
            value = _positive(raw_value)
            if value is not None:
                return value * factor
        return cfg.default_base_value

    def estimate_from_pricing(
        self, response: PricingResponse, reference_year: int | None = None,
    ) -> ValuationEstimate:
        cfg = self.config
        value = self.select_base_value(response) * cfg.exchange_rate

        pct = response.mileage_adjustment_percent
        if pct:
            value *= 1 + pct / 100

        value *= cfg.market_adjustment_factor
        if not math.isfinite(value):
            raise ValueError(f"pricing response converts to a non-finite value: {value}")
        value = round_to_unit(value, cfg.value_rounding_unit)
        value = max(value, cfg.minimum_value_floor)

        return ValuationEstimate(
            estimated_value=round(value, 2),
            source="external",
            confidence_score=self.pricing_confidence(response, reference_year=reference_year),
            raw=dict(response.raw) or None,
        )

    def pricing_confidence(self, response: PricingResponse, reference_year: int | None = None) -> float:
        year_ceiling = (reference_year if reference_year is not None else current_year()) + 1
        trade_in_values = (
            response.adjusted_trade_in_value,
            response.trade_in_value,
            response.average_trade_in,
        )

        score = EXTERNAL_CONFIDENCE_BASE
        if _positive(response.retail_value) is not None:
            score += CONFIDENCE_WEIGHTS["retail"]
        if any(_positive(v) is not None for v in trade_in_values):
            score += CONFIDENCE_WEIGHTS["trade_in"]
        if _positive(response.loan_value) is not None:
            score += CONFIDENCE_WEIGHTS["loan"]
        if response.make and response.model:
            score += CONFIDENCE_WEIGHTS["make_model"]
        if response.year is not None and MIN_PLAUSIBLE_YEAR <= response.year <= year_ceiling:
            score += CONFIDENCE_WEIGHTS["year"]
        if response.trim:
            score += CONFIDENCE_WEIGHTS["trim"]
        if _positive(response.msrp_value) is not None:
            score += CONFIDENCE_WEIGHTS["msrp"]

        sources = sum(
            1
            for v in (response.retail_value, response.loan_value, *trade_in_values)
            if _positive(v) is not None
        )
        if sources >= 3:
            score += 0.10
        elif sources == 2:
            score += 0.05

        return round(min(EXTERNAL_CONFIDENCE_CAP, score), 2)
