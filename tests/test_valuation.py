import pytest

from lending.config import ValuationConfig
from lending.data_models import PricingResponse, Vehicle
from lending.valuation import ValuationEstimator, round_to_unit

REF_YEAR = 2026


def _vehicle(**overrides) -> Vehicle:
    base = dict(
        vin="1HGBH41JXMN109186",
        make="Kia",
        model="Rio",
        year=REF_YEAR,
        mileage=0,
        condition="good",
        price=30000,
    )
    base.update(overrides)
    return Vehicle(**base)


@pytest.fixture
def estimator():
    return ValuationEstimator(ValuationConfig())


# ── Simulated ───────────────────────────────────────────────────────


def test_simulated_new_vehicle_base_value(estimator):
    est = estimator.simulate(_vehicle(), reference_year=REF_YEAR)
    assert est.estimated_value == 8_000_000
    assert est.source == "simulated"
    assert est.confidence_score == 0.80
    assert est.raw is None


def test_simulated_premium_brand_with_depreciation(estimator):
    # 8M * 1.3 * 0.85^6 = 3,922,354.96 -> nearest 50k
    est = estimator.simulate(_vehicle(make="Toyota", year=2020, mileage=35_000), reference_year=REF_YEAR)
    assert est.estimated_value == 3_900_000


def test_premium_brand_match_is_case_insensitive(estimator):
    lower = estimator.simulate(_vehicle(make="bmw"), reference_year=REF_YEAR)
    upper = estimator.simulate(_vehicle(make="BMW"), reference_year=REF_YEAR)
    assert lower.estimated_value == upper.estimated_value == 10_400_000


@pytest.mark.parametrize("condition,expected", [
    ("excellent", 8_800_000),
    ("good", 8_000_000),
    ("fair", 6_800_000),
    ("poor", 5_200_000),
    ("salvage", 8_000_000),
])
def test_condition_multipliers(estimator, condition, expected):
    est = estimator.simulate(_vehicle(condition=condition), reference_year=REF_YEAR)
    assert est.estimated_value == expected


def test_excess_mileage_penalty(estimator):
    est = estimator.simulate(_vehicle(mileage=100_000), reference_year=REF_YEAR)
    assert est.estimated_value == 7_200_000


def test_mileage_penalty_floor_is_half(estimator):
    est = estimator.simulate(_vehicle(mileage=1_000_000), reference_year=REF_YEAR)
    assert est.estimated_value == 4_000_000


def test_mileage_within_expected_is_not_penalised(estimator):
    # age 2 -> 30,000 expected
    a = estimator.simulate(_vehicle(year=2024, mileage=0), reference_year=REF_YEAR)
    b = estimator.simulate(_vehicle(year=2024, mileage=30_000), reference_year=REF_YEAR)
    assert a.estimated_value == b.estimated_value


def test_future_model_year_is_treated_as_new(estimator):
    est = estimator.simulate(_vehicle(year=REF_YEAR + 1), reference_year=REF_YEAR)
    assert est.estimated_value == 8_000_000


def test_simulation_is_deterministic(estimator):
    v = _vehicle(make="Honda", year=2018, mileage=140_000, condition="fair")
    first = estimator.simulate(v, reference_year=REF_YEAR)
    assert all(estimator.simulate(v, reference_year=REF_YEAR) == first for _ in range(5))


# ── External ────────────────────────────────────────────────────────


def test_external_retail_value(estimator):
    # 10,000 * 1550 * 0.90 = 13,950,000
    est = estimator.estimate_from_pricing(PricingResponse(retail_value=10_000), reference_year=REF_YEAR)
    assert est.estimated_value == 13_950_000
    assert est.source == "external"


def test_external_retail_wins_over_trade_in(estimator):
    est = estimator.estimate_from_pricing(
        PricingResponse(retail_value=10_000, trade_in_value=50_000), reference_year=REF_YEAR,
    )
    assert est.estimated_value == 13_950_000


def test_external_trade_in_markup(estimator):
    # 8,000 * 1.15 * 1550 * 0.90 = 12,834,000 -> 12,850,000
    est = estimator.estimate_from_pricing(PricingResponse(trade_in_value=8_000), reference_year=REF_YEAR)
    assert est.estimated_value == 12_850_000


def test_external_skips_non_positive_values(estimator):
    est = estimator.estimate_from_pricing(
        PricingResponse(retail_value=-5, adjusted_trade_in_value=0, trade_in_value=8_000),
        reference_year=REF_YEAR,
    )
    assert est.estimated_value == 12_850_000


def test_external_skips_infinite_values(estimator):
    est = estimator.estimate_from_pricing(
        PricingResponse(retail_value=float("inf"), trade_in_value=8_000),
        reference_year=REF_YEAR,
    )
    assert est.estimated_value == 12_850_000


def test_external_overflowing_value_is_rejected(estimator):
    with pytest.raises(ValueError, match="non-finite"):
        estimator.estimate_from_pricing(PricingResponse(retail_value=1e308), reference_year=REF_YEAR)


def test_external_loan_value_adjustment(estimator):
    # 5,000 * 1.10 * 1550 * 0.90 = 7,672,500 -> 7,650,000
    est = estimator.estimate_from_pricing(PricingResponse(loan_value=5_000), reference_year=REF_YEAR)
    assert est.estimated_value == 7_650_000


def test_external_default_value_when_nothing_usable(estimator):
    # 3,500 * 1550 * 0.90 = 4,882,500 -> 4,900,000
    est = estimator.estimate_from_pricing(PricingResponse(), reference_year=REF_YEAR)
    assert est.estimated_value == 4_900_000


def test_external_mileage_adjustment(estimator):
    est = estimator.estimate_from_pricing(
        PricingResponse(retail_value=10_000, mileage_adjustment_percent=-10), reference_year=REF_YEAR,
    )
    assert est.estimated_value == 12_550_000


def test_external_minimum_floor(estimator):
    est = estimator.estimate_from_pricing(PricingResponse(retail_value=100), reference_year=REF_YEAR)
    assert est.estimated_value == 500_000


def test_external_uses_configured_options():
    cfg = ValuationConfig(exchange_rate=1.0, market_adjustment_factor=1.0, value_rounding_unit=100, minimum_value_floor=0)
    est = ValuationEstimator(cfg).estimate_from_pricing(PricingResponse(retail_value=12_345), reference_year=REF_YEAR)
    assert est.estimated_value == 12_300


def test_external_keeps_raw_payload(estimator):
    raw = {"retail_value": 10_000, "vendor": "x"}
    est = estimator.estimate_from_pricing(PricingResponse(retail_value=10_000, raw=raw), reference_year=REF_YEAR)
    assert est.raw == raw


@pytest.mark.parametrize("response,expected", [
    (PricingResponse(), 0.5),
    (PricingResponse(retail_value=10_000), 0.75),
    (PricingResponse(trade_in_value=8_000, loan_value=6_000), 0.80),
    (PricingResponse(make="Toyota", model="Camry", year=2020), 0.70),
    (PricingResponse(make="Toyota", year=1850), 0.5),
    (PricingResponse(year=REF_YEAR + 2), 0.5),
    (PricingResponse(trim="LE", msrp_value=25_000), 0.60),
])
def test_pricing_confidence(estimator, response, expected):
    assert estimator.pricing_confidence(response, reference_year=REF_YEAR) == pytest.approx(expected)


def test_pricing_confidence_is_capped(estimator):
    full = PricingResponse(
        retail_value=10_000, trade_in_value=8_000, loan_value=7_000,
        make="Toyota", model="Camry", year=2020, trim="LE", msrp_value=25_000,
    )
    assert estimator.pricing_confidence(full, reference_year=REF_YEAR) == 0.90


def test_round_to_unit_half_up():
    assert round_to_unit(75_000, 50_000) == 100_000
    assert round_to_unit(74_999, 50_000) == 50_000
    assert round_to_unit(123.0, 0) == 123.0
