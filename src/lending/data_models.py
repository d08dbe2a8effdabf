from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal


VehicleCondition = Literal["excellent", "good", "fair", "poor"]
ValuationSource = Literal["external", "simulated"]
EmploymentStatus = Literal["employed", "self_employed", "unemployed"]
LoanStatus = Literal["pending", "under_review", "approved", "rejected", "disbursed"]

LOAN_STATUSES: tuple[str, ...] = ("pending", "under_review", "approved", "rejected", "disbursed")


@dataclass
class Vehicle:
    vin: str
    make: str
    model: str
    year: int
    mileage: int
    condition: VehicleCondition
    price: float
    color: str | None = None
    images: list[str] = field(default_factory=list)
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Valuation:
    vehicle_id: str
    estimated_value: float
    source: ValuationSource
    confidence_score: float
    raw: dict[str, Any] | None = None
    id: str | None = None
    created_at: datetime | None = None


@dataclass
class LoanApplication:
    vehicle_id: str
    applicant_name: str
    applicant_email: str
    applicant_phone: str
    requested_amount: float
    employment_status: EmploymentStatus
    monthly_income: float
    status: LoanStatus = "pending"
    eligibility_score: int | None = None
    rejection_reason: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class LoanOffer:
    application_id: str
    approved_amount: float
    interest_rate: float
    term_months: int
    monthly_payment: float
    total_repayment: float
    is_active: bool = True
    id: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class PricingResponse:
    """Pricing lookup payload; every field may be missing."""

    retail_value: float | None = None
    adjusted_trade_in_value: float | None = None
    trade_in_value: float | None = None
    loan_value: float | None = None
    average_trade_in: float | None = None
    mileage_adjustment_percent: float | None = None
    make: str | None = None
    model: str | None = None
    year: int | None = None
    trim: str | None = None
    msrp_value: float | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValuationEstimate:
    estimated_value: float
    source: ValuationSource
    confidence_score: float
    raw: dict[str, Any] | None = None


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reasons: tuple[str, ...]
    score: int
