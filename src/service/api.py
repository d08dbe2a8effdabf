from __future__ import annotations

import time
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Request, Response, status
from pydantic import BaseModel, Field, field_validator

from lending.config import EligibilityPolicy, ValuationConfig
from lending.data_models import LoanApplication, Vehicle
from lending.eligibility import EligibilityEvaluator
from lending.errors import ConflictError, NotFoundError
from lending.offers import OfferGenerator
from lending.valuation import ValuationEstimator
from service.applications import LoanApplicationOrchestrator, LoanApplicationService
from service.logging_config import configure_logging, correlation_id, new_correlation_id
from service.settings import ServiceSettings
from service.storage import LendingStore
from service.valuations import PricingLookupClient, ValuationService
from service.vehicles import VehicleService


# ── Request / Response Models ───────────────────────────────────────

class VehicleCreateRequest(BaseModel):
    vin: str = Field(min_length=17, max_length=17)
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: int = Field(ge=1900)
    mileage: int = Field(ge=0)
    condition: Literal["excellent", "good", "fair", "poor"]
    price: float = Field(ge=0)
    color: str | None = None
    images: list[str] = Field(default_factory=list)

    @field_validator("year")
    @classmethod
    def year_not_in_future(cls, v: int) -> int:
        if v > datetime.now(timezone.utc).year:
            raise ValueError("Year cannot be in the future")
        return v


class LoanApplicationRequest(BaseModel):
    vehicle_id: str
    applicant_name: str = Field(min_length=1)
    applicant_email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    applicant_phone: str = Field(min_length=7)
    requested_amount: float = Field(ge=100_000)
    employment_status: Literal["employed", "self_employed", "unemployed"]
    monthly_income: float = Field(ge=0)


class StatusUpdateRequest(BaseModel):
    status: Literal["pending", "under_review", "approved", "rejected", "disbursed"]


class HealthResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, bool]


# ── Request Metrics ─────────────────────────────────────────────────

class RequestMetrics:
    def __init__(self) -> None:
        self.counters: dict[str, int] = defaultdict(int)
        self.latencies: dict[str, list[float]] = defaultdict(list)

    def record_latency(self, name: str, seconds: float) -> None:
        self.latencies[name].append(seconds)
        self.counters[f"{name}_count"] += 1

    def snapshot(self) -> dict[str, Any]:
        summary: dict[str, Any] = {}
        for name, vals in sorted(self.latencies.items()):
            ordered = sorted(vals)
            n = len(ordered)
            summary[name] = {
                "count": n,
                "p50_ms": round(ordered[n // 2] * 1000, 1),
                "p95_ms": round(ordered[min(int(n * 0.95), n - 1)] * 1000, 1),
            }
        return {"counters": dict(self.counters), "latency": summary}


# ── App Factory ─────────────────────────────────────────────────────

def create_app() -> FastAPI:
    settings = ServiceSettings()
    configure_logging(level=settings.log_level, fmt=settings.log_format)

    valuation_config: ValuationConfig = settings.valuation_config()
    store = LendingStore(dsn=settings.postgres_dsn)
    pricing = PricingLookupClient(
        api_key=settings.pricing_api_key,
        base_url=settings.pricing_base_url,
        api_host=settings.pricing_api_host,
        timeout=settings.pricing_timeout_seconds,
    )
    valuations = ValuationService(store=store, estimator=ValuationEstimator(valuation_config), pricing=pricing)
    vehicles = VehicleService(store=store, valuations=valuations)
    orchestrator = LoanApplicationOrchestrator(
        vehicles=store,
        valuations=valuations,
        applications=store,
        offers=store,
        evaluator=EligibilityEvaluator(EligibilityPolicy()),
        generator=OfferGenerator(),
    )
    applications = LoanApplicationService(store=store)
    metrics = RequestMetrics()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await store.connect()
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(title="Vehicle Lending API", version="1.0.0", lifespan=lifespan)

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next: Any) -> Response:
        cid = request.headers.get("X-Correlation-ID") or new_correlation_id()
        correlation_id.set(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response

    # ── Vehicles ────────────────────────────────────────────────────

    @app.post("/vehicles", status_code=status.HTTP_201_CREATED)
    async def create_vehicle(payload: VehicleCreateRequest) -> dict[str, Any]:
        try:
            vehicle = await vehicles.create(Vehicle(**payload.model_dump()))
        except ConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        metrics.counters["vehicles_created"] += 1
        return asdict(vehicle)

    @app.get("/vehicles")
    async def list_vehicles() -> list[dict[str, Any]]:
        return [asdict(v) for v in await vehicles.list_all()]

    @app.get("/vehicles/{vehicle_id}")
    async def get_vehicle(vehicle_id: str) -> dict[str, Any]:
        try:
            detail = await vehicles.detail(vehicle_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {**asdict(detail.vehicle), "valuations": [asdict(v) for v in detail.valuations]}

    @app.post("/vehicles/{vehicle_id}/valuate")
    async def valuate_vehicle(vehicle_id: str) -> dict[str, Any]:
        try:
            vehicle, valuation = await vehicles.request_valuation(vehicle_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        metrics.counters[f"valuations_{valuation.source}"] += 1
        return {
            "vehicle": asdict(vehicle),
            "valuation": asdict(valuation),
            "message": "Valuation completed successfully",
        }

    @app.get("/vehicles/{vehicle_id}/valuations")
    async def vehicle_valuations(vehicle_id: str) -> list[dict[str, Any]]:
        try:
            history = await valuations.history(vehicle_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return [asdict(v) for v in history]

    # ── Loan Applications ───────────────────────────────────────────

    @app.post("/loan-applications", status_code=status.HTTP_201_CREATED)
    async def submit_application(payload: LoanApplicationRequest) -> dict[str, Any]:
        t0 = time.monotonic()
        try:
            result = await orchestrator.submit(LoanApplication(**payload.model_dump()))
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        metrics.record_latency("submit_application", time.monotonic() - t0)
        metrics.counters["applications_approved" if result.eligible else "applications_rejected"] += 1

        body: dict[str, Any] = {
            "application": asdict(result.application),
            "eligible": result.eligible,
            "message": result.message,
        }
        if result.eligible:
            body["offers"] = [asdict(o) for o in result.offers]
            body["vehicle_value"] = result.vehicle_value
        else:
            body["reasons"] = result.reasons
        return body

    @app.get("/loan-applications")
    async def list_applications() -> list[dict[str, Any]]:
        return [asdict(a) for a in await applications.list_all()]

    @app.get("/loan-applications/{application_id}")
    async def get_application(application_id: str) -> dict[str, Any]:
        try:
            detail = await applications.detail(application_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {
            **asdict(detail.application),
            "vehicle": asdict(detail.vehicle) if detail.vehicle else None,
            "offers": [asdict(o) for o in detail.offers],
        }

    @app.patch("/loan-applications/{application_id}/status")
    async def update_application_status(application_id: str, payload: StatusUpdateRequest) -> dict[str, Any]:
        try:
            application = await applications.update_status(application_id, payload.status)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(application)

    @app.get("/loan-applications/{application_id}/offers")
    async def application_offers(application_id: str) -> list[dict[str, Any]]:
        try:
            offers = await applications.active_offers(application_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return [asdict(o) for o in offers]

    # ── Health / Metrics ────────────────────────────────────────────

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/ready", response_model=ReadinessResponse)
    async def ready() -> ReadinessResponse:
        checks = {"database": await store.ping()}
        if not all(checks.values()):
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=ReadinessResponse(status="degraded", checks=checks).model_dump(),
            )
        return ReadinessResponse(status="ready", checks=checks)

    @app.get("/metrics")
    async def get_metrics() -> dict[str, Any]:
        return metrics.snapshot()

    return app


app = create_app()
