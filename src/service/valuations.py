from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from lending.data_models import PricingResponse, Valuation, ValuationEstimate, Vehicle
from lending.errors import ExternalLookupError, NotFoundError
from lending.valuation import ValuationEstimator
from service.storage import LendingStore

logger = logging.getLogger(__name__)


class PricingLookupClient:
    """Async client for a RapidAPI-hosted vehicle pricing API.

    Single endpoint: GET /v1/pricing?vin=...&mileage=...
    Any failure (unconfigured key, network error, non-2xx status, unreadable
    body) raises ExternalLookupError.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://vehicle-pricing-api.p.rapidapi.com",
        api_host: str = "vehicle-pricing-api.p.rapidapi.com",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.api_host = api_host
        self.timeout = timeout
        self._transport = transport
        self.enabled = bool(api_key and api_host)

    async def lookup(self, vin: str, mileage: int | None = None) -> PricingResponse:
        if not self.enabled:
            raise ExternalLookupError("pricing_not_configured", vin=vin)

        params: dict[str, Any] = {"vin": vin}
        if mileage is not None:
            params["mileage"] = mileage

        try:
            url = f"{self.base_url}/v1/pricing"
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(
                    url, params=params,
                    headers={
                        "X-RapidAPI-Key": self.api_key,
                        "X-RapidAPI-Host": self.api_host,
                        "Accept": "application/json",
                    },
                )
                resp.raise_for_status()
            return parse_pricing_payload(resp.json())
        except (httpx.HTTPError, ValueError, TypeError, OverflowError) as exc:
            raise ExternalLookupError(f"pricing lookup failed: {exc}", vin=vin) from exc


def parse_pricing_payload(data: Any) -> PricingResponse:
    if isinstance(data, list):
        data = data[0] if data else {}
    if not isinstance(data, dict):
        return PricingResponse()
    body = data.get("data") if isinstance(data.get("data"), dict) else data

    return PricingResponse(
        retail_value=_safe_float(body.get("retail_value")),
        adjusted_trade_in_value=_safe_float(body.get("adjusted_trade_in_value")),
        trade_in_value=_safe_float(body.get("trade_in_value")),
        loan_value=_safe_float(body.get("loan_value")),
        average_trade_in=_safe_float(body.get("average_trade_in")),
        mileage_adjustment_percent=_safe_float(body.get("mileage_adjustment_percent")),
        make=body.get("make") or None,
        model=body.get("model") or None,
        year=_safe_int(body.get("year")),
        trim=body.get("trim") or None,
        msrp_value=_safe_float(body.get("msrp_value")),
        raw=dict(body),
    )


class ValuationService:
    """Create and read vehicle valuations.

    External pricing is tried first when the client is configured; lookup
    failures are logged and the simulated model is used instead.
    """

    def __init__(
        self,
        store: LendingStore,
        estimator: ValuationEstimator,
        pricing: PricingLookupClient | None = None,
    ) -> None:
        self.store = store
        self.estimator = estimator
        self.pricing = pricing

    async def estimate(self, vehicle: Vehicle) -> ValuationEstimate:
        if self.pricing is not None and self.pricing.enabled:
            try:
                response = await self.pricing.lookup(vehicle.vin, mileage=vehicle.mileage)
                return self.estimator.estimate_from_pricing(response)
            except (ExternalLookupError, ValueError) as exc:
                logger.warning("Pricing lookup failed for %s: %s. Using simulation.", vehicle.vin, exc)
        else:
            logger.info("Pricing lookup not configured; simulating value for %s", vehicle.vin)
        return self.estimator.simulate(vehicle)

    async def create_valuation(self, vehicle_id: str) -> Valuation:
        vehicle = await self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle", vehicle_id)
        return await self.create_for_vehicle(vehicle)

    async def create_for_vehicle(self, vehicle: Vehicle) -> Valuation:
        estimate = await self.estimate(vehicle)
        saved = await self.store.save_valuation(Valuation(
            vehicle_id=vehicle.id,
            estimated_value=estimate.estimated_value,
            source=estimate.source,
            confidence_score=estimate.confidence_score,
            raw=estimate.raw,
        ))
        logger.info(
            "Valuation created for vehicle %s: %.2f (%s, confidence %.2f)",
            vehicle.id, saved.estimated_value, saved.source, saved.confidence_score,
        )
        return saved

    async def latest(self, vehicle_id: str) -> Valuation | None:
        return await self.store.latest_valuation(vehicle_id)

    async def history(self, vehicle_id: str) -> list[Valuation]:
        if await self.store.get_vehicle(vehicle_id) is None:
            raise NotFoundError("Vehicle", vehicle_id)
        return await self.store.list_valuations(vehicle_id)


def _safe_float(val: Any) -> float | None:
    if val is None or isinstance(val, bool):
        return None
    try:
        f = float(val)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _safe_int(val: Any) -> int | None:
    f = _safe_float(val)
    return None if f is None else int(f)
