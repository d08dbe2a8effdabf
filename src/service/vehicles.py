from __future__ import annotations

import logging
from dataclasses import dataclass

from lending.data_models import Valuation, Vehicle
from lending.errors import ConflictError, NotFoundError
from service.storage import LendingStore
from service.valuations import ValuationService

logger = logging.getLogger(__name__)


@dataclass
class VehicleDetail:
    vehicle: Vehicle
    valuations: list[Valuation]


class VehicleService:
    def __init__(self, store: LendingStore, valuations: ValuationService) -> None:
        self.store = store
        self.valuations = valuations

    async def create(self, vehicle: Vehicle) -> Vehicle:
        """Register a vehicle, then value it on a best-effort basis.

        A failed valuation never fails the intake; it is logged and the
        vehicle can be valued later through ``request_valuation``.
        """
        if await self.store.find_vehicle_by_vin(vehicle.vin) is not None:
            raise ConflictError(vehicle.vin)

        saved = await self.store.create_vehicle(vehicle)
        logger.info("Vehicle created with ID %s", saved.id)

        try:
            await self.valuations.create_for_vehicle(saved)
        except Exception as exc:
            logger.warning("Failed to auto-valuate vehicle %s: %s", saved.id, exc)

        return saved

    async def get(self, vehicle_id: str) -> Vehicle:
        vehicle = await self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle", vehicle_id)
        return vehicle

    async def detail(self, vehicle_id: str) -> VehicleDetail:
        vehicle = await self.get(vehicle_id)
        return VehicleDetail(vehicle=vehicle, valuations=await self.store.list_valuations(vehicle_id))

    async def list_all(self) -> list[Vehicle]:
        return await self.store.list_vehicles()

    async def request_valuation(self, vehicle_id: str) -> tuple[Vehicle, Valuation]:
        vehicle = await self.get(vehicle_id)
        valuation = await self.valuations.create_for_vehicle(vehicle)
        return vehicle, valuation
