from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, MetaData, String, Table, Text, insert, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from lending.data_models import LoanApplication, LoanOffer, Valuation, Vehicle

logger = logging.getLogger(__name__)


metadata = MetaData()

vehicles_table = Table(
    "vehicles",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("vin", String(17), nullable=False, unique=True),
    Column("make", String(64), nullable=False),
    Column("model", String(64), nullable=False),
    Column("year", Integer, nullable=False),
    Column("mileage", Integer, nullable=False),
    Column("condition", String(16), nullable=False),
    Column("price", Float, nullable=False),
    Column("color", String(32), nullable=True),
    Column("images", JSON, nullable=False, default=list),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

valuations_table = Table(
    "valuations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("vehicle_id", String(36), nullable=False, index=True),
    Column("estimated_value", Float, nullable=False),
    Column("source", String(16), nullable=False),
    Column("confidence_score", Float, nullable=False),
    Column("raw", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

loan_applications_table = Table(
    "loan_applications",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("vehicle_id", String(36), nullable=False, index=True),
    Column("applicant_name", String(128), nullable=False),
    Column("applicant_email", String(256), nullable=False),
    Column("applicant_phone", String(32), nullable=False),
    Column("requested_amount", Float, nullable=False),
    Column("employment_status", String(16), nullable=False),
    Column("monthly_income", Float, nullable=False),
    Column("status", String(16), nullable=False, default="pending"),
    Column("eligibility_score", Integer, nullable=True),
    Column("rejection_reason", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

loan_offers_table = Table(
    "loan_offers",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("application_id", String(36), nullable=False, index=True),
    Column("approved_amount", Float, nullable=False),
    Column("interest_rate", Float, nullable=False),
    Column("term_months", Integer, nullable=False),
    Column("monthly_payment", Float, nullable=False),
    Column("total_repayment", Float, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


class VehicleProvider(Protocol):
    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None: ...


class ValuationStore(Protocol):
    async def latest_valuation(self, vehicle_id: str) -> Valuation | None: ...

    async def save_valuation(self, valuation: Valuation) -> Valuation: ...


class ApplicationStore(Protocol):
    async def save_application(self, application: LoanApplication) -> LoanApplication: ...


class OfferStore(Protocol):
    async def save_offers(self, offers: Sequence[LoanOffer]) -> list[LoanOffer]: ...

    async def find_active_offers(self, application_id: str) -> list[LoanOffer]: ...


def _newest_first(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(reversed(rows), key=lambda r: r["created_at"], reverse=True)


def _vehicle(row: dict[str, Any]) -> Vehicle:
    data = dict(row)
    data["images"] = list(data.get("images") or [])
    return Vehicle(**data)


class LendingStore:
    """Vehicles, valuations, applications and offers.

    Backed by SQLAlchemy on an async engine; when the database cannot be
    reached at connect time the store keeps everything in process memory.
    """

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn
        self.engine: AsyncEngine | None = None
        self._fallback_mode = False
        self._mem_vehicles: list[dict[str, Any]] = []
        self._mem_valuations: list[dict[str, Any]] = []
        self._mem_applications: list[dict[str, Any]] = []
        self._mem_offers: list[dict[str, Any]] = []

    async def connect(self) -> None:
        try:
            self.engine = create_async_engine(self.dsn, future=True)
            await self.init_schema()
        except Exception as exc:
            logger.warning("Database unavailable (%s); using in-memory store", exc)
            self._fallback_mode = True
            self.engine = None

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()

    async def ping(self) -> bool:
        if self.engine is None:
            return False
        if self._fallback_mode:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(select(1))
            return True
        except Exception:
            return False

    async def init_schema(self) -> None:
        if self.engine is None:
            return
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    # ── Vehicles ────────────────────────────────────────────────────

    async def create_vehicle(self, vehicle: Vehicle) -> Vehicle:
        now = datetime.now(timezone.utc)
        row = dataclasses.asdict(vehicle)
        row.update(id=str(uuid4()), created_at=now, updated_at=now)
        if self.engine is None:
            self._mem_vehicles.append(row)
            return _vehicle(row)
        async with self.engine.begin() as conn:
            await conn.execute(insert(vehicles_table).values(**row))
        return _vehicle(row)

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        if self.engine is None:
            for row in self._mem_vehicles:
                if row["id"] == vehicle_id:
                    return _vehicle(row)
            return None
        stmt = select(vehicles_table).where(vehicles_table.c.id == vehicle_id)
        async with self.engine.connect() as conn:
            row = (await conn.execute(stmt)).first()
        return _vehicle(row._mapping) if row else None

    async def find_vehicle_by_vin(self, vin: str) -> Vehicle | None:
        if self.engine is None:
            for row in self._mem_vehicles:
                if row["vin"] == vin:
                    return _vehicle(row)
            return None
        stmt = select(vehicles_table).where(vehicles_table.c.vin == vin)
        async with self.engine.connect() as conn:
            row = (await conn.execute(stmt)).first()
        return _vehicle(row._mapping) if row else None

    async def list_vehicles(self) -> list[Vehicle]:
        if self.engine is None:
            return [_vehicle(r) for r in _newest_first(self._mem_vehicles)]
        stmt = select(vehicles_table).order_by(vehicles_table.c.created_at.desc())
        async with self.engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [_vehicle(r._mapping) for r in rows]

    # ── Valuations ──────────────────────────────────────────────────

    async def save_valuation(self, valuation: Valuation) -> Valuation:
        row = dataclasses.asdict(valuation)
        row.update(id=str(uuid4()), created_at=datetime.now(timezone.utc))
        if self.engine is None:
            self._mem_valuations.append(row)
            return Valuation(**row)
        async with self.engine.begin() as conn:
            await conn.execute(insert(valuations_table).values(**row))
        return Valuation(**row)

    async def list_valuations(self, vehicle_id: str) -> list[Valuation]:
        if self.engine is None:
            rows = [r for r in self._mem_valuations if r["vehicle_id"] == vehicle_id]
            return [Valuation(**r) for r in _newest_first(rows)]
        stmt = (
            select(valuations_table)
            .where(valuations_table.c.vehicle_id == vehicle_id)
            .order_by(valuations_table.c.created_at.desc())
        )
        async with self.engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [Valuation(**r._mapping) for r in rows]

    async def latest_valuation(self, vehicle_id: str) -> Valuation | None:
        history = await self.list_valuations(vehicle_id)
        return history[0] if history else None

    # ── Loan applications ───────────────────────────────────────────

    async def save_application(self, application: LoanApplication) -> LoanApplication:
        now = datetime.now(timezone.utc)
        row = dataclasses.asdict(application)
        row.update(id=str(uuid4()), created_at=now, updated_at=now)
        if self.engine is None:
            self._mem_applications.append(row)
            return LoanApplication(**row)
        async with self.engine.begin() as conn:
            await conn.execute(insert(loan_applications_table).values(**row))
        return LoanApplication(**row)

    async def get_application(self, application_id: str) -> LoanApplication | None:
        if self.engine is None:
            for row in self._mem_applications:
                if row["id"] == application_id:
                    return LoanApplication(**row)
            return None
        stmt = select(loan_applications_table).where(loan_applications_table.c.id == application_id)
        async with self.engine.connect() as conn:
            row = (await conn.execute(stmt)).first()
        return LoanApplication(**row._mapping) if row else None

    async def list_applications(self) -> list[LoanApplication]:
        if self.engine is None:
            return [LoanApplication(**r) for r in _newest_first(self._mem_applications)]
        stmt = select(loan_applications_table).order_by(loan_applications_table.c.created_at.desc())
        async with self.engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [LoanApplication(**r._mapping) for r in rows]

    async def update_application_status(self, application_id: str, status: str) -> LoanApplication | None:
        now = datetime.now(timezone.utc)
        if self.engine is None:
            for row in self._mem_applications:
                if row["id"] == application_id:
                    row["status"] = status
                    row["updated_at"] = now
                    return LoanApplication(**row)
            return None
        async with self.engine.begin() as conn:
            await conn.execute(
                update(loan_applications_table)
                .where(loan_applications_table.c.id == application_id)
                .values(status=status, updated_at=now)
            )
        return await self.get_application(application_id)

    # ── Offers ──────────────────────────────────────────────────────

    async def save_offers(self, offers: Sequence[LoanOffer]) -> list[LoanOffer]:
        now = datetime.now(timezone.utc)
        rows = []
        for offer in offers:
            row = dataclasses.asdict(offer)
            row.update(id=str(uuid4()), created_at=now)
            rows.append(row)
        if self.engine is None:
            self._mem_offers.extend(rows)
            return [LoanOffer(**r) for r in rows]
        async with self.engine.begin() as conn:
            for row in rows:
                await conn.execute(insert(loan_offers_table).values(**row))
        return [LoanOffer(**r) for r in rows]

    async def list_offers(self, application_id: str) -> list[LoanOffer]:
        if self.engine is None:
            return [LoanOffer(**r) for r in self._mem_offers if r["application_id"] == application_id]
        stmt = select(loan_offers_table).where(loan_offers_table.c.application_id == application_id)
        async with self.engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [LoanOffer(**r._mapping) for r in rows]

    async def find_active_offers(self, application_id: str) -> list[LoanOffer]:
        if self.engine is None:
            rows = [
                r for r in self._mem_offers
                if r["application_id"] == application_id and r["is_active"]
            ]
            return [LoanOffer(**r) for r in sorted(rows, key=lambda r: r["monthly_payment"])]
        stmt = (
            select(loan_offers_table)
            .where(loan_offers_table.c.application_id == application_id)
            .where(loan_offers_table.c.is_active == True)  # noqa: E712
            .order_by(loan_offers_table.c.monthly_payment.asc())
        )
        async with self.engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [LoanOffer(**r._mapping) for r in rows]
