from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from lending.data_models import LOAN_STATUSES, LoanApplication, LoanOffer, Vehicle
from lending.eligibility import EligibilityEvaluator
from lending.errors import NotFoundError
from lending.offers import OfferGenerator
from service.storage import ApplicationStore, LendingStore, OfferStore, VehicleProvider
from service.valuations import ValuationService

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    application: LoanApplication
    eligible: bool
    message: str
    reasons: list[str] = field(default_factory=list)
    offers: list[LoanOffer] = field(default_factory=list)
    vehicle_value: float | None = None


@dataclass
class ApplicationDetail:
    application: LoanApplication
    vehicle: Vehicle | None
    offers: list[LoanOffer]


class LoanApplicationOrchestrator:
    """Submit a loan application end to end.

    vehicle -> latest valuation (created on demand) -> eligibility ->
    rejected application, or approved application plus its offer batch.
    Store failures propagate to the caller untouched.
    """

    def __init__(
        self,
        vehicles: VehicleProvider,
        valuations: ValuationService,
        applications: ApplicationStore,
        offers: OfferStore,
        evaluator: EligibilityEvaluator,
        generator: OfferGenerator,
    ) -> None:
        self.vehicles = vehicles
        self.valuations = valuations
        self.applications = applications
        self.offers = offers
        self.evaluator = evaluator
        self.generator = generator

    async def submit(self, request: LoanApplication) -> SubmissionResult:
        vehicle = await self.vehicles.get_vehicle(request.vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle", request.vehicle_id)

        valuation = await self.valuations.latest(vehicle.id)
        if valuation is None:
            valuation = await self.valuations.create_for_vehicle(vehicle)
        vehicle_value = valuation.estimated_value

        verdict = self.evaluator.evaluate(request, vehicle, vehicle_value)

        if not verdict.eligible:
            application = await self.applications.save_application(replace(
                request,
                status="rejected",
                rejection_reason="; ".join(verdict.reasons),
                eligibility_score=verdict.score,
            ))
            logger.info(
                "Loan application %s rejected (score %d): %s",
                application.id, verdict.score, application.rejection_reason,
            )
            return SubmissionResult(
                application=application,
                eligible=False,
                reasons=list(verdict.reasons),
                message="Loan application rejected due to eligibility criteria",
            )

        application = await self.applications.save_application(replace(
            request,
            status="approved",
            rejection_reason=None,
            eligibility_score=verdict.score,
        ))
        offers = await self.offers.save_offers(self.generator.generate(application, vehicle_value))
        logger.info("Loan application %s approved with %d offers", application.id, len(offers))

        return SubmissionResult(
            application=application,
            eligible=True,
            offers=offers,
            vehicle_value=vehicle_value,
            message="Loan application approved successfully",
        )


class LoanApplicationService:
    def __init__(self, store: LendingStore) -> None:
        self.store = store

    async def get(self, application_id: str) -> LoanApplication:
        application = await self.store.get_application(application_id)
        if application is None:
            raise NotFoundError("Loan application", application_id)
        return application

    async def detail(self, application_id: str) -> ApplicationDetail:
        application = await self.get(application_id)
        return ApplicationDetail(
            application=application,
            vehicle=await self.store.get_vehicle(application.vehicle_id),
            offers=await self.store.list_offers(application_id),
        )

    async def list_all(self) -> list[LoanApplication]:
        return await self.store.list_applications()

    async def update_status(self, application_id: str, status: str) -> LoanApplication:
        """Overwrite the status. Any known status may follow any other."""
        if status not in LOAN_STATUSES:
            raise ValueError(f"Unknown loan status: {status}")
        previous = await self.get(application_id)
        updated = await self.store.update_application_status(application_id, status)
        if updated is None:
            raise NotFoundError("Loan application", application_id)
        logger.info("Loan application %s status %s -> %s", application_id, previous.status, status)
        return updated

    async def active_offers(self, application_id: str) -> list[LoanOffer]:
        await self.get(application_id)
        return await self.store.find_active_offers(application_id)
