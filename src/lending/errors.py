"""
Lending error hierarchy.
"""

from __future__ import annotations


class LendingError(Exception):
    """Base exception for lending-related errors."""


class NotFoundError(LendingError):
    """Raised when a referenced vehicle or loan application does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with ID {entity_id} not found")


class ConflictError(LendingError):
    """Raised when a vehicle with the same VIN is already registered."""

    def __init__(self, vin: str) -> None:
        self.vin = vin
        super().__init__(f"Vehicle with VIN {vin} already exists")


class ExternalLookupError(LendingError):
    """Raised when the external pricing lookup is unconfigured or fails."""

    def __init__(self, message: str, vin: str | None = None) -> None:
        self.vin = vin
        super().__init__(message)
