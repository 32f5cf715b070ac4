"""Outcomes of a rental status transition request."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from rentalhub.models.equipment import EquipmentAvailability
from rentalhub.models.rental import Rental, RentalStatus


@dataclass(frozen=True)
class PendingEquipmentUpdate:
    """Equipment step that did not commit after the rental status did."""
    rental_id: str
    equipment_id: str
    rental_status: RentalStatus
    target_availability: EquipmentAvailability
    error: str

    def to_dict(self) -> dict:
        return {
            "rental_id": self.rental_id,
            "equipment_id": self.equipment_id,
            "rental_status": self.rental_status.value,
            "target_availability": self.target_availability.value,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingEquipmentUpdate":
        return cls(
            rental_id=str(data["rental_id"]),
            equipment_id=str(data["equipment_id"]),
            rental_status=RentalStatus.parse(data["rental_status"]),
            target_availability=EquipmentAvailability.parse(data["target_availability"]),
            error=str(data.get("error") or ""),
        )


@dataclass(frozen=True)
class LifecycleEvent:
    rental_id: str
    equipment_id: str
    previous_status: RentalStatus
    new_status: RentalStatus
    timestamp: datetime
    actor: Optional[str] = None
    renter_id: Optional[str] = None
    owner_id: Optional[str] = None
    equipment_pending: bool = False

    def to_dict(self) -> dict:
        return {
            "rental_id": self.rental_id,
            "equipment_id": self.equipment_id,
            "previous_status": self.previous_status.value,
            "new_status": self.new_status.value,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
            "renter_id": self.renter_id,
            "owner_id": self.owner_id,
            "equipment_pending": self.equipment_pending,
        }


@dataclass(frozen=True)
class TransitionResult:
    outcome = "unknown"
    ok = False

    warnings: Tuple[str, ...] = field(default=(), kw_only=True)


@dataclass(frozen=True)
class Success(TransitionResult):
    outcome = "success"
    ok = True

    rental: Rental
    previous_status: Optional[RentalStatus] = None


@dataclass(frozen=True)
class NoOp(TransitionResult):
    """The rental already holds the requested status; nothing was written."""
    outcome = "noop"
    ok = True

    rental: Rental


@dataclass(frozen=True)
class InvalidTransition(TransitionResult):
    outcome = "invalid_transition"

    from_status: RentalStatus
    to_status: RentalStatus


@dataclass(frozen=True)
class NotFound(TransitionResult):
    outcome = "not_found"

    rental_id: str


@dataclass(frozen=True)
class Conflict(TransitionResult):
    """Another transition committed first; reload and decide again."""
    outcome = "conflict"

    rental_id: str
    expected_status: RentalStatus
    current_status: Optional[RentalStatus] = None


@dataclass(frozen=True)
class PartialFailure(TransitionResult):
    """Rental status committed, equipment availability did not."""
    outcome = "partial_failure"

    rental: Rental
    pending_equipment_update: PendingEquipmentUpdate
    previous_status: Optional[RentalStatus] = None
