"""Canonical rental status transitions and their equipment effects.

Every screen that changes or labels a rental status reads from here.
"""

from typing import Dict, FrozenSet, Optional

from rentalhub.models.equipment import EquipmentAvailability
from rentalhub.models.rental import RentalStatus


VALID_TRANSITIONS: Dict[RentalStatus, FrozenSet[RentalStatus]] = {
    RentalStatus.PENDING: frozenset({RentalStatus.CONFIRMED, RentalStatus.CANCELLED}),
    RentalStatus.CONFIRMED: frozenset(
        {RentalStatus.DELIVERING, RentalStatus.IN_PROGRESS, RentalStatus.CANCELLED}
    ),
    RentalStatus.DELIVERING: frozenset({RentalStatus.IN_PROGRESS, RentalStatus.CANCELLED}),
    RentalStatus.IN_PROGRESS: frozenset({RentalStatus.COMPLETED, RentalStatus.CANCELLED}),
    RentalStatus.COMPLETED: frozenset(),  # Terminal state
    RentalStatus.CANCELLED: frozenset(),  # Terminal state
}

# Equipment is unavailable to other renters while a rental holds one of these.
OCCUPYING_STATUSES = frozenset(
    {RentalStatus.CONFIRMED, RentalStatus.DELIVERING, RentalStatus.IN_PROGRESS}
)
RELEASING_STATUSES = frozenset({RentalStatus.COMPLETED, RentalStatus.CANCELLED})


def is_valid_transition(from_status: RentalStatus, to_status: RentalStatus) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, frozenset())


def allowed_targets(from_status: RentalStatus) -> list[RentalStatus]:
    """Targets reachable from ``from_status``, in lifecycle order."""
    targets = VALID_TRANSITIONS.get(from_status, frozenset())
    return [status for status in RentalStatus if status in targets]


def is_occupying(status: RentalStatus) -> bool:
    return status in OCCUPYING_STATUSES


def derived_availability(status: RentalStatus) -> Optional[EquipmentAvailability]:
    """Availability a rental in ``status`` implies for its equipment.

    None means the status has no equipment effect (pending).
    """
    if status in OCCUPYING_STATUSES:
        return EquipmentAvailability.RENTED
    if status in RELEASING_STATUSES:
        return EquipmentAvailability.AVAILABLE
    return None


def describe_lifecycle() -> dict:
    """Status vocabulary and transition table for front-ends."""
    return {
        "statuses": [
            {
                "value": status.value,
                "label": status.display_name,
                "terminal": status.is_terminal,
                "occupying": is_occupying(status),
                "allowed_targets": [target.value for target in allowed_targets(status)],
            }
            for status in RentalStatus
        ],
        "equipment_availability": [
            {
                "value": availability.value,
                "label": availability.display_name,
                "owner_managed": availability.is_owner_managed,
            }
            for availability in EquipmentAvailability
        ],
    }
