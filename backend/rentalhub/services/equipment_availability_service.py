from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from rentalhub.models.equipment import EquipmentAvailability
from rentalhub.models.rental import RentalStatus
from rentalhub.services.rental_state_machine import derived_availability
from rentalhub.services.rental_store import SqlRentalStore, WriteResult
from rentalhub.utils.exceptions import ConcurrencyConflictError, NotFoundError, ValidationError
from rentalhub.utils.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

# Attempts at the read-decide-write cycle when another writer gets in between.
MAX_CONFLICT_ROUNDS = 3

# Given the locked current value, returns (desired value or None, reason when nothing is written).
Decision = Callable[[EquipmentAvailability], Tuple[Optional[EquipmentAvailability], Optional[str]]]


@dataclass(frozen=True)
class EquipmentSyncOutcome:
    equipment_id: str
    availability: Optional[EquipmentAvailability]
    written: bool
    skipped_reason: Optional[str] = None


class EquipmentAvailabilityService:
    """Derives equipment availability from rental status changes.

    Every change runs as one transaction that locks the equipment row,
    reads it, counts occupying rentals and writes. Callers in the same
    process additionally hold ``rentalhub.utils.locks.equipment_scope``.
    """

    def __init__(self, store: SqlRentalStore, retry_policy: Optional[RetryPolicy] = None):
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    def _occupied_by_others(self, equipment_id: str, rental_id: Optional[str]) -> bool:
        return self.store.count_occupying_rentals(equipment_id, excluding_rental_id=rental_id) > 0

    def _locked_round(self, equipment_id: str, decide: Decision) -> Optional[EquipmentSyncOutcome]:
        """One lock-read-decide-write round. None means the conditional write lost."""
        try:
            current = self.store.lock_equipment(equipment_id)
            if current is None:
                raise NotFoundError("Equipment", equipment_id)

            desired, skipped_reason = decide(current)
            if desired is None or desired == current:
                self.store.release_equipment()
                return EquipmentSyncOutcome(equipment_id, current, written=False, skipped_reason=skipped_reason)

            result = self.store.set_equipment_availability(equipment_id, desired, expected_prior_value=current)
        except Exception:
            self.store.release_equipment()
            raise

        if result != WriteResult.OK:
            return None
        logger.info("Equipment %s availability %s -> %s", equipment_id, current.value, desired.value)
        return EquipmentSyncOutcome(equipment_id, desired, written=True)

    def _run(self, equipment_id: str, decide: Decision, description: str) -> Optional[EquipmentSyncOutcome]:
        return call_with_retry(
            lambda: self._locked_round(equipment_id, decide),
            policy=self.retry_policy,
            description=description,
        )

    def _decide(
        self,
        rental_id: Optional[str],
        equipment_id: str,
        status: RentalStatus,
        current: EquipmentAvailability,
    ) -> Tuple[Optional[EquipmentAvailability], Optional[str]]:
        target = derived_availability(status)
        if target is None:
            return None, f"{status.value} has no equipment effect"

        if current.is_owner_managed:
            return None, f"owner set {current.value}"

        if target == EquipmentAvailability.RENTED:
            return target, "already rented"

        if current == EquipmentAvailability.AVAILABLE:
            return None, "already available"
        if self._occupied_by_others(equipment_id, rental_id):
            return None, "another rental still occupies the equipment"
        return target, None

    def apply(self, rental_id: Optional[str], equipment_id: str, status: RentalStatus) -> EquipmentSyncOutcome:
        """Bring the equipment in line with a rental now holding ``status``.

        Safe to re-run for a status that was already applied.
        """
        for _ in range(MAX_CONFLICT_ROUNDS):
            outcome = self._run(
                equipment_id,
                lambda current: self._decide(rental_id, equipment_id, status, current),
                f"apply({equipment_id}, {status.value})",
            )
            if outcome is None:
                logger.info("Equipment %s changed while deriving availability; re-reading", equipment_id)
                continue
            if not outcome.written:
                logger.debug(
                    "Equipment %s left %s for rental %s -> %s: %s",
                    equipment_id,
                    outcome.availability.value,
                    rental_id,
                    status.value,
                    outcome.skipped_reason,
                )
            return outcome

        raise ConcurrencyConflictError("Equipment", equipment_id, "availability kept changing during update")

    def reconcile(self, equipment_id: str) -> EquipmentSyncOutcome:
        """Recompute availability from every rental of the equipment."""

        def decide(current: EquipmentAvailability):
            if current.is_owner_managed:
                return current, "consistent"
            if self._occupied_by_others(equipment_id, None):
                return EquipmentAvailability.RENTED, "consistent"
            return EquipmentAvailability.AVAILABLE, "consistent"

        for _ in range(MAX_CONFLICT_ROUNDS):
            outcome = self._run(equipment_id, decide, f"reconcile({equipment_id})")
            if outcome is None:
                continue
            if outcome.written:
                logger.warning("Reconciled equipment %s availability to %s", equipment_id, outcome.availability.value)
            return outcome

        raise ConcurrencyConflictError("Equipment", equipment_id, "availability kept changing during reconcile")

    def set_owner_availability(self, equipment_id: str, value: EquipmentAvailability) -> EquipmentSyncOutcome:
        """Owner/admin change of availability, restricted to owner-managed values."""
        if value == EquipmentAvailability.RENTED:
            raise ValidationError(
                "Rented is set by the rental lifecycle and cannot be chosen directly",
                field="availability",
                details={"equipment_id": equipment_id, "provided": value.value},
            )

        def decide(current: EquipmentAvailability):
            if value == EquipmentAvailability.AVAILABLE and self._occupied_by_others(equipment_id, None):
                raise ValidationError(
                    "Equipment has an active rental and cannot be marked available",
                    field="availability",
                    details={"equipment_id": equipment_id, "current": current.value},
                )
            return value, "unchanged"

        outcome = self._run(equipment_id, decide, f"set_owner_availability({equipment_id})")
        if outcome is None:
            raise ConcurrencyConflictError("Equipment", equipment_id)
        return outcome
