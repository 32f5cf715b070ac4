from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, TypeVar

from sqlalchemy.orm import Session

from rentalhub.models.equipment import EquipmentAvailability
from rentalhub.models.rental import Rental, RentalStatus
from rentalhub.services.equipment_availability_service import (
    EquipmentAvailabilityService,
    EquipmentSyncOutcome,
)
from rentalhub.services.lifecycle_notifier import LifecycleNotifier
from rentalhub.services.lifecycle_results import (
    Conflict,
    InvalidTransition,
    LifecycleEvent,
    NoOp,
    NotFound,
    PartialFailure,
    PendingEquipmentUpdate,
    Success,
    TransitionResult,
)
from rentalhub.services.rental_state_machine import derived_availability, is_valid_transition
from rentalhub.services.rental_store import SqlRentalStore, WriteResult
from rentalhub.utils.exceptions import NotFoundError
from rentalhub.utils.locks import KeyedLockRegistry, equipment_locks, equipment_scope, rental_locks
from rentalhub.utils.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RentalLifecycleService:
    """Executes rental status transitions and keeps equipment availability in step.

    This is the only writer of the rented/available portion of
    ``Equipment.availability``.
    """

    def __init__(
        self,
        db: Session,
        store: Optional[SqlRentalStore] = None,
        notifier: Optional[LifecycleNotifier] = None,
        retry_policy: Optional[RetryPolicy] = None,
        rental_lock_registry: Optional[KeyedLockRegistry] = None,
        equipment_lock_registry: Optional[KeyedLockRegistry] = None,
    ):
        self.db = db
        self.rental_locks = rental_lock_registry or rental_locks
        self.equipment_locks = equipment_lock_registry or equipment_locks
        self.store = store or SqlRentalStore(db)
        self.notifier = notifier or LifecycleNotifier(db)
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.availability = EquipmentAvailabilityService(self.store, self.retry_policy)

    def _call(self, operation: Callable[[], T], description: str) -> T:
        return call_with_retry(operation, policy=self.retry_policy, description=description)

    def _load(self, rental_id: str) -> Optional[Rental]:
        return self._call(lambda: self.store.get_rental(rental_id), f"get_rental({rental_id})")

    def request_transition(
        self,
        rental_id: str,
        target_status,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> TransitionResult:
        """Move a rental to ``target_status``.

        Validation failures return before any write. A repeated request for
        the status the rental already holds is a NoOp, not an error.
        """
        target = RentalStatus.parse(target_status)
        rental_id = str(rental_id)

        with self.rental_locks.hold(rental_id):
            rental = self._load(rental_id)
            if rental is None:
                logger.info("Transition to %s requested for unknown rental %s", target.value, rental_id)
                return NotFound(rental_id)

            current = RentalStatus(rental.status)
            if current == target:
                return NoOp(rental)

            if not is_valid_transition(current, target):
                logger.warning(
                    "Rejected transition %s -> %s for rental %s (actor=%s)",
                    current.value,
                    target.value,
                    rental_id,
                    actor,
                )
                return InvalidTransition(current, target)

            equipment_id = str(rental.equipment_id)
            with equipment_scope(equipment_id, self.equipment_locks):
                committed = self._save_status(rental_id, target, current, actor, reason)
                if committed is not None:
                    return committed

                logger.info(
                    "Rental %s transitioned %s -> %s (actor=%s)",
                    rental_id,
                    current.value,
                    target.value,
                    actor,
                )
                pending = self._sync_equipment(rental_id, equipment_id, target)

            rental = self._load(rental_id) or rental
            event = LifecycleEvent(
                rental_id=rental_id,
                equipment_id=equipment_id,
                previous_status=current,
                new_status=target,
                timestamp=rental.updated_at or datetime.utcnow(),
                actor=actor,
                renter_id=rental.renter_id,
                owner_id=rental.owner_id,
                equipment_pending=pending is not None,
            )
            warnings = self._emit(event)

            if pending is not None:
                return PartialFailure(rental, pending, previous_status=current, warnings=warnings)
            return Success(rental, previous_status=current, warnings=warnings)

    def _save_status(
        self,
        rental_id: str,
        target: RentalStatus,
        current: RentalStatus,
        actor: Optional[str],
        reason: Optional[str],
    ) -> Optional[TransitionResult]:
        """Persist the status; returns a result only when the transition must stop."""
        result = self._call(
            lambda: self.store.save_rental_status(
                rental_id, target, expected_prior_status=current, changed_by=actor, reason=reason
            ),
            f"save_rental_status({rental_id})",
        )
        if result == WriteResult.OK:
            return None

        latest = self._load(rental_id)
        latest_status = RentalStatus(latest.status) if latest is not None else None
        if latest_status == target:
            # An earlier attempt committed before its response was lost.
            logger.info("Rental %s already holds %s; treating status write as committed", rental_id, target.value)
            return None

        logger.info(
            "Conflict on rental %s: expected %s, found %s",
            rental_id,
            current.value,
            latest_status.value if latest_status else None,
        )
        return Conflict(rental_id, expected_status=current, current_status=latest_status)

    def _sync_equipment(
        self,
        rental_id: str,
        equipment_id: str,
        status: RentalStatus,
    ) -> Optional[PendingEquipmentUpdate]:
        target = derived_availability(status)
        if target is None:
            return None
        try:
            self.availability.apply(rental_id, equipment_id, status)
        except Exception as e:
            self.db.rollback()
            logger.error(
                "Rental %s committed as %s but equipment %s was not set to %s: %s",
                rental_id,
                status.value,
                equipment_id,
                target.value,
                e,
                exc_info=True,
            )
            return PendingEquipmentUpdate(
                rental_id=rental_id,
                equipment_id=equipment_id,
                rental_status=status,
                target_availability=target,
                error=f"{type(e).__name__}: {e}",
            )
        return None

    def _emit(self, event: LifecycleEvent) -> tuple:
        try:
            delivered = self.notifier.emit(event)
        except Exception as e:
            logger.warning(f"Notifier raised for rental {event.rental_id}: {e}")
            return (f"notification failed: {e}",)
        if not delivered:
            return ("notification not delivered",)
        return ()

    def retry_equipment_update(self, pending: PendingEquipmentUpdate) -> TransitionResult:
        """Re-run only the equipment step of a PartialFailure.

        If the rental has moved on since, the derivation for its current
        status is applied instead.
        """
        rental_id = str(pending.rental_id)
        with self.rental_locks.hold(rental_id):
            rental = self._load(rental_id)
            if rental is None:
                return NotFound(rental_id)

            status = RentalStatus(rental.status)
            if status != pending.rental_status:
                logger.info(
                    "Rental %s moved from %s to %s since the failed equipment update",
                    rental_id,
                    pending.rental_status.value,
                    status.value,
                )

            equipment_id = str(rental.equipment_id)
            with equipment_scope(equipment_id, self.equipment_locks):
                still_pending = self._sync_equipment(rental_id, equipment_id, status)

            if still_pending is not None:
                return PartialFailure(rental, still_pending)

            logger.info("Equipment %s brought in line with rental %s (%s)", equipment_id, rental_id, status.value)
            return Success(rental)

    def reconcile_equipment(self, equipment_id: str) -> EquipmentSyncOutcome:
        with equipment_scope(str(equipment_id), self.equipment_locks):
            return self.availability.reconcile(str(equipment_id))

    def set_owner_availability(self, equipment_id: str, value, actor: Optional[str] = None) -> EquipmentSyncOutcome:
        availability = EquipmentAvailability.parse(value)
        with equipment_scope(str(equipment_id), self.equipment_locks):
            outcome = self.availability.set_owner_availability(str(equipment_id), availability)
        if outcome.written:
            logger.info("Equipment %s marked %s by %s", equipment_id, availability.value, actor)
        return outcome

    def get_rental(self, rental_id: str) -> Rental:
        rental = self._load(str(rental_id))
        if rental is None:
            raise NotFoundError("Rental", str(rental_id))
        return rental

    def get_history(self, rental_id: str) -> list:
        self.get_rental(rental_id)
        return self.store.list_rental_status_log(str(rental_id))
