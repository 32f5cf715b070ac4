from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from rentalhub.models.equipment import Equipment, EquipmentAvailability
from rentalhub.models.rental import Rental, RentalStatus
from rentalhub.models.rental_status_log import RentalStatusLog
from rentalhub.services.rental_state_machine import OCCUPYING_STATUSES
from rentalhub.utils.locks import get_dialect_name

logger = logging.getLogger(__name__)


class WriteResult(str, enum.Enum):
    OK = "ok"
    CONFLICT = "conflict"


class SqlRentalStore:
    """Persistence collaborator for the rental lifecycle.

    Status and availability writes are conditional on the value the caller
    read, so a concurrent writer turns the second write into CONFLICT.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_rental(self, rental_id: str) -> Optional[Rental]:
        rental = self.db.query(Rental).filter(Rental.id == str(rental_id)).first()
        if rental is not None:
            # Another session may have committed since this one last looked.
            self.db.refresh(rental)
        return rental

    def save_rental_status(
        self,
        rental_id: str,
        status: RentalStatus,
        expected_prior_status: RentalStatus,
        changed_by: Optional[str] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WriteResult:
        """Write the new status and its audit row in one transaction."""
        timestamp = now or datetime.utcnow()
        try:
            result = self.db.execute(
                update(Rental)
                .where(Rental.id == str(rental_id), Rental.status == expected_prior_status.value)
                .values(status=status.value, updated_at=timestamp)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                return WriteResult.CONFLICT

            self.db.add(
                RentalStatusLog(
                    rental_id=str(rental_id),
                    changed_by=changed_by,
                    from_status=expected_prior_status.value,
                    to_status=status.value,
                    reason=reason,
                    timestamp=timestamp,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return WriteResult.OK

    def count_occupying_rentals(self, equipment_id: str, excluding_rental_id: Optional[str] = None) -> int:
        query = self.db.query(func.count(Rental.id)).filter(
            Rental.equipment_id == str(equipment_id),
            Rental.status.in_([status.value for status in OCCUPYING_STATUSES]),
        )
        if excluding_rental_id is not None:
            query = query.filter(Rental.id != str(excluding_rental_id))
        return int(query.scalar() or 0)

    def lock_equipment(self, equipment_id: str) -> Optional[EquipmentAvailability]:
        """Lock the equipment row until the current transaction ends and read it.

        Sibling counts taken after this call see every rental status committed
        before the lock was granted, so the count and the following
        ``set_equipment_availability`` form one consistent round. End the round
        with that write or with ``release_equipment``.
        """
        if get_dialect_name(self.db) == "sqlite":
            # No row locks in SQLite; a write holds the database write lock until commit.
            self.db.execute(
                update(Equipment)
                .where(Equipment.id == str(equipment_id))
                .values(availability=Equipment.availability)
                .execution_options(synchronize_session=False)
            )
        value = (
            self.db.query(Equipment.availability)
            .filter(Equipment.id == str(equipment_id))
            .with_for_update()
            .scalar()
        )
        if value is None:
            return None
        return EquipmentAvailability(value)

    def release_equipment(self) -> None:
        self.db.rollback()

    def get_equipment_availability(self, equipment_id: str) -> Optional[EquipmentAvailability]:
        value = (
            self.db.query(Equipment.availability)
            .filter(Equipment.id == str(equipment_id))
            .scalar()
        )
        if value is None:
            return None
        return EquipmentAvailability(value)

    def set_equipment_availability(
        self,
        equipment_id: str,
        value: EquipmentAvailability,
        expected_prior_value: EquipmentAvailability,
    ) -> WriteResult:
        try:
            result = self.db.execute(
                update(Equipment)
                .where(
                    Equipment.id == str(equipment_id),
                    Equipment.availability == expected_prior_value.value,
                )
                .values(availability=value.value, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                return WriteResult.CONFLICT
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return WriteResult.OK

    def list_rental_status_log(self, rental_id: str) -> List[RentalStatusLog]:
        return (
            self.db.query(RentalStatusLog)
            .filter(RentalStatusLog.rental_id == str(rental_id))
            .order_by(RentalStatusLog.timestamp.asc())
            .all()
        )
