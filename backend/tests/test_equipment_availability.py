#!/usr/bin/env python3
"""Tests for owner availability changes and reconciliation."""

import os
import sys
from datetime import date

sys.path.append(".")

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("PERSISTENCE_RETRY_BACKOFF_SECONDS", "0")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rentalhub.database import Base
from rentalhub.models.equipment import Equipment, EquipmentAvailability
from rentalhub.models.rental import Rental, RentalStatus
from rentalhub.services.equipment_availability_service import EquipmentAvailabilityService
from rentalhub.services.rental_lifecycle_service import RentalLifecycleService
from rentalhub.services.rental_store import SqlRentalStore
from rentalhub.utils.exceptions import NotFoundError, ValidationError
from rentalhub.utils.retry import RetryPolicy

NO_WAIT = RetryPolicy(attempts=2, backoff_seconds=0, max_backoff_seconds=0)


class SilentNotifier:
    def emit(self, event) -> bool:
        return True


def _make_session():
    from rentalhub import models  # noqa: F401

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _seed(db, availability: EquipmentAvailability, rental_statuses=()):
    equipment = Equipment(owner_id="owner-1", title="DJI Mavic 3", availability=availability.value)
    db.add(equipment)
    db.flush()
    for index, status in enumerate(rental_statuses):
        db.add(
            Rental(
                equipment_id=equipment.id,
                renter_id=f"renter-{index}",
                owner_id="owner-1",
                start_date=date(2026, 6, 1),
                end_date=date(2026, 6, 4),
                status=status.value,
                total_price=300,
            )
        )
    db.commit()
    return equipment.id


def _service(db) -> RentalLifecycleService:
    return RentalLifecycleService(db, notifier=SilentNotifier(), retry_policy=NO_WAIT)


def test_owner_can_set_maintenance_and_back():
    db = _make_session()
    try:
        equipment_id = _seed(db, EquipmentAvailability.AVAILABLE)
        service = _service(db)

        outcome = service.set_owner_availability(equipment_id, "maintenance", actor="owner-1")
        assert outcome.written
        assert outcome.availability == EquipmentAvailability.MAINTENANCE

        outcome = service.set_owner_availability(equipment_id, "maintenance", actor="owner-1")
        assert not outcome.written
        assert outcome.skipped_reason == "unchanged"

        outcome = service.set_owner_availability(equipment_id, EquipmentAvailability.AVAILABLE)
        assert outcome.written
        assert SqlRentalStore(db).get_equipment_availability(equipment_id) == EquipmentAvailability.AVAILABLE
        print("[PASS] owner toggles maintenance")
    finally:
        db.close()


def test_owner_cannot_choose_rented():
    db = _make_session()
    try:
        equipment_id = _seed(db, EquipmentAvailability.AVAILABLE)
        try:
            _service(db).set_owner_availability(equipment_id, "rented")
            raise AssertionError("Expected ValidationError")
        except ValidationError as exc:
            assert exc.field == "availability"
        print("[PASS] rented cannot be set by the owner")
    finally:
        db.close()


def test_owner_cannot_free_equipment_under_rental():
    db = _make_session()
    try:
        equipment_id = _seed(db, EquipmentAvailability.RENTED, [RentalStatus.IN_PROGRESS])
        try:
            _service(db).set_owner_availability(equipment_id, "available")
            raise AssertionError("Expected ValidationError")
        except ValidationError as exc:
            assert exc.details["current"] == "rented"
        assert SqlRentalStore(db).get_equipment_availability(equipment_id) == EquipmentAvailability.RENTED
        print("[PASS] available is refused while a rental occupies the equipment")
    finally:
        db.close()


def test_unknown_equipment_and_value():
    db = _make_session()
    try:
        service = _service(db)
        try:
            service.set_owner_availability("missing", "maintenance")
            raise AssertionError("Expected NotFoundError")
        except NotFoundError as exc:
            assert exc.status_code == 404

        try:
            service.set_owner_availability("missing", "broken")
            raise AssertionError("Expected ValidationError")
        except ValidationError as exc:
            assert exc.field == "availability"
        print("[PASS] unknown equipment and values are rejected")
    finally:
        db.close()


def test_reconcile_repairs_drift():
    db = _make_session()
    try:
        service = _service(db)
        store = SqlRentalStore(db)

        stale_free = _seed(db, EquipmentAvailability.AVAILABLE, [RentalStatus.CONFIRMED])
        outcome = service.reconcile_equipment(stale_free)
        assert outcome.written
        assert store.get_equipment_availability(stale_free) == EquipmentAvailability.RENTED

        stale_rented = _seed(db, EquipmentAvailability.RENTED, [RentalStatus.COMPLETED, RentalStatus.CANCELLED])
        outcome = service.reconcile_equipment(stale_rented)
        assert outcome.written
        assert store.get_equipment_availability(stale_rented) == EquipmentAvailability.AVAILABLE

        in_maintenance = _seed(db, EquipmentAvailability.MAINTENANCE, [RentalStatus.COMPLETED])
        outcome = service.reconcile_equipment(in_maintenance)
        assert not outcome.written
        assert outcome.skipped_reason == "consistent"
        assert store.get_equipment_availability(in_maintenance) == EquipmentAvailability.MAINTENANCE
        print("[PASS] reconcile restores availability from rentals")
    finally:
        db.close()


def test_pending_rental_has_no_equipment_effect():
    db = _make_session()
    try:
        equipment_id = _seed(db, EquipmentAvailability.AVAILABLE)
        availability = EquipmentAvailabilityService(SqlRentalStore(db), NO_WAIT)

        outcome = availability.apply(None, equipment_id, RentalStatus.PENDING)
        assert not outcome.written
        assert outcome.availability == EquipmentAvailability.AVAILABLE
        assert "no equipment effect" in outcome.skipped_reason
        print("[PASS] pending leaves equipment untouched")
    finally:
        db.close()


if __name__ == "__main__":
    print("Running equipment availability tests...")
    print()

    test_owner_can_set_maintenance_and_back()
    test_owner_cannot_choose_rented()
    test_owner_cannot_free_equipment_under_rental()
    test_unknown_equipment_and_value()
    test_reconcile_repairs_drift()
    test_pending_rental_has_no_equipment_effect()

    print()
    print("[SUCCESS] All equipment availability tests passed!")
