#!/usr/bin/env python3
"""Tests for creating rental requests"""

import os
import sys
from datetime import date
from decimal import Decimal
sys.path.append('.')

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rentalhub.database import Base
from rentalhub.models.equipment import Equipment, EquipmentAvailability
from rentalhub.services.rental_booking_service import RentalBookingService
from rentalhub.utils.exceptions import NotFoundError, ValidationError


def _make_session():
    from rentalhub import models  # noqa: F401

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _seed_equipment(db):
    equipment = Equipment(owner_id="owner-1", title="Sony A7 IV")
    db.add(equipment)
    db.commit()
    return equipment.id


def _expect_validation_error(callable_, field):
    try:
        callable_()
        assert False, "Should have raised ValidationError"
    except ValidationError as e:
        assert e.field == field, e.field


def test_create_rental_starts_pending():
    """Test that a new rental is pending and leaves equipment available"""
    db = _make_session()
    try:
        equipment_id = _seed_equipment(db)
        rental = RentalBookingService(db).create_rental(
            equipment_id, " renter-1 ", date(2026, 7, 1), date(2026, 7, 5), "600.00", payment_status="COD"
        )

        assert rental.status == "pending"
        assert rental.renter_id == "renter-1"
        assert rental.owner_id == "owner-1"
        assert rental.payment_status == "cod"
        assert Decimal(rental.total_price) == Decimal("600.00")

        equipment = db.query(Equipment).filter(Equipment.id == equipment_id).one()
        assert equipment.availability == EquipmentAvailability.AVAILABLE.value
        print("[PASS] create rental test passed")
    finally:
        db.close()


def test_create_rental_validation():
    """Test rejected booking input"""
    db = _make_session()
    try:
        equipment_id = _seed_equipment(db)
        service = RentalBookingService(db)
        start, end = date(2026, 7, 1), date(2026, 7, 5)

        _expect_validation_error(lambda: service.create_rental(equipment_id, "renter-1", end, start, 100), "end_date")
        _expect_validation_error(lambda: service.create_rental(equipment_id, "renter-1", start, start, 100), "end_date")
        _expect_validation_error(lambda: service.create_rental(equipment_id, "renter-1", start, end, 0), "total_price")
        _expect_validation_error(lambda: service.create_rental(equipment_id, "renter-1", start, end, "abc"), "total_price")
        _expect_validation_error(lambda: service.create_rental(equipment_id, "renter-1", start, end, "NaN"), "total_price")
        _expect_validation_error(
            lambda: service.create_rental(equipment_id, "renter-1", start, end, 100, payment_status="card"),
            "payment_status",
        )
        _expect_validation_error(lambda: service.create_rental(equipment_id, "  ", start, end, 100), "renter_id")
        _expect_validation_error(lambda: service.create_rental(equipment_id, "owner-1", start, end, 100), "renter_id")

        try:
            service.create_rental("missing", "renter-1", start, end, 100)
            assert False, "Should have raised NotFoundError"
        except NotFoundError as e:
            assert e.details["resource"] == "Equipment"
        print("[PASS] create rental validation test passed")
    finally:
        db.close()


if __name__ == "__main__":
    print("Running rental booking tests...")
    print()

    test_create_rental_starts_pending()
    test_create_rental_validation()

    print()
    print("[SUCCESS] All rental booking tests passed!")
