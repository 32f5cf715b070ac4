from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.orm import Session

from rentalhub.models.equipment import Equipment
from rentalhub.models.rental import PaymentStatus, Rental, RentalStatus
from rentalhub.utils.exceptions import NotFoundError, ValidationError


class RentalBookingService:
    """Creates rental requests in the pending state.

    No equipment write happens here; availability only changes once the
    rental is confirmed through the lifecycle service.
    """

    def __init__(self, db: Session):
        self.db = db

    def _validate_dates(self, start_date: date, end_date: date) -> None:
        if not start_date or not end_date:
            raise ValidationError("Start and end dates are required", field="start_date")
        if end_date <= start_date:
            raise ValidationError(
                "End date must be after start date",
                field="end_date",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )

    def _validate_price(self, total_price) -> Decimal:
        try:
            price = Decimal(str(total_price))
        except (InvalidOperation, ValueError):
            raise ValidationError("Total price must be a number", field="total_price", details={"provided": total_price})
        if not price.is_finite() or price <= 0:
            raise ValidationError("Total price must be positive", field="total_price", details={"provided": str(total_price)})
        return price

    def _validate_payment_status(self, payment_status) -> str:
        try:
            return PaymentStatus(str(payment_status or "").strip().lower()).value
        except ValueError:
            allowed = [p.value for p in PaymentStatus]
            raise ValidationError(
                f"Payment status must be one of: {allowed}",
                field="payment_status",
                details={"allowed": allowed, "provided": payment_status},
            )

    def create_rental(
        self,
        equipment_id: str,
        renter_id: str,
        start_date: date,
        end_date: date,
        total_price,
        payment_status: Optional[str] = PaymentStatus.UNPAID.value,
    ) -> Rental:
        self._validate_dates(start_date, end_date)
        price = self._validate_price(total_price)
        payment = self._validate_payment_status(payment_status)

        renter_norm = (renter_id or "").strip()
        if not renter_norm:
            raise ValidationError("Renter is required", field="renter_id")

        equipment = self.db.query(Equipment).filter(Equipment.id == str(equipment_id)).first()
        if not equipment:
            raise NotFoundError("Equipment", str(equipment_id))

        if equipment.owner_id == renter_norm:
            raise ValidationError(
                "Owners cannot rent their own equipment",
                field="renter_id",
                details={"equipment_id": equipment.id},
            )

        now = datetime.utcnow()
        rental = Rental(
            equipment_id=equipment.id,
            renter_id=renter_norm,
            owner_id=equipment.owner_id,
            start_date=start_date,
            end_date=end_date,
            status=RentalStatus.PENDING.value,
            payment_status=payment,
            total_price=price,
            created_at=now,
            updated_at=now,
        )
        self.db.add(rental)
        self.db.commit()
        self.db.refresh(rental)
        return rental
