import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from rentalhub.database import Base
from rentalhub.utils.exceptions import ValidationError


class RentalStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELIVERING = "delivering"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def display_name(self) -> str:
        return {
            "pending": "Pending",
            "confirmed": "Confirmed",
            "delivering": "Delivering",
            "in_progress": "In Progress",
            "completed": "Completed",
            "cancelled": "Cancelled",
        }.get(self.value, self.value)

    @property
    def is_terminal(self) -> bool:
        return self in (RentalStatus.COMPLETED, RentalStatus.CANCELLED)

    @classmethod
    def parse(cls, value) -> "RentalStatus":
        """Resolve a canonical value or a legacy screen alias to a status.

        Older admin/owner screens wrote "approved", "rejected" and "in_use".
        """
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        raw = LEGACY_STATUS_ALIASES.get(raw, raw)
        try:
            return cls(raw)
        except ValueError:
            allowed = [s.value for s in cls]
            raise ValidationError(
                f"Rental status must be one of: {allowed}",
                field="status",
                details={"allowed": allowed, "provided": value},
            )


LEGACY_STATUS_ALIASES = {
    "approved": RentalStatus.CONFIRMED.value,
    "rejected": RentalStatus.CANCELLED.value,
    "in_use": RentalStatus.IN_PROGRESS.value,
}


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    COD = "cod"

    @property
    def display_name(self) -> str:
        return {
            "unpaid": "Unpaid",
            "paid": "Paid",
            "cod": "Cash on Delivery",
        }.get(self.value, self.value)


class Rental(Base):
    __tablename__ = "rentals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    equipment_id = Column(String(36), ForeignKey("equipment.id"), nullable=False, index=True)
    renter_id = Column(String(36), nullable=False, index=True)
    owner_id = Column(String(36), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=RentalStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    total_price = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    equipment = relationship("Equipment", back_populates="rentals")
    status_logs = relationship(
        "RentalStatusLog",
        back_populates="rental",
        cascade="all, delete-orphan",
        order_by="RentalStatusLog.timestamp",
    )

    @property
    def rental_status(self) -> RentalStatus:
        return RentalStatus(self.status)
