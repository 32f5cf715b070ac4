import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Numeric, String, Text
from sqlalchemy.orm import relationship

from rentalhub.database import Base
from rentalhub.utils.exceptions import ValidationError


class EquipmentAvailability(str, enum.Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    UNAVAILABLE = "unavailable"

    @property
    def display_name(self) -> str:
        return {
            "available": "Available",
            "rented": "Rented",
            "maintenance": "Under Maintenance",
            "unavailable": "Unavailable",
        }.get(self.value, self.value)

    @property
    def is_owner_managed(self) -> bool:
        """Owner-set states the lifecycle never replaces."""
        return self in (EquipmentAvailability.MAINTENANCE, EquipmentAvailability.UNAVAILABLE)

    @classmethod
    def parse(cls, value) -> "EquipmentAvailability":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        try:
            return cls(raw)
        except ValueError:
            allowed = [a.value for a in cls]
            raise ValidationError(
                f"Equipment availability must be one of: {allowed}",
                field="availability",
                details={"allowed": allowed, "provided": value},
            )


class Equipment(Base):
    __tablename__ = "equipment"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price_per_day = Column(Numeric(12, 2), nullable=True)
    availability = Column(
        String(20), nullable=False, default=EquipmentAvailability.AVAILABLE.value, index=True
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    rentals = relationship("Rental", back_populates="equipment")
