from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from rentalhub.models.equipment import EquipmentAvailability
from rentalhub.models.rental import PaymentStatus, RentalStatus
from rentalhub.utils.exceptions import RentalHubError


def _strip_or_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    normalized = v.strip()
    return normalized or None


class TransitionRequest(BaseModel):
    status: str
    actor: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        # Legacy screen aliases resolve to canonical values here.
        try:
            return RentalStatus.parse(v).value
        except RentalHubError as exc:
            raise ValueError(exc.message)

    @field_validator("actor", "reason")
    @classmethod
    def validate_optional_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)


class CreateRentalRequest(BaseModel):
    equipment_id: str
    renter_id: str
    start_date: date
    end_date: date
    total_price: Decimal = Field(gt=0)
    payment_status: PaymentStatus = PaymentStatus.UNPAID

    @model_validator(mode="after")
    def validate_date_range(self) -> "CreateRentalRequest":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class OwnerAvailabilityRequest(BaseModel):
    availability: EquipmentAvailability
    actor: Optional[str] = None

    @field_validator("actor")
    @classmethod
    def validate_actor(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)


class RentalResponse(BaseModel):
    id: str
    equipment_id: str
    renter_id: str
    owner_id: str
    start_date: date
    end_date: date
    status: RentalStatus
    payment_status: PaymentStatus
    total_price: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RentalStatusLogResponse(BaseModel):
    id: str
    rental_id: str
    changed_by: Optional[str] = None
    from_status: Optional[str] = None
    to_status: str
    reason: Optional[str] = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class RentalHistoryResponse(BaseModel):
    rental_id: str
    entries: List[RentalStatusLogResponse] = Field(default_factory=list)


class PendingEquipmentUpdateResponse(BaseModel):
    rental_id: str
    equipment_id: str
    rental_status: RentalStatus
    target_availability: EquipmentAvailability
    error: str


class TransitionResponse(BaseModel):
    outcome: str
    rental: RentalResponse
    previous_status: Optional[RentalStatus] = None
    pending_equipment_update: Optional[PendingEquipmentUpdateResponse] = None
    warnings: List[str] = Field(default_factory=list)


class EquipmentAvailabilityResponse(BaseModel):
    equipment_id: str
    availability: EquipmentAvailability
    label: str
    written: bool = False
    skipped_reason: Optional[str] = None


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    rental_id: Optional[str] = None
    notification_type: str
    title: str
    message: Optional[str] = None
    read: bool
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
