from flask import Blueprint, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from rentalhub.database import get_db
from rentalhub.schemas.rental import EquipmentAvailabilityResponse, OwnerAvailabilityRequest
from rentalhub.services.equipment_availability_service import EquipmentSyncOutcome
from rentalhub.services.rental_lifecycle_service import RentalLifecycleService
from rentalhub.services.rental_store import SqlRentalStore
from rentalhub.utils.exceptions import NotFoundError, ValidationError


equipment_bp = Blueprint("equipment", __name__, url_prefix="/api/equipment")


def _outcome_response(outcome: EquipmentSyncOutcome):
    response = EquipmentAvailabilityResponse(
        equipment_id=outcome.equipment_id,
        availability=outcome.availability,
        label=outcome.availability.display_name,
        written=outcome.written,
        skipped_reason=outcome.skipped_reason,
    )
    return jsonify(response.model_dump(mode="json"))


@equipment_bp.route("/<equipment_id>/availability", methods=["GET"])
def get_availability(equipment_id: str):
    with get_db() as db:
        availability = SqlRentalStore(db).get_equipment_availability(equipment_id)
        if availability is None:
            raise NotFoundError("Equipment", equipment_id)
        return _outcome_response(EquipmentSyncOutcome(equipment_id, availability, written=False))


@equipment_bp.route("/<equipment_id>/availability", methods=["PUT"])
def set_availability(equipment_id: str):
    """Owner-managed availability changes (maintenance, unavailable, available)."""
    data = request.get_json() or {}
    try:
        req = OwnerAvailabilityRequest(**data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid availability request", details={"errors": exc.errors(include_context=False)})

    with get_db() as db:
        outcome = RentalLifecycleService(db).set_owner_availability(equipment_id, req.availability, actor=req.actor)
        return _outcome_response(outcome)


@equipment_bp.route("/<equipment_id>/reconcile", methods=["POST"])
def reconcile_availability(equipment_id: str):
    with get_db() as db:
        outcome = RentalLifecycleService(db).reconcile_equipment(equipment_id)
        return _outcome_response(outcome)
