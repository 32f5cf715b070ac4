from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from rentalhub.config import settings
from rentalhub.database import get_db
from rentalhub.schemas.rental import (
    CreateRentalRequest,
    PendingEquipmentUpdateResponse,
    RentalHistoryResponse,
    RentalResponse,
    RentalStatusLogResponse,
    TransitionRequest,
    TransitionResponse,
)
from rentalhub.services.background_tasks import schedule_equipment_sync
from rentalhub.services.lifecycle_results import (
    Conflict,
    InvalidTransition,
    NotFound,
    PartialFailure,
    PendingEquipmentUpdate,
    TransitionResult,
)
from rentalhub.services.rental_booking_service import RentalBookingService
from rentalhub.services.rental_lifecycle_service import RentalLifecycleService
from rentalhub.services.rental_state_machine import derived_availability, describe_lifecycle
from rentalhub.models.rental import RentalStatus
from rentalhub.utils.exceptions import (
    ConcurrencyConflictError,
    NotFoundError,
    StatusTransitionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

rentals_bp = Blueprint("rentals", __name__, url_prefix="/api/rentals")


def _result_response(result: TransitionResult):
    """Translate a transition outcome into an HTTP response."""
    if isinstance(result, NotFound):
        raise NotFoundError("Rental", result.rental_id)
    if isinstance(result, InvalidTransition):
        raise StatusTransitionError(result.from_status.value, result.to_status.value)
    if isinstance(result, Conflict):
        raise ConcurrencyConflictError(
            "Rental",
            result.rental_id,
            f"expected {result.expected_status.value}, "
            f"found {result.current_status.value if result.current_status else 'nothing'}; reload and retry",
        )

    pending = None
    status_code = 200
    if isinstance(result, PartialFailure):
        pending = PendingEquipmentUpdateResponse(**result.pending_equipment_update.to_dict())
        status_code = 207
        if settings.equipment_sync_background_retry:
            schedule_equipment_sync(result.pending_equipment_update)

    response = TransitionResponse(
        outcome=result.outcome,
        rental=RentalResponse.model_validate(result.rental),
        previous_status=getattr(result, "previous_status", None),
        pending_equipment_update=pending,
        warnings=list(result.warnings),
    )
    return jsonify(response.model_dump(mode="json")), status_code


@rentals_bp.route("/statuses", methods=["GET"])
def get_status_vocabulary():
    return jsonify(describe_lifecycle())


@rentals_bp.route("", methods=["POST"])
def create_rental():
    data = request.get_json() or {}
    try:
        req = CreateRentalRequest(**data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid rental request", details={"errors": exc.errors(include_context=False)})

    with get_db() as db:
        rental = RentalBookingService(db).create_rental(
            equipment_id=req.equipment_id,
            renter_id=req.renter_id,
            start_date=req.start_date,
            end_date=req.end_date,
            total_price=req.total_price,
            payment_status=req.payment_status.value,
        )
        response = RentalResponse.model_validate(rental)
        return jsonify(response.model_dump(mode="json")), 201


@rentals_bp.route("/<rental_id>", methods=["GET"])
def get_rental(rental_id: str):
    with get_db() as db:
        rental = RentalLifecycleService(db).get_rental(rental_id)
        return jsonify(RentalResponse.model_validate(rental).model_dump(mode="json"))


@rentals_bp.route("/<rental_id>/history", methods=["GET"])
def get_rental_history(rental_id: str):
    with get_db() as db:
        entries = RentalLifecycleService(db).get_history(rental_id)
        response = RentalHistoryResponse(
            rental_id=rental_id,
            entries=[RentalStatusLogResponse.model_validate(e) for e in entries],
        )
        return jsonify(response.model_dump(mode="json"))


@rentals_bp.route("/<rental_id>/transition", methods=["POST"])
def transition_rental(rental_id: str):
    data = request.get_json() or {}
    try:
        req = TransitionRequest(**data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid transition request", details={"errors": exc.errors(include_context=False)})

    with get_db() as db:
        service = RentalLifecycleService(db)
        result = service.request_transition(rental_id, req.status, actor=req.actor, reason=req.reason)
        return _result_response(result)


@rentals_bp.route("/<rental_id>/equipment-sync", methods=["POST"])
def sync_rental_equipment(rental_id: str):
    """Retry the equipment step for a rental whose last transition partially failed."""
    with get_db() as db:
        service = RentalLifecycleService(db)
        rental = service.get_rental(rental_id)
        status = RentalStatus(rental.status)
        target = derived_availability(status)
        if target is None:
            raise ValidationError(
                f"Rental status {status.value} has no equipment effect",
                field="status",
                details={"rental_id": rental_id},
            )

        pending = PendingEquipmentUpdate(
            rental_id=rental.id,
            equipment_id=rental.equipment_id,
            rental_status=status,
            target_availability=target,
            error="manual retry",
        )
        result = service.retry_equipment_update(pending)
        if isinstance(result, PartialFailure):
            # Already a retry; report without scheduling another one.
            response = TransitionResponse(
                outcome=result.outcome,
                rental=RentalResponse.model_validate(result.rental),
                pending_equipment_update=PendingEquipmentUpdateResponse(**result.pending_equipment_update.to_dict()),
            )
            return jsonify(response.model_dump(mode="json")), 207
        return _result_response(result)
