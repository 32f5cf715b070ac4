class RentalHubError(Exception):
    """Base exception for rental API errors"""
    def __init__(self, code: str, message: str, status_code: int = 400, field: str = None, details: dict = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.field = field
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(RentalHubError):
    def __init__(self, message: str, field: str = None, details: dict = None):
        super().__init__("VALIDATION_ERROR", message, 400, field, details)


class NotFoundError(RentalHubError):
    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__("NOT_FOUND", message, 404, details={"resource": resource, "resource_id": resource_id})


class StatusTransitionError(RentalHubError):
    def __init__(self, current_status: str, requested_status: str, reason: str = None):
        message = f"Invalid status transition from {current_status} to {requested_status}"
        if reason:
            message += f": {reason}"
        super().__init__(
            "INVALID_STATUS_TRANSITION",
            message,
            409,
            details={"current_status": current_status, "requested_status": requested_status}
        )


class ConcurrencyConflictError(RentalHubError):
    def __init__(self, resource: str, resource_id: str, reason: str = None):
        message = f"{resource} {resource_id} was modified by another request"
        if reason:
            message += f": {reason}"
        super().__init__(
            "CONFLICT",
            message,
            409,
            details={"resource": resource, "resource_id": resource_id}
        )


class ExternalServiceError(RentalHubError):
    def __init__(self, service_name: str, operation: str, reason: str = None):
        message = f"External service error: {service_name} {operation}"
        if reason:
            message += f": {reason}"
        super().__init__(
            "EXTERNAL_SERVICE_ERROR",
            message,
            502,
            details={"service": service_name, "operation": operation}
        )
