import logging
import uuid

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from rentalhub.api.routes.equipment import equipment_bp
from rentalhub.api.routes.notifications import notifications_bp
from rentalhub.api.routes.rentals import rentals_bp
from rentalhub.config import settings
from rentalhub.schemas.error import ErrorResponse
from rentalhub.utils.exceptions import RentalHubError

logger = logging.getLogger(__name__)


def _error_body(code: str, message: str, field: str = None, details: dict = None) -> dict:
    return ErrorResponse(
        error={
            "code": code,
            "message": message,
            "field": field,
            "details": details or {},
        },
        request_id=str(uuid.uuid4()),
    ).model_dump()


def register_error_handlers(app: Flask) -> None:
    """Convert exceptions to structured error responses."""

    @app.errorhandler(RentalHubError)
    def handle_rentalhub_error(e: RentalHubError):
        logger.warning(f"Rental API Error: {e.code} - {e.message}")
        return jsonify(_error_body(e.code, e.message, e.field, e.details)), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        logger.warning(f"HTTP Exception: {e.code} - {e.description}")
        body = _error_body("HTTP_EXCEPTION", e.description, details={"status_code": e.code})
        return jsonify(body), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        body = _error_body(
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred",
            details={"error_type": type(e).__name__},
        )
        return jsonify(body), 500


def create_app() -> Flask:
    logging.basicConfig(level=getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO))

    app = Flask(__name__)
    app.json.sort_keys = False

    app.register_blueprint(rentals_bp)
    app.register_blueprint(equipment_bp)
    app.register_blueprint(notifications_bp)
    register_error_handlers(app)

    CORS(
        app,
        origins=[settings.frontend_url],
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.route("/")
    def root():
        return jsonify({"message": "RentalHub Rental Lifecycle API", "version": "1.0.0"})

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy"})

    logger.info("Application created (env=%s)", settings.flask_env)
    return app
