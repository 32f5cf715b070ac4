from flask import Blueprint, jsonify, request

from rentalhub.database import get_db
from rentalhub.schemas.rental import NotificationResponse
from rentalhub.services.lifecycle_notifier import LifecycleNotifier


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.route("/users/<user_id>", methods=["GET"])
def list_notifications(user_id: str):
    unread_only = (request.args.get("unread") or "").strip().lower() in ("true", "1", "yes")
    limit = request.args.get("limit", type=int) or 50
    limit = max(1, min(limit, 200))

    with get_db() as db:
        notifications = LifecycleNotifier(db).list_for_user(user_id, unread_only=unread_only, limit=limit)
        return jsonify([NotificationResponse.model_validate(n).model_dump(mode="json") for n in notifications])


@notifications_bp.route("/<notification_id>/read", methods=["POST"])
def mark_notification_read(notification_id: str):
    with get_db() as db:
        notification = LifecycleNotifier(db).mark_read(notification_id)
        return jsonify(NotificationResponse.model_validate(notification).model_dump(mode="json"))
