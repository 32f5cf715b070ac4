"""
Lifecycle event notifications.

Stores in-app notifications for the renter and the owner and optionally
relays the event to an outbound webhook (email / push relay). Emitting is
fire-and-forget: failures are logged and reported as False, never raised.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

import httpx
from sqlalchemy.orm import Session

from rentalhub.config import settings
from rentalhub.models.notification import Notification, NotificationStatus
from rentalhub.services.lifecycle_results import LifecycleEvent
from rentalhub.utils.exceptions import ExternalServiceError, NotFoundError

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE_RENTAL_STATUS = "rental_status"


class LifecycleNotifier:
    def __init__(
        self,
        db: Session,
        webhook_url: Optional[str] = None,
        enabled: Optional[bool] = None,
        timeout: Optional[float] = None,
        client_factory: Callable[..., httpx.Client] = httpx.Client,
    ):
        self.db = db
        self.webhook_url = webhook_url if webhook_url is not None else settings.notification_webhook_url
        self.enabled = settings.notifications_enabled if enabled is None else enabled
        self.timeout = timeout if timeout is not None else settings.notification_webhook_timeout_seconds
        self.client_factory = client_factory

    def emit(self, event: LifecycleEvent) -> bool:
        """Record and relay a lifecycle event. Returns True when fully delivered."""
        if not self.enabled:
            logger.info(
                "Notifications disabled; dropping %s -> %s for rental %s",
                event.previous_status.value,
                event.new_status.value,
                event.rental_id,
            )
            return False

        try:
            notifications = self._store_notifications(event)
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Failed to store notifications for rental {event.rental_id}: {e}")
            return False

        if not self.webhook_url:
            return True

        try:
            self._post_webhook(event)
        except Exception as e:
            logger.warning(f"Notification webhook failed for rental {event.rental_id}: {e}")
            self._mark(notifications, NotificationStatus.FAILED, error=str(e))
            return False

        return self._mark(notifications, NotificationStatus.SENT)

    def _store_notifications(self, event: LifecycleEvent) -> List[Notification]:
        # Without a relay the in-app record is the delivery.
        initial_status = NotificationStatus.PENDING if self.webhook_url else NotificationStatus.SENT
        now = datetime.utcnow()

        notifications = []
        for user_id, title, message in self._build_messages(event):
            notification = Notification(
                user_id=user_id,
                rental_id=event.rental_id,
                notification_type=NOTIFICATION_TYPE_RENTAL_STATUS,
                title=title,
                message=message,
                status=initial_status.value,
                sent_at=now if initial_status == NotificationStatus.SENT else None,
                created_at=now,
            )
            self.db.add(notification)
            notifications.append(notification)

        self.db.commit()
        return notifications

    def _build_messages(self, event: LifecycleEvent) -> List[tuple]:
        status_text = event.new_status.display_name
        previous_text = event.previous_status.display_name
        messages = []
        if event.renter_id:
            messages.append(
                (
                    event.renter_id,
                    f"Rental {status_text}",
                    f"Your rental {event.rental_id} changed from {previous_text} to {status_text}.",
                )
            )
        if event.owner_id and event.owner_id != event.renter_id:
            messages.append(
                (
                    event.owner_id,
                    f"Rental {status_text}",
                    f"Rental {event.rental_id} of your equipment changed from {previous_text} to {status_text}.",
                )
            )
        return messages

    def _post_webhook(self, event: LifecycleEvent) -> None:
        payload = {"type": NOTIFICATION_TYPE_RENTAL_STATUS, "event": event.to_dict()}
        try:
            with self.client_factory(timeout=self.timeout) as client:
                response = client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalServiceError("notification webhook", "post", str(e)) from e

    def _mark(self, notifications: List[Notification], status: NotificationStatus, error: Optional[str] = None) -> bool:
        try:
            for notification in notifications:
                notification.status = status.value
                notification.error_message = error
                if status == NotificationStatus.SENT:
                    notification.sent_at = datetime.utcnow()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Failed to update notification status: {e}")
            return False
        return status == NotificationStatus.SENT

    def list_for_user(self, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == str(user_id))
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query.order_by(Notification.created_at.desc()).limit(limit).all()

    def mark_read(self, notification_id: str) -> Notification:
        notification = self.db.query(Notification).filter(Notification.id == str(notification_id)).first()
        if not notification:
            raise NotFoundError("Notification", notification_id)
        notification.read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification
