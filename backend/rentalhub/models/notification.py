import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String, Text

from rentalhub.database import Base


class NotificationStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    rental_id = Column(String(36), nullable=True, index=True)
    notification_type = Column(String(50), nullable=False, default="rental_status", index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=NotificationStatus.PENDING.value, index=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
