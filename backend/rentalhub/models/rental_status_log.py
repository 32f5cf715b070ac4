import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from rentalhub.database import Base


class RentalStatusLog(Base):
    """Audit trail of rental status changes, written with the status update."""
    __tablename__ = "rental_status_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    rental_id = Column(String(36), ForeignKey("rentals.id"), nullable=False, index=True)
    changed_by = Column(String(255), nullable=True)  # actor identifier
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=False)
    reason = Column(Text, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    rental = relationship("Rental", back_populates="status_logs")
