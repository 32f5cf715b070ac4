from rentalhub.models.equipment import Equipment, EquipmentAvailability
from rentalhub.models.rental import PaymentStatus, Rental, RentalStatus
from rentalhub.models.rental_status_log import RentalStatusLog
from rentalhub.models.notification import Notification, NotificationStatus

__all__ = [
    "Equipment",
    "EquipmentAvailability",
    "Rental",
    "RentalStatus",
    "PaymentStatus",
    "RentalStatusLog",
    "Notification",
    "NotificationStatus",
]
