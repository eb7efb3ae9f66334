from .base import NotificationChannel
from .dispatcher import NotificationRouter
from .email import EmailService
from .teams import TeamsNotificationService

__all__ = [
    "NotificationChannel",
    "NotificationRouter",
    "EmailService",
    "TeamsNotificationService",
]
