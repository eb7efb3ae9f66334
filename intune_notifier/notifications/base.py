"""Channel interface shared by the Teams and email senders."""

from abc import ABC, abstractmethod

from ..enrollment.schemas import EnrollmentEvent


class NotificationChannel(ABC):
    """Abstract interface for enrollment notification senders."""

    name: str = ""

    @abstractmethod
    def send_enrollment_notification(self, event: EnrollmentEvent) -> bool:
        """Deliver a notification for one event.

        Returns:
            True when the provider accepted the message. Senders log and
            return False instead of raising.
        """
        ...

    @abstractmethod
    def connection_status(self) -> str:
        """Human-readable connectivity for the health endpoint."""
        ...
