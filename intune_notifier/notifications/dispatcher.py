"""Routes an enrollment event to the channels selected by NOTIFICATION_TYPE.

Teams mode uses the chat channel, Email mode the email channel, and Both
attempts every channel and succeeds when at least one delivers. Senders are
called once; any retrying happens inside the channel clients.
"""

import logging
from typing import Dict, List, Optional

from .base import NotificationChannel
from ..config import NotificationMode
from ..enrollment.schemas import EnrollmentEvent

logger = logging.getLogger(__name__)


class NotificationRouter:
    """Dispatches enrollment notifications according to the configured mode."""

    def __init__(self,
                 mode: NotificationMode,
                 teams_channel: Optional[NotificationChannel],
                 email_channel: Optional[NotificationChannel]):
        self.mode = mode
        self.teams_channel = teams_channel
        self.email_channel = email_channel

    def channels(self) -> List[NotificationChannel]:
        if self.mode == NotificationMode.TEAMS:
            selected = [self.teams_channel]
        elif self.mode == NotificationMode.BOTH:
            selected = [self.teams_channel, self.email_channel]
        else:
            selected = [self.email_channel]
        return [channel for channel in selected if channel is not None]

    def _send_via(self, channel: NotificationChannel, event: EnrollmentEvent) -> bool:
        try:
            return bool(channel.send_enrollment_notification(event))
        except Exception as e:
            logger.error(f"Channel {channel.name} raised while notifying for device {event.deviceName}: {str(e)}")
            return False

    def send(self, event: EnrollmentEvent) -> bool:
        """
        Send a notification for an event on every selected channel.

        Args:
            event: The enriched enrollment event

        Returns:
            True if at least one channel delivered the notification
        """
        channels = self.channels()
        if not channels:
            logger.error(f"No notification channel available for mode {self.mode.value}")
            return False

        logger.info(f"Sending {self.mode.value} notification for device {event.deviceName}")

        results = [(channel, self._send_via(channel, event)) for channel in channels]
        delivered = any(ok for _, ok in results)

        if delivered and not all(ok for _, ok in results):
            failed = [channel.name or type(channel).__name__ for channel, ok in results if not ok]
            logger.warning(f"Notification for device {event.deviceName} delivered, but failed on: {', '.join(failed)}")
        elif not delivered:
            logger.error(f"Failed to send notification for device {event.deviceName} on any channel")

        return delivered

    def channel_status(self) -> Dict[str, str]:
        status = {}
        for channel in self.channels():
            try:
                status[channel.name] = channel.connection_status()
            except Exception as e:
                logger.error(f"Connectivity check failed for channel {channel.name}: {str(e)}")
                status[channel.name] = "Error"
        return status
