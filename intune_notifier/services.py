import logging

from .config import Settings, settings as default_settings
from .enrollment.processor import EnrollmentEventProcessor
from .graph.client import GraphClient
from .notifications.base import NotificationChannel
from .notifications.dispatcher import NotificationRouter
from .notifications.email import EmailService
from .notifications.teams import TeamsNotificationService

logger = logging.getLogger(__name__)


class NotifierServices:
    """Wires the Graph client, channels, router and processor for one process."""

    def __init__(self,
                 settings: Settings = None,
                 graph_client: GraphClient = None,
                 teams_channel: NotificationChannel = None,
                 email_channel: NotificationChannel = None):
        self.settings = settings or default_settings
        self.graph_client = graph_client or GraphClient(self.settings)
        self.teams_channel = teams_channel or TeamsNotificationService(self.graph_client, self.settings)
        self.email_channel = email_channel or EmailService(self.settings)
        self.router = NotificationRouter(self.settings.notification_type, self.teams_channel, self.email_channel)
        self.processor = EnrollmentEventProcessor(self.graph_client, self.router, self.settings)
        logger.info(f"Notifier services initialized with {self.settings.notification_type.value} notifications")
