import json
import logging
import uuid
from typing import Dict, List

import httpx

from .base import NotificationChannel
from .formatting import format_timestamp, platform_label, status_color, status_icon, user_label
from ..config import Settings, settings as default_settings
from ..enrollment.schemas import EnrollmentEvent
from ..graph.client import GraphClient, GraphError

logger = logging.getLogger(__name__)

ADAPTIVE_CARD_SCHEMA = "http://adaptivecards.io/schemas/adaptive-card.json"
ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"


def _section(title: str, text: str) -> Dict:
    visible = bool(text)
    return {
        "type": "Container",
        "items": [
            {"type": "TextBlock", "text": title, "weight": "Bolder", "size": "Medium",
             "wrap": True, "isVisible": visible},
            {"type": "TextBlock", "text": text or "", "wrap": True, "isVisible": visible},
        ]
    }


def build_adaptive_card(event: EnrollmentEvent) -> Dict:
    """
    Build the Adaptive Card posted to the Teams channel.

    Args:
        event: The enriched enrollment event

    Returns:
        Adaptive Card 1.4 dictionary
    """
    event_type = event.eventType.value
    header = {
        "type": "Container",
        "style": "emphasis",
        "items": [{
            "type": "ColumnSet",
            "columns": [
                {
                    "type": "Column",
                    "width": "auto",
                    "items": [{"type": "TextBlock", "text": status_icon(event.eventType),
                               "size": "ExtraLarge", "wrap": True}]
                },
                {
                    "type": "Column",
                    "width": "stretch",
                    "items": [
                        {"type": "TextBlock", "text": f"Device Enrollment {event_type.upper()}",
                         "weight": "Bolder", "size": "Large", "wrap": True},
                        {"type": "TextBlock", "text": event.deviceName, "weight": "Bolder",
                         "size": "Medium", "color": status_color(event.eventType), "wrap": True},
                    ]
                },
            ]
        }]
    }
    facts: List[Dict] = [
        {"title": "Status", "value": event_type},
        {"title": "Device Name", "value": event.deviceName},
        {"title": "User", "value": user_label(event)},
        {"title": "Platform", "value": platform_label(event)},
        {"title": "Timestamp", "value": format_timestamp(event.processedDateTime)},
    ]
    if event.failedPolicies:
        facts.append({"title": "Failed Policies", "value": ", ".join(event.failedPolicies)})

    return {
        "type": "AdaptiveCard",
        "$schema": ADAPTIVE_CARD_SCHEMA,
        "version": "1.4",
        "body": [
            header,
            {"type": "FactSet", "facts": facts},
            _section("Diagnostic Information", event.diagnosticInfo),
            _section("Troubleshooting Steps", event.troubleshootingSteps),
        ]
    }


def build_channel_message(event: EnrollmentEvent) -> Dict:
    """Wrap the card in a Graph chatMessage whose body references the attachment."""
    attachment_id = str(uuid.uuid4())
    return {
        "body": {
            "contentType": "html",
            "content": f'<attachment id="{attachment_id}"></attachment>'
        },
        "attachments": [{
            "id": attachment_id,
            "contentType": ADAPTIVE_CARD_CONTENT_TYPE,
            "contentUrl": None,
            "content": json.dumps(build_adaptive_card(event)),
            "name": None,
            "thumbnailUrl": None
        }]
    }


class TeamsNotificationService(NotificationChannel):
    """Posts enrollment notifications to a Teams channel through Graph."""

    name = "teams"

    def __init__(self, graph_client: GraphClient, settings: Settings = None):
        self.graph = graph_client
        self.settings = settings or default_settings

    def _channel_target(self):
        team_id = self.settings.teams_team_id
        channel_id = self.settings.teams_channel_id
        if not team_id or not channel_id:
            logger.error("Teams Team ID or Channel ID is not configured")
            return None
        return team_id, channel_id

    def send_enrollment_notification(self, event: EnrollmentEvent) -> bool:
        target = self._channel_target()
        if target is None:
            return False
        team_id, channel_id = target

        try:
            self.graph.post_channel_message(team_id, channel_id, build_channel_message(event))
            logger.info(f"Teams message sent successfully to channel {channel_id}")
            return True
        except (GraphError, httpx.HTTPError) as e:
            logger.error(f"Failed to send Teams message. TeamId: {team_id}, ChannelId: {channel_id}: {str(e)}")
            return False
        except Exception as e:
            logger.error(f"Failed to send Teams notification for device {event.deviceName}: {str(e)}")
            return False

    def test_connection(self) -> bool:
        target = self._channel_target()
        if target is None:
            return False
        team_id, channel_id = target

        try:
            channel = self.graph.get_channel(team_id, channel_id) or {}
            logger.info(f"Teams connection test successful. Channel: {channel.get('displayName')}")
            return True
        except Exception as e:
            logger.error(f"Teams connection test failed: {str(e)}")
            return False

    def connection_status(self) -> str:
        return "Teams Connected" if self.test_connection() else "Teams Disconnected"
