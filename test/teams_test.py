import json
import re
from datetime import datetime, timezone

import httpx
import pytest

from intune_notifier.enrollment.schemas import EnrollmentEvent, EventType
from intune_notifier.graph.client import GraphError
from intune_notifier.notifications.teams import (
    TeamsNotificationService,
    build_adaptive_card,
    build_channel_message,
)


class RecordingGraph:
    def __init__(self, error=None):
        self.error = error
        self.messages = []

    def post_channel_message(self, team_id, channel_id, message):
        if self.error:
            raise self.error
        self.messages.append((team_id, channel_id, message))
        return {"id": "message-1"}

    def get_channel(self, team_id, channel_id):
        if self.error:
            raise self.error
        return {"id": channel_id, "displayName": "Device Alerts"}


@pytest.fixture
def event():
    return EnrollmentEvent(
        id="device-1",
        deviceName="LAPTOP-042",
        userDisplayName="Jordan Lee",
        userPrincipalName="jordan@contoso.com",
        operatingSystem="Windows",
        osVersion="10.0.22631",
        eventType=EventType.FAILURE,
        diagnosticInfo="Device ID: device-1",
        troubleshootingSteps="1. Check device connectivity to the internet",
        failedPolicies=["Firewall (State: error)"],
        processedDateTime=datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc),
    )


def test_adaptive_card_layout(event):
    card = build_adaptive_card(event)

    assert card["type"] == "AdaptiveCard"
    assert card["version"] == "1.4"
    header_columns = card["body"][0]["items"][0]["columns"]
    assert header_columns[0]["items"][0]["text"] == "❌"
    title, device = header_columns[1]["items"]
    assert title["text"] == "Device Enrollment FAILURE"
    assert device["text"] == "LAPTOP-042"
    assert device["color"] == "Attention"

    facts = {fact["title"]: fact["value"] for fact in card["body"][1]["facts"]}
    assert facts == {
        "Status": "Failure",
        "Device Name": "LAPTOP-042",
        "User": "Jordan Lee (jordan@contoso.com)",
        "Platform": "Windows 10.0.22631",
        "Timestamp": "2024-05-01 10:30:00 UTC",
        "Failed Policies": "Firewall (State: error)",
    }


def test_empty_sections_are_hidden(event):
    event.troubleshootingSteps = None

    diagnostics, steps = build_adaptive_card(event)["body"][2:]

    assert all(item["isVisible"] for item in diagnostics["items"])
    assert not any(item["isVisible"] for item in steps["items"])


def test_channel_message_references_its_attachment(event):
    message = build_channel_message(event)

    attachment = message["attachments"][0]
    body_id = re.search(r'<attachment id="([^"]+)">', message["body"]["content"]).group(1)
    assert body_id == attachment["id"]
    assert attachment["contentType"] == "application/vnd.microsoft.card.adaptive"
    assert json.loads(attachment["content"])["type"] == "AdaptiveCard"


def test_send_posts_to_configured_channel(settings, event):
    graph = RecordingGraph()

    assert TeamsNotificationService(graph, settings).send_enrollment_notification(event) is True
    team_id, channel_id, message = graph.messages[0]
    assert (team_id, channel_id) == ("team-1", "channel-1")
    assert message["attachments"]


def test_send_without_channel_configuration_fails(make_settings, event):
    graph = RecordingGraph()
    service = TeamsNotificationService(graph, make_settings(teams_channel_id=None))

    assert service.send_enrollment_notification(event) is False
    assert graph.messages == []


@pytest.mark.parametrize("error", [
    GraphError("forbidden", status_code=403),
    httpx.ConnectError("unreachable"),
])
def test_send_failures_return_false(settings, event, error):
    assert TeamsNotificationService(RecordingGraph(error), settings).send_enrollment_notification(event) is False


def test_connection_status(settings, make_settings):
    assert TeamsNotificationService(RecordingGraph(), settings).connection_status() == "Teams Connected"
    assert TeamsNotificationService(RecordingGraph(GraphError("boom")), settings).connection_status() == \
        "Teams Disconnected"
    assert TeamsNotificationService(RecordingGraph(), make_settings(teams_team_id="")).connection_status() == \
        "Teams Disconnected"
