from datetime import datetime

from ..enrollment.diagnostics import as_utc
from ..enrollment.schemas import EnrollmentEvent, EventType

STATUS_ICONS = {
    EventType.SUCCESS: "✅",
    EventType.FAILURE: "❌",
    EventType.WARNING: "⚠️",
}

STATUS_COLORS = {
    EventType.SUCCESS: "Good",
    EventType.FAILURE: "Attention",
    EventType.WARNING: "Warning",
}

PRIORITIES = {
    EventType.FAILURE: "High",
    EventType.WARNING: "Normal",
    EventType.SUCCESS: "Low",
}


def status_icon(event_type: EventType) -> str:
    return STATUS_ICONS.get(event_type, "ℹ️")


def status_color(event_type: EventType) -> str:
    """Adaptive Card text colour for an event type."""
    return STATUS_COLORS.get(event_type, "Default")


def priority(event_type: EventType) -> str:
    return PRIORITIES.get(event_type, "Normal")


def format_timestamp(value: datetime) -> str:
    return f"{as_utc(value):%Y-%m-%d %H:%M:%S} UTC"


def user_label(event: EnrollmentEvent) -> str:
    return f"{event.userDisplayName} ({event.userPrincipalName})"


def platform_label(event: EnrollmentEvent) -> str:
    return f"{event.operatingSystem} {event.osVersion}".strip()
