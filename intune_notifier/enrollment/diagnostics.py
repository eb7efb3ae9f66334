from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from .schemas import EnrollmentEvent, EventType

TROUBLESHOOTING_STEPS = {
    EventType.FAILURE: [
        "Check device connectivity to the internet",
        "Verify user has appropriate licenses assigned",
        "Check if device meets minimum requirements",
        "Review enrollment restrictions and device type restrictions",
        "Check Azure AD device registration status",
    ],
    EventType.WARNING: [
        "Monitor device for enrollment completion",
        "Check if user action is required on the device",
        "Verify network connectivity and proxy settings",
    ],
    EventType.SUCCESS: [
        "Verify all required apps and policies are deployed",
        "Confirm device compliance status",
        "Check that user can access corporate resources",
    ],
}

NONCOMPLIANT_STEPS = [
    "Review compliance policy settings and requirements",
    "Check device compliance status in Intune portal",
]


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def build_diagnostic_info(event: EnrollmentEvent, now: Optional[datetime] = None) -> str:
    """Summarise the identifiers and states support staff look at first."""
    now = as_utc(now or datetime.now(timezone.utc))
    lines = [
        f"Device ID: {event.id}",
        f"Azure AD Device ID: {event.azureADDeviceId}",
        f"Management Agent: {event.managementAgent}",
        f"Enrollment Type: {event.deviceEnrollmentType}",
        f"Registration State: {event.deviceRegistrationState}",
    ]

    if event.complianceState:
        lines.append(f"Compliance State: {event.complianceState}")

    if event.enrollmentState:
        lines.append(f"Enrollment State: {event.enrollmentState}")

    if event.lastSyncDateTime is not None:
        last_sync = as_utc(event.lastSyncDateTime)
        hours_ago = (now - last_sync).total_seconds() / 3600
        lines.append(f"Last Sync: {last_sync:%Y-%m-%d %H:%M:%S} UTC ({hours_ago:.1f} hours ago)")

    return "\n".join(lines)


def build_troubleshooting_steps(event: EnrollmentEvent) -> str:
    steps = list(TROUBLESHOOTING_STEPS.get(event.eventType, []))
    if event.eventType == EventType.FAILURE and event.complianceState.lower() == 'noncompliant':
        steps.extend(NONCOMPLIANT_STEPS)
    return "\n".join(f"{number}. {step}" for number, step in enumerate(steps, start=1))


def split_policy_states(states: Iterable[Dict]) -> Tuple[List[str], List[str]]:
    """
    Split deviceConfigurationStates into applied and failed policy lists.

    Args:
        states: Graph deviceConfigurationState dictionaries

    Returns:
        Tuple of (applied policy names, failed policy descriptions)
    """
    applied, failed = [], []
    for state in states:
        name = state.get('displayName') or "Unknown Policy"
        status = state.get('state') or ''
        if status.lower() == 'compliant':
            applied.append(name)
        elif status.lower() in ('noncompliant', 'error'):
            failed.append(f"{name} (State: {status})")
    return applied, failed


def enrich_with_diagnostics(event: EnrollmentEvent, now: Optional[datetime] = None) -> EnrollmentEvent:
    event.diagnosticInfo = build_diagnostic_info(event, now)
    event.troubleshootingSteps = build_troubleshooting_steps(event)
    return event
