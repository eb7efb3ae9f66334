import pytest

from intune_notifier.enrollment.classifier import classify, determine_event_type
from intune_notifier.enrollment.schemas import EnrollmentEvent, EventType


@pytest.mark.parametrize("enrollment_state, compliance_state, expected", [
    ("enrolled", "compliant", EventType.SUCCESS),
    ("Enrolled", "Compliant", EventType.SUCCESS),
    ("enrolled", "noncompliant", EventType.FAILURE),
    ("failed", "unknown", EventType.FAILURE),
    ("failed", "inGracePeriod", EventType.FAILURE),
    ("pendingReset", "unknown", EventType.WARNING),
    ("enrolled", "inGracePeriod", EventType.WARNING),
    ("notContacted", "compliant", EventType.UNKNOWN),
    ("", "", EventType.UNKNOWN),
])
def test_determine_event_type(enrollment_state, compliance_state, expected):
    assert determine_event_type(enrollment_state, compliance_state) == expected


def test_classify_reads_event_states():
    event = EnrollmentEvent(enrollmentState="enrolled", complianceState="noncompliant")
    assert classify(event) == EventType.FAILURE


def test_determine_event_type_handles_missing_values():
    assert determine_event_type(None, None) == EventType.UNKNOWN
