from .schemas import EnrollmentEvent, EventType


def determine_event_type(enrollment_state: str, compliance_state: str) -> EventType:
    """
    Classify a device from its Graph enrollment and compliance states.

    Args:
        enrollment_state: managedDevice.enrollmentState, e.g. "enrolled"
        compliance_state: managedDevice.complianceState, e.g. "noncompliant"

    Returns:
        The event type, Unknown when no rule matches
    """
    enrollment = (enrollment_state or '').strip().lower()
    compliance = (compliance_state or '').strip().lower()

    if compliance == 'compliant' and enrollment == 'enrolled':
        return EventType.SUCCESS
    if compliance == 'noncompliant' or enrollment == 'failed':
        return EventType.FAILURE
    if enrollment.startswith('pending') or compliance == 'ingraceperiod':
        return EventType.WARNING
    return EventType.UNKNOWN


def classify(event: EnrollmentEvent) -> EventType:
    return determine_event_type(event.enrollmentState, event.complianceState)
