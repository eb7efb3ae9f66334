from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    SUCCESS = "Success"
    WARNING = "Warning"
    FAILURE = "Failure"
    UNKNOWN = "Unknown"


class EnrollmentEvent(BaseModel):
    """One device enrollment state transition, shaped like a Graph managedDevice"""
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    deviceName: str = ""
    userPrincipalName: str = ""
    operatingSystem: str = ""
    osVersion: str = ""
    deviceType: str = ""
    enrollmentState: str = ""
    complianceState: str = ""
    lastSyncDateTime: Optional[datetime] = None
    enrolledDateTime: Optional[datetime] = None
    serialNumber: str = ""
    manufacturer: str = ""
    model: str = ""
    emailAddress: str = ""
    userId: str = ""
    managementAgent: str = ""
    deviceEnrollmentType: str = ""
    deviceRegistrationState: str = ""
    managementState: str = ""
    azureADDeviceId: str = ""
    deviceCategoryDisplayName: str = ""
    isSupervised: bool = False
    isEncrypted: bool = False
    userDisplayName: str = ""

    # Diagnostic fields filled in during enrichment
    errorCode: Optional[str] = None
    errorDescription: Optional[str] = None
    diagnosticInfo: Optional[str] = None
    troubleshootingSteps: Optional[str] = None
    appliedPolicies: List[str] = Field(default_factory=list)
    failedPolicies: List[str] = Field(default_factory=list)
    processedDateTime: datetime = Field(default_factory=utc_now)
    eventType: EventType = EventType.UNKNOWN

    @model_validator(mode='before')
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # Graph sends explicit nulls for unset properties
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class NotificationData(BaseModel):
    """Rendered email envelope for one event"""
    subject: str = ""
    htmlContent: str = ""
    plainTextContent: str = ""
    recipients: List[str] = Field(default_factory=list)
    fromEmail: str = ""
    fromName: str = "Intune Notification System"
    priority: str = "Normal"  # High, Normal, Low
    tags: List[str] = Field(default_factory=list)


class ProcessingOutcome(str, Enum):
    PROCESSED = "processed"
    INVALID_PAYLOAD = "invalid_payload"
    NOT_QUALIFIED = "not_qualified"
    DELIVERY_FAILED = "delivery_failed"


class ProcessingResult(BaseModel):
    success: bool = False
    outcome: ProcessingOutcome = ProcessingOutcome.INVALID_PAYLOAD
    errorMessage: Optional[str] = None
    processedEvent: Optional[EnrollmentEvent] = None
    processingTimestamp: datetime = Field(default_factory=utc_now)
    processingDurationMs: int = 0
