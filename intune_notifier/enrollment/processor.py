import json
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from pydantic import ValidationError

from .classifier import classify
from .diagnostics import build_diagnostic_info, build_troubleshooting_steps
from .schemas import EnrollmentEvent, EventType, ProcessingOutcome, ProcessingResult, utc_now
from ..config import Settings, settings as default_settings
from ..graph.client import GraphClient
from ..notifications.dispatcher import NotificationRouter

logger = logging.getLogger(__name__)


class EnrollmentEventProcessor:
    """Runs the classify, enrich, qualify and dispatch pipeline for enrollment events."""

    def __init__(self, graph_client: GraphClient, router: NotificationRouter, settings: Settings = None):
        """
        Initialize the event processor.

        Args:
            graph_client: Client used to look up devices and poll for changes
            router: Notification router for the configured channels
            settings: Application settings, defaults to the module settings
        """
        self.graph = graph_client
        self.router = router
        self.settings = settings or default_settings
        logger.info("Enrollment event processor initialized")

    def handle_payload(self, body: Union[bytes, str]) -> ProcessingResult:
        """
        Process an HTTP-delivered enrollment event payload.

        Args:
            body: Raw request body

        Returns:
            Processing result; success is True only when a notification went out
        """
        started = time.monotonic()
        result = ProcessingResult()
        logger.info("Processing enrollment event started")

        if not body or not body.strip():
            logger.warning("Empty request body received")
            result.errorMessage = "Empty request body"
            return result

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Failed to deserialize enrollment event from request body: {str(e)}")
            result.errorMessage = f"Invalid JSON format: {str(e)}"
            return result

        if not isinstance(payload, dict):
            logger.warning("Enrollment event payload is not a JSON object")
            result.errorMessage = "Invalid enrollment event data"
            return result

        try:
            event = EnrollmentEvent.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Enrollment event payload failed validation: {str(e)}")
            result.errorMessage = "Invalid enrollment event data"
            return result

        processed = self.process_event(event)
        if processed is None:
            result.outcome = ProcessingOutcome.NOT_QUALIFIED
            result.processedEvent = event
            result.errorMessage = f"Event does not qualify for notification ({event.eventType.value})"
            return result

        if not self.router.send(processed):
            logger.warning(f"Failed to send notification for device {processed.deviceName}")
            result.outcome = ProcessingOutcome.DELIVERY_FAILED
            result.processedEvent = processed
            result.errorMessage = "Failed to send notification"
            return result

        duration_ms = int((time.monotonic() - started) * 1000)
        result.success = True
        result.outcome = ProcessingOutcome.PROCESSED
        result.processedEvent = processed
        result.processingDurationMs = duration_ms

        logger.info(
            f"Successfully processed enrollment event for device {processed.deviceName} in {duration_ms}ms",
            extra={
                'event_name': 'EnrollmentEventProcessed',
                'device_name': processed.deviceName,
                'event_type': processed.eventType.value,
                'operating_system': processed.operatingSystem,
                'processing_duration_ms': duration_ms,
            }
        )
        return result

    def process_event(self, event: EnrollmentEvent) -> Optional[EnrollmentEvent]:
        """
        Enrich an event and decide whether it warrants a notification.

        Returns:
            The enriched event, or None when it does not qualify
        """
        self.enrich_event(event)

        if self.should_send_notification(event):
            logger.info(f"Event qualifies for notification: {event.deviceName} - {event.eventType.value}")
            return event

        logger.info(f"Event does not qualify for notification: {event.deviceName} - {event.eventType.value}")
        return None

    def enrich_event(self, event: EnrollmentEvent) -> EnrollmentEvent:
        event.processedDateTime = utc_now()

        if event.eventType == EventType.UNKNOWN:
            event.eventType = classify(event)

        try:
            if event.id:
                details = self.graph.get_device(event.id)
                if details is not None:
                    event.diagnosticInfo = details.diagnosticInfo
                    event.appliedPolicies = details.appliedPolicies
                    event.failedPolicies = details.failedPolicies
                    if event.eventType == EventType.UNKNOWN:
                        event.eventType = details.eventType
        except Exception as e:
            # Notifications still go out with whatever the payload carried
            logger.warning(f"Failed to enrich enrollment event for device {event.deviceName}: {str(e)}")

        if not event.diagnosticInfo:
            event.diagnosticInfo = build_diagnostic_info(event)
        event.troubleshootingSteps = build_troubleshooting_steps(event)

        logger.debug(f"Enriched enrollment event for device {event.deviceName}")

        return event

    def should_send_notification(self, event: EnrollmentEvent) -> bool:
        if event.eventType in (EventType.FAILURE, EventType.WARNING):
            return True
        if event.eventType == EventType.SUCCESS:
            return self.settings.notify_on_success
        return False

    def monitor_enrollment_events(self, now: Optional[datetime] = None) -> int:
        """
        Poll Graph for recently changed devices and notify for each qualifying one.

        Returns:
            Number of devices a notification was delivered for
        """
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(minutes=self.settings.poll_lookback_minutes)
        logger.info(f"Monitoring enrollment events started at: {now.isoformat()}")

        try:
            devices = self.graph.fetch_changed_devices(since)
        except Exception as e:
            logger.error(f"Error in enrollment monitoring, could not fetch devices: {str(e)}")
            return 0

        logger.info(f"Found {len(devices)} devices to process")

        notified = 0
        for device in devices:
            try:
                if not self.should_send_notification(device):
                    logger.info(f"Event does not qualify for notification: {device.deviceName} - {device.eventType.value}")
                    continue

                device.processedDateTime = utc_now()
                if self.router.send(device):
                    notified += 1
                    logger.info(f"Processed and notified for device {device.deviceName}")
            except Exception as e:
                logger.error(f"Failed to process device {device.deviceName} ({device.id}): {str(e)}")

        logger.info(f"Monitoring enrollment events completed, {notified} of {len(devices)} devices notified")
        return notified
