import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .enrollment.processor import EnrollmentEventProcessor

logger = logging.getLogger(__name__)

POLL_JOB_ID = "monitor_enrollment_events"


class EnrollmentPollScheduler:
    """Runs the enrollment poll on a fixed interval."""

    def __init__(self, processor: EnrollmentEventProcessor, interval_minutes: int = 5):
        self.processor = processor
        self.interval_minutes = interval_minutes
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.scheduler.add_listener(self._job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    def start(self):
        """Start the scheduler with the poll job."""
        self.scheduler.add_job(
            func=self.processor.monitor_enrollment_events,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=POLL_JOB_ID,
            name="Monitor enrollment events",
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Enrollment poll scheduled every {self.interval_minutes} minutes")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            logger.info("Enrollment poll scheduler stopped")

    def _job_listener(self, event):
        if event.exception:
            logger.error(f"Job {event.job_id} failed: {event.exception}")
        else:
            logger.info(f"Job {event.job_id} executed, {event.retval} devices notified")
