from intune_notifier.scheduler import POLL_JOB_ID, EnrollmentPollScheduler


class CountingProcessor:
    def __init__(self):
        self.calls = 0

    def monitor_enrollment_events(self):
        self.calls += 1
        return 0


def test_start_registers_interval_job():
    poller = EnrollmentPollScheduler(CountingProcessor(), interval_minutes=7)
    poller.start()
    try:
        job = poller.scheduler.get_job(POLL_JOB_ID)
        assert job is not None
        assert job.trigger.interval.total_seconds() == 7 * 60
        assert job.max_instances == 1
        assert job.coalesce is True
    finally:
        poller.stop()

    assert poller.scheduler.running is False


def test_stop_before_start_is_a_no_op():
    EnrollmentPollScheduler(CountingProcessor()).stop()
