import pytest

from intune_notifier.config import NotificationMode
from intune_notifier.enrollment.schemas import EnrollmentEvent, EventType
from intune_notifier.notifications.dispatcher import NotificationRouter


@pytest.fixture
def failure_event():
    return EnrollmentEvent(deviceName="LAPTOP-042", eventType=EventType.FAILURE)


def test_failure_event_is_delivered_on_email_mode(fake_channel, failure_event):
    teams, email = fake_channel("teams"), fake_channel("email")
    router = NotificationRouter(NotificationMode.EMAIL, teams, email)

    assert router.send(failure_event) is True
    assert email.sent == [failure_event]
    assert teams.sent == []


def test_teams_mode_only_uses_teams(fake_channel, failure_event):
    teams, email = fake_channel("teams"), fake_channel("email")
    router = NotificationRouter(NotificationMode.TEAMS, teams, email)

    assert router.send(failure_event) is True
    assert teams.sent == [failure_event]
    assert email.sent == []


def test_both_mode_succeeds_when_one_channel_fails(fake_channel, failure_event):
    teams, email = fake_channel("teams", succeed=False), fake_channel("email")
    router = NotificationRouter(NotificationMode.BOTH, teams, email)

    assert router.send(failure_event) is True
    assert len(teams.sent) == 1
    assert len(email.sent) == 1


def test_both_mode_succeeds_when_one_channel_raises(fake_channel, failure_event):
    teams, email = fake_channel("teams"), fake_channel("email", raises=True)
    router = NotificationRouter(NotificationMode.BOTH, teams, email)

    assert router.send(failure_event) is True
    assert len(email.sent) == 1


def test_both_mode_fails_when_every_channel_fails(fake_channel, failure_event):
    teams, email = fake_channel("teams", succeed=False), fake_channel("email", raises=True)
    router = NotificationRouter(NotificationMode.BOTH, teams, email)

    assert router.send(failure_event) is False
    assert len(teams.sent) == 1
    assert len(email.sent) == 1


def test_single_channel_failure_is_reported(fake_channel, failure_event):
    router = NotificationRouter(NotificationMode.EMAIL, fake_channel("teams"), fake_channel("email", succeed=False))

    assert router.send(failure_event) is False


def test_missing_channel_is_a_failure(fake_channel, failure_event):
    router = NotificationRouter(NotificationMode.TEAMS, None, fake_channel("email"))

    assert router.send(failure_event) is False


def test_channel_status_reports_each_selected_channel(fake_channel):
    teams = fake_channel("teams", status="Teams Connected")
    email = fake_channel("email", status="Email Available")

    assert NotificationRouter(NotificationMode.BOTH, teams, email).channel_status() == {
        "teams": "Teams Connected",
        "email": "Email Available",
    }
    assert NotificationRouter(NotificationMode.EMAIL, teams, email).channel_status() == {
        "email": "Email Available",
    }


def test_channel_status_marks_errors(fake_channel):
    def broken_status():
        raise RuntimeError("down")

    teams = fake_channel("teams")
    teams.connection_status = broken_status

    assert NotificationRouter(NotificationMode.TEAMS, teams, None).channel_status() == {"teams": "Error"}


def test_both_mode_with_channels_sharing_a_name(fake_channel, failure_event):
    first, second = fake_channel(""), fake_channel("", succeed=False)
    router = NotificationRouter(NotificationMode.BOTH, first, second)

    assert router.send(failure_event) is True
    assert len(first.sent) == 1
    assert len(second.sent) == 1
