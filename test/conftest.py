import httpx
import pytest
from tenacity import wait_none

from intune_notifier.config import NotificationMode, Settings
from intune_notifier.graph.client import GraphClient
from intune_notifier.notifications.base import NotificationChannel


class FakeChannel(NotificationChannel):
    """Channel that records events instead of delivering them."""

    def __init__(self, name, succeed=True, raises=False, status="Connected"):
        self.name = name
        self.succeed = succeed
        self.raises = raises
        self.status = status
        self.sent = []

    def send_enrollment_notification(self, event):
        self.sent.append(event)
        if self.raises:
            raise RuntimeError(f"{self.name} exploded")
        return self.succeed

    def connection_status(self):
        return self.status


class StubGraph:
    """Graph client stand-in for processor and API tests."""

    def __init__(self, devices=None, device=None, fetch_error=None, device_error=None, connected=True):
        self.devices = devices or []
        self.device = device
        self.fetch_error = fetch_error
        self.device_error = device_error
        self.connected = connected
        self.fetch_calls = []
        self.device_calls = []

    def fetch_changed_devices(self, since=None):
        self.fetch_calls.append(since)
        if self.fetch_error:
            raise self.fetch_error
        return self.devices

    def get_device(self, device_id):
        self.device_calls.append(device_id)
        if self.device_error:
            raise self.device_error
        return self.device

    def test_connection(self):
        if isinstance(self.connected, Exception):
            raise self.connected
        return self.connected

    def close(self):
        pass


@pytest.fixture
def make_settings():
    def _make(**overrides):
        values = dict(
            _env_file=None,
            graph_api_tenant_id="tenant",
            graph_api_client_id="client",
            graph_api_client_secret="secret",
            notification_type=NotificationMode.EMAIL,
            teams_team_id="team-1",
            teams_channel_id="channel-1",
            sendgrid_api_key="SG.test",
            notification_emails="ops@example.com;helpdesk@example.com",
            poll_enabled=False,
            graph_max_attempts=3,
        )
        values.update(overrides)
        return Settings(**values)
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def fake_channel():
    return FakeChannel


@pytest.fixture
def stub_graph():
    return StubGraph


@pytest.fixture
def make_graph_client():
    """Build a GraphClient whose HTTP traffic goes to a MockTransport handler."""
    def _make(handler, settings, token_provider=lambda: "test-token"):
        http = httpx.Client(base_url=settings.graph_base_url, transport=httpx.MockTransport(handler))
        return GraphClient(settings, http_client=http, token_provider=token_provider, retry_wait=wait_none())
    return _make


@pytest.fixture
def device_payload():
    return {
        "id": "device-1",
        "deviceName": "LAPTOP-042",
        "userPrincipalName": "jordan@contoso.com",
        "userDisplayName": "Jordan Lee",
        "operatingSystem": "Windows",
        "osVersion": "10.0.22631",
        "enrollmentState": "enrolled",
        "complianceState": "noncompliant",
        "lastSyncDateTime": "2024-05-01T08:00:00Z",
        "enrolledDateTime": "2024-05-01T07:55:00Z",
        "managementAgent": "mdm",
        "deviceEnrollmentType": "windowsAzureADJoin",
        "deviceRegistrationState": "registered",
        "azureADDeviceId": "aad-1",
        "isEncrypted": True,
        "serialNumber": None,
    }
