import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import httpx
import msal
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import Settings, settings as default_settings
from ..enrollment.classifier import classify
from ..enrollment.diagnostics import enrich_with_diagnostics, split_policy_states
from ..enrollment.schemas import EnrollmentEvent

logger = logging.getLogger(__name__)

GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]
IDEMPOTENT_METHODS = {"GET", "HEAD", "OPTIONS", "PUT", "DELETE"}

MANAGED_DEVICE_FIELDS = [
    "id", "deviceName", "userPrincipalName", "operatingSystem", "osVersion",
    "deviceType", "enrollmentState", "complianceState", "lastSyncDateTime",
    "enrolledDateTime", "serialNumber", "manufacturer", "model", "emailAddress",
    "userId", "managementAgent", "deviceEnrollmentType", "deviceRegistrationState",
    "managementState", "azureADDeviceId", "deviceCategoryDisplayName",
    "isSupervised", "isEncrypted", "userDisplayName",
]


class GraphError(Exception):
    """Raised when a Graph API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientGraphError(GraphError):
    """Throttling or server-side failure worth retrying."""


class GraphConfigurationError(GraphError):
    """Graph credentials are missing or rejected."""


def format_filter_date(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"


class GraphClient:
    """Microsoft Graph client for Intune managed devices and Teams channels."""

    def __init__(self,
                 settings: Settings = None,
                 http_client: httpx.Client = None,
                 token_provider: Callable[[], str] = None,
                 retry_wait=None):
        """
        Initialize the Graph client. No network traffic happens until the first call.

        Args:
            settings: Application settings, defaults to the module settings
            http_client: Preconfigured httpx client (tests pass a MockTransport)
            token_provider: Callable returning a bearer token, defaults to MSAL
            retry_wait: tenacity wait strategy for transient failures
        """
        self.settings = settings or default_settings
        self.http = http_client or httpx.Client(
            base_url=self.settings.graph_base_url,
            timeout=self.settings.graph_timeout_seconds
        )
        self._token_provider = token_provider or self._acquire_token
        self._msal_app = None
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, max=8)
        logger.info("Graph client initialized")

    def _get_msal_app(self) -> msal.ConfidentialClientApplication:
        if self._msal_app is not None:
            return self._msal_app

        tenant_id = self.settings.graph_api_tenant_id
        client_id = self.settings.graph_api_client_id
        client_secret = self.settings.graph_api_client_secret

        if not all([tenant_id, client_id, client_secret]):
            raise GraphConfigurationError("Graph API credentials are not properly configured")

        self._msal_app = msal.ConfidentialClientApplication(
            client_id,
            client_credential=client_secret,
            authority=f"{self.settings.graph_authority_host.rstrip('/')}/{tenant_id}"
        )
        logger.info("MSAL confidential client initialized")
        return self._msal_app

    def _acquire_token(self) -> str:
        result = self._get_msal_app().acquire_token_for_client(scopes=GRAPH_SCOPES)
        if "access_token" not in result:
            error = result.get('error_description') or result.get('error') or 'unknown error'
            logger.error(f"Failed to acquire Graph token: {error}")
            raise GraphConfigurationError(f"Failed to acquire Graph token: {error}")
        return result["access_token"]

    def _request(self, method: str, url: str, allow_not_found: bool = False, **kwargs) -> Optional[httpx.Response]:
        """
        Send a Graph request, retrying throttling and server errors.

        Returns:
            The response, or None for a 404 when allow_not_found is set
        """
        # POST is only retried when it never reached Graph or was throttled
        idempotent = method.upper() in IDEMPOTENT_METHODS
        transport_errors = httpx.TransportError if idempotent else httpx.ConnectError
        retrying = Retrying(
            stop=stop_after_attempt(max(1, self.settings.graph_max_attempts)),
            wait=self._retry_wait,
            retry=retry_if_exception_type((transport_errors, TransientGraphError)),
            reraise=True
        )
        for attempt in retrying:
            with attempt:
                headers = {"Authorization": f"Bearer {self._token_provider()}"}
                response = self.http.request(method, url, headers=headers, **kwargs)
                if response.status_code == 429 or (idempotent and response.status_code >= 500):
                    logger.warning(f"Transient Graph error {response.status_code} for {method} {url}")
                    raise TransientGraphError(
                        f"Graph request {method} {url} failed with {response.status_code}",
                        status_code=response.status_code
                    )

        if response.status_code == 404 and allow_not_found:
            return None
        if response.is_error:
            raise GraphError(
                f"Graph request {method} {url} failed with {response.status_code}: {response.text}",
                status_code=response.status_code
            )
        return response

    def _get_json(self, url: str, allow_not_found: bool = False, **kwargs) -> Optional[Dict]:
        response = self._request("GET", url, allow_not_found=allow_not_found, **kwargs)
        return response.json() if response is not None else None

    def fetch_changed_devices(self, since: Optional[datetime] = None) -> List[EnrollmentEvent]:
        """
        Fetch managed devices enrolled or synced since a point in time.

        Args:
            since: Lower bound for enrolledDateTime/lastSyncDateTime, all devices when None

        Returns:
            Classified and enriched enrollment events
        """
        params = {
            "$select": ",".join(MANAGED_DEVICE_FIELDS),
            "$top": str(self.settings.graph_page_size),
        }
        if since is not None:
            filter_date = format_filter_date(since)
            params["$filter"] = f"enrolledDateTime ge {filter_date} or lastSyncDateTime ge {filter_date}"

        devices = []
        page = self._get_json("/deviceManagement/managedDevices", params=params)
        while page is not None:
            for device in page.get('value', []):
                devices.append(self._to_enrollment_event(device))

            next_link = page.get('@odata.nextLink')
            if not next_link:
                break
            page = self._get_json(next_link)

        logger.info(f"Retrieved {len(devices)} managed devices from Graph API")
        return devices

    def get_device(self, device_id: str) -> Optional[EnrollmentEvent]:
        device = self._get_json(f"/deviceManagement/managedDevices/{device_id}", allow_not_found=True)
        if device is None:
            logger.warning(f"Device with ID {device_id} not found")
            return None
        return self._to_enrollment_event(device)

    def get_device_policy_states(self, device_id: str) -> List[Dict]:
        page = self._get_json(f"/deviceManagement/managedDevices/{device_id}/deviceConfigurationStates")
        return page.get('value', []) if page else []

    def _to_enrollment_event(self, device: Dict) -> EnrollmentEvent:
        event = EnrollmentEvent.model_validate(device)
        event.eventType = classify(event)
        enrich_with_diagnostics(event)

        if event.id:
            try:
                applied, failed = split_policy_states(self.get_device_policy_states(event.id))
                event.appliedPolicies = applied
                event.failedPolicies = failed
            except (GraphError, httpx.HTTPError) as e:
                logger.warning(f"Failed to get policy information for device {event.id}: {str(e)}")

        return event

    def post_channel_message(self, team_id: str, channel_id: str, message: Dict) -> Dict:
        response = self._request("POST", f"/teams/{team_id}/channels/{channel_id}/messages", json=message)
        return response.json() if response.content else {}

    def get_channel(self, team_id: str, channel_id: str) -> Dict:
        return self._get_json(f"/teams/{team_id}/channels/{channel_id}")

    def test_connection(self) -> bool:
        try:
            self._get_json("/organization", params={"$select": "id,displayName"})
            logger.info("Graph API connection test successful")
            return True
        except GraphConfigurationError:
            raise
        except (GraphError, httpx.HTTPError) as e:
            logger.error(f"Graph API connection test failed: {str(e)}")
            return False

    def close(self):
        self.http.close()
