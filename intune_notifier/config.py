from enum import Enum
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationMode(str, Enum):
    TEAMS = "Teams"
    EMAIL = "Email"
    BOTH = "Both"


class Settings(BaseSettings):
    """Configuration settings for the Intune Enrollment Notifier"""

    # Application settings
    service_name: str = "intune-notifier"
    service_version: str = "1.0.0"
    log_level: str = "INFO"
    environment: str = "dev"
    path_prefix: str = ''

    # Graph API settings
    graph_api_tenant_id: Optional[str] = None
    graph_api_client_id: Optional[str] = None
    graph_api_client_secret: Optional[str] = None
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    graph_authority_host: str = "https://login.microsoftonline.com"
    graph_timeout_seconds: float = 30.0
    graph_page_size: int = 1000
    graph_max_attempts: int = 3

    # Notification routing
    notification_type: NotificationMode = NotificationMode.EMAIL
    notify_on_success: bool = True

    # Teams settings
    teams_team_id: Optional[str] = None
    teams_channel_id: Optional[str] = None

    # SendGrid settings
    sendgrid_api_key: Optional[str] = None
    notification_email_from: str = "noreply@company.com"
    notification_email_from_name: str = "Intune Enrollment Notifier"
    notification_emails: str = ""  # semicolon separated

    # Polling settings
    poll_enabled: bool = True
    poll_interval_minutes: int = 5
    poll_lookback_minutes: int = 10

    # HTTP trigger key, disabled when unset
    function_key: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @field_validator('notification_type', mode='before')
    @classmethod
    def parse_notification_type(cls, value):
        """Match the mode case-insensitively, falling back to Email."""
        if isinstance(value, NotificationMode):
            return value
        for mode in NotificationMode:
            if str(value or '').strip().lower() == mode.value.lower():
                return mode
        return NotificationMode.EMAIL

    @property
    def recipient_list(self) -> List[str]:
        return [email.strip() for email in self.notification_emails.split(';') if email.strip()]


def get_prefix(api_version: str, path_prefix: str = None) -> str:
    if path_prefix is None:
        path_prefix = settings.path_prefix
    if not path_prefix.startswith('/'):
        path_prefix = f'/{path_prefix}'
    if path_prefix.endswith('/'):
        path_prefix = path_prefix.rstrip('/')
    return f'{path_prefix}{api_version}'


# Create settings instance
settings = Settings()
