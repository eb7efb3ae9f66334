import html
import logging
import re
from typing import List

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Category, From, Header, Mail, To

from .base import NotificationChannel
from .formatting import format_timestamp, platform_label, priority, status_icon, user_label
from ..config import Settings, settings as default_settings
from ..enrollment.schemas import EnrollmentEvent, NotificationData

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s;,<>]+@[^@\s;,<>]+$")

HTML_STYLE = """
        body { font-family: Arial, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5; }
        .container { max-width: 800px; margin: 0 auto; background-color: white; border-radius: 8px; }
        .header { background-color: #0078d4; color: white; padding: 20px; border-radius: 8px 8px 0 0; }
        .content { padding: 20px; }
        .info-table { width: 100%; border-collapse: collapse; margin: 20px 0; }
        .info-table th, .info-table td { padding: 12px; text-align: left; border-bottom: 1px solid #ddd; }
        .info-table th { background-color: #f8f9fa; font-weight: 600; }
        .diagnostic-info { background-color: #f8f9fa; padding: 15px; border-radius: 4px; white-space: pre-line; }
"""


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def render_html(event: EnrollmentEvent) -> str:
    """Render the HTML body. Every event value is escaped."""
    esc = html.escape
    rows = [
        ("Status", event.eventType.value),
        ("Device Name", event.deviceName),
        ("User", user_label(event)),
        ("Platform", platform_label(event)),
        ("Timestamp", format_timestamp(event.processedDateTime)),
    ]
    table = "\n".join(f"                <tr><th>{label}</th><td>{esc(value)}</td></tr>" for label, value in rows)

    sections = []
    if event.diagnosticInfo:
        sections.append("            <h3>Diagnostic Information</h3>\n"
                        f"            <div class='diagnostic-info'>{esc(event.diagnosticInfo)}</div>")
    if event.troubleshootingSteps:
        sections.append("            <h3>Troubleshooting Steps</h3>\n"
                        f"            <div class='diagnostic-info'>{esc(event.troubleshootingSteps)}</div>")
    if event.failedPolicies:
        items = "".join(f"<li>{esc(policy)}</li>" for policy in event.failedPolicies)
        sections.append(f"            <h3>Failed Policies</h3>\n            <ul>{items}</ul>")

    body_sections = "\n".join(sections)

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset='utf-8'>
    <title>Intune Enrollment Notification</title>
    <style>{HTML_STYLE}    </style>
</head>
<body>
    <div class='container'>
        <div class='header'>
            <h1>{status_icon(event.eventType)} Device Enrollment {esc(event.eventType.value)}</h1>
            <p>Device: <strong>{esc(event.deviceName)}</strong></p>
        </div>
        <div class='content'>
            <h3>Event Summary</h3>
            <table class='info-table'>
{table}
            </table>
{body_sections}
        </div>
    </div>
</body>
</html>
"""


def render_plain_text(event: EnrollmentEvent) -> str:
    lines = [
        "INTUNE ENROLLMENT NOTIFICATION",
        "===============================",
        "",
        f"Status: {event.eventType.value}",
        f"Device: {event.deviceName}",
        f"User: {user_label(event)}",
        f"Platform: {platform_label(event)}",
        f"Timestamp: {format_timestamp(event.processedDateTime)}",
        "",
    ]

    if event.diagnosticInfo:
        lines += ["DIAGNOSTIC INFORMATION", "----------------------", event.diagnosticInfo, ""]

    if event.troubleshootingSteps:
        lines += ["TROUBLESHOOTING STEPS", "---------------------", event.troubleshootingSteps, ""]

    if event.failedPolicies:
        lines += ["FAILED POLICIES", "---------------"]
        lines += [f"- {policy}" for policy in event.failedPolicies]
        lines.append("")

    lines.append("This is an automated notification from the Intune Enrollment Monitoring System.")
    return "\n".join(lines) + "\n"


class EmailService(NotificationChannel):
    """Sends enrollment notifications by email through SendGrid."""

    name = "email"

    def __init__(self, settings: Settings = None, sendgrid_client=None):
        """
        Args:
            settings: Application settings, defaults to the module settings
            sendgrid_client: Object with a SendGrid-style send(message) method,
                created from SENDGRID_API_KEY on first use when omitted
        """
        self.settings = settings or default_settings
        self._client = sendgrid_client

    def _get_client(self):
        if self._client is not None:
            return self._client

        if not self.settings.sendgrid_api_key:
            raise ValueError("SendGrid API key is not configured")

        self._client = SendGridAPIClient(self.settings.sendgrid_api_key)
        logger.info("SendGrid client initialized successfully")
        return self._client

    def get_recipients(self) -> List[str]:
        recipients = []
        for email in self.settings.recipient_list:
            if is_valid_email(email):
                recipients.append(email)
            else:
                logger.warning(f"Invalid email address: {email}")

        if not recipients:
            logger.warning("No valid notification email recipients configured")
        return recipients

    def create_notification_data(self, event: EnrollmentEvent) -> NotificationData:
        event_type = event.eventType.value
        tags = ["intune", "enrollment", event_type.lower()]
        if event.operatingSystem and event.operatingSystem.lower() not in tags:
            tags.append(event.operatingSystem.lower())

        return NotificationData(
            subject=f"[INTUNE] {status_icon(event.eventType)} Device Enrollment {event_type.upper()} - {event.deviceName}",
            htmlContent=render_html(event),
            plainTextContent=render_plain_text(event),
            recipients=self.get_recipients(),
            fromEmail=self.settings.notification_email_from,
            fromName=self.settings.notification_email_from_name,
            priority=priority(event.eventType),
            tags=tags
        )

    def build_message(self, notification_data: NotificationData) -> Mail:
        message = Mail(
            from_email=From(notification_data.fromEmail, notification_data.fromName),
            to_emails=[To(recipient) for recipient in notification_data.recipients],
            subject=notification_data.subject,
            plain_text_content=notification_data.plainTextContent or None,
            html_content=notification_data.htmlContent or None
        )
        message.header = Header("X-Intune-Notification", "true")
        message.header = Header("X-Priority", notification_data.priority)
        for tag in notification_data.tags:
            message.category = Category(tag)
        return message

    def send_email(self, notification_data: NotificationData) -> bool:
        """
        Send a rendered notification.

        Returns:
            True if SendGrid accepted the message, False otherwise
        """
        if not notification_data.recipients:
            logger.error(f"Email not sent, no recipients. Subject: {notification_data.subject}")
            return False

        try:
            response = self._get_client().send(self.build_message(notification_data))
            if 200 <= response.status_code < 300:
                logger.info(f"Email sent successfully to {len(notification_data.recipients)} recipients. "
                            f"Subject: {notification_data.subject}")
                return True

            logger.error(f"Failed to send email. Status: {response.status_code}, Response: {response.body}")
            return False

        except Exception as e:
            logger.error(f"Exception occurred while sending email: {str(e)}")
            return False

    def send_enrollment_notification(self, event: EnrollmentEvent) -> bool:
        try:
            return self.send_email(self.create_notification_data(event))
        except Exception as e:
            logger.error(f"Failed to send enrollment notification for device {event.deviceName}: {str(e)}")
            return False

    def test_connection(self) -> bool:
        if self._client is not None or self.settings.sendgrid_api_key:
            return True
        logger.warning("SendGrid API key is not configured")
        return False

    def connection_status(self) -> str:
        return "Email Available" if self.test_connection() else "Email Not Configured"
