import logging
import time

from pythonjsonlogger.json import JsonFormatter

from .config import Settings, settings as default_settings


class ServiceJsonFormatter(JsonFormatter):
    """JSON formatter that stamps every record with service metadata."""

    def __init__(self, *args, service_name: str = "", environment: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name
        self.environment = environment

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['service'] = self.service_name
        log_record['environment'] = self.environment
        log_record['timestamp'] = time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created))


def setup_logging(settings: Settings = None):
    """Configure logging for the application."""
    settings = settings or default_settings
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(ServiceJsonFormatter(
        '%(timestamp)s %(levelname)s %(service)s %(environment)s %(name)s %(message)s',
        service_name=settings.service_name,
        environment=settings.environment,
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    root_logger.addHandler(handler)

    # Set specific logger levels
    for name in ('httpx', 'httpcore', 'msal', 'apscheduler', 'urllib3'):
        logging.getLogger(name).setLevel(logging.WARNING)
