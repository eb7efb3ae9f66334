"""HTTP entry point for the Intune Enrollment Notifier.

Usage:
    intune-notifier                  # Serve the API and run the interval poll
    intune-notifier --poll-once      # Run one poll cycle and exit
    uvicorn --factory intune_notifier.main:create_app
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .config import Settings, get_prefix, settings as default_settings
from .enrollment.router import router as enrollment_router
from .health.router import router as health_router
from .logging_setup import setup_logging
from .scheduler import EnrollmentPollScheduler
from .services import NotifierServices

logger = logging.getLogger(__name__)

API_VERSION = '/api/v1'


def create_app(services: NotifierServices = None, settings: Settings = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Prewired services (tests pass fakes), built from settings when omitted
        settings: Application settings, defaults to the module settings
    """
    settings = settings or (services.settings if services else default_settings)
    services = services or NotifierServices(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        poller = None
        if settings.poll_enabled:
            poller = EnrollmentPollScheduler(services.processor, settings.poll_interval_minutes)
            poller.start()
        app.state.poller = poller
        logger.info(f"{settings.service_name} started in {settings.environment} environment")
        try:
            yield
        finally:
            if poller is not None:
                # shutdown waits for an in-flight poll
                await asyncio.to_thread(poller.stop)
            services.graph_client.close()
            logger.info(f"{settings.service_name} shut down")

    prefix = get_prefix(API_VERSION, settings.path_prefix)
    app = FastAPI(title="Intune Enrollment Notifier", version=settings.service_version, lifespan=lifespan)
    app.state.services = services

    app.include_router(enrollment_router, prefix=prefix)
    app.include_router(health_router, prefix=prefix)

    logger.info(f"Start HTTP server with prefix: {prefix}")
    return app


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Intune enrollment notification service")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--poll-once", action="store_true", help="Run a single poll cycle and exit")
    args = parser.parse_args(argv)

    setup_logging(default_settings)

    if args.poll_once:
        services = NotifierServices(default_settings)
        try:
            notified = services.processor.monitor_enrollment_events()
        finally:
            services.graph_client.close()
        logger.info(f"Poll cycle finished, {notified} devices notified")
        return 0

    uvicorn.run(create_app(), host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
