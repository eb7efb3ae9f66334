import asyncio
import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..dependencies import get_services
from ..services import NotifierServices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


def graph_status(services: NotifierServices) -> str:
    try:
        return "Connected" if services.graph_client.test_connection() else "Disconnected"
    except Exception as e:
        logger.error(f"Graph connectivity check errored: {str(e)}")
        return "Error"


def collect_health(services: NotifierServices) -> dict:
    return {
        "status": "Healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": services.settings.service_version,
        "notificationType": services.settings.notification_type.value,
        "services": {
            "graphService": graph_status(services),
            "notificationService": services.router.channel_status(),
        }
    }


@router.get('/health')
async def health_check(services: Annotated[NotifierServices, Depends(get_services)]):
    """
    Report Graph and per-channel notification connectivity
    """
    try:
        return await asyncio.to_thread(collect_health, services)
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "Unhealthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "error": str(e)
            }
        )
