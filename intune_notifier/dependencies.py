import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import APIKeyHeader

from .enrollment.processor import EnrollmentEventProcessor
from .services import NotifierServices

logger = logging.getLogger(__name__)

function_key_header = APIKeyHeader(name='x-functions-key', scheme_name='FunctionKey', auto_error=False)


def get_services(request: Request) -> NotifierServices:
    return request.app.state.services


def get_processor(services: NotifierServices = Depends(get_services)) -> EnrollmentEventProcessor:
    return services.processor


def verify_function_key(
    services: NotifierServices = Depends(get_services),
    header_key: Optional[str] = Depends(function_key_header),
    code: Optional[str] = Query(None, description="Function key, alternative to the x-functions-key header")
) -> None:
    """
    Dependency that checks the function key when FUNCTION_KEY is configured.

    Raises:
        HTTPException(401): If the key is missing or does not match.
    """
    expected = services.settings.function_key
    if not expected:
        return

    provided = header_key or code
    if not provided or not secrets.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Rejected request with missing or invalid function key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid function key")
