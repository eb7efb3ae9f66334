import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from .processor import EnrollmentEventProcessor
from .schemas import ProcessingOutcome, ProcessingResult
from ..dependencies import get_processor, verify_function_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Enrollment"])

OUTCOME_STATUS = {
    ProcessingOutcome.PROCESSED: status.HTTP_200_OK,
    ProcessingOutcome.INVALID_PAYLOAD: status.HTTP_400_BAD_REQUEST,
    ProcessingOutcome.NOT_QUALIFIED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ProcessingOutcome.DELIVERY_FAILED: status.HTTP_502_BAD_GATEWAY,
}


@router.post('/enrollment-events', response_model=ProcessingResult,
             dependencies=[Depends(verify_function_key)])
async def process_enrollment_event(
    request: Request,
    processor: Annotated[EnrollmentEventProcessor, Depends(get_processor)]
):
    """
    Process an enrollment event payload and send the configured notifications
    """
    body = await request.body()

    try:
        # Graph and channel calls are blocking
        result = await asyncio.to_thread(processor.handle_payload, body)
    except Exception as e:
        logger.error(f"Unexpected error processing enrollment event: {str(e)}", exc_info=True)
        result = ProcessingResult(errorMessage=f"Unexpected error: {str(e)}")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            content=result.model_dump(mode='json'))

    return JSONResponse(status_code=OUTCOME_STATUS[result.outcome], content=result.model_dump(mode='json'))
