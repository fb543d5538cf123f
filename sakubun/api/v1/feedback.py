import logging
import time
from typing import Optional, Union

from fastapi import APIRouter, Depends

from sakubun.api.dependencies import get_followup_service, get_orchestrator
from sakubun.core.exceptions import ERROR_SENTINEL, FeedbackException
from sakubun.models.request import FeedbackRequest, FollowUpRequest
from sakubun.models.response import ErrorResponse, FeedbackResponse, FollowUpResponse
from sakubun.services.feedback_orchestrator import FeedbackOrchestrator
from sakubun.services.followup import FollowUpService

logger = logging.getLogger(__name__)

router = APIRouter()


def _error_envelope(exc: Exception, request_id: str) -> ErrorResponse:
    """Every failure leaves as ``{"status": "error", "message": ...}``."""
    if isinstance(exc, FeedbackException):
        logger.error(f"[{request_id}] {type(exc).__name__}: {exc.message} {exc.details}")
        return ErrorResponse(message=exc.message)
    logger.exception(f"[{request_id}] Unexpected error")
    return ErrorResponse(message=f"{ERROR_SENTINEL} {exc}")


@router.post("/feedback", response_model=Union[FeedbackResponse, ErrorResponse])
async def feedback(
    req: Optional[FeedbackRequest] = None,
    orchestrator: FeedbackOrchestrator = Depends(get_orchestrator),
) -> Union[FeedbackResponse, ErrorResponse]:
    request_id = f"fb_{int(time.time() * 1000)}"
    req = req or FeedbackRequest()
    logger.info(f"[{request_id}] → feedback (text_len={len(req.text or '')}, model={req.model_preference})")
    try:
        return await orchestrator.feedback(req)
    except Exception as e:
        return _error_envelope(e, request_id)


@router.post("/qa", response_model=Union[FollowUpResponse, ErrorResponse])
async def qa(
    req: Optional[FollowUpRequest] = None,
    service: FollowUpService = Depends(get_followup_service),
) -> Union[FollowUpResponse, ErrorResponse]:
    request_id = f"qa_{int(time.time() * 1000)}"
    req = req or FollowUpRequest()
    logger.info(f"[{request_id}] → qa (question_len={len(req.question or '')})")
    try:
        return await service.answer(req)
    except Exception as e:
        return _error_envelope(e, request_id)
