"""
Question API Routes
Ask a question of everyone holding a set of tags, by chat or email.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from tagask.auth.verify import auth_dependency
from tagask.dependencies import get_question_service
from tagask.infrastructure.observability.logging import get_logger
from tagask.models.api.question_request import AskQuestionRequest
from tagask.models.api.question_response import AskQuestionResponse
from tagask.models.domain.question_domain import OutcomeKind
from tagask.services.questions.question_service import QuestionService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/questions", tags=["questions"])


@router.post("", response_model=AskQuestionResponse)
async def ask_question(
    request: AskQuestionRequest,
    caller: dict = Depends(auth_dependency),
    service: QuestionService = Depends(get_question_service),
):
    """Ask a question. 422 invalid, 400 nobody eligible, 502 delivery failed."""
    user_id = caller["user_id"]

    if request.requester_id and request.requester_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Questions can only be asked on your own behalf",
        )

    try:
        outcome = await service.ask_question(caller["access_token"], request.to_domain(user_id))
    except Exception as e:
        logger.error(
            "Unexpected error asking question",
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to ask question"
        )

    if outcome.kind == OutcomeKind.VALIDATION_FAILED:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": "Invalid question", "reasons": outcome.reasons},
        )

    if outcome.kind == OutcomeKind.EMPTY_AUDIENCE:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"problem": outcome.message}
        )

    if outcome.kind == OutcomeKind.DELIVERY_FAILED:
        content = {"detail": outcome.message, "partial": outcome.partial}
        if outcome.partial:
            content["conversation_id"] = outcome.conversation_id
            content["conversation_url"] = outcome.conversation_url
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=content)

    return AskQuestionResponse.from_outcome(outcome)
