"""
Conversation summary route.
Summarizes a question chat on demand and stores a successful summary on its
history entry.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from tagask.auth.verify import auth_dependency
from tagask.db.collection_store import CollectionStoreError
from tagask.dependencies import get_history_service, get_summarization_bridge
from tagask.infrastructure.observability.logging import get_logger
from tagask.models.api.question_response import SummaryResponse
from tagask.services.question_history_service import QuestionHistoryService
from tagask.services.summarization.bridge import SummarizationBridge

logger = get_logger(__name__)

router = APIRouter(prefix="/api/summaries", tags=["summaries"])


@router.post("/{conversation_id}", response_model=SummaryResponse)
async def summarize_conversation(
    conversation_id: str,
    caller: dict = Depends(auth_dependency),
    bridge: SummarizationBridge = Depends(get_summarization_bridge),
    history: QuestionHistoryService = Depends(get_history_service),
):
    result = await bridge.summarize(conversation_id, caller["access_token"])

    # A failed run must not replace a summary stored earlier
    if not result.ok:
        return SummaryResponse(conversation_id=conversation_id, summary=result.text, attached=False)

    try:
        attached = await history.attach_summary(conversation_id, result.text)
    except CollectionStoreError as e:
        logger.error("Failed to store summary", conversation_id=conversation_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Failed to store summary"
        )

    return SummaryResponse(conversation_id=conversation_id, summary=result.text, attached=attached)
