"""
Leaderboard and question history read routes.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tagask.auth.verify import auth_dependency
from tagask.config import settings
from tagask.db.collection_store import CollectionStoreError
from tagask.dependencies import get_history_service, get_leaderboard_service
from tagask.infrastructure.observability.logging import get_logger
from tagask.models.api.question_response import (
    LeaderboardEntryResponse,
    LeaderboardResponse,
    QuestionHistoryListResponse,
    QuestionHistoryResponse,
)
from tagask.services.leaderboard_service import LeaderboardService
from tagask.services.question_history_service import QuestionHistoryService

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["leaderboard"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    caller: dict = Depends(auth_dependency),
    leaderboard: LeaderboardService = Depends(get_leaderboard_service),
):
    """Everyone who has been asked for help, most points first."""
    try:
        entries = await leaderboard.list_entries()
    except CollectionStoreError as e:
        logger.error("Error reading leaderboard", error=str(e), operation=e.operation)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Leaderboard unavailable"
        )

    return LeaderboardResponse(
        entries=[LeaderboardEntryResponse(**entry.model_dump()) for entry in entries],
        total_count=len(entries),
    )


@router.get("/history/by-tag/{tag_id}", response_model=QuestionHistoryListResponse)
async def get_history_by_tag(
    tag_id: str,
    caller: dict = Depends(auth_dependency),
    history: QuestionHistoryService = Depends(get_history_service),
    limit: int | None = Query(default=None, ge=1, le=100, description="Maximum entries (1-100)"),
):
    """Most recent questions sent to a tag, newest first."""
    try:
        entries = await history.top_by_tag(tag_id, limit or settings.HISTORY_TOP_LIMIT)
    except CollectionStoreError as e:
        logger.error("Error reading question history", tag_id=tag_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Question history unavailable"
        )

    return QuestionHistoryListResponse(
        tag_id=tag_id,
        entries=[QuestionHistoryResponse.from_entry(entry) for entry in entries],
    )
