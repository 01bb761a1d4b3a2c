"""
FastAPI dependency providers.
Each provider builds its service once per process; tests swap them through
app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import HTTPException, status

from tagask.config import settings
from tagask.db.collection_store import (
    CollectionStore,
    JsonFileCollectionStore,
    RedisCollectionStore,
)
from tagask.services.graph.client import graph_directory_service
from tagask.services.graph.gateway import DirectoryGateway
from tagask.services.leaderboard_service import LeaderboardService
from tagask.services.question_history_service import QuestionHistoryService
from tagask.services.questions.question_service import QuestionService
from tagask.services.redis_client import fast_redis
from tagask.services.summarization.base import SummarizerError
from tagask.services.summarization.bridge import SummarizationBridge, build_summarizer
from tagask.services.tag_service import TagService

LEADERBOARD_COLLECTION = "leaderboard"
HISTORY_COLLECTION = "question_history"


def _build_store(name: str, path) -> CollectionStore:
    config = settings.get_store_config()
    if config["backend"] == "redis":
        return RedisCollectionStore(
            name,
            fast_redis,
            key_prefix=config["key_prefix"],
            lock_timeout=config["lock_timeout"],
        )
    if config["backend"] == "json":
        return JsonFileCollectionStore(name, path)
    raise ValueError(f"Unknown storage backend: {config['backend']}")


@lru_cache
def get_leaderboard_store() -> CollectionStore:
    return _build_store(LEADERBOARD_COLLECTION, settings.ledger_path())


@lru_cache
def get_history_store() -> CollectionStore:
    return _build_store(HISTORY_COLLECTION, settings.history_path())


def get_gateway() -> DirectoryGateway:
    return graph_directory_service


@lru_cache
def get_leaderboard_service() -> LeaderboardService:
    return LeaderboardService(get_leaderboard_store())


@lru_cache
def get_history_service() -> QuestionHistoryService:
    return QuestionHistoryService(get_history_store())


@lru_cache
def get_question_service() -> QuestionService:
    return QuestionService(get_gateway(), get_leaderboard_service(), get_history_service())


@lru_cache
def get_tag_service() -> TagService:
    return TagService(get_gateway())


@lru_cache
def get_summarization_bridge() -> SummarizationBridge:
    try:
        summarizer = build_summarizer()
    except SummarizerError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Summarizer not configured: {e}",
        ) from e
    return SummarizationBridge(get_gateway(), summarizer)


async def close_summarization_bridge() -> None:
    """Close the cached bridge's summarizer, if a request ever built one."""
    if not get_summarization_bridge.cache_info().currsize:
        return
    bridge = get_summarization_bridge()
    get_summarization_bridge.cache_clear()
    await bridge.close()
