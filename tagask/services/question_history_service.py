"""
Question history service.
Append-only log of dispatched (non-email) questions; the only in-place change is
attaching a conversation summary.
"""

import uuid
from datetime import UTC, datetime, timedelta

from tagask.db.collection_store import CollectionStore
from tagask.infrastructure.observability.logging import get_logger
from tagask.models.domain.question_domain import QuestionHistoryDraft, QuestionHistoryEntry

logger = get_logger(__name__)

DEFAULT_TOP_LIMIT = 5


class QuestionHistoryService:
    def __init__(self, store: CollectionStore):
        self._store = store

    async def _load_entries(self) -> list[QuestionHistoryEntry]:
        return [QuestionHistoryEntry(**record) for record in await self._store.load()]

    async def _save_entries(self, entries: list[QuestionHistoryEntry]) -> None:
        await self._store.save([entry.model_dump(mode="json") for entry in entries])

    async def append(self, draft: QuestionHistoryDraft) -> QuestionHistoryEntry:
        """
        Record a dispatched question.

        The store assigns id and created_at. created_at is kept strictly after the
        newest existing entry so newest-first ordering is total.
        """
        async with self._store.locked():
            entries = await self._load_entries()

            created_at = datetime.now(UTC)
            if entries:
                newest = max(entry.created_at for entry in entries)
                if created_at <= newest:
                    created_at = newest + timedelta(microseconds=1)

            entry = QuestionHistoryEntry(
                **draft.model_dump(),
                id=str(uuid.uuid4()),
                created_at=created_at,
            )
            entries.append(entry)
            await self._save_entries(entries)

        logger.info(
            "Question history appended",
            entry_id=entry.id,
            conversation_id=entry.conversation_id,
            tag_ids=[tag.id for tag in entry.tags],
        )
        return entry

    async def top_by_tag(
        self, tag_id: str, limit: int = DEFAULT_TOP_LIMIT
    ) -> list[QuestionHistoryEntry]:
        """Most recent entries whose tag snapshot contains tag_id, at most limit."""
        if limit <= 0:
            return []

        async with self._store.locked():
            entries = await self._load_entries()

        matching = [entry for entry in entries if entry.has_tag(tag_id)]
        matching.sort(key=lambda entry: entry.created_at, reverse=True)
        return matching[:limit]

    async def attach_summary(self, conversation_id: str, summary: str) -> bool:
        """
        Overwrite the summary of the entry for conversation_id.

        Returns:
            bool: False when no entry matches (not an error)
        """
        async with self._store.locked():
            entries = await self._load_entries()
            entry = next(
                (entry for entry in entries if entry.conversation_id == conversation_id), None
            )
            if entry is None:
                logger.info(
                    "No history entry for summarized conversation",
                    conversation_id=conversation_id,
                )
                return False

            entry.summary = summary
            await self._save_entries(entries)

        logger.info(
            "Summary attached to history entry",
            entry_id=entry.id,
            conversation_id=conversation_id,
        )
        return True
