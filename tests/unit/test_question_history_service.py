import pytest

from tagask.models.domain.question_domain import QuestionHistoryDraft, TagSnapshot
from tagask.services.question_history_service import QuestionHistoryService


def _draft(conversation_id: str, *tag_ids: str) -> QuestionHistoryDraft:
    return QuestionHistoryDraft(
        topic=f"Topic {conversation_id}",
        body="How do I deploy?",
        tags=[TagSnapshot(id=tag_id, name=tag_id.upper()) for tag_id in tag_ids],
        conversation_id=conversation_id,
        conversation_url=f"https://teams.microsoft.com/l/chat/{conversation_id}",
        requester_id="user-123",
    )


@pytest.mark.asyncio
async def test_append_assigns_id_and_increasing_created_at(memory_store):
    history = QuestionHistoryService(memory_store)

    first = await history.append(_draft("c1", "t1"))
    second = await history.append(_draft("c2", "t1"))

    assert first.id and second.id and first.id != second.id
    assert second.created_at > first.created_at
    assert first.summary is None


@pytest.mark.asyncio
async def test_top_by_tag_newest_first_and_limited(memory_store):
    history = QuestionHistoryService(memory_store)
    for index in range(7):
        await history.append(_draft(f"c{index}", "t1"))
    await history.append(_draft("other", "t2"))

    top = await history.top_by_tag("t1")

    assert [entry.conversation_id for entry in top] == ["c6", "c5", "c4", "c3", "c2"]


@pytest.mark.asyncio
async def test_top_by_tag_matches_any_tag_in_snapshot(memory_store):
    history = QuestionHistoryService(memory_store)
    await history.append(_draft("c1", "t1", "t2"))

    assert [entry.conversation_id for entry in await history.top_by_tag("t2", 3)] == ["c1"]
    assert await history.top_by_tag("t1", 0) == []
    assert await history.top_by_tag("t3") == []


@pytest.mark.asyncio
async def test_attach_summary_overwrites(memory_store):
    history = QuestionHistoryService(memory_store)
    await history.append(_draft("c1", "t1"))

    assert await history.attach_summary("c1", "first") is True
    assert await history.attach_summary("c1", "second") is True

    [entry] = await history.top_by_tag("t1")
    assert entry.summary == "second"


@pytest.mark.asyncio
async def test_attach_summary_without_entry_is_noop(memory_store):
    history = QuestionHistoryService(memory_store)

    assert await history.attach_summary("missing", "text") is False
    assert memory_store.save_count == 0
