import asyncio

import pytest

from tagask.models.domain.directory_domain import AudienceMember
from tagask.services.leaderboard_service import LeaderboardService


@pytest.mark.asyncio
async def test_award_twice_accumulates_and_keeps_known_name(memory_store):
    leaderboard = LeaderboardService(memory_store)

    await leaderboard.award("u-alice", "Alice", 1)
    entry = await leaderboard.award("u-alice", "", 1)

    assert entry.points == 2
    assert entry.display_name == "Alice"
    assert memory_store.records == [{"user_id": "u-alice", "display_name": "Alice", "points": 2}]


@pytest.mark.asyncio
async def test_award_overwrites_name_when_given(memory_store):
    leaderboard = LeaderboardService(memory_store)

    await leaderboard.award("u-alice", "Alice")
    entry = await leaderboard.award("u-alice", "Alice Smith")

    assert entry.display_name == "Alice Smith"


@pytest.mark.asyncio
@pytest.mark.parametrize("delta", [0, -1, 1.5, True])
async def test_award_rejects_non_positive_or_non_int_delta(memory_store, delta):
    leaderboard = LeaderboardService(memory_store)

    with pytest.raises(ValueError):
        await leaderboard.award("u-alice", "Alice", delta)

    assert memory_store.records == []


@pytest.mark.asyncio
async def test_award_many_uses_one_save(memory_store):
    leaderboard = LeaderboardService(memory_store)

    updated = await leaderboard.award_many(
        [AudienceMember("u-alice", "Alice"), AudienceMember("u-bob", "Bob")]
    )

    assert [entry.user_id for entry in updated] == ["u-alice", "u-bob"]
    assert memory_store.save_count == 1


@pytest.mark.asyncio
async def test_list_sorts_by_points_with_stable_ties(memory_store):
    memory_store.records = [
        {"user_id": "u-a", "display_name": "A", "points": 1},
        {"user_id": "u-b", "display_name": "B", "points": 3},
        {"user_id": "u-c", "display_name": "C", "points": 1},
    ]
    leaderboard = LeaderboardService(memory_store)

    entries = await leaderboard.list_entries()

    assert [entry.user_id for entry in entries] == ["u-b", "u-a", "u-c"]


@pytest.mark.asyncio
async def test_concurrent_awards_are_not_lost(memory_store):
    leaderboard = LeaderboardService(memory_store)

    await asyncio.gather(*(leaderboard.award("u-alice", "Alice") for _ in range(20)))

    entries = await leaderboard.list_entries()
    assert entries[0].points == 20
