"""
Leaderboard service: cumulative points per person who was asked for help.
All mutations are read-modify-write cycles inside the store's critical section.
"""

from tagask.db.collection_store import CollectionStore
from tagask.infrastructure.observability.logging import get_logger
from tagask.models.domain.directory_domain import AudienceMember
from tagask.models.domain.question_domain import LeaderboardEntry

logger = get_logger(__name__)


class LeaderboardService:
    def __init__(self, store: CollectionStore):
        self._store = store

    async def award(self, user_id: str, display_name: str, delta: int = 1) -> LeaderboardEntry:
        """
        Add points to one user, creating the entry on first award.

        Args:
            user_id: Directory user id (entry key)
            display_name: Latest known name; ignored when empty
            delta: Positive number of points

        Returns:
            LeaderboardEntry: The entry after the update
        """
        entries = await self.award_many([AudienceMember(user_id, display_name)], delta)
        return entries[0]

    async def award_many(
        self, members: list[AudienceMember], delta: int = 1
    ) -> list[LeaderboardEntry]:
        """Award every member in one load/save cycle. Returns the updated entries in input order."""
        if not isinstance(delta, int) or isinstance(delta, bool) or delta <= 0:
            raise ValueError("Points delta must be a positive integer")
        if not members:
            return []

        async with self._store.locked():
            entries = [LeaderboardEntry(**record) for record in await self._store.load()]
            by_user = {entry.user_id: entry for entry in entries}

            updated = []
            for member in members:
                entry = by_user.get(member.user_id)
                if entry is None:
                    entry = LeaderboardEntry(user_id=member.user_id, display_name="", points=0)
                    entries.append(entry)
                    by_user[member.user_id] = entry

                entry.points += delta
                # Never blank out a name we already know
                if member.display_name:
                    entry.display_name = member.display_name
                updated.append(entry.model_copy())

            await self._store.save([entry.model_dump() for entry in entries])

        logger.info("Leaderboard points awarded", users=len(members), delta=delta)
        return updated

    async def list_entries(self) -> list[LeaderboardEntry]:
        """All entries, most points first; ties keep insertion order."""
        async with self._store.locked():
            records = await self._store.load()

        entries = [LeaderboardEntry(**record) for record in records]
        # sorted() is stable, so equal scores stay in the order they were created
        return sorted(entries, key=lambda entry: entry.points, reverse=True)
