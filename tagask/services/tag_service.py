"""
Tag Service - team tag management used by the tag picker UI.
Thin layer over the directory gateway; Graph errors propagate to the routes.
"""

import asyncio
from dataclasses import dataclass, field

from tagask.infrastructure.observability.logging import get_logger
from tagask.models.domain.directory_domain import Tag, TagMember
from tagask.services.graph.gateway import DirectoryGateway

logger = get_logger(__name__)

DUPLICATE_SUFFIX = " (1)"


@dataclass
class TagUpdateResult:
    tag: Tag
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    failed_additions: list[str] = field(default_factory=list)
    failed_removals: list[str] = field(default_factory=list)


class TagService:
    def __init__(self, gateway: DirectoryGateway):
        self._gateway = gateway

    async def list_tags(self, access_token: str, team_id: str) -> list[Tag]:
        return await self._gateway.list_tags(access_token, team_id)

    async def get_tag(self, access_token: str, team_id: str, tag_id: str) -> Tag:
        return await self._gateway.get_tag(access_token, team_id, tag_id)

    async def list_members(self, access_token: str, team_id: str, tag_id: str) -> list[TagMember]:
        return await self._gateway.list_tag_member_records(access_token, team_id, tag_id)

    async def create_tag(
        self,
        access_token: str,
        team_id: str,
        display_name: str,
        description: str,
        member_ids: list[str],
    ) -> Tag:
        # Graph rejects a tag without members, and duplicates in one request
        unique_ids = list(dict.fromkeys(member_ids))
        if not unique_ids:
            raise ValueError("A tag needs at least one member")

        return await self._gateway.create_tag(
            access_token, team_id, display_name, description, unique_ids
        )

    async def update_tag(
        self,
        access_token: str,
        team_id: str,
        tag_id: str,
        display_name: str,
        description: str,
        add_user_ids: list[str] | None = None,
        remove_membership_ids: list[str] | None = None,
    ) -> TagUpdateResult:
        """
        Rename/describe a tag, then add and remove members one by one.

        A failed rename aborts the whole update. Individual member changes that
        fail are logged and reported in the result; the rest still go through.
        """
        tag = await self._gateway.update_tag(
            access_token, team_id, tag_id, display_name, description
        )
        result = TagUpdateResult(tag=tag)

        for user_id in add_user_ids or []:
            try:
                await self._gateway.add_tag_member(access_token, team_id, tag_id, user_id)
                result.added.append(user_id)
            except Exception as e:
                logger.warning(
                    "Tag member not added", tag_id=tag_id, user_id=user_id, error=str(e)
                )
                result.failed_additions.append(user_id)

        for membership_id in remove_membership_ids or []:
            try:
                await self._gateway.remove_tag_member(access_token, team_id, tag_id, membership_id)
                result.removed.append(membership_id)
            except Exception as e:
                logger.warning(
                    "Tag member not removed",
                    tag_id=tag_id,
                    membership_id=membership_id,
                    error=str(e),
                )
                result.failed_removals.append(membership_id)

        logger.info(
            "Tag updated",
            team_id=team_id,
            tag_id=tag_id,
            added=len(result.added),
            removed=len(result.removed),
            failed=len(result.failed_additions) + len(result.failed_removals),
        )
        return result

    async def delete_tag(self, access_token: str, team_id: str, tag_id: str) -> None:
        await self._gateway.delete_tag(access_token, team_id, tag_id)

    async def duplicate_tag(self, access_token: str, team_id: str, tag_id: str) -> Tag:
        """Copy a tag and its members as "<name> (1)"."""
        source, members = await asyncio.gather(
            self._gateway.get_tag(access_token, team_id, tag_id),
            self._gateway.list_tag_member_records(access_token, team_id, tag_id),
        )

        copy = await self.create_tag(
            access_token,
            team_id,
            f"{source.display_name}{DUPLICATE_SUFFIX}",
            source.description,
            [member.user_id for member in members if member.user_id],
        )
        logger.info("Tag duplicated", team_id=team_id, source_tag_id=tag_id, new_tag_id=copy.id)
        return copy
