"""
Audience resolution: who may receive a question sent to a set of tags.

A member qualifies only when they hold every requested tag (AND, not OR). The
requester is removed from each tag's member set before intersecting, and the
optional online filter is fail-closed: no confirmed "Available" presence, no delivery.
"""

import asyncio

from tagask.infrastructure.observability.logging import get_logger
from tagask.models.domain.directory_domain import AudienceMember
from tagask.services.graph.gateway import DirectoryGateway

logger = get_logger(__name__)


def intersect_members(
    member_lists: list[list[AudienceMember]], requester_id: str
) -> list[AudienceMember]:
    """
    Members present in every list, requester excluded, deduplicated by user id.

    Order follows first appearance in the first list, so identical inputs always
    give identical output.
    """
    if not member_lists:
        return []

    eligible_ids: set[str] | None = None
    for members in member_lists:
        holders = {
            member.user_id
            for member in members
            if member.user_id and member.user_id != requester_id
        }
        eligible_ids = holders if eligible_ids is None else eligible_ids & holders

    audience = []
    seen: set[str] = set()
    for member in member_lists[0]:
        if member.user_id in eligible_ids and member.user_id not in seen:
            seen.add(member.user_id)
            audience.append(member)
    return audience


class AudienceResolver:
    def __init__(self, gateway: DirectoryGateway):
        self._gateway = gateway

    async def resolve(
        self,
        access_token: str,
        team_id: str,
        tag_ids: list[str],
        requester_id: str,
        only_online: bool = False,
    ) -> list[AudienceMember]:
        """
        Resolve the eligible audience for a question.

        Args:
            access_token: Caller's delegated Graph token
            team_id: Team owning the tags
            tag_ids: Tags the recipient must all hold
            requester_id: Asking user, never part of the audience
            only_online: Keep only members whose presence is "Available"

        Returns:
            list[AudienceMember]: Possibly empty; emptiness is reported by the caller

        Raises:
            GraphAPIError: If any tag's membership cannot be read completely
        """
        # Tags are independent reads; fan out and join before intersecting
        member_lists = await asyncio.gather(
            *(self._gateway.list_tag_members(access_token, team_id, tag_id) for tag_id in tag_ids)
        )

        audience = intersect_members(list(member_lists), requester_id)
        logger.info(
            "Tag audience intersected",
            team_id=team_id,
            tag_count=len(tag_ids),
            per_tag_sizes=[len(members) for members in member_lists],
            audience_size=len(audience),
        )

        if only_online and audience:
            audience = await self._filter_online(access_token, audience)
            logger.info("Online filter applied", audience_size=len(audience))

        return audience

    async def _filter_online(
        self, access_token: str, audience: list[AudienceMember]
    ) -> list[AudienceMember]:
        checks = await asyncio.gather(
            *(self._is_available(access_token, member) for member in audience)
        )
        return [member for member, available in zip(audience, checks) if available]

    async def _is_available(self, access_token: str, member: AudienceMember) -> bool:
        try:
            presence = await self._gateway.get_presence(access_token, member.user_id)
        except Exception as e:
            logger.warning(
                "Presence lookup failed, excluding member",
                user_id=member.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if presence is None:
            logger.debug("No presence data, excluding member", user_id=member.user_id)
            return False
        return presence.is_available()
