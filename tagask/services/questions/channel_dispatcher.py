"""
Channel dispatch: deliver a question to a resolved audience.

Three mutually exclusive strategies, chosen by (delivery mode, target):
email to everyone, one group chat with everyone, or a one-on-one chat with a
single member picked uniformly at random.
"""

import asyncio
import random

from tagask.infrastructure.observability.logging import get_logger
from tagask.models.domain.directory_domain import AudienceMember, ConversationRef
from tagask.models.domain.question_domain import (
    DeliveryMode,
    DispatchIntent,
    DispatchReceipt,
    TargetCardinality,
)
from tagask.services.graph.gateway import DirectoryGateway, GraphAPIError

logger = get_logger(__name__)

EMAIL_SUBJECT_PREFIX = "Call for aid"


class DispatchError(Exception):
    """Raised when a question could not be delivered."""

    def __init__(
        self,
        message: str,
        recoverable: bool = True,
        conversation: ConversationRef | None = None,
    ):
        super().__init__(message)
        self.recoverable = recoverable
        self.conversation = conversation


class PartialDispatchError(DispatchError):
    """The chat exists but the question was not posted into it. Nothing is rolled back."""


def build_email_subject(topic: str, tag_ids: tuple[str, ...] | list[str]) -> str:
    return f"{EMAIL_SUBJECT_PREFIX} - {topic} - {', '.join(tag_ids)}"


class ChannelDispatcher:
    def __init__(self, gateway: DirectoryGateway, rng: random.Random | None = None):
        self._gateway = gateway
        self._rng = rng or random.SystemRandom()

    async def dispatch(
        self,
        access_token: str,
        intent: DispatchIntent,
        audience: list[AudienceMember],
        requester_id: str,
        topic: str,
        body: str,
    ) -> DispatchReceipt:
        """
        Deliver the question through the channel the intent selects.

        Raises:
            DispatchError: Nothing usable was delivered
            PartialDispatchError: Chat created, first message not posted
        """
        if not audience:
            raise ValueError("Cannot dispatch to an empty audience")

        if intent.delivery_mode == DeliveryMode.EMAIL:
            return await self._send_email(access_token, intent, audience, topic, body)

        if intent.target == TargetCardinality.ALL:
            return await self._start_group_chat(access_token, audience, requester_id, topic, body)

        return await self._start_direct_chat(access_token, audience, requester_id, body)

    def choose_one(self, audience: list[AudienceMember]) -> AudienceMember:
        """Uniform pick over the current audience."""
        return audience[self._rng.randrange(len(audience))]

    async def _send_email(
        self,
        access_token: str,
        intent: DispatchIntent,
        audience: list[AudienceMember],
        topic: str,
        body: str,
    ) -> DispatchReceipt:
        addresses = await asyncio.gather(
            *(self._lookup_address(access_token, member) for member in audience)
        )
        reachable = [(member, address) for member, address in zip(audience, addresses) if address]

        if not reachable:
            raise DispatchError("None of the eligible members has a mail address")

        subject = build_email_subject(topic, intent.tag_ids)
        try:
            await self._gateway.send_email(
                access_token, subject, body, [address for _, address in reachable]
            )
        except GraphAPIError as e:
            logger.error("Question mail failed", recipient_count=len(reachable), error=str(e))
            raise DispatchError(f"Failed to send mail: {e}") from e

        if len(reachable) < len(audience):
            logger.warning(
                "Some members had no mail address",
                skipped=len(audience) - len(reachable),
            )

        return DispatchReceipt(
            delivery_mode=DeliveryMode.EMAIL,
            contacted=[member for member, _ in reachable],
        )

    async def _lookup_address(self, access_token: str, member: AudienceMember) -> str | None:
        try:
            return await self._gateway.resolve_mail_address(access_token, member.user_id)
        except Exception as e:
            logger.warning(
                "Mail address lookup failed, skipping member",
                user_id=member.user_id,
                error=str(e),
            )
            return None

    async def _start_group_chat(
        self,
        access_token: str,
        audience: list[AudienceMember],
        requester_id: str,
        topic: str,
        body: str,
    ) -> DispatchReceipt:
        try:
            chat = await self._gateway.create_group_conversation(
                access_token, topic, [member.user_id for member in audience], requester_id
            )
        except GraphAPIError as e:
            logger.error("Group chat creation failed", member_count=len(audience), error=str(e))
            raise DispatchError(f"Failed to create group chat: {e}") from e

        await self._post_question(access_token, chat, body)
        return DispatchReceipt(
            delivery_mode=DeliveryMode.TEAMS,
            contacted=list(audience),
            conversation_id=chat.id,
            conversation_url=chat.web_url,
        )

    async def _start_direct_chat(
        self,
        access_token: str,
        audience: list[AudienceMember],
        requester_id: str,
        body: str,
    ) -> DispatchReceipt:
        chosen = self.choose_one(audience)
        logger.info("Random member chosen", user_id=chosen.user_id, candidates=len(audience))

        try:
            chat = await self._gateway.create_direct_conversation(
                access_token, chosen.user_id, requester_id
            )
        except GraphAPIError as e:
            logger.error("One-on-one chat creation failed", user_id=chosen.user_id, error=str(e))
            raise DispatchError(f"Failed to create one-on-one chat: {e}") from e

        await self._post_question(access_token, chat, body)
        return DispatchReceipt(
            delivery_mode=DeliveryMode.TEAMS,
            contacted=[chosen],
            conversation_id=chat.id,
            conversation_url=chat.web_url,
        )

    async def _post_question(self, access_token: str, chat: ConversationRef, body: str) -> None:
        try:
            await self._gateway.post_message(access_token, chat.id, body)
        except GraphAPIError as e:
            logger.error("Question post failed after chat creation", chat_id=chat.id, error=str(e))
            raise PartialDispatchError(
                f"Chat {chat.id} was created but the question could not be posted: {e}",
                conversation=chat,
            ) from e
