"""
Question service: the single "ask a question" operation.

Phase 1 (_deliver) validates, resolves the audience and dispatches. Only a
confirmed dispatch moves on to phase 2 (_record), which awards points and writes
history on a best-effort basis. Phase 2 failures are logged and returned as
warnings; they never turn a delivered question into a failure, and the delivery
is never rolled back.
"""

import asyncio

from tagask.infrastructure.observability.logging import get_logger, log_dispatch
from tagask.models.domain.question_domain import (
    AskQuestionOutcome,
    DispatchIntent,
    DispatchReceipt,
    OutcomeKind,
    QuestionHistoryDraft,
    QuestionRequest,
    TagSnapshot,
    validate_question_request,
)
from tagask.services.graph.gateway import DirectoryGateway, GraphAPIError
from tagask.services.leaderboard_service import LeaderboardService
from tagask.services.question_history_service import QuestionHistoryService
from tagask.services.questions.audience_resolver import AudienceResolver
from tagask.services.questions.channel_dispatcher import (
    ChannelDispatcher,
    DispatchError,
    PartialDispatchError,
)

logger = get_logger(__name__)

RETRY_MESSAGE = "We could not deliver your question right now. Please try again."
PARTIAL_MESSAGE = (
    "A chat was created but your question could not be posted to it. "
    "Open the chat to ask again, or retry."
)
POINTS_PER_RECIPIENT = 1


class QuestionService:
    def __init__(
        self,
        gateway: DirectoryGateway,
        leaderboard: LeaderboardService,
        history: QuestionHistoryService,
        resolver: AudienceResolver | None = None,
        dispatcher: ChannelDispatcher | None = None,
    ):
        self._gateway = gateway
        self._leaderboard = leaderboard
        self._history = history
        self._resolver = resolver or AudienceResolver(gateway)
        self._dispatcher = dispatcher or ChannelDispatcher(gateway)

    async def ask_question(self, access_token: str, request: QuestionRequest) -> AskQuestionOutcome:
        """
        Ask a question of everyone (or one random person) holding all requested tags.

        Returns:
            AskQuestionOutcome: delivered, validation_failed, empty_audience or delivery_failed
        """
        outcome = await self._deliver(access_token, request)

        if outcome.delivered:
            outcome.warnings = await self._record(access_token, request, outcome.receipt)

        log_dispatch(
            outcome=outcome.kind.value,
            team_id=request.team_id,
            requester_id=request.requester_id,
            tag_count=len(request.tags),
            recipient_count=len(outcome.receipt.contacted) if outcome.receipt else 0,
            conversation_id=outcome.conversation_id,
            error=outcome.message if outcome.kind == OutcomeKind.DELIVERY_FAILED else None,
        )
        return outcome

    async def _deliver(self, access_token: str, request: QuestionRequest) -> AskQuestionOutcome:
        """Phase 1: validate, resolve, dispatch. No state is written here."""
        reasons = validate_question_request(request)
        if reasons:
            return AskQuestionOutcome.validation_failed(reasons)

        tag_ids = request.normalized_tags()

        try:
            audience = await self._resolver.resolve(
                access_token,
                request.team_id,
                tag_ids,
                request.requester_id,
                only_online=request.only_online,
            )
        except GraphAPIError as e:
            logger.error(
                "Audience resolution failed",
                team_id=request.team_id,
                tag_ids=tag_ids,
                error=str(e),
                status_code=e.status_code,
            )
            return AskQuestionOutcome(kind=OutcomeKind.DELIVERY_FAILED, message=RETRY_MESSAGE)

        if not audience:
            return AskQuestionOutcome.empty_audience()

        intent = DispatchIntent(
            delivery_mode=request.delivery_mode,
            target=request.target,
            tag_ids=tuple(tag_ids),
        )
        try:
            receipt = await self._dispatcher.dispatch(
                access_token, intent, audience, request.requester_id, request.topic, request.body
            )
        except PartialDispatchError as e:
            return AskQuestionOutcome(
                kind=OutcomeKind.DELIVERY_FAILED,
                message=PARTIAL_MESSAGE,
                partial=True,
                conversation_id=e.conversation.id if e.conversation else None,
                conversation_url=e.conversation.web_url if e.conversation else None,
            )
        except DispatchError as e:
            logger.error("Question dispatch failed", team_id=request.team_id, error=str(e))
            return AskQuestionOutcome(kind=OutcomeKind.DELIVERY_FAILED, message=RETRY_MESSAGE)

        return AskQuestionOutcome(
            kind=OutcomeKind.DELIVERED,
            receipt=receipt,
            conversation_id=receipt.conversation_id,
            conversation_url=receipt.conversation_url,
        )

    async def _record(
        self, access_token: str, request: QuestionRequest, receipt: DispatchReceipt
    ) -> list[str]:
        """Phase 2: award points and append history. Returns warnings, never raises."""
        warnings = []

        try:
            await self._leaderboard.award_many(receipt.contacted, POINTS_PER_RECIPIENT)
        except Exception as e:
            logger.error(
                "Persistence degraded: leaderboard update failed",
                recipients=[member.user_id for member in receipt.contacted],
                error=str(e),
                error_type=type(e).__name__,
            )
            warnings.append("leaderboard_update_failed")

        # Email leaves no conversation to revisit or summarize
        if receipt.is_email:
            return warnings

        try:
            tags = await self._snapshot_tags(
                access_token, request.team_id, request.normalized_tags()
            )
            await self._history.append(
                QuestionHistoryDraft(
                    topic=request.topic,
                    body=request.body,
                    tags=tags,
                    conversation_id=receipt.conversation_id,
                    conversation_url=receipt.conversation_url,
                    requester_id=request.requester_id,
                )
            )
        except Exception as e:
            logger.error(
                "Persistence degraded: history append failed",
                conversation_id=receipt.conversation_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            warnings.append("history_append_failed")

        return warnings

    async def _snapshot_tags(
        self, access_token: str, team_id: str, tag_ids: list[str]
    ) -> list[TagSnapshot]:
        names = await asyncio.gather(
            *(self._tag_name(access_token, team_id, tag_id) for tag_id in tag_ids)
        )
        return [TagSnapshot(id=tag_id, name=name) for tag_id, name in zip(tag_ids, names)]

    async def _tag_name(self, access_token: str, team_id: str, tag_id: str) -> str:
        try:
            tag = await self._gateway.get_tag(access_token, team_id, tag_id)
        except Exception as e:
            logger.warning("Tag name lookup failed, using id", tag_id=tag_id, error=str(e))
            return tag_id
        return tag.display_name or tag_id
