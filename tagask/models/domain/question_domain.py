# tagask/models/domain/question_domain.py
"""
Question Domain Models
Requests, dispatch receipts, outcomes and the persisted leaderboard/history records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from tagask.models.domain.directory_domain import AudienceMember


class DeliveryMode(str, Enum):
    EMAIL = "email"
    TEAMS = "teams"  # group chat or one-on-one chat, chosen by TargetCardinality


class TargetCardinality(str, Enum):
    ALL = "all"
    ONE_RANDOM = "one_random"


class QuestionRequest(BaseModel):
    """
    A request to ask a question of the people holding a set of tags.

    Shape only; semantic validation lives in validate_question_request so that
    contradictory requests are reported as outcomes rather than raised.
    """

    tags: list[str] = Field(default_factory=list)
    topic: str = ""
    body: str = ""
    team_id: str = ""
    requester_id: str = ""
    delivery_mode: DeliveryMode = DeliveryMode.TEAMS
    target: TargetCardinality = TargetCardinality.ALL
    only_online: bool = False

    def normalized_tags(self) -> list[str]:
        """Tag ids with surrounding whitespace removed, deduplicated, first-seen order kept."""
        seen: set[str] = set()
        tags = []
        for tag in self.tags:
            tag_id = (tag or "").strip()
            if tag_id and tag_id not in seen:
                seen.add(tag_id)
                tags.append(tag_id)
        return tags


def validate_question_request(request: QuestionRequest) -> list[str]:
    """Return every reason the request cannot be dispatched; empty when valid."""
    reasons = []

    if not request.tags:
        reasons.append("At least one tag is required")
    elif any(not (tag or "").strip() for tag in request.tags):
        reasons.append("Tag identifiers must not be blank")

    if not request.topic.strip():
        reasons.append("Question topic is required")
    if not request.body.strip():
        reasons.append("Question is required")
    if not request.team_id.strip():
        reasons.append("Team id is required")
    if not request.requester_id.strip():
        reasons.append("Requester id is required")

    if request.only_online and request.delivery_mode == DeliveryMode.EMAIL:
        reasons.append("Online-only targeting cannot be combined with email delivery")

    return reasons


@dataclass(frozen=True)
class DispatchIntent:
    delivery_mode: DeliveryMode
    target: TargetCardinality
    tag_ids: tuple[str, ...] = ()


@dataclass
class DispatchReceipt:
    """What was actually delivered. The requester is never listed as a recipient."""

    delivery_mode: DeliveryMode
    contacted: list[AudienceMember]
    conversation_id: str | None = None
    conversation_url: str | None = None

    @property
    def recipients(self) -> list[str]:
        return [member.label for member in self.contacted]

    @property
    def is_email(self) -> bool:
        return self.delivery_mode == DeliveryMode.EMAIL


class OutcomeKind(str, Enum):
    DELIVERED = "delivered"
    VALIDATION_FAILED = "validation_failed"
    EMPTY_AUDIENCE = "empty_audience"
    DELIVERY_FAILED = "delivery_failed"


@dataclass
class AskQuestionOutcome:
    kind: OutcomeKind
    receipt: DispatchReceipt | None = None
    reasons: list[str] = field(default_factory=list)
    message: str | None = None
    partial: bool = False
    conversation_id: str | None = None
    conversation_url: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.kind == OutcomeKind.DELIVERED

    @classmethod
    def validation_failed(cls, reasons: list[str]) -> "AskQuestionOutcome":
        return cls(kind=OutcomeKind.VALIDATION_FAILED, reasons=reasons)

    @classmethod
    def empty_audience(cls) -> "AskQuestionOutcome":
        return cls(kind=OutcomeKind.EMPTY_AUDIENCE, message="No members were eligible for all tags")


class TagSnapshot(BaseModel):
    """Tag id and name as they were when the question was sent."""

    id: str
    name: str


class LeaderboardEntry(BaseModel):
    user_id: str
    display_name: str = ""
    points: int = 0


class QuestionHistoryDraft(BaseModel):
    """History fields supplied by the caller; id and created_at belong to the store."""

    topic: str
    body: str
    tags: list[TagSnapshot]
    conversation_id: str
    conversation_url: str | None = None
    requester_id: str


class QuestionHistoryEntry(QuestionHistoryDraft):
    id: str
    created_at: datetime
    summary: str | None = None

    def has_tag(self, tag_id: str) -> bool:
        return any(tag.id == tag_id for tag in self.tags)
