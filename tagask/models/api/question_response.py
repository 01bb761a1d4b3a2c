# tagask/models/api/question_response.py
"""
Question, leaderboard, history and tag API response models.
Used by routes for output formatting.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from tagask.models.domain.question_domain import AskQuestionOutcome, QuestionHistoryEntry


class AskQuestionResponse(BaseModel):
    """Response for a delivered question."""

    success: bool = Field(default=True, description="Whether the question was delivered")
    delivery_mode: str = Field(..., description="email or teams")
    recipients: list[str] = Field(..., description="Display names of everyone contacted")
    conversation_id: str | None = Field(None, description="Chat id (absent for email)")
    conversation_url: str | None = Field(None, description="Chat deep link (absent for email)")
    warnings: list[str] = Field(
        default_factory=list, description="Bookkeeping steps that failed after delivery"
    )

    @classmethod
    def from_outcome(cls, outcome: AskQuestionOutcome) -> "AskQuestionResponse":
        receipt = outcome.receipt
        return cls(
            delivery_mode=receipt.delivery_mode.value,
            recipients=receipt.recipients,
            conversation_id=receipt.conversation_id,
            conversation_url=receipt.conversation_url,
            warnings=list(outcome.warnings),
        )


class LeaderboardEntryResponse(BaseModel):
    user_id: str
    display_name: str
    points: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]
    total_count: int


class TagSnapshotResponse(BaseModel):
    id: str
    name: str


class QuestionHistoryResponse(BaseModel):
    """One dispatched question."""

    id: str
    topic: str
    question: str
    tags: list[TagSnapshotResponse]
    conversation_id: str
    conversation_url: str | None = None
    requester_id: str
    created_at: datetime
    summary: str | None = None

    @classmethod
    def from_entry(cls, entry: QuestionHistoryEntry) -> "QuestionHistoryResponse":
        return cls(
            id=entry.id,
            topic=entry.topic,
            question=entry.body,
            tags=[TagSnapshotResponse(id=tag.id, name=tag.name) for tag in entry.tags],
            conversation_id=entry.conversation_id,
            conversation_url=entry.conversation_url,
            requester_id=entry.requester_id,
            created_at=entry.created_at,
            summary=entry.summary,
        )


class QuestionHistoryListResponse(BaseModel):
    tag_id: str
    entries: list[QuestionHistoryResponse]


class SummaryResponse(BaseModel):
    conversation_id: str
    summary: str
    attached: bool = Field(..., description="Whether a history entry now carries the summary")


class TagResponse(BaseModel):
    id: str
    display_name: str
    description: str = ""
    member_count: int = 0


class TagMemberResponse(BaseModel):
    id: str = Field(..., description="Membership id, used to remove the member")
    user_id: str | None = None
    display_name: str = ""


class TagUpdateResponse(BaseModel):
    tag: TagResponse
    added: list[str]
    removed: list[str]
    failed_additions: list[str]
    failed_removals: list[str]
