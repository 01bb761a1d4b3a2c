# tagask/models/api/question_request.py
"""
Question and tag API request models.
Used by routes for input validation. Field rules beyond shape (blank tags,
online + email) are checked by the question service so they come back as a
structured list of reasons.
"""

from pydantic import BaseModel, Field

from tagask.models.domain.question_domain import (
    DeliveryMode,
    QuestionRequest,
    TargetCardinality,
)


class AskQuestionRequest(BaseModel):
    """Request for asking a question of everyone holding a set of tags."""

    tags: list[str] = Field(default_factory=list, description="Tag ids; members must hold all")
    topic: str = Field(default="", max_length=250, description="Question topic / chat title")
    question: str = Field(default="", description="Question text, posted or mailed as-is")
    team_id: str = Field(default="", description="Team that owns the tags")
    requester_id: str | None = Field(
        default=None, description="Asking user's id (defaults to the signed-in user)"
    )
    delivery_mode: DeliveryMode = Field(default=DeliveryMode.TEAMS, description="email or teams")
    target: TargetCardinality = Field(
        default=TargetCardinality.ALL, description="all matching members or one at random"
    )
    only_online: bool = Field(default=False, description="Only members currently Available")

    def to_domain(self, requester_id: str) -> QuestionRequest:
        return QuestionRequest(
            tags=self.tags,
            topic=self.topic,
            body=self.question,
            team_id=self.team_id,
            requester_id=requester_id,
            delivery_mode=self.delivery_mode,
            target=self.target,
            only_online=self.only_online,
        )


class CreateTagRequest(BaseModel):
    """Request for creating a team tag."""

    display_name: str = Field(..., min_length=1, max_length=40, description="Tag name")
    description: str = Field(default="", max_length=200, description="Tag description")
    member_ids: list[str] = Field(..., min_length=1, description="User ids to add")


class UpdateTagRequest(BaseModel):
    """Request for renaming a tag and changing its members."""

    id: str = Field(..., description="Tag id")
    display_name: str = Field(..., min_length=1, max_length=40, description="New tag name")
    description: str = Field(default="", max_length=200, description="New description")
    members_to_add: list[str] = Field(default_factory=list, description="User ids to add")
    members_to_remove: list[str] = Field(
        default_factory=list, description="Membership ids (not user ids) to remove"
    )
