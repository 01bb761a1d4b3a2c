# tagask/models/domain/directory_domain.py
"""
Directory Domain Models
Domain models for Microsoft Graph tags, tag members, presence and chats.
Used by the Graph client to wrap raw API payloads and by services for business rules.
"""

from dataclasses import dataclass
from datetime import datetime

DEFAULT_DISPLAY_NAME = "User"
AVAILABLE = "Available"


def _parse_datetime_iso(dt_str: str | None) -> datetime | None:
    """Parse ISO datetime string as returned by Graph."""
    if not dt_str:
        return None
    try:
        return datetime.fromisoformat(dt_str.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class AudienceMember:
    """A person eligible to receive a question. Never persisted standalone."""

    user_id: str
    display_name: str = ""

    @property
    def label(self) -> str:
        return self.display_name or DEFAULT_DISPLAY_NAME


class Tag:
    """Domain model for a team tag."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.team_id = data.get("teamId")
        self.display_name = data.get("displayName", "")
        self.description = data.get("description") or ""
        self.member_count = data.get("memberCount") or 0
        self.tag_type = data.get("tagType", "standard")
        self.raw_data = data

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "display_name": self.display_name,
            "description": self.description,
            "member_count": self.member_count,
        }


class TagMember:
    """Domain model for one tag membership record."""

    def __init__(self, data: dict):
        # "id" is the membership id, needed to remove the member from the tag
        self.id = data.get("id")
        self.user_id = data.get("userId")
        self.display_name = data.get("displayName") or ""
        self.tenant_id = data.get("tenantId")
        self.raw_data = data

    def to_audience_member(self) -> AudienceMember:
        return AudienceMember(user_id=self.user_id, display_name=self.display_name)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "display_name": self.display_name,
        }


class Presence:
    """Domain model for a user's presence snapshot."""

    def __init__(self, data: dict):
        self.user_id = data.get("id")
        self.availability = data.get("availability")
        self.activity = data.get("activity")
        self.raw_data = data

    def is_available(self) -> bool:
        """Only an explicit "Available" counts; anything else or missing does not."""
        return self.availability == AVAILABLE


class ConversationRef:
    """Domain model for a created chat."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.web_url = data.get("webUrl")
        self.chat_type = data.get("chatType")
        self.topic = data.get("topic")
        self.raw_data = data


class ConversationMessage:
    """Domain model for one chat message."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.message_type = data.get("messageType", "message")
        self.created_at = _parse_datetime_iso(data.get("createdDateTime"))

        body = data.get("body") or {}
        self.content = body.get("content") or ""
        self.content_type = body.get("contentType", "text")

        sender = data.get("from") or {}
        user = sender.get("user") or {}
        self.sender_id = user.get("id")
        self.sender_display_name = user.get("displayName") or DEFAULT_DISPLAY_NAME
        self.raw_data = data

    def has_content(self) -> bool:
        return bool(self.content)

    def to_transcript_line(self) -> str:
        return f"{self.sender_display_name}: {self.content}"
