"""
Directory gateway capability interface.

Everything above the Graph client depends on this Protocol only, so services can be
exercised against fixed in-memory fixtures. Every call may fail with GraphAPIError.
"""

from typing import Protocol

from tagask.models.domain.directory_domain import (
    AudienceMember,
    ConversationMessage,
    ConversationRef,
    Presence,
    Tag,
    TagMember,
)


class GraphAPIError(Exception):
    """Custom exception for Microsoft Graph API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | list | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


class DirectoryGateway(Protocol):
    # Audience resolution
    async def list_tag_members(
        self, access_token: str, team_id: str, tag_id: str
    ) -> list[AudienceMember]: ...

    async def get_presence(self, access_token: str, user_id: str) -> Presence | None: ...

    # Delivery
    async def resolve_mail_address(self, access_token: str, user_id: str) -> str | None: ...

    async def create_group_conversation(
        self, access_token: str, topic: str, member_ids: list[str], owner_id: str
    ) -> ConversationRef: ...

    async def create_direct_conversation(
        self, access_token: str, member_id: str, owner_id: str
    ) -> ConversationRef: ...

    async def post_message(self, access_token: str, conversation_id: str, text: str) -> None: ...

    async def send_email(
        self, access_token: str, subject: str, body: str, addresses: list[str]
    ) -> None: ...

    async def get_conversation_messages(
        self, access_token: str, conversation_id: str
    ) -> list[ConversationMessage]: ...

    # Tag management
    async def list_tags(self, access_token: str, team_id: str) -> list[Tag]: ...

    async def get_tag(self, access_token: str, team_id: str, tag_id: str) -> Tag: ...

    async def list_tag_member_records(
        self, access_token: str, team_id: str, tag_id: str
    ) -> list[TagMember]: ...

    async def create_tag(
        self,
        access_token: str,
        team_id: str,
        display_name: str,
        description: str,
        member_ids: list[str],
    ) -> Tag: ...

    async def update_tag(
        self, access_token: str, team_id: str, tag_id: str, display_name: str, description: str
    ) -> Tag: ...

    async def add_tag_member(
        self, access_token: str, team_id: str, tag_id: str, user_id: str
    ) -> TagMember: ...

    async def remove_tag_member(
        self, access_token: str, team_id: str, tag_id: str, membership_id: str
    ) -> None: ...

    async def delete_tag(self, access_token: str, team_id: str, tag_id: str) -> None: ...
