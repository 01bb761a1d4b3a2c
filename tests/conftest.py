import asyncio
from contextlib import asynccontextmanager

import pytest

from tagask.auth.verify import auth_dependency
from tagask.db.collection_store import CollectionStore, CollectionStoreError
from tagask.models.domain.directory_domain import (
    AudienceMember,
    ConversationMessage,
    ConversationRef,
    Presence,
    Tag,
    TagMember,
)
from tagask.services.graph.gateway import GraphAPIError


@pytest.fixture
def auth_override():
    def _override():
        return {"user_id": "user-123", "access_token": "token-abc", "claims": {"oid": "user-123"}}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


class InMemoryCollectionStore(CollectionStore):
    def __init__(self, name: str = "memory", records: list[dict] | None = None):
        super().__init__(name)
        self.records: list[dict] = list(records or [])
        self.fail_save = False
        self.save_count = 0
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def locked(self):
        async with self._lock:
            yield

    async def load(self) -> list[dict]:
        return [dict(record) for record in self.records]

    async def save(self, records: list[dict]) -> None:
        if self.fail_save:
            raise CollectionStoreError("disk full", collection=self.name, operation="save")
        self.save_count += 1
        self.records = [dict(record) for record in records]


class FakeGateway:
    """In-memory DirectoryGateway that records every call."""

    def __init__(self):
        self.tag_members: dict[str, list[AudienceMember]] = {}
        self.tags: dict[str, Tag] = {}
        self.presence: dict[str, str] = {}
        self.addresses: dict[str, str] = {}
        self.messages: dict[str, list[ConversationMessage]] = {}
        self.calls: list[tuple] = []

        self.fail_tags: set[str] = set()
        self.fail_presence: set[str] = set()
        self.fail_address: set[str] = set()
        self.fail_create_chat = False
        self.fail_post_message = False
        self.fail_send_email = False
        self.fail_add_member: set[str] = set()
        self.fail_remove_member: set[str] = set()
        self._chat_counter = 0

    def _error(self, operation: str, status_code: int = 503) -> GraphAPIError:
        return GraphAPIError(f"{operation} failed", status_code=status_code)

    def external_calls(self) -> list[tuple]:
        return list(self.calls)

    async def list_tag_members(self, access_token, team_id, tag_id):
        self.calls.append(("list_tag_members", team_id, tag_id))
        if tag_id in self.fail_tags:
            raise self._error("list_tag_members")
        return list(self.tag_members.get(tag_id, []))

    async def get_presence(self, access_token, user_id):
        self.calls.append(("get_presence", user_id))
        if user_id in self.fail_presence:
            raise self._error("get_presence")
        availability = self.presence.get(user_id)
        if availability is None:
            return None
        return Presence({"id": user_id, "availability": availability})

    async def resolve_mail_address(self, access_token, user_id):
        self.calls.append(("resolve_mail_address", user_id))
        if user_id in self.fail_address:
            raise self._error("resolve_mail_address", 404)
        return self.addresses.get(user_id)

    async def create_group_conversation(self, access_token, topic, member_ids, owner_id):
        self.calls.append(("create_group_conversation", topic, tuple(member_ids), owner_id))
        if self.fail_create_chat:
            raise self._error("create_group_conversation")
        return self._new_chat("group", topic)

    async def create_direct_conversation(self, access_token, member_id, owner_id):
        self.calls.append(("create_direct_conversation", member_id, owner_id))
        if self.fail_create_chat:
            raise self._error("create_direct_conversation")
        return self._new_chat("oneOnOne", None)

    def _new_chat(self, chat_type, topic):
        self._chat_counter += 1
        chat_id = f"19:chat-{self._chat_counter}@thread.v2"
        return ConversationRef(
            {
                "id": chat_id,
                "webUrl": f"https://teams.microsoft.com/l/chat/{chat_id}",
                "chatType": chat_type,
                "topic": topic,
            }
        )

    async def post_message(self, access_token, conversation_id, text):
        self.calls.append(("post_message", conversation_id, text))
        if self.fail_post_message:
            raise self._error("post_message")

    async def send_email(self, access_token, subject, body, addresses):
        self.calls.append(("send_email", subject, body, tuple(addresses)))
        if self.fail_send_email:
            raise self._error("send_email")

    async def get_conversation_messages(self, access_token, conversation_id):
        self.calls.append(("get_conversation_messages", conversation_id))
        return list(self.messages.get(conversation_id, []))

    async def list_tags(self, access_token, team_id):
        self.calls.append(("list_tags", team_id))
        return list(self.tags.values())

    async def get_tag(self, access_token, team_id, tag_id):
        self.calls.append(("get_tag", team_id, tag_id))
        if tag_id not in self.tags:
            raise self._error("get_tag", 404)
        return self.tags[tag_id]

    async def list_tag_member_records(self, access_token, team_id, tag_id):
        self.calls.append(("list_tag_member_records", team_id, tag_id))
        return [
            TagMember(
                {
                    "id": f"m-{member.user_id}",
                    "userId": member.user_id,
                    "displayName": member.display_name,
                }
            )
            for member in self.tag_members.get(tag_id, [])
        ]

    async def create_tag(self, access_token, team_id, display_name, description, member_ids):
        self.calls.append(("create_tag", team_id, display_name, description, tuple(member_ids)))
        tag = Tag(
            {
                "id": f"tag-{len(self.tags) + 1}",
                "displayName": display_name,
                "description": description,
                "memberCount": len(member_ids),
            }
        )
        self.tags[tag.id] = tag
        return tag

    async def update_tag(self, access_token, team_id, tag_id, display_name, description):
        self.calls.append(("update_tag", team_id, tag_id, display_name, description))
        if tag_id not in self.tags:
            raise self._error("update_tag", 404)
        tag = Tag({"id": tag_id, "displayName": display_name, "description": description})
        self.tags[tag_id] = tag
        return tag

    async def add_tag_member(self, access_token, team_id, tag_id, user_id):
        self.calls.append(("add_tag_member", tag_id, user_id))
        if user_id in self.fail_add_member:
            raise self._error("add_tag_member", 400)
        return TagMember({"id": f"m-{user_id}", "userId": user_id})

    async def remove_tag_member(self, access_token, team_id, tag_id, membership_id):
        self.calls.append(("remove_tag_member", tag_id, membership_id))
        if membership_id in self.fail_remove_member:
            raise self._error("remove_tag_member", 404)

    async def delete_tag(self, access_token, team_id, tag_id):
        self.calls.append(("delete_tag", team_id, tag_id))
        self.tags.pop(tag_id, None)


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def memory_store():
    return InMemoryCollectionStore()


@pytest.fixture
def leaderboard_store():
    return InMemoryCollectionStore("leaderboard")


@pytest.fixture
def history_store():
    return InMemoryCollectionStore("question_history")
