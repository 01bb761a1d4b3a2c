"""
Microsoft Graph API client for tags, presence, chats and mail.
Implements the DirectoryGateway capability set on top of httpx with retry and
error mapping. Paged collections are always drained into complete lists.
"""

import asyncio
from typing import Any

import httpx

from tagask.config import settings
from tagask.infrastructure.observability.logging import get_logger
from tagask.models.domain.directory_domain import (
    AudienceMember,
    ConversationMessage,
    ConversationRef,
    Presence,
    Tag,
    TagMember,
)
from tagask.services.graph.gateway import GraphAPIError

logger = get_logger(__name__)

# Request timeouts and retry configuration
BACKOFF_FACTOR = 2
MAX_RETRY_AFTER_SECONDS = 30
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
CHAT_MESSAGES_PAGE_SIZE = 50  # Graph maximum for chat messages


class GraphDirectoryService:
    """
    Service for Microsoft Graph API operations used by the question workflow.

    Handles tag and tag-member listing (all pages), presence and mail lookups,
    chat creation and messaging, and mail send, with retry on throttling and
    transient server errors.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        self.base_url = (base_url or settings.GRAPH_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.GRAPH_REQUEST_TIMEOUT
        self.max_retries = max_retries or settings.GRAPH_MAX_RETRIES
        self._client = self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        """Create async HTTP client for Graph API."""
        timeout = httpx.Timeout(self.timeout)
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _backoff_seconds(self, attempt: int, response: httpx.Response | None = None) -> float:
        """Honor Retry-After when Graph sends it, otherwise exponential backoff."""
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after and retry_after.isdigit():
                return min(int(retry_after), MAX_RETRY_AFTER_SECONDS)
        return BACKOFF_FACTOR * (2 ** (attempt - 1))

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < self.max_retries:
                    backoff = self._backoff_seconds(attempt, response)
                    logger.debug(
                        "Graph API retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    raise
                backoff = self._backoff_seconds(attempt)
                logger.debug(
                    "Graph API request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError("Graph API retry loop exhausted")

    def _get_auth_headers(self, access_token: str) -> dict:
        """Get authorization headers for Graph API requests."""
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Handle and validate Graph API response.

        Args:
            response: HTTP response from Graph API
            operation: Operation name for logging

        Returns:
            dict: Parsed response data (empty for 202/204 responses)

        Raises:
            GraphAPIError: If response contains errors
        """
        logger.debug(
            f"Graph API {operation} response",
            status_code=response.status_code,
            response_size=len(response.text) if response.text else 0,
        )

        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Graph API {operation} response", error=str(e))
                raise GraphAPIError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
            error_info = error_data.get("error") if isinstance(error_data, dict) else None
            if not isinstance(error_info, dict):
                # e.g. {"error": "throttled"} or a bare list from a proxy
                error_info = {"message": error_info} if isinstance(error_info, str) else {}

            error_code = error_info.get("code", "unknown")
            error_message = error_info.get("message", "Unknown Graph API error")

            logger.error(
                f"Graph API {operation} failed",
                status_code=response.status_code,
                error_code=error_code,
                error_message=error_message,
            )

            raise GraphAPIError(
                self._map_graph_error(response.status_code, error_message),
                error_code=str(error_code),
                status_code=response.status_code,
                response_data=error_data,
            )

        except ValueError:
            # Non-JSON error response
            logger.error(
                f"Graph API {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise GraphAPIError(
                f"Graph API error (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from None

    def _map_graph_error(self, status_code: int, error_message: str) -> str:
        """Map Graph API status codes to user-friendly messages."""
        error_mappings = {
            400: "Invalid Graph request format.",
            401: "Graph authorization expired. Please sign in again.",
            403: "Graph access denied. Please check permissions.",
            404: "Requested Graph resource not found.",
            429: "Too many Graph requests. Please try again later.",
            500: "Microsoft Graph temporarily unavailable.",
            503: "Microsoft Graph temporarily unavailable.",
        }

        return error_mappings.get(status_code, f"Graph error: {error_message}")

    async def _call(
        self, method: str, path: str, access_token: str, operation: str, **kwargs
    ) -> dict:
        """Issue one Graph request and return the parsed body, wrapping transport errors."""
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        try:
            response = await self._request_with_retry(
                method, url, headers=self._get_auth_headers(access_token), **kwargs
            )
        except httpx.RequestError as e:
            logger.error(f"Graph API {operation} transport error", error=str(e))
            raise GraphAPIError(f"Failed to reach Microsoft Graph: {e}") from e
        return self._handle_api_response(response, operation)

    async def _get_all_pages(
        self, access_token: str, path: str, operation: str, params: dict | None = None
    ) -> list[dict]:
        """
        Fetch a Graph collection and follow @odata.nextLink until exhausted.

        Callers only ever see the complete list; a failure on any page fails the whole read.
        """
        items: list[dict] = []
        next_url: str | None = path
        page_params = params
        pages = 0

        while next_url:
            data = await self._call("GET", next_url, access_token, operation, params=page_params)
            items.extend(data.get("value", []))
            next_url = data.get("@odata.nextLink")
            # nextLink already carries the query string
            page_params = None
            pages += 1

        logger.debug(f"Graph API {operation} drained", pages=pages, item_count=len(items))
        return items

    def _member_binding(self, user_id: str) -> dict:
        return {
            "@odata.type": "#microsoft.graph.aadUserConversationMember",
            "roles": ["owner"],
            "user@odata.bind": f"{self.base_url}/users('{user_id}')",
        }

    # =================================================================
    # TAGS
    # =================================================================

    async def list_tags(self, access_token: str, team_id: str) -> list[Tag]:
        """
        List all tags of a team.

        Raises:
            GraphAPIError: If listing tags fails
        """
        logger.info("Listing team tags", team_id=team_id)
        items = await self._get_all_pages(access_token, f"/teams/{team_id}/tags", "list_tags")
        tags = [Tag(item) for item in items]
        logger.info("Tags listed successfully", team_id=team_id, tag_count=len(tags))
        return tags

    async def get_tag(self, access_token: str, team_id: str, tag_id: str) -> Tag:
        data = await self._call("GET", f"/teams/{team_id}/tags/{tag_id}", access_token, "get_tag")
        return Tag(data)

    async def list_tag_member_records(
        self, access_token: str, team_id: str, tag_id: str
    ) -> list[TagMember]:
        """
        List every membership record of a tag, all pages.

        Args:
            access_token: Caller's delegated Graph token
            team_id: Team the tag belongs to
            tag_id: Tag id

        Returns:
            list[TagMember]: Complete membership

        Raises:
            GraphAPIError: If any page fails
        """
        items = await self._get_all_pages(
            access_token, f"/teams/{team_id}/tags/{tag_id}/members", "list_tag_members"
        )
        members = [TagMember(item) for item in items]
        logger.info(
            "Tag members listed successfully",
            team_id=team_id,
            tag_id=tag_id,
            member_count=len(members),
        )
        return members

    async def list_tag_members(
        self, access_token: str, team_id: str, tag_id: str
    ) -> list[AudienceMember]:
        records = await self.list_tag_member_records(access_token, team_id, tag_id)
        return [record.to_audience_member() for record in records if record.user_id]

    async def create_tag(
        self,
        access_token: str,
        team_id: str,
        display_name: str,
        description: str,
        member_ids: list[str],
    ) -> Tag:
        payload = {
            "displayName": display_name,
            "description": description,
            "members": [{"userId": user_id} for user_id in member_ids],
        }

        logger.info(
            "Creating team tag",
            team_id=team_id,
            display_name=display_name,
            member_count=len(member_ids),
        )
        data = await self._call(
            "POST", f"/teams/{team_id}/tags", access_token, "create_tag", json=payload
        )
        tag = Tag(data)
        logger.info("Tag created successfully", team_id=team_id, tag_id=tag.id)
        return tag

    async def update_tag(
        self, access_token: str, team_id: str, tag_id: str, display_name: str, description: str
    ) -> Tag:
        payload = {"displayName": display_name, "description": description}

        logger.info("Updating team tag", team_id=team_id, tag_id=tag_id)
        data = await self._call(
            "PATCH", f"/teams/{team_id}/tags/{tag_id}", access_token, "update_tag", json=payload
        )
        # PATCH may answer 204 without a body
        return Tag(data or {"id": tag_id, **payload})

    async def add_tag_member(
        self, access_token: str, team_id: str, tag_id: str, user_id: str
    ) -> TagMember:
        data = await self._call(
            "POST",
            f"/teams/{team_id}/tags/{tag_id}/members",
            access_token,
            "add_tag_member",
            json={"userId": user_id},
        )
        return TagMember(data)

    async def remove_tag_member(
        self, access_token: str, team_id: str, tag_id: str, membership_id: str
    ) -> None:
        await self._call(
            "DELETE",
            f"/teams/{team_id}/tags/{tag_id}/members/{membership_id}",
            access_token,
            "remove_tag_member",
        )

    async def delete_tag(self, access_token: str, team_id: str, tag_id: str) -> None:
        logger.info("Deleting team tag", team_id=team_id, tag_id=tag_id)
        await self._call("DELETE", f"/teams/{team_id}/tags/{tag_id}", access_token, "delete_tag")

    # =================================================================
    # USERS
    # =================================================================

    async def get_presence(self, access_token: str, user_id: str) -> Presence | None:
        """Get a presence snapshot; None when Graph answers without data."""
        data = await self._call("GET", f"/users/{user_id}/presence", access_token, "get_presence")
        if not data:
            return None
        return Presence(data)

    async def resolve_mail_address(self, access_token: str, user_id: str) -> str | None:
        data = await self._call(
            "GET",
            f"/users/{user_id}",
            access_token,
            "resolve_mail_address",
            params={"$select": "userPrincipalName,mail"},
        )
        return data.get("userPrincipalName") or data.get("mail")

    # =================================================================
    # CHATS AND MAIL
    # =================================================================

    async def create_group_conversation(
        self, access_token: str, topic: str, member_ids: list[str], owner_id: str
    ) -> ConversationRef:
        """
        Create a group chat with every member plus the owner, all as owners.

        Raises:
            GraphAPIError: If chat creation fails
        """
        members = [self._member_binding(user_id) for user_id in member_ids if user_id != owner_id]
        members.append(self._member_binding(owner_id))
        payload = {"chatType": "group", "topic": topic, "members": members}

        logger.info("Creating group chat", member_count=len(members))
        data = await self._call("POST", "/chats", access_token, "create_group_chat", json=payload)
        chat = ConversationRef(data)
        logger.info("Group chat created successfully", chat_id=chat.id)
        return chat

    async def create_direct_conversation(
        self, access_token: str, member_id: str, owner_id: str
    ) -> ConversationRef:
        payload = {
            "chatType": "oneOnOne",
            "members": [self._member_binding(member_id), self._member_binding(owner_id)],
        }

        logger.info("Creating one-on-one chat", member_id=member_id)
        data = await self._call("POST", "/chats", access_token, "create_direct_chat", json=payload)
        chat = ConversationRef(data)
        logger.info("One-on-one chat created successfully", chat_id=chat.id)
        return chat

    async def post_message(self, access_token: str, conversation_id: str, text: str) -> None:
        payload = {"body": {"contentType": "text", "content": text}}
        await self._call(
            "POST", f"/chats/{conversation_id}/messages", access_token, "post_message", json=payload
        )
        logger.info("Chat message posted", chat_id=conversation_id)

    async def send_email(
        self, access_token: str, subject: str, body: str, addresses: list[str]
    ) -> None:
        """
        Send one mail from the signed-in user to every address.

        Raises:
            GraphAPIError: If sending fails
        """
        payload = {
            "message": {
                "subject": subject,
                "body": {"contentType": "Text", "content": body},
                "toRecipients": [{"emailAddress": {"address": address}} for address in addresses],
            },
            "saveToSentItems": True,
        }

        logger.info("Sending mail", recipient_count=len(addresses), subject=subject)
        await self._call("POST", "/me/sendMail", access_token, "send_mail", json=payload)
        logger.info("Mail sent successfully", recipient_count=len(addresses))

    async def get_conversation_messages(
        self, access_token: str, conversation_id: str
    ) -> list[ConversationMessage]:
        """Get every message of a chat in provider order (newest first)."""
        items = await self._get_all_pages(
            access_token,
            f"/chats/{conversation_id}/messages",
            "list_chat_messages",
            params={"$top": CHAT_MESSAGES_PAGE_SIZE},
        )
        return [ConversationMessage(item) for item in items]

    async def health_check(self) -> dict[str, Any]:
        """
        Check Graph API reachability.

        Returns:
            Dict: Health status and configuration
        """
        health_data = {
            "healthy": True,
            "service": "microsoft_graph",
            "api_base_url": self.base_url,
            "request_timeout": self.timeout,
            "max_retries": self.max_retries,
        }

        try:
            response = await self._client.request("HEAD", self.base_url, timeout=5.0)
            # Anonymous requests are rejected, which still proves reachability
            health_data["api_connectivity"] = (
                "ok"
                if response.status_code in [200, 400, 401, 403, 404, 405]
                else f"error_{response.status_code}"
            )
        except httpx.RequestError as e:
            health_data["api_connectivity"] = f"error_{type(e).__name__}"
            health_data["healthy"] = False

        return health_data


# Singleton instance for application use
graph_directory_service = GraphDirectoryService()
