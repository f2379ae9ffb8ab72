# messaging_client/api_client.py
import asyncio
import json
from typing import Any, Optional

import httpx

from messaging_client.auth import TokenManager
from messaging_client.exceptions import NOT_AUTHENTICATED
from messaging_client.logger import get_logger


class ApiResponse:
    def __init__(
        self,
        success,
        data=None,
        status_code=None,
        error=None,
        authenticated=True,
        timed_out=False,
    ):
        self.success = success
        self.data = data
        self.status_code = status_code
        self.error = error
        self.authenticated = authenticated
        self.timed_out = timed_out


class ApiClient:
    """Async client for the conversation service.

    Success bodies look like ``{"data": ...}`` and errors like
    ``{"error": "..."}``; both are unwrapped into an :class:`ApiResponse`.
    """

    def __init__(
        self,
        base_url: str,
        token_manager: TokenManager,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_manager = token_manager
        self.client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )
        self.logger = get_logger("ApiClient")

    def _handle_response(self, response: httpx.Response) -> ApiResponse:
        try:
            body = response.json() if response.content else {}
        except json.JSONDecodeError:
            body = {}

        if 200 <= response.status_code < 300:
            data = body.get("data", body) if isinstance(body, dict) else body
            return ApiResponse(True, data=data, status_code=response.status_code)

        # Callers pick their own fallback when the server sends no error text
        error = body.get("error") if isinstance(body, dict) else None
        return ApiResponse(False, status_code=response.status_code, error=error)

    async def _request(
        self, method: str, endpoint: str, deadline: Optional[float] = None, **kwargs
    ) -> ApiResponse:
        token = await self.token_manager.get_token()
        if not token:
            return ApiResponse(False, error=NOT_AUTHENTICATED, authenticated=False)

        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token}"

        if deadline is not None:
            # The deadline replaces the client-wide timeout for this request
            kwargs["timeout"] = httpx.Timeout(deadline)

        try:
            request = self.client.request(method, endpoint, headers=headers, **kwargs)
            if deadline is not None:
                # wait_for cancels the request when the deadline passes
                response = await asyncio.wait_for(request, timeout=deadline)
            else:
                response = await request
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            self.logger.error(f"Request {method} {endpoint} timed out: {str(e)}")
            return ApiResponse(False, error="Request timed out", timed_out=True)
        except httpx.HTTPError as e:
            self.logger.error(f"HTTP request exception: {str(e)}")
            return ApiResponse(False, error=str(e))

        return self._handle_response(response)

    # Conversations
    async def get_conversations(self) -> ApiResponse:
        return await self._request("GET", "/api/conversations")

    async def get_conversation(self, conversation_id: str) -> ApiResponse:
        return await self._request("GET", f"/api/conversations/{conversation_id}")

    async def create_conversation(
        self, participant_ids: list[str], name: Optional[str] = None, is_group: bool = False
    ) -> ApiResponse:
        payload: dict[str, Any] = {"participantIds": participant_ids, "isGroup": is_group}
        if name is not None:
            payload["name"] = name
        return await self._request("POST", "/api/conversations", json=payload)

    async def update_conversation(
        self, conversation_id: str, name: Optional[str] = None, is_muted: Optional[bool] = None
    ) -> ApiResponse:
        payload: dict[str, Any] = {}
        if name is not None:
            payload["name"] = name
        if is_muted is not None:
            payload["isMuted"] = is_muted
        return await self._request(
            "PUT", f"/api/conversations/{conversation_id}", json=payload
        )

    async def leave_conversation(self, conversation_id: str) -> ApiResponse:
        return await self._request("DELETE", f"/api/conversations/{conversation_id}")

    async def mark_as_read(self, conversation_id: str) -> ApiResponse:
        return await self._request("POST", f"/api/conversations/{conversation_id}/read")

    async def get_unread_count(self) -> ApiResponse:
        return await self._request("GET", "/api/conversations/unread-count")

    async def add_participant(self, conversation_id: str, user_id: str) -> ApiResponse:
        return await self._request(
            "POST",
            f"/api/conversations/{conversation_id}/participants",
            json={"userId": user_id},
        )

    async def remove_participant(self, conversation_id: str, user_id: str) -> ApiResponse:
        return await self._request(
            "DELETE", f"/api/conversations/{conversation_id}/participants/{user_id}"
        )

    # Messages
    async def get_messages(
        self, conversation_id: str, limit: Optional[int] = None, before: Optional[str] = None
    ) -> ApiResponse:
        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        if before is not None:
            params["before"] = before
        return await self._request(
            "GET", f"/api/conversations/{conversation_id}/messages", params=params
        )

    async def send_message(
        self, conversation_id: str, content: str, timeout: Optional[float] = None
    ) -> ApiResponse:
        return await self._request(
            "POST",
            f"/api/conversations/{conversation_id}/messages",
            deadline=timeout,
            json={"content": content},
        )

    async def edit_message(
        self, conversation_id: str, message_id: str, content: str
    ) -> ApiResponse:
        return await self._request(
            "PUT",
            f"/api/conversations/{conversation_id}/messages/{message_id}",
            json={"content": content},
        )

    async def delete_message(self, conversation_id: str, message_id: str) -> ApiResponse:
        return await self._request(
            "DELETE", f"/api/conversations/{conversation_id}/messages/{message_id}"
        )

    # Profiles
    async def get_profile(self, user_id: str) -> ApiResponse:
        return await self._request("GET", f"/api/users/{user_id}")

    async def close(self) -> None:
        await self.client.aclose()
        self.logger.info("Closed HTTP client.")
