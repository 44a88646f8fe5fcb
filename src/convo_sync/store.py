"""
Remote store client — chats and messages over the GraphQL API.

Every call carries the current bearer token. A rejected token triggers one
session refresh and one retry of the call.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from convo_sync.auth import SessionManager
from convo_sync.errors import AuthError, ConnectionError, StoreError
from convo_sync.models.chat import Chat, Message, SenderType
from convo_sync.transport.http import HttpClient

logger = logging.getLogger(__name__)

AUTH_ERROR_CODES = {"invalid-jwt", "invalid-headers"}

LIST_CHATS = """
query GetChats {
  chats(order_by: {updated_at: desc}) {
    id
    title
    user_id
    created_at
    updated_at
  }
}
"""

CREATE_CHAT = """
mutation CreateChat($title: String!) {
  insert_chats_one(object: {title: $title}) {
    id
    title
    user_id
    created_at
    updated_at
  }
}
"""

LIST_MESSAGES = """
query GetMessages($chatId: uuid!) {
  messages(where: {chat_id: {_eq: $chatId}}, order_by: {created_at: asc}) {
    id
    chat_id
    content
    sender_type
    user_id
    created_at
  }
}
"""

CREATE_MESSAGE = """
mutation CreateMessage($chatId: uuid!, $content: String!, $senderType: String!) {
  insert_messages_one(object: {chat_id: $chatId, content: $content, sender_type: $senderType}) {
    id
    chat_id
    content
    sender_type
    user_id
    created_at
  }
}
"""

TOUCH_CHAT = """
mutation UpdateChat($chatId: uuid!) {
  update_chats_by_pk(pk_columns: {id: $chatId}, _set: {updated_at: "now()"}) {
    id
  }
}
"""


class RemoteStore:
    def __init__(self, http: HttpClient, sessions: SessionManager, graphql_url: str):
        self._http = http
        self._sessions = sessions
        self._url = graphql_url

    async def list_chats(self) -> list[Chat]:
        data = await self._execute(LIST_CHATS)
        return self._parse_list(Chat, data.get("chats"), "chats")

    async def create_chat(self, title: str) -> Chat:
        data = await self._execute(CREATE_CHAT, {"title": title})
        return self._parse_one(Chat, data.get("insert_chats_one"), "chat")

    async def list_messages(self, chat_id: str) -> list[Message]:
        data = await self._execute(LIST_MESSAGES, {"chatId": chat_id})
        messages = self._parse_list(Message, data.get("messages"), "messages")
        for m in messages:
            if not m.chat_id:
                m.chat_id = chat_id
        return messages

    async def create_message(self, chat_id: str, content: str, sender_type: SenderType) -> Message:
        data = await self._execute(
            CREATE_MESSAGE,
            {"chatId": chat_id, "content": content, "senderType": SenderType(sender_type).value},
        )
        message = self._parse_one(Message, data.get("insert_messages_one"), "message")
        if not message.chat_id:
            message.chat_id = chat_id
        return message

    async def touch_chat(self, chat_id: str) -> str:
        """Set the chat's updated_at to server time. Returns the chat id."""
        data = await self._execute(TOUCH_CHAT, {"chatId": chat_id})
        ack = data.get("update_chats_by_pk")
        if not isinstance(ack, dict) or "id" not in ack:
            raise StoreError(f"Chat {chat_id} was not updated", code="not_found")
        return str(ack["id"])

    async def _execute(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        token = await self._sessions.access_token()
        try:
            return await self._request(query, variables, token)
        except AuthError:
            logger.info("Access token rejected, refreshing session and retrying")
        session = await self._sessions.force_refresh()
        return await self._request(query, variables, session.access_token)

    async def _request(self, query: str, variables: Optional[dict[str, Any]], token: str) -> dict[str, Any]:
        try:
            resp = await self._http.post(self._url, {"query": query, "variables": variables or {}}, token=token)
        except ConnectionError as e:
            raise StoreError(str(e), code=e.code)

        if resp.status_code in (401, 403):
            raise AuthError(f"HTTP {resp.status_code} from store", code="invalid_token")
        if resp.status_code >= 400:
            raise StoreError(f"HTTP {resp.status_code}: {resp.text[:200]}", code="http_error")

        body = self._http.json_or_none(resp)
        if not isinstance(body, dict):
            raise StoreError("Malformed response from store", code="malformed_response")
        errors = body.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors and isinstance(errors[0], dict) else {}
            message = str(first.get("message") or "Unknown store error")
            extensions = first.get("extensions")
            code = extensions.get("code") if isinstance(extensions, dict) else None
            if not isinstance(code, str):
                code = "graphql_error"
            if code in AUTH_ERROR_CODES:
                raise AuthError(message, code="invalid_token")
            raise StoreError(message, code=code, details={"errors": errors})
        data = body.get("data")
        if not isinstance(data, dict):
            raise StoreError("Store response has no data", code="malformed_response")
        return data

    @staticmethod
    def _parse_one(model: Any, raw: Any, what: str) -> Any:
        if raw is None:
            raise StoreError(f"No {what} returned", code="not_created")
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise StoreError(f"Malformed {what} record: {e.error_count()} validation error(s)", code="malformed_response")

    @staticmethod
    def _parse_list(model: Any, raw: Any, what: str) -> list[Any]:
        if not isinstance(raw, list):
            raise StoreError(f"Malformed {what} list", code="malformed_response")
        try:
            return [model.model_validate(item) for item in raw]
        except ValidationError as e:
            raise StoreError(f"Malformed {what} record: {e.error_count()} validation error(s)", code="malformed_response")
