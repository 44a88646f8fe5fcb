"""
Reply orchestrator — the send pipeline.

send(chat_id, content):
  1. reject empty content or a second concurrent send for the same chat
  2. persist the user message, append it locally (failure aborts)
  3. touch the chat timestamp (best-effort)
  4. ask the reply webhook for a bot reply (bounded timeout)
  5. persist the reply as a bot message, append it locally
  6. on any failure in 4-5, persist the fixed fallback reply instead
"""

import asyncio
import logging
from typing import Callable, Optional

from pydantic import ValidationError

from convo_sync.errors import ConnectionError, ConvoError, MutationError, SendRejected, WebhookError
from convo_sync.models.chat import Message, SenderType
from convo_sync.models.webhook import SessionVariables, WebhookInput, WebhookRequest, WebhookResponse
from convo_sync.state import ConversationState
from convo_sync.store import RemoteStore
from convo_sync.transport.http import HttpClient

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, the chatbot service is currently unavailable. Please try again later."
DEFAULT_WEBHOOK_TIMEOUT_S = 30.0


class ReplyWebhook:
    def __init__(self, http: HttpClient, url: str, timeout_s: float = DEFAULT_WEBHOOK_TIMEOUT_S):
        self._http = http
        self._url = url
        self._timeout_s = timeout_s

    async def request_reply(self, chat_id: str, message: str, user_id: Optional[str]) -> str:
        """Return the reply text. Raises WebhookError for anything but a non-empty `response` string."""
        if not self._url:
            raise WebhookError("Reply service URL is not configured", code="not_configured")
        if not user_id:
            raise WebhookError("No signed-in user to reply to", code="no_user")

        payload = WebhookRequest(
            input=WebhookInput(chat_id=chat_id, message=message),
            session_variables=SessionVariables(user_id=user_id),
        ).model_dump(by_alias=True)

        try:
            resp = await asyncio.wait_for(self._http.post(self._url, payload), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            raise WebhookError(f"Reply service did not answer within {self._timeout_s}s", code="timeout")
        except ConnectionError as e:
            raise WebhookError(f"Reply service unreachable: {e}", code=e.code)

        if not resp.is_success:
            raise WebhookError(f"Reply service returned HTTP {resp.status_code}: {resp.text[:200]}", code="http_error")
        try:
            body = WebhookResponse.model_validate(self._http.json_or_none(resp))
        except ValidationError:
            raise WebhookError("Reply service sent a malformed body", code="malformed_response")
        if not body.response.strip():
            raise WebhookError("Reply service sent an empty reply", code="empty_reply")
        return body.response


class SendResult:
    __slots__ = ("user_message", "bot_message", "fallback")

    def __init__(self, user_message: Message, bot_message: Optional[Message], fallback: bool):
        self.user_message = user_message
        self.bot_message = bot_message
        self.fallback = fallback

    def __repr__(self) -> str:
        return f"SendResult(user_message={self.user_message.id!r}, fallback={self.fallback!r})"


class ReplyOrchestrator:
    def __init__(
        self,
        store: RemoteStore,
        webhook: ReplyWebhook,
        state: ConversationState,
        current_user_id: Callable[[], Optional[str]],
        fallback_reply: str = FALLBACK_REPLY,
    ):
        self._store = store
        self._webhook = webhook
        self._state = state
        self._current_user_id = current_user_id
        self._fallback_reply = fallback_reply
        self._sending: set[str] = set()

    def is_sending(self, chat_id: str) -> bool:
        return chat_id in self._sending

    async def send(self, chat_id: str, content: str) -> SendResult:
        text = content.strip()
        if not text:
            raise SendRejected("Message is empty", code="empty_message")
        if chat_id in self._sending:
            raise SendRejected("A message is already being sent in this chat", code="send_in_flight")

        self._sending.add(chat_id)
        try:
            try:
                user_message = await self._store.create_message(chat_id, text, SenderType.USER)
            except ConvoError as e:
                raise MutationError(f"Failed to send message: {e}") from e
            self._state.append_message(user_message)

            await self._touch(chat_id, user_message)

            try:
                reply = await self._webhook.request_reply(chat_id, text, self._current_user_id())
                bot_message = await self._store.create_message(chat_id, reply, SenderType.BOT)
            except ConvoError as e:
                logger.warning("Reply for chat %s failed, using fallback: %s", chat_id, e)
                return SendResult(user_message, await self._persist_fallback(chat_id), fallback=True)

            self._state.append_message(bot_message)
            return SendResult(user_message, bot_message, fallback=False)
        finally:
            self._sending.discard(chat_id)

    async def _touch(self, chat_id: str, user_message: Message) -> None:
        try:
            await self._store.touch_chat(chat_id)
        except ConvoError as e:
            logger.warning("Could not update timestamp of chat %s: %s", chat_id, e)
            return
        self._state.touch_chat(chat_id, user_message.created_at)

    async def _persist_fallback(self, chat_id: str) -> Optional[Message]:
        try:
            message = await self._store.create_message(chat_id, self._fallback_reply, SenderType.BOT)
        except Exception:
            logger.exception("Could not persist fallback reply for chat %s", chat_id)
            return None
        self._state.append_message(message)
        return message
