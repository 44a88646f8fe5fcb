"""
AsyncConvoClient — wires the session manager, store, scheduler and send pipeline.
"""

from datetime import datetime
from typing import Any, Callable, Optional

import httpx

from convo_sync.auth import SessionManager
from convo_sync.config import ClientConfig
from convo_sync.errors import SendRejected
from convo_sync.models.chat import Chat, Message
from convo_sync.models.session import AuthResult, Session, now_ms
from convo_sync.reply import ReplyOrchestrator, ReplyWebhook, SendResult
from convo_sync.state import ConversationState
from convo_sync.storage import CredentialStore, FileStore, KeyValueStore
from convo_sync.store import RemoteStore
from convo_sync.sync import SyncScheduler
from convo_sync.transport.http import HttpClient


class AsyncConvoClient:
    """Async chat client (primary)."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        storage: Optional[KeyValueStore] = None,
        clock: Callable[[], int] = now_ms,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_messages: Optional[Callable[[str, list[Message]], None]] = None,
    ):
        self.config = config or ClientConfig()
        self.http = HttpClient(timeout=self.config.http_timeout_s, transport=transport)
        self.credentials = CredentialStore(storage if storage is not None else FileStore(self.config.session_file))
        self.auth = SessionManager(
            self.http,
            self.credentials,
            self.config.auth_url,
            clock=clock,
            refresh_margin_ms=int(self.config.refresh_margin_s * 1000),
        )
        self.store = RemoteStore(self.http, self.auth, self.config.graphql_url)
        self.state = ConversationState()
        self.scheduler = SyncScheduler(
            self.store.list_messages,
            self.state,
            interval_s=self.config.poll_interval_s,
            on_update=on_messages,
        )
        self.replies = ReplyOrchestrator(
            self.store,
            ReplyWebhook(self.http, self.config.webhook_url, self.config.webhook_timeout_s),
            self.state,
            self.auth.current_user_id,
        )

    async def __aenter__(self) -> "AsyncConvoClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @property
    def session(self) -> Optional[Session]:
        return self.auth.get_valid_session()

    async def restore(self) -> Optional[Session]:
        """Pick up a persisted session on startup, refreshing it if it is about to expire."""
        return await self.auth.ensure_session()

    async def sign_up(self, email: str, password: str) -> AuthResult:
        return await self.auth.sign_up(email, password)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        return await self.auth.sign_in(email, password)

    def sign_out(self) -> None:
        self.scheduler.cancel()
        self.auth.sign_out()
        self.state.reset()

    async def load_chats(self) -> list[Chat]:
        self.state.set_chats(await self.store.list_chats())
        return self.state.chats

    async def create_chat(self, title: Optional[str] = None) -> Chat:
        """Create a chat, put it first in the list and make it the active chat."""
        title = title or f"New Chat - {datetime.now():%Y-%m-%d %H:%M:%S}"
        chat = await self.store.create_chat(title)
        self.state.prepend_chat(chat)
        self.select_chat(chat.id)
        return chat

    def select_chat(self, chat_id: str) -> None:
        """Make `chat_id` active and start polling it. Must be called on the event loop."""
        self.scheduler.cancel()
        self.state.activate(chat_id)
        self.scheduler.start(chat_id)

    def deselect_chat(self) -> None:
        self.scheduler.cancel()
        self.state.deactivate()

    async def send(self, content: str) -> SendResult:
        chat_id = self.state.active_chat_id
        if chat_id is None:
            raise SendRejected("No chat selected", code="no_active_chat")
        return await self.replies.send(chat_id, content)

    async def close(self) -> None:
        self.scheduler.cancel()
        await self.http.close()
