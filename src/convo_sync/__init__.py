"""
convo-sync — chat client SDK for Python.

Email/password sessions with automatic refresh, a GraphQL chat store kept in
sync by polling, and a send pipeline backed by an external reply webhook.
"""

from convo_sync.client import AsyncConvoClient
from convo_sync.auth import SessionManager, AuthState
from convo_sync.config import ClientConfig
from convo_sync.errors import (
    ConvoError,
    AuthError,
    StoreError,
    WebhookError,
    StorageError,
    MutationError,
    SendRejected,
    ConnectionError,
)
from convo_sync.models.chat import Chat, Message, SenderType
from convo_sync.models.session import AuthResult, Session, User
from convo_sync.reply import FALLBACK_REPLY, SendResult
from convo_sync.storage import FileStore, MemoryStore

__version__ = "0.1.0"
__all__ = [
    "AsyncConvoClient",
    "SessionManager",
    "AuthState",
    "ClientConfig",
    "ConvoError",
    "AuthError",
    "StoreError",
    "WebhookError",
    "StorageError",
    "MutationError",
    "SendRejected",
    "ConnectionError",
    "Chat",
    "Message",
    "SenderType",
    "AuthResult",
    "Session",
    "User",
    "FALLBACK_REPLY",
    "SendResult",
    "FileStore",
    "MemoryStore",
]
