"""
Convo Sync error types.

AuthError ends the authenticated state, StoreError comes from the remote
store, WebhookError is always converted to the fallback reply, StorageError
means a corrupted persisted session.
"""

from typing import Any, Optional


class ConvoError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class AuthError(ConvoError):
    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(code, message)


class StoreError(ConvoError):
    def __init__(self, message: str, code: str = "store_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class WebhookError(ConvoError):
    def __init__(self, message: str, code: str = "webhook_error"):
        super().__init__(code, message)


class StorageError(ConvoError):
    def __init__(self, message: str, code: str = "storage_error"):
        super().__init__(code, message)


class MutationError(ConvoError):
    """A create operation the user asked for did not persist."""

    def __init__(self, message: str, code: str = "mutation_error"):
        super().__init__(code, message)


class SendRejected(ConvoError):
    def __init__(self, message: str, code: str = "send_rejected"):
        super().__init__(code, message)


class ConnectionError(ConvoError):
    def __init__(self, message: str, code: str = "connection_error"):
        super().__init__(code, message)
