"""
Session manager — sign-up, sign-in, token refresh and sign-out.

Email/password auth against the hosted auth service. The persisted session
is the single source of truth for "is the user authenticated".
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from pydantic import ValidationError

from convo_sync.errors import AuthError, ConnectionError, StorageError
from convo_sync.models.session import AuthResult, AuthSessionPayload, Session, now_ms
from convo_sync.storage import CredentialStore
from convo_sync.transport.http import HttpClient

logger = logging.getLogger(__name__)

REFRESH_MARGIN_MS = 5 * 60 * 1000


class AuthState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESH_PENDING = "refresh_pending"


class SessionManager:
    def __init__(
        self,
        http: HttpClient,
        credentials: CredentialStore,
        auth_url: str,
        clock: Callable[[], int] = now_ms,
        refresh_margin_ms: int = REFRESH_MARGIN_MS,
    ):
        self._http = http
        self._credentials = credentials
        self._auth_url = auth_url.rstrip("/")
        self._clock = clock
        self._refresh_margin_ms = refresh_margin_ms
        self._refreshes: dict[str, asyncio.Task[Optional[Session]]] = {}
        # Bumped by sign_out so a refresh that lands afterwards is not persisted.
        self._epoch = 0
        self._state = AuthState.AUTHENTICATED if self.get_valid_session() else AuthState.ANONYMOUS

    @property
    def state(self) -> AuthState:
        return self._state

    async def sign_up(self, email: str, password: str) -> AuthResult:
        return await self._authenticate("/signup/email-password", email, password, "Sign up failed", "sign up")

    async def sign_in(self, email: str, password: str) -> AuthResult:
        return await self._authenticate("/signin/email-password", email, password, "Sign in failed", "sign in")

    async def _authenticate(self, path: str, email: str, password: str, failure: str, action: str) -> AuthResult:
        previous = self._state
        self._state = AuthState.AUTHENTICATING
        try:
            result = await self._request_session(path, email, password, failure, action)
        finally:
            self._state = previous
        if result.ok:
            self._state = AuthState.AUTHENTICATED
            logger.info("Signed in as %s", result.session.user.email)  # type: ignore[union-attr]
        else:
            logger.info("Could not %s %s: %s", action, email, result.error)
        return result

    async def _request_session(self, path: str, email: str, password: str, failure: str, action: str) -> AuthResult:
        try:
            resp = await self._http.post(f"{self._auth_url}{path}", {"email": email, "password": password})
        except ConnectionError:
            return AuthResult(error=AuthError(f"Network error during {action}", code="network_error"))

        data = self._http.json_or_none(resp)
        if resp.status_code >= 300:
            message = data.get("message") if isinstance(data, dict) else None
            return AuthResult(error=AuthError(message or failure, code=f"http_{resp.status_code}"))
        if not isinstance(data, dict) or not data.get("session"):
            return AuthResult(error=AuthError("No session returned", code="no_session"))
        try:
            session = AuthSessionPayload.model_validate(data["session"]).to_session(self._clock())
        except ValidationError:
            return AuthResult(error=AuthError("Malformed response from auth service", code="malformed_response"))
        try:
            self._credentials.save(session)
        except StorageError as e:
            return AuthResult(error=AuthError(f"Could not save session: {e}", code="storage_error"))
        return AuthResult(session=session)

    def get_valid_session(self) -> Optional[Session]:
        session = self._credentials.load()
        if session is None:
            return None
        if not session.is_valid(self._clock()):
            logger.debug("Persisted session for %s has expired", session.user.email)
            self._credentials.clear()
            return None
        return session

    def needs_refresh(self, session: Session) -> bool:
        return session.expires_in_ms(self._clock()) < self._refresh_margin_ms

    async def refresh(self, refresh_token: str) -> Optional[Session]:
        """Exchange a refresh token for a new session. Returns None on any failure.

        Concurrent calls for the same token share one network request.
        """
        task = self._refreshes.get(refresh_token)
        if task is None:
            task = asyncio.ensure_future(self._do_refresh(refresh_token, self._epoch))
            self._refreshes[refresh_token] = task
            task.add_done_callback(lambda _t: self._refreshes.pop(refresh_token, None))
        return await asyncio.shield(task)

    async def _do_refresh(self, refresh_token: str, epoch: int) -> Optional[Session]:
        self._state = AuthState.REFRESH_PENDING
        session: Optional[Session] = None
        try:
            resp = await self._http.post(f"{self._auth_url}/token", {"refreshToken": refresh_token})
            data = self._http.json_or_none(resp)
            if resp.is_success and isinstance(data, dict) and data.get("session"):
                session = AuthSessionPayload.model_validate(data["session"]).to_session(self._clock())
            else:
                logger.warning("Token refresh rejected with HTTP %s", resp.status_code)
        except (ConnectionError, ValidationError) as e:
            logger.warning("Token refresh failed: %s", e)

        if session is not None and epoch != self._epoch:
            logger.debug("Dropping refreshed session obtained after sign-out")
            session = None
        if session is not None:
            try:
                self._credentials.save(session)
            except StorageError as e:
                logger.warning("Could not persist refreshed session: %s", e)
                session = None
        if epoch == self._epoch:
            self._state = AuthState.AUTHENTICATED if session else AuthState.ANONYMOUS
        return session

    async def ensure_session(self) -> Optional[Session]:
        """Return a valid session, refreshing it first when it is close to expiry."""
        session = self.get_valid_session()
        if session is None:
            self._state = AuthState.ANONYMOUS
            return None
        if not self.needs_refresh(session):
            return session
        refreshed = await self.refresh(session.refresh_token)
        if refreshed is None:
            self.sign_out()
        return refreshed

    async def access_token(self) -> str:
        session = await self.ensure_session()
        if session is None:
            raise AuthError("Not signed in", code="no_session")
        return session.access_token

    async def force_refresh(self) -> Session:
        """Refresh after the server rejected the current token."""
        session = self._credentials.load()
        if session is None:
            self.sign_out()
            raise AuthError("Not signed in", code="no_session")
        refreshed = await self.refresh(session.refresh_token)
        if refreshed is None:
            self.sign_out()
            raise AuthError("Session expired. Please sign in again.", code="session_expired")
        return refreshed

    def current_user_id(self) -> Optional[str]:
        session = self.get_valid_session()
        return session.user.id if session else None

    def sign_out(self) -> None:
        self._epoch += 1
        self._credentials.clear()
        self._state = AuthState.ANONYMOUS
