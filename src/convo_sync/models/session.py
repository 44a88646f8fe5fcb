"""
Session models — access/refresh tokens, user identity and absolute expiry.
"""

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from convo_sync.errors import AuthError


def now_ms() -> int:
    return int(time.time() * 1000)


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    display_name: Optional[str] = Field(default=None, alias="displayName")


class Session(BaseModel):
    """Persisted as {accessToken, refreshToken, user, expiresAt (epoch ms)}."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    user: User
    expires_at: int = Field(alias="expiresAt")

    def is_valid(self, now: int) -> bool:
        return self.expires_at > now

    def expires_in_ms(self, now: int) -> int:
        return self.expires_at - now

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True)


class AuthSessionPayload(BaseModel):
    """`session` object returned by signup, signin and token endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    access_token_expires_in: int = Field(alias="accessTokenExpiresIn")
    user: User

    def to_session(self, now: int) -> Session:
        return Session(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            user=self.user,
            expires_at=now + self.access_token_expires_in * 1000,
        )


class AuthResult:
    """Outcome of sign-up/sign-in: exactly one of `session` or `error` is set."""

    __slots__ = ("session", "error")

    def __init__(self, session: Optional[Session] = None, error: Optional[AuthError] = None):
        self.session = session
        self.error = error

    @property
    def ok(self) -> bool:
        return self.session is not None

    def __repr__(self) -> str:
        if self.ok:
            return f"AuthResult(user={self.session.user.email!r})"  # type: ignore[union-attr]
        return f"AuthResult(error={str(self.error)!r})"
