"""
Shared fixtures: an in-process fake of the auth service, GraphQL store and
reply webhook, served through httpx.MockTransport.
"""

import asyncio
import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx
import pytest
import pytest_asyncio

import convo_sync.config as settings
from convo_sync.client import AsyncConvoClient
from convo_sync.config import ClientConfig
from convo_sync.storage import MemoryStore

AUTH_URL = "https://auth.test/v1"
GRAPHQL_URL = "https://graphql.test/v1"
WEBHOOK_URL = "https://hooks.test/webhook/chatbot-message"

ALICE = "alice@example.com"
PASSWORD = "correct-horse"


class Clock:
    """Injected epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


WebhookHandler = Callable[[dict[str, Any]], Awaitable[httpx.Response]]


class FakeBackend:
    def __init__(self) -> None:
        self.users: dict[str, dict[str, str]] = {ALICE: {"id": "user-alice", "password": PASSWORD}}
        self.access_tokens: dict[str, str] = {}
        self.refresh_tokens: dict[str, str] = {}
        self.expires_in = 900
        self.refresh_ok = True
        self.refresh_delay = 0.0
        self.rejected_tokens: set[str] = set()
        self.failing_ops: set[str] = set()
        self.failing_senders: set[str] = set()
        self.chats: dict[str, dict[str, Any]] = {}
        self.messages: list[dict[str, Any]] = []
        self.calls: list[str] = []
        self.auth_headers: list[Optional[str]] = []
        self.webhook_requests: list[dict[str, Any]] = []
        self.webhook: WebhookHandler = self.reply_with("hi there")
        self._server_time = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    # helpers

    def tick(self) -> str:
        self._server_time += timedelta(seconds=1)
        return self._server_time.isoformat()

    def count(self, op: str) -> int:
        return sum(1 for c in self.calls if c == op)

    @staticmethod
    def reply_with(text: str, status: int = 200) -> WebhookHandler:
        async def handler(_payload: dict[str, Any]) -> httpx.Response:
            return httpx.Response(status, json={"response": text})
        return handler

    def messages_for(self, chat_id: str) -> list[dict[str, Any]]:
        return [m for m in self.messages if m["chat_id"] == chat_id]

    def add_chat(self, title: str, user_id: str = "user-alice") -> dict[str, Any]:
        now = self.tick()
        chat = {"id": str(uuid.uuid4()), "title": title, "user_id": user_id, "created_at": now, "updated_at": now}
        self.chats[chat["id"]] = chat
        return chat

    def add_message(self, chat_id: str, content: str, sender_type: str, user_id: str = "user-alice") -> dict[str, Any]:
        message = {
            "id": str(uuid.uuid4()),
            "chat_id": chat_id,
            "content": content,
            "sender_type": sender_type,
            "user_id": user_id,
            "created_at": self.tick(),
        }
        self.messages.append(message)
        return message

    def issue(self, user_id: str, email: str) -> dict[str, Any]:
        n = len(self.access_tokens) + 1
        access, refresh = f"access-{n}", f"refresh-{n}"
        self.access_tokens[access] = user_id
        self.refresh_tokens[refresh] = email
        return {
            "session": {
                "accessToken": access,
                "refreshToken": refresh,
                "accessTokenExpiresIn": self.expires_in,
                "user": {"id": user_id, "email": email, "displayName": email.split("@")[0]},
            }
        }

    # routing

    async def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        url = str(request.url)
        if url.startswith(AUTH_URL):
            return await self._auth(request.url.path, body)
        if url.startswith(GRAPHQL_URL):
            return self._graphql(request, body)
        if url.startswith(WEBHOOK_URL):
            self.calls.append("webhook")
            self.webhook_requests.append(body)
            return await self.webhook(body)
        return httpx.Response(404, json={"message": "not found"})

    async def _auth(self, path: str, body: dict[str, Any]) -> httpx.Response:
        if path.endswith("/signin/email-password"):
            self.calls.append("signin")
            user = self.users.get(body.get("email", ""))
            if user is None or user["password"] != body.get("password"):
                return httpx.Response(401, json={"message": "Incorrect email or password"})
            return httpx.Response(200, json=self.issue(user["id"], body["email"]))
        if path.endswith("/signup/email-password"):
            self.calls.append("signup")
            if body.get("email") in self.users:
                return httpx.Response(409, json={"message": "Email already in use"})
            user_id = f"user-{len(self.users) + 1}"
            self.users[body["email"]] = {"id": user_id, "password": body["password"]}
            return httpx.Response(200, json=self.issue(user_id, body["email"]))
        if path.endswith("/token"):
            self.calls.append("refresh")
            if self.refresh_delay:
                await asyncio.sleep(self.refresh_delay)
            email = self.refresh_tokens.pop(body.get("refreshToken", ""), None)
            if not self.refresh_ok or email is None:
                return httpx.Response(401, json={"message": "Invalid or expired refresh token"})
            return httpx.Response(200, json=self.issue(self.users[email]["id"], email))
        return httpx.Response(404, json={"message": "not found"})

    def _graphql(self, request: httpx.Request, body: dict[str, Any]) -> httpx.Response:
        query = body.get("query", "")
        variables = body.get("variables") or {}
        if "insert_chats_one" in query:
            op = "create_chat"
        elif "insert_messages_one" in query:
            op = "create_message"
        elif "update_chats_by_pk" in query:
            op = "touch_chat"
        elif "messages(" in query:
            op = "list_messages"
        else:
            op = "list_chats"
        self.calls.append(op)
        self.auth_headers.append(request.headers.get("Authorization"))

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token not in self.access_tokens or token in self.rejected_tokens:
            return httpx.Response(200, json={"errors": [{
                "message": "Could not verify JWT: JWTExpired",
                "extensions": {"code": "invalid-jwt", "path": "$"},
            }]})
        if op in self.failing_ops:
            return httpx.Response(200, json={"errors": [{
                "message": f"{op} failed",
                "extensions": {"code": "constraint-violation", "path": "$"},
            }]})

        user_id = self.access_tokens[token]
        if op == "list_chats":
            chats = sorted(self.chats.values(), key=lambda c: c["updated_at"], reverse=True)
            return httpx.Response(200, json={"data": {"chats": chats}})
        if op == "create_chat":
            return httpx.Response(200, json={"data": {"insert_chats_one": self.add_chat(variables["title"], user_id)}})
        if op == "list_messages":
            messages = sorted(self.messages_for(variables["chatId"]), key=lambda m: m["created_at"])
            return httpx.Response(200, json={"data": {"messages": messages}})
        if op == "create_message":
            if variables["senderType"] in self.failing_senders:
                return httpx.Response(200, json={"errors": [{"message": "permission denied", "extensions": {"code": "permission-error"}}]})
            message = self.add_message(variables["chatId"], variables["content"], variables["senderType"], user_id)
            return httpx.Response(200, json={"data": {"insert_messages_one": message}})
        chat = self.chats.get(variables["chatId"])
        if chat is None:
            return httpx.Response(200, json={"data": {"update_chats_by_pk": None}})
        chat["updated_at"] = self.tick()
        return httpx.Response(200, json={"data": {"update_chats_by_pk": {"id": chat["id"]}}})


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def storage() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Keep ~/.convo/config.json and CONVO_* variables out of the test."""
    path = tmp_path / "config.json"
    monkeypatch.setattr(settings, "CONFIG_FILE", path)
    for name in ClientConfig.model_fields:
        monkeypatch.delenv(f"{settings.ENV_PREFIX}{name.upper()}", raising=False)
    return path


@pytest.fixture
def config(isolated_config) -> ClientConfig:
    return ClientConfig(
        auth_url=AUTH_URL,
        graphql_url=GRAPHQL_URL,
        webhook_url=WEBHOOK_URL,
        poll_interval_s=0.01,
        webhook_timeout_s=0.2,
    )


@pytest_asyncio.fixture
async def client(config, storage, clock, backend):
    c = AsyncConvoClient(config, storage=storage, clock=clock, transport=httpx.MockTransport(backend.handler))
    yield c
    await c.close()


@pytest_asyncio.fixture
async def signed_in(client):
    result = await client.sign_in(ALICE, PASSWORD)
    assert result.ok
    return client


def current_token(client: AsyncConvoClient) -> Optional[str]:
    session = client.auth.get_valid_session()
    return session.access_token if session else None


def client_with(handler, config: ClientConfig, storage: MemoryStore, clock: Clock) -> AsyncConvoClient:
    """A second client sharing the signed-in storage but talking to `handler`."""
    return AsyncConvoClient(config, storage=storage, clock=clock, transport=httpx.MockTransport(handler))
