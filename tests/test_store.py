"""Remote store client against the fake GraphQL endpoint."""

import httpx
import pytest

from conftest import GRAPHQL_URL, client_with, current_token
from convo_sync.auth import AuthState
from convo_sync.errors import AuthError, StoreError
from convo_sync.models.chat import SenderType


class TestOperations:
    @pytest.mark.asyncio
    async def test_create_and_list_chats(self, signed_in, backend):
        older = await signed_in.store.create_chat("Older")
        newer = await signed_in.store.create_chat("Newer")
        assert newer.title == "Newer"
        assert newer.owner_id == "user-alice"

        chats = await signed_in.store.list_chats()
        assert [c.id for c in chats] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_messages_round_trip_in_order(self, signed_in):
        chat = await signed_in.store.create_chat("Chat A")
        first = await signed_in.store.create_message(chat.id, "hello", SenderType.USER)
        second = await signed_in.store.create_message(chat.id, "hi there", SenderType.BOT)
        assert first.chat_id == chat.id
        assert second.sender_type == SenderType.BOT

        messages = await signed_in.store.list_messages(chat.id)
        assert [m.content for m in messages] == ["hello", "hi there"]
        assert messages[0].created_at < messages[1].created_at

    @pytest.mark.asyncio
    async def test_touch_chat_returns_id_and_bumps_server_time(self, signed_in, backend):
        chat = await signed_in.store.create_chat("Chat A")
        before = backend.chats[chat.id]["updated_at"]
        assert await signed_in.store.touch_chat(chat.id) == chat.id
        assert backend.chats[chat.id]["updated_at"] > before

    @pytest.mark.asyncio
    async def test_touch_unknown_chat(self, signed_in):
        with pytest.raises(StoreError) as exc:
            await signed_in.store.touch_chat("missing")
        assert exc.value.code == "not_found"

    @pytest.mark.asyncio
    async def test_bearer_token_attached(self, signed_in, backend):
        await signed_in.store.list_chats()
        assert backend.auth_headers == [f"Bearer {current_token(signed_in)}"]


class TestErrors:
    @pytest.mark.asyncio
    async def test_graphql_error_is_store_error(self, signed_in, backend):
        backend.failing_ops.add("create_chat")
        with pytest.raises(StoreError) as exc:
            await signed_in.store.create_chat("Chat A")
        assert exc.value.code == "constraint-violation"
        assert str(exc.value) == "create_chat failed"

    @pytest.mark.asyncio
    async def test_requires_session(self, client, backend):
        with pytest.raises(AuthError):
            await client.store.list_chats()
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_rejected_token_refreshes_and_retries_once(self, signed_in, backend):
        stale = current_token(signed_in)
        backend.rejected_tokens.add(stale)
        chats = await signed_in.store.list_chats()
        assert chats == []
        assert backend.count("refresh") == 1
        assert backend.count("list_chats") == 2
        assert current_token(signed_in) != stale

    @pytest.mark.asyncio
    async def test_failed_refresh_after_rejection_signs_out(self, signed_in, backend):
        backend.rejected_tokens.add(current_token(signed_in))
        backend.refresh_ok = False
        with pytest.raises(AuthError) as exc:
            await signed_in.store.list_chats()
        assert exc.value.code == "session_expired"
        assert signed_in.auth.state == AuthState.ANONYMOUS
        assert current_token(signed_in) is None

    @pytest.mark.asyncio
    async def test_http_errors(self, signed_in, config, storage, clock):
        async def handler(request):
            if str(request.url).startswith(GRAPHQL_URL):
                return httpx.Response(502, text="bad gateway")
            return httpx.Response(404)

        other = client_with(handler, config, storage, clock)
        with pytest.raises(StoreError) as exc:
            await other.store.list_chats()
        await other.close()
        assert exc.value.code == "http_error"

    @pytest.mark.asyncio
    async def test_malformed_record(self, signed_in, config, storage, clock):
        async def handler(request):
            return httpx.Response(200, json={"data": {"chats": [{"id": "c1"}]}})

        other = client_with(handler, config, storage, clock)
        with pytest.raises(StoreError) as exc:
            await other.store.list_chats()
        await other.close()
        assert exc.value.code == "malformed_response"

    @pytest.mark.asyncio
    async def test_network_failure(self, signed_in, config, storage, clock):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        other = client_with(handler, config, storage, clock)
        with pytest.raises(StoreError) as exc:
            await other.store.list_chats()
        await other.close()
        assert exc.value.code == "timeout"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("errors", [
        [{"message": "bad", "extensions": "oops"}],
        [{"message": "bad", "extensions": ["oops"]}],
        [{"message": "bad", "extensions": {"code": ["not", "a", "string"]}}],
        [{"message": None}],
        ["just a string"],
        "not a list",
    ])
    async def test_odd_error_shapes_are_store_errors(self, signed_in, config, storage, clock, errors):
        async def handler(request):
            return httpx.Response(200, json={"errors": errors})

        other = client_with(handler, config, storage, clock)
        with pytest.raises(StoreError) as exc:
            await other.store.list_chats()
        await other.close()
        assert exc.value.code == "graphql_error"
        assert exc.value.details == {"errors": errors}
