import json

import httpx
import pytest

from tgdesk.telegram.client import (
    TelegramApiError,
    TelegramClient,
    bot_id_from_token,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_bot_id_from_token() -> None:
    assert bot_id_from_token("123456:ABC-def") == 123456
    assert bot_id_from_token("  99:x ") == 99
    assert bot_id_from_token("no-separator") is None
    assert bot_id_from_token("abc:def") is None


@pytest.mark.anyio
async def test_telegram_empty_token_raises() -> None:
    with pytest.raises(ValueError, match="empty"):
        TelegramClient("")


@pytest.mark.anyio
async def test_get_updates_sends_offset() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200, json={"ok": True, "result": [{"update_id": 5}]}, request=request
        )

    async with _client(handler) as client:
        tg = TelegramClient("123:abc", client=client)
        result = await tg.get_updates(offset=5, timeout_s=0)

    assert result == [{"update_id": 5}]
    assert captured["path"] == "/bot123:abc/getUpdates"
    assert captured["body"] == {"timeout": 0, "offset": 5}


@pytest.mark.anyio
async def test_get_updates_returns_none_on_500() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="oops", request=request)

    async with _client(handler) as client:
        tg = TelegramClient("123:abc", client=client)
        assert await tg.get_updates(offset=1) is None


@pytest.mark.anyio
async def test_get_updates_returns_none_on_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async with _client(handler) as client:
        tg = TelegramClient("123:abc", client=client)
        assert await tg.get_updates(offset=1) is None


@pytest.mark.anyio
async def test_send_message_with_reply() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(json.loads(request.content))
        return httpx.Response(
            200, json={"ok": True, "result": {"message_id": 321}}, request=request
        )

    async with _client(handler) as client:
        tg = TelegramClient("123:abc", client=client)
        result = await tg.send_message(-100, "Aziz: ok", reply_to_message_id=7)

    assert result == {"message_id": 321}
    assert captured == {"chat_id": -100, "text": "Aziz: ok", "reply_to_message_id": 7}


@pytest.mark.anyio
async def test_send_animation_payload() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured.update(json.loads(request.content))
        return httpx.Response(
            200, json={"ok": True, "result": {"message_id": 1}}, request=request
        )

    async with _client(handler) as client:
        tg = TelegramClient("123:abc", client=client)
        await tg.send_animation(-1, "https://x/y.gif", caption="A: GIF")

    assert captured["path"].endswith("/sendAnimation")
    assert captured["animation"] == "https://x/y.gif"
    assert captured["caption"] == "A: GIF"
    assert "reply_to_message_id" not in captured


@pytest.mark.anyio
async def test_get_chat_returns_info() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"ok": True, "result": {"id": -42, "type": "supergroup", "title": "Yuk"}},
            request=request,
        )

    async with _client(handler) as client:
        tg = TelegramClient("123:abc", client=client)
        info = await tg.get_chat("@yuk")

    assert (info.id, info.type, info.title) == (-42, "supergroup", "Yuk")


@pytest.mark.anyio
async def test_get_chat_raises_with_gateway_description() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"ok": False, "description": "Bad Request: chat not found"},
            request=request,
        )

    async with _client(handler) as client:
        tg = TelegramClient("123:abc", client=client)
        with pytest.raises(TelegramApiError) as excinfo:
            await tg.get_chat("@missing")

    assert excinfo.value.description == "Bad Request: chat not found"


@pytest.mark.anyio
async def test_get_me_returns_none_when_unauthorized() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401, json={"ok": False, "description": "Unauthorized"}, request=request
        )

    async with _client(handler) as client:
        tg = TelegramClient("123:abc", client=client)
        assert await tg.get_me() is None


@pytest.mark.anyio
async def test_close_external_client() -> None:
    async with httpx.AsyncClient() as ext:
        client = TelegramClient("123:abc", client=ext)
        await client.close()
        assert not ext.is_closed
