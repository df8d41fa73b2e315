from __future__ import annotations

from typing import Any, Protocol

import httpx
import msgspec

from ..logging import get_logger
from .api_models import ApiResponse, ChatInfo

logger = get_logger(__name__)

RESOLVE_FALLBACK_DESCRIPTION = (
    "Guruh topilmadi. Bot guruhda admin ekanligini tekshiring."
)


class TelegramApiError(RuntimeError):
    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


def _request_url(exc: httpx.HTTPError) -> str | None:
    try:
        return str(exc.request.url)
    except RuntimeError:
        return None


def bot_id_from_token(token: str) -> int | None:
    head, sep, _ = token.strip().partition(":")
    if not sep:
        return None
    try:
        return int(head)
    except ValueError:
        return None


class BotClient(Protocol):
    async def close(self) -> None: ...

    async def get_updates(
        self, offset: int | None, timeout_s: int = 0
    ) -> list[dict] | None: ...

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
    ) -> dict | None: ...

    async def send_sticker(
        self,
        chat_id: int,
        sticker: str,
        reply_to_message_id: int | None = None,
    ) -> dict | None: ...

    async def send_animation(
        self,
        chat_id: int,
        animation: str,
        caption: str | None = None,
        reply_to_message_id: int | None = None,
    ) -> dict | None: ...

    async def get_chat(self, chat_ref: int | str) -> ChatInfo: ...

    async def get_me(self) -> dict | None: ...


class TelegramClient:
    def __init__(
        self,
        token: str,
        timeout_s: float = 30,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"https://api.telegram.org/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self, method: str, json_data: dict[str, Any]
    ) -> ApiResponse | None:
        logger.debug("telegram.request", method=method, payload=json_data)
        try:
            resp = await self._client.post(f"{self._base}/{method}", json=json_data)
        except httpx.HTTPError as e:
            logger.error(
                "telegram.network_error",
                method=method,
                url=_request_url(e),
                error=str(e),
                error_type=e.__class__.__name__,
            )
            return None

        try:
            payload = msgspec.json.decode(resp.content, type=ApiResponse)
        except msgspec.DecodeError as e:
            logger.error(
                "telegram.bad_response",
                method=method,
                status=resp.status_code,
                url=str(resp.request.url),
                error=str(e),
                body=resp.text,
            )
            return None

        if not payload.ok:
            logger.error(
                "telegram.api_error",
                method=method,
                status=resp.status_code,
                url=str(resp.request.url),
                description=payload.description,
            )
        else:
            logger.debug("telegram.response", method=method, result=payload.result)
        return payload

    async def _post(self, method: str, json_data: dict[str, Any]) -> Any | None:
        payload = await self._request(method, json_data)
        if payload is None or not payload.ok:
            return None
        return payload.result

    async def get_updates(
        self, offset: int | None, timeout_s: int = 0
    ) -> list[dict] | None:
        params: dict[str, Any] = {"timeout": timeout_s}
        if offset is not None:
            params["offset"] = offset
        result = await self._post("getUpdates", params)
        if result is None:
            return None
        if not isinstance(result, list):
            logger.error("telegram.invalid_payload", method="getUpdates", payload=result)
            return None
        return result

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
    ) -> dict | None:
        params: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_to_message_id is not None:
            params["reply_to_message_id"] = reply_to_message_id
        return await self._post("sendMessage", params)

    async def send_sticker(
        self,
        chat_id: int,
        sticker: str,
        reply_to_message_id: int | None = None,
    ) -> dict | None:
        params: dict[str, Any] = {"chat_id": chat_id, "sticker": sticker}
        if reply_to_message_id is not None:
            params["reply_to_message_id"] = reply_to_message_id
        return await self._post("sendSticker", params)

    async def send_animation(
        self,
        chat_id: int,
        animation: str,
        caption: str | None = None,
        reply_to_message_id: int | None = None,
    ) -> dict | None:
        params: dict[str, Any] = {"chat_id": chat_id, "animation": animation}
        if caption is not None:
            params["caption"] = caption
        if reply_to_message_id is not None:
            params["reply_to_message_id"] = reply_to_message_id
        return await self._post("sendAnimation", params)

    async def get_chat(self, chat_ref: int | str) -> ChatInfo:
        payload = await self._request("getChat", {"chat_id": chat_ref})
        if payload is None:
            raise TelegramApiError(RESOLVE_FALLBACK_DESCRIPTION)
        if not payload.ok:
            raise TelegramApiError(payload.description or RESOLVE_FALLBACK_DESCRIPTION)
        try:
            return msgspec.convert(payload.result, type=ChatInfo)
        except msgspec.ValidationError as e:
            raise TelegramApiError(f"Unexpected getChat result: {e}") from e

    async def get_me(self) -> dict | None:
        res = await self._post("getMe", {})
        return res if isinstance(res, dict) else None
