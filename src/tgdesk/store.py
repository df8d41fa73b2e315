"""Best-effort persistence against a hosted Supabase (PostgREST) backend.

Every call degrades to a logged no-op when the backend is not configured or
unreachable; nothing here raises into the poll loop.
"""

from __future__ import annotations

from typing import Any, Protocol, TypeVar

import httpx
import msgspec

from .logging import get_logger
from .model import Chat, Message, User

logger = get_logger(__name__)

T = TypeVar("T")

MESSAGES_TABLE = "messages"
GROUPS_TABLE = "groups"
USERS_TABLE = "users"
SETTINGS_TABLE = "settings"
BOT_TOKEN_KEY = "bot_token"
ROOT_USER_ID = "super-root"


class Store(Protocol):
    async def close(self) -> None: ...

    async def save_message(self, message: Message) -> None: ...

    async def list_messages(self) -> list[Message]: ...

    async def save_group(self, chat: Chat) -> None: ...

    async def list_groups(self) -> list[Chat]: ...

    async def save_user(self, user: User) -> None: ...

    async def list_users(self) -> list[User]: ...

    async def delete_user(self, user_id: str) -> None: ...

    async def save_bot_token(self, token: str) -> None: ...

    async def get_bot_token(self) -> str | None: ...

    async def clear_all(self) -> None: ...


class _Setting(msgspec.Struct, forbid_unknown_fields=False):
    key: str | None = None
    value: str | None = None


def _decode_rows(table: str, rows: Any, kind: type[T]) -> list[T]:
    if not isinstance(rows, list):
        logger.error("store.invalid_payload", table=table, payload=rows)
        return []
    decoded: list[T] = []
    for row in rows:
        try:
            decoded.append(msgspec.convert(row, type=kind))
        except msgspec.ValidationError as exc:
            logger.warning("store.bad_row", table=table, row=row, error=str(exc))
    return decoded


class SupabaseStore:
    def __init__(
        self,
        url: str | None,
        key: str | None,
        *,
        timeout_s: float = 15,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url.rstrip("/") if url else None
        self._key = key
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    @property
    def connected(self) -> bool:
        return bool(self._url and self._key)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._key or "",
            "Authorization": f"Bearer {self._key}",
        }
        if prefer is not None:
            headers["Prefer"] = prefer
        return headers

    async def _send(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json_data: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response | None:
        if not self.connected:
            logger.warning("store.not_configured", table=table, method=method)
            return None
        url = f"{self._url}/rest/v1/{table}"
        try:
            resp = await self._client.request(
                method,
                url,
                params=params,
                json=json_data,
                headers=self._headers(prefer),
            )
        except httpx.HTTPError as exc:
            logger.error(
                "store.network_error",
                table=table,
                method=method,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return None
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "store.http_error",
                table=table,
                method=method,
                status=resp.status_code,
                error=str(exc),
                body=resp.text,
            )
            return None
        return resp

    async def _upsert(self, table: str, row: Any) -> None:
        await self._send(
            "POST",
            table,
            json_data=msgspec.to_builtins(row),
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def _select(
        self, table: str, params: dict[str, str] | None = None
    ) -> Any | None:
        query = {"select": "*"}
        if params:
            query.update(params)
        resp = await self._send("GET", table, params=query)
        if resp is None:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("store.bad_response", table=table, error=str(exc))
            return None

    async def _delete(self, table: str, params: dict[str, str]) -> None:
        await self._send("DELETE", table, params=params)

    async def save_message(self, message: Message) -> None:
        await self._upsert(MESSAGES_TABLE, message)

    async def list_messages(self) -> list[Message]:
        rows = await self._select(MESSAGES_TABLE, {"order": "timestamp.asc"})
        if rows is None:
            return []
        return _decode_rows(MESSAGES_TABLE, rows, Message)

    async def save_group(self, chat: Chat) -> None:
        await self._upsert(GROUPS_TABLE, chat)

    async def list_groups(self) -> list[Chat]:
        rows = await self._select(GROUPS_TABLE)
        if rows is None:
            return []
        return _decode_rows(GROUPS_TABLE, rows, Chat)

    async def save_user(self, user: User) -> None:
        await self._upsert(USERS_TABLE, user)

    async def list_users(self) -> list[User]:
        rows = await self._select(USERS_TABLE)
        if rows is None:
            return []
        return _decode_rows(USERS_TABLE, rows, User)

    async def delete_user(self, user_id: str) -> None:
        await self._delete(USERS_TABLE, {"id": f"eq.{user_id}"})

    async def save_bot_token(self, token: str) -> None:
        await self._upsert(SETTINGS_TABLE, _Setting(key=BOT_TOKEN_KEY, value=token))

    async def get_bot_token(self) -> str | None:
        rows = await self._select(SETTINGS_TABLE, {"key": f"eq.{BOT_TOKEN_KEY}"})
        if rows is None:
            return None
        for setting in _decode_rows(SETTINGS_TABLE, rows, _Setting):
            if setting.value:
                return setting.value
        return None

    async def clear_all(self) -> None:
        await self._delete(MESSAGES_TABLE, {"id": "neq.0"})
        await self._delete(GROUPS_TABLE, {"id": "neq.0"})
        await self._delete(USERS_TABLE, {"id": f"neq.{ROOT_USER_ID}"})
