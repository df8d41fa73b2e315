from __future__ import annotations

from typing import Any

import msgspec

__all__ = [
    "Animation",
    "ApiResponse",
    "Chat",
    "ChatInfo",
    "Message",
    "PhotoSize",
    "Sticker",
    "Update",
    "User",
]


class User(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    is_bot: bool = False
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class Chat(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    type: str
    title: str | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class PhotoSize(msgspec.Struct, forbid_unknown_fields=False):
    file_id: str
    width: int = 0
    height: int = 0
    file_size: int | None = None


class Sticker(msgspec.Struct, forbid_unknown_fields=False):
    file_id: str
    emoji: str | None = None


class Animation(msgspec.Struct, forbid_unknown_fields=False):
    file_id: str
    file_name: str | None = None


class Message(msgspec.Struct, forbid_unknown_fields=False):
    message_id: int
    chat: Chat
    date: int = 0
    from_: User | None = msgspec.field(default=None, name="from")
    sender_chat: Chat | None = None
    text: str | None = None
    caption: str | None = None
    sticker: Sticker | None = None
    animation: Animation | None = None
    photo: list[PhotoSize] | None = None
    reply_to_message: dict[str, Any] | None = None


class Update(msgspec.Struct, forbid_unknown_fields=False):
    update_id: int
    message: Message | None = None
    channel_post: Message | None = None


class ChatInfo(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    type: str
    title: str | None = None
    username: str | None = None
    first_name: str | None = None


class ApiResponse(msgspec.Struct, forbid_unknown_fields=False):
    ok: bool
    result: Any = None
    description: str | None = None
