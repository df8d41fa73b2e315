from __future__ import annotations

import enum
from collections.abc import Iterable

import msgspec

__all__ = [
    "Chat",
    "Message",
    "Role",
    "SAVED_NOTES_CHAT_ID",
    "Sender",
    "User",
    "saved_notes_chat",
    "sort_chats",
]

SAVED_NOTES_CHAT_ID = 0
SAVED_NOTES_TITLE = "Saqlanganlar"
SAVED_NOTES_KIND = "SAVED"
# Display timestamp only; sort_chats pins the saved-notes chat explicitly.
SAVED_NOTES_LEAD_MS = 1_000_000


class Role(str, enum.Enum):
    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    DISPATCHER = "DISPATCHER"


class Sender(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    first_name: str = ""


class Message(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    id: str
    chat_id: int
    sender: Sender = msgspec.field(name="from_data")
    text: str = ""
    timestamp: int = 0
    is_reply: bool = False
    reply_to_id: str | None = None
    kind: str | None = msgspec.field(default=None, name="type")
    file_id: str | None = None
    file_url: str | None = None


class Chat(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    id: int
    title: str = ""
    kind: str = msgspec.field(default="group", name="type")
    member_count: int = 0
    last_message: str | None = None
    last_message_timestamp: int | None = None
    unread_count: int = 0
    announce_group: bool = True
    announce_sender: bool = True
    read_content: bool = False
    is_active: bool = True


class User(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    id: str
    full_name: str
    username: str
    password: str
    role: Role
    parent_id: str | None = None


def saved_notes_chat(now_ms: int) -> Chat:
    return Chat(
        id=SAVED_NOTES_CHAT_ID,
        title=SAVED_NOTES_TITLE,
        kind=SAVED_NOTES_KIND,
        last_message_timestamp=now_ms + SAVED_NOTES_LEAD_MS,
    )


def sort_chats(chats: Iterable[Chat]) -> list[Chat]:
    """Saved notes first, then newest activity first."""
    return sorted(
        chats,
        key=lambda chat: (
            chat.id != SAVED_NOTES_CHAT_ID,
            -(chat.last_message_timestamp or 0),
        ),
    )
