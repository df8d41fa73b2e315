from __future__ import annotations

from typing import Any

import msgspec

from ..logging import get_logger
from ..model import Chat, Message, Sender
from .api_models import Chat as ApiChat
from .api_models import Message as ApiMessage
from .api_models import PhotoSize, Update

logger = get_logger(__name__)

STICKER_TEXT = "[Stiker]"
ANIMATION_TEXT = "[GIF]"
PHOTO_TEXT = "[Rasm]"


def parse_update(
    update: Update | dict[str, Any],
) -> tuple[Message, Chat] | None:
    if isinstance(update, dict):
        try:
            update = msgspec.convert(update, type=Update)
        except msgspec.ValidationError:
            logger.debug("parsing.invalid_update", update=update)
            return None
    msg = update.message if update.message is not None else update.channel_post
    if msg is None:
        return None
    return _parse_message(msg)


def _parse_message(msg: ApiMessage) -> tuple[Message, Chat] | None:
    content = _content(msg)
    if content is None:
        return None
    text, kind, file_id = content
    sender = _sender(msg)
    reply = msg.reply_to_message
    reply_to_id = None
    if reply is not None and isinstance(reply.get("message_id"), int):
        reply_to_id = str(reply["message_id"])
    message = Message(
        id=str(msg.message_id),
        chat_id=msg.chat.id,
        sender=sender,
        text=text,
        timestamp=msg.date * 1000,
        reply_to_id=reply_to_id,
        kind=kind,
        file_id=file_id,
    )
    chat = Chat(
        id=msg.chat.id,
        title=_chat_title(msg.chat, sender),
        kind=msg.chat.type,
        last_message=text,
        last_message_timestamp=message.timestamp,
    )
    return message, chat


def _content(msg: ApiMessage) -> tuple[str, str, str | None] | None:
    if msg.sticker is not None:
        return msg.sticker.emoji or STICKER_TEXT, "sticker", msg.sticker.file_id
    if msg.animation is not None:
        return msg.caption or ANIMATION_TEXT, "animation", msg.animation.file_id
    best = _best_photo(msg.photo)
    if best is not None:
        return msg.caption or PHOTO_TEXT, "photo", best.file_id
    if msg.text is not None:
        return msg.text, "text", None
    if msg.caption is not None:
        return msg.caption, "text", None
    return None


def _sender(msg: ApiMessage) -> Sender:
    user = msg.from_
    if user is not None:
        name = " ".join(part for part in (user.first_name, user.last_name) if part)
        return Sender(id=user.id, first_name=name or user.username or str(user.id))
    if msg.sender_chat is not None:
        chat = msg.sender_chat
        return Sender(id=chat.id, first_name=chat.title or chat.username or "")
    return Sender(id=msg.chat.id, first_name=msg.chat.title or "")


def _chat_title(chat: ApiChat, sender: Sender) -> str:
    if chat.title:
        return chat.title
    if chat.type == "private":
        return sender.first_name
    name = " ".join(part for part in (chat.first_name, chat.last_name) if part)
    return name or chat.username or str(chat.id)


def _best_photo(photos: list[PhotoSize] | None) -> PhotoSize | None:
    if not photos:
        return None
    best = None
    best_score = -1
    for item in photos:
        size = item.file_size
        score = size if size is not None else item.width * item.height
        if score > best_score:
            best_score = score
            best = item
    return best
