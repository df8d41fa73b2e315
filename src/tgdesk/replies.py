from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Literal

from .logging import get_logger
from .model import SAVED_NOTES_CHAT_ID, Message, Sender, User
from .reconciler import Reconciler
from .telegram.client import BotClient

logger = get_logger(__name__)

MediaKind = Literal["sticker", "animation"]

_MEDIA_TEXT: dict[str, str] = {"sticker": "[Stiker]", "animation": "[GIF]"}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _reply_to(reply_to_id: str | None) -> int | None:
    if reply_to_id is None:
        return None
    try:
        return int(reply_to_id)
    except ValueError:
        return None


def _staff_sender(author: User) -> Sender:
    # Staff messages carry id 0 so they never match the bot's own id.
    return Sender(id=0, first_name=author.full_name)


def _sent_id(result: dict | None) -> str | None:
    if not isinstance(result, dict):
        return None
    message_id = result.get("message_id")
    if not isinstance(message_id, int):
        return None
    return str(message_id)


async def send_text(
    desk: Reconciler,
    bot: BotClient,
    author: User,
    chat_id: int,
    text: str,
    reply_to_id: str | None = None,
) -> Message | None:
    if chat_id == SAVED_NOTES_CHAT_ID:
        now = _now_ms()
        note = Message(
            id=str(now),
            chat_id=SAVED_NOTES_CHAT_ID,
            sender=_staff_sender(author),
            text=text,
            timestamp=now,
            is_reply=True,
            kind="text",
        )
        await desk.record_outbound(note)
        return note

    result = await bot.send_message(
        chat_id, f"{author.full_name}: {text}", reply_to_message_id=_reply_to(reply_to_id)
    )
    message_id = _sent_id(result)
    if message_id is None:
        logger.warning("replies.send_failed", chat_id=chat_id, kind="text")
        return None
    message = Message(
        id=message_id,
        chat_id=chat_id,
        sender=_staff_sender(author),
        text=text,
        timestamp=_now_ms(),
        is_reply=True,
        reply_to_id=reply_to_id,
        kind="text",
    )
    await desk.record_outbound(message)
    return message


async def send_media(
    desk: Reconciler,
    bot: BotClient,
    author: User,
    chat_id: int,
    kind: MediaKind,
    file: str,
    reply_to_id: str | None = None,
) -> Message | None:
    if chat_id == SAVED_NOTES_CHAT_ID:
        return None
    reply_to = _reply_to(reply_to_id)
    if kind == "sticker":
        result = await bot.send_sticker(chat_id, file, reply_to_message_id=reply_to)
    else:
        result = await bot.send_animation(
            chat_id,
            file,
            caption=f"{author.full_name}: GIF",
            reply_to_message_id=reply_to,
        )
    message_id = _sent_id(result)
    if message_id is None:
        logger.warning("replies.send_failed", chat_id=chat_id, kind=kind)
        return None
    message = Message(
        id=message_id,
        chat_id=chat_id,
        sender=_staff_sender(author),
        text=_MEDIA_TEXT[kind],
        timestamp=_now_ms(),
        is_reply=True,
        reply_to_id=reply_to_id,
        kind=kind,
        file_url=file,
    )
    await desk.record_outbound(message)
    return message


async def broadcast(
    desk: Reconciler,
    bot: BotClient,
    author: User,
    text: str,
    chat_ids: Iterable[int],
) -> list[Message]:
    sent: list[Message] = []
    for chat_id in chat_ids:
        if chat_id == SAVED_NOTES_CHAT_ID:
            continue
        message = await send_text(desk, bot, author, chat_id, text)
        if message is not None:
            sent.append(message)
    return sent
