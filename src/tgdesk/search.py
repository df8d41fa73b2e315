from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .model import Chat, Message


@dataclass(frozen=True, slots=True)
class SearchHit:
    message: Message
    chat_title: str


@dataclass(frozen=True, slots=True)
class ChatStats:
    chat_id: int
    title: str
    inbound: int
    outbound: int

    @property
    def total(self) -> int:
        return self.inbound + self.outbound


def search_messages(
    messages: Sequence[Message], chats: Sequence[Chat], query: str
) -> list[SearchHit]:
    needle = query.strip().casefold()
    if not needle:
        return []
    titles = {chat.id: chat.title for chat in chats}
    hits = [
        SearchHit(message=message, chat_title=titles.get(message.chat_id, str(message.chat_id)))
        for message in messages
        if needle in message.text.casefold()
        or needle in message.sender.first_name.casefold()
    ]
    hits.sort(key=lambda hit: hit.message.timestamp, reverse=True)
    return hits


def chat_stats(chats: Sequence[Chat], messages: Sequence[Message]) -> list[ChatStats]:
    inbound: dict[int, int] = {}
    outbound: dict[int, int] = {}
    for message in messages:
        counter = outbound if message.is_reply else inbound
        counter[message.chat_id] = counter.get(message.chat_id, 0) + 1
    stats = [
        ChatStats(
            chat_id=chat.id,
            title=chat.title,
            inbound=inbound.get(chat.id, 0),
            outbound=outbound.get(chat.id, 0),
        )
        for chat in chats
    ]
    stats.sort(key=lambda item: item.total, reverse=True)
    return stats
