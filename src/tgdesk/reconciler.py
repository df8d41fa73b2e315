"""Polls the bot gateway and folds new messages into dashboard state.

One :class:`Reconciler` owns every piece of shared state the poll cycle
touches: the update cursor, the set of applied message ids, the chat list,
the message log and the focused chat. Each inbound message is applied at
most once per process; the store is written best effort, so durability is
at-least-once per cycle rather than transactional across message and chat.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any

import anyio
import msgspec

from .config import DEFAULT_POLL_INTERVAL_S
from .logging import get_logger
from .model import (
    SAVED_NOTES_CHAT_ID,
    Chat,
    Message,
    saved_notes_chat,
    sort_chats,
)
from .notify import Notifier
from .store import Store
from .telegram.client import BotClient, bot_id_from_token
from .telegram.parsing import parse_update

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class Reconciler:
    def __init__(
        self,
        *,
        bot: BotClient,
        store: Store,
        bot_token: str,
        notifier: Notifier | None = None,
        audio_enabled: bool = True,
        is_authenticated: Callable[[], bool] = lambda: True,
        audio_setting: Callable[[], bool] = lambda: True,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        poll_timeout_s: int = 0,
        clock_ms: Callable[[], int] = _now_ms,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
        on_message: Callable[[Message, Chat], None] | None = None,
    ) -> None:
        self._bot = bot
        self._store = store
        self.bot_token = bot_token
        self.bot_id = bot_id_from_token(bot_token)
        self._notifier = notifier
        self.audio_enabled = audio_enabled
        self._is_authenticated = is_authenticated
        # Consulted for every message, not once at startup.
        self._audio_setting = audio_setting
        self._poll_interval_s = poll_interval_s
        self._poll_timeout_s = poll_timeout_s
        self._clock_ms = clock_ms
        self._sleep = sleep
        self._on_message = on_message

        self.cursor = 0
        self.seen_ids: set[str] = set()
        self.chats: list[Chat] = [saved_notes_chat(clock_ms())]
        self.messages: list[Message] = []
        self.active_chat_id: int | None = None
        self.loaded = False
        self._running = False
        self._scope: anyio.CancelScope | None = None

    # state access

    def chat(self, chat_id: int) -> Chat | None:
        for chat in self.chats:
            if chat.id == chat_id:
                return chat
        return None

    def messages_for(self, chat_id: int) -> list[Message]:
        return [message for message in self.messages if message.chat_id == chat_id]

    def _put_chat(self, updated: Chat) -> None:
        others = [chat for chat in self.chats if chat.id != updated.id]
        self.chats = sort_chats([*others, updated])

    def _with_saved_notes(self, groups: list[Chat]) -> list[Chat]:
        unique = {group.id: group for group in groups if group.id != SAVED_NOTES_CHAT_ID}
        return sort_chats([saved_notes_chat(self._clock_ms()), *unique.values()])

    async def load(self) -> None:
        groups = await self._store.list_groups()
        messages = await self._store.list_messages()
        self.seen_ids.update(message.id for message in messages)
        self.chats = self._with_saved_notes(groups)
        self.messages = list(messages)
        self.loaded = True
        logger.info("reconciler.loaded", chats=len(self.chats), messages=len(messages))

    async def reload_chats(self) -> None:
        groups = await self._store.list_groups()
        self.chats = self._with_saved_notes(groups)

    # polling

    def notifications_on(self) -> bool:
        return self.audio_enabled and self._audio_setting()

    def can_poll(self) -> bool:
        return bool(self.bot_token) and self._is_authenticated() and self.loaded

    async def poll_once(self) -> int:
        """Run one poll cycle and return how many messages were applied."""
        updates = await self._bot.get_updates(
            offset=self.cursor + 1, timeout_s=self._poll_timeout_s
        )
        if updates is None:
            logger.warning("reconciler.poll.failed", cursor=self.cursor)
            return 0
        if not updates:
            return 0

        max_id = self.cursor
        for update in updates:
            update_id = update.get("update_id") if isinstance(update, dict) else None
            if isinstance(update_id, int) and update_id > max_id:
                max_id = update_id
        self.cursor = max_id

        applied = 0
        for update in updates:
            parsed = parse_update(update)
            if parsed is None:
                continue
            message, chat = parsed
            try:
                if await self.apply(message, chat):
                    applied += 1
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "reconciler.apply.failed",
                    message_id=message.id,
                    chat_id=chat.id,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
        logger.debug(
            "reconciler.poll.batch",
            updates=len(updates),
            applied=applied,
            cursor=self.cursor,
        )
        return applied

    async def apply(self, message: Message, chat: Chat) -> bool:
        if message.id in self.seen_ids:
            return False
        self.seen_ids.add(message.id)

        is_self = self.bot_id is not None and message.sender.id == self.bot_id
        message = msgspec.structs.replace(message, is_reply=is_self)
        await self._store.save_message(message)

        focused = self.active_chat_id == chat.id
        existing = self.chat(chat.id)
        if existing is not None:
            updated = msgspec.structs.replace(
                existing,
                last_message=message.text,
                last_message_timestamp=message.timestamp,
                unread_count=0 if focused or is_self else existing.unread_count + 1,
            )
        else:
            updated = msgspec.structs.replace(
                chat,
                is_active=True,
                unread_count=0 if focused or is_self else 1,
                announce_group=True,
                announce_sender=True,
                read_content=False,
                last_message=message.text,
                last_message_timestamp=message.timestamp,
            )
            logger.info("reconciler.chat.created", chat_id=chat.id, title=chat.title)
        await self._store.save_group(updated)

        self.messages.append(message)
        self._put_chat(updated)

        if self._on_message is not None:
            self._on_message(message, updated)
        if not is_self and self._notifier is not None and self.notifications_on():
            await self._notifier.notify(updated, message, focused=focused)
        return True

    async def run(self) -> None:
        """Poll until stopped or until a precondition no longer holds.

        :meth:`stop` only interrupts the pause between cycles; a cycle in
        progress always finishes applying its batch.
        """
        self._running = True
        try:
            while self._running and self.can_poll():
                try:
                    await self.poll_once()
                except Exception as exc:  # noqa: BLE001
                    logger.error(
                        "reconciler.poll.error",
                        cursor=self.cursor,
                        error=str(exc),
                        error_type=exc.__class__.__name__,
                    )
                if not (self._running and self.can_poll()):
                    break
                with anyio.CancelScope() as scope:
                    self._scope = scope
                    await self._sleep(self._poll_interval_s)
                self._scope = None
        finally:
            self._running = False
            self._scope = None
        logger.info("reconciler.stopped", cursor=self.cursor)

    def stop(self) -> None:
        self._running = False
        if self._scope is not None:
            self._scope.cancel()

    # staff actions

    async def select_chat(self, chat_id: int) -> Chat | None:
        self.active_chat_id = chat_id
        chat = self.chat(chat_id)
        if chat is None:
            return None
        updated = msgspec.structs.replace(chat, unread_count=0)
        self.chats = [updated if item.id == chat_id else item for item in self.chats]
        if chat_id != SAVED_NOTES_CHAT_ID:
            await self._store.save_group(updated)
        return updated

    async def update_chat_settings(
        self,
        chat_id: int,
        *,
        announce_group: bool | None = None,
        announce_sender: bool | None = None,
        read_content: bool | None = None,
        is_active: bool | None = None,
    ) -> Chat | None:
        chat = self.chat(chat_id)
        if chat is None:
            return None
        changes: dict[str, Any] = {
            name: value
            for name, value in (
                ("announce_group", announce_group),
                ("announce_sender", announce_sender),
                ("read_content", read_content),
                ("is_active", is_active),
            )
            if value is not None
        }
        updated = msgspec.structs.replace(chat, **changes)
        self.chats = [updated if item.id == chat_id else item for item in self.chats]
        if chat_id != SAVED_NOTES_CHAT_ID:
            await self._store.save_group(updated)
        return updated

    async def record_outbound(self, message: Message) -> None:
        self.seen_ids.add(message.id)
        await self._store.save_message(message)
        self.messages.append(message)
