"""Per-chat notification policy for incoming messages.

The policy itself is a pure function of the chat's announcement flags and
the message; :class:`Notifier` carries it out (speech, sound, toast).
"""

from __future__ import annotations

import itertools
import time
from collections.abc import Callable
from dataclasses import dataclass

from .audio import Sound, Speaker
from .logging import get_logger
from .model import Chat, Message

logger = get_logger(__name__)

TOAST_TTL_S = 5.0
TOAST_TEXT_CHARS = 30


@dataclass(frozen=True, slots=True)
class Announcement:
    speech: str | None
    play_sound: bool
    toast: str | None


@dataclass(frozen=True, slots=True)
class Toast:
    id: int
    text: str
    expires_at: float


def speech_for(chat: Chat, message: Message) -> str:
    sender = message.sender.first_name
    if chat.announce_sender and chat.announce_group:
        speech = f"{sender} {chat.title} guruhiga yozdi"
    elif chat.announce_sender:
        speech = f"{sender} yozdi"
    elif chat.announce_group:
        speech = f"{chat.title} guruhida yangi xabar"
    else:
        speech = ""
    if chat.read_content and message.text:
        speech = f"{speech}. Matn: {message.text}" if speech else f"Matn: {message.text}"
    return speech


def plan_announcement(chat: Chat, message: Message, *, focused: bool) -> Announcement:
    if chat.announce_group or chat.announce_sender or chat.read_content:
        speech = speech_for(chat, message) or None
        play_sound = False
    else:
        speech = None
        play_sound = True
    toast = None
    if not focused:
        toast = f"{message.sender.first_name}: {message.text[:TOAST_TEXT_CHARS]}"
    return Announcement(speech=speech, play_sound=play_sound, toast=toast)


class ToastQueue:
    def __init__(
        self,
        *,
        ttl_s: float = TOAST_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._ids = itertools.count(1)
        self._toasts: list[Toast] = []

    def push(self, text: str) -> Toast:
        toast = Toast(id=next(self._ids), text=text, expires_at=self._clock() + self._ttl_s)
        self._toasts.append(toast)
        return toast

    def active(self) -> list[Toast]:
        now = self._clock()
        self._toasts = [toast for toast in self._toasts if toast.expires_at > now]
        return list(self._toasts)


class Notifier:
    def __init__(
        self,
        *,
        speaker: Speaker,
        sound: Sound,
        toasts: ToastQueue | None = None,
        on_toast: Callable[[Toast], None] | None = None,
    ) -> None:
        self._speaker = speaker
        self._sound = sound
        self.toasts = toasts or ToastQueue()
        self._on_toast = on_toast

    async def notify(self, chat: Chat, message: Message, *, focused: bool) -> Announcement:
        announcement = plan_announcement(chat, message, focused=focused)
        try:
            if announcement.speech:
                await self._speaker.speak(announcement.speech)
            elif announcement.play_sound:
                await self._sound.play()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "notify.audio_failed",
                chat_id=chat.id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
        if announcement.toast is not None:
            toast = self.toasts.push(announcement.toast)
            if self._on_toast is not None:
                self._on_toast(toast)
        return announcement
