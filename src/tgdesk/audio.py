"""Audio output: Gemini text-to-speech and local sound playback."""

from __future__ import annotations

import base64
import shutil
import subprocess
import sys
import tempfile
import wave
from pathlib import Path
from typing import Any, Protocol

import anyio
import httpx

from .logging import get_logger

logger = get_logger(__name__)

GEMINI_TTS_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
)
GEMINI_TTS_MODEL = "gemini-2.5-flash-preview-tts"
TTS_SAMPLE_RATE = 24_000

# Tried in order; each entry is argv without the file path.
PLAYER_CANDIDATES: tuple[tuple[str, ...], ...] = (
    ("paplay",),
    ("aplay", "-q"),
    ("afplay",),
    ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"),
)


class Speaker(Protocol):
    async def speak(self, text: str) -> None: ...


class Sound(Protocol):
    async def play(self) -> None: ...


class AudioError(Exception):
    pass


def find_player() -> list[str] | None:
    for candidate in PLAYER_CANDIDATES:
        path = shutil.which(candidate[0])
        if path:
            return [path, *candidate[1:]]
    return None


class CommandPlayer:
    def __init__(self, command: list[str] | None = None) -> None:
        self._command = command if command is not None else find_player()

    @property
    def available(self) -> bool:
        return bool(self._command)

    async def play(self, path: Path) -> None:
        if not self._command:
            raise AudioError("No audio player found (tried paplay, aplay, afplay, ffplay).")
        try:
            await anyio.run_process([*self._command, str(path)], check=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise AudioError(f"Audio player failed: {exc}") from exc


def write_wav(path: Path, pcm: bytes, *, sample_rate: int = TTS_SAMPLE_RATE) -> None:
    with wave.open(str(path), "wb") as handle:
        handle.setnchannels(1)
        handle.setsampwidth(2)
        handle.setframerate(sample_rate)
        handle.writeframes(pcm)


def _extract_audio(payload: Any) -> bytes | None:
    if not isinstance(payload, dict):
        return None
    for candidate in payload.get("candidates") or []:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        for part in parts or []:
            inline = part.get("inlineData") if isinstance(part, dict) else None
            if isinstance(inline, dict) and isinstance(inline.get("data"), str):
                return base64.b64decode(inline["data"])
    return None


async def synthesize_speech(
    text: str,
    *,
    api_key: str,
    voice: str,
    model: str = GEMINI_TTS_MODEL,
    timeout_s: float = 30,
    http_client: httpx.AsyncClient | None = None,
) -> bytes | None:
    body = {
        "contents": [{"parts": [{"text": text}]}],
        "generationConfig": {
            "responseModalities": ["AUDIO"],
            "speechConfig": {
                "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}}
            },
        },
    }
    headers = {"x-goog-api-key": api_key}
    close_client = False
    client = http_client
    if client is None:
        client = httpx.AsyncClient(timeout=timeout_s)
        close_client = True
    try:
        try:
            resp = await client.post(
                GEMINI_TTS_URL.format(model=model), json=body, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.error(
                "gemini.tts.network_error",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return None
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "gemini.tts.http_error",
                status=resp.status_code,
                error=str(exc),
                body=resp.text,
            )
            return None
        try:
            payload = resp.json()
        except ValueError as exc:
            logger.error("gemini.tts.bad_response", error=str(exc), body=resp.text)
            return None
        audio = _extract_audio(payload)
        if audio is None:
            logger.error("gemini.tts.no_audio", payload=payload)
        return audio
    finally:
        if close_client:
            await client.aclose()


class GeminiSpeaker:
    def __init__(
        self,
        *,
        api_key: str,
        voice: str,
        player: CommandPlayer,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._voice = voice
        self._player = player
        self._http_client = http_client

    async def speak(self, text: str) -> None:
        pcm = await synthesize_speech(
            text,
            api_key=self._api_key,
            voice=self._voice,
            http_client=self._http_client,
        )
        if pcm is None:
            return
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "speech.wav"
            write_wav(path, pcm)
            await self._player.play(path)


class LogSpeaker:
    async def speak(self, text: str) -> None:
        logger.info("audio.speech", text=text)


class SoundCue:
    """The short fixed notification sound; falls back to the terminal bell."""

    def __init__(self, player: CommandPlayer, sound_path: Path | None = None) -> None:
        self._player = player
        self._sound_path = sound_path

    async def play(self) -> None:
        if self._sound_path is not None and self._sound_path.is_file():
            await self._player.play(self._sound_path)
            return
        sys.stdout.write("\a")
        sys.stdout.flush()
