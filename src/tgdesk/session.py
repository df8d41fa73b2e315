from __future__ import annotations

import os
import tempfile
from pathlib import Path

import msgspec

from .logging import get_logger
from .model import User

logger = get_logger(__name__)

DEFAULT_THEME = "dark"


class LocalSession(msgspec.Struct, forbid_unknown_fields=False):
    current_user: User | None = None
    bot_token: str = ""
    theme: str = DEFAULT_THEME
    audio_enabled: bool = True


class SessionFile:
    """Device-local session cache stored as JSON next to the config."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.state = self._read()

    def _read(self) -> LocalSession:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return LocalSession()
        except OSError as exc:
            logger.warning("session.read_failed", path=str(self.path), error=str(exc))
            return LocalSession()
        try:
            return msgspec.json.decode(raw, type=LocalSession)
        except msgspec.DecodeError as exc:
            logger.warning("session.decode_failed", path=str(self.path), error=str(exc))
            return LocalSession()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = msgspec.json.format(msgspec.json.encode(self.state), indent=2)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @property
    def current_user(self) -> User | None:
        return self.state.current_user

    def login(self, user: User) -> None:
        self.state.current_user = user
        self.save()

    def logout(self) -> None:
        self.state.current_user = None
        self.save()

    def set_bot_token(self, token: str) -> None:
        self.state.bot_token = token
        self.save()

    def set_audio_enabled(self, enabled: bool) -> None:
        self.state.audio_enabled = enabled
        self.save()

    def reset_keep_credentials(self) -> None:
        self.state = LocalSession(bot_token=self.state.bot_token, theme=self.state.theme)
        self.save()


async def resolve_bot_token(store, session: SessionFile, configured: str | None) -> str:
    """Pick the bot token: store first, then the local cache, then config/env."""
    try:
        stored = await store.get_bot_token()
    except Exception as exc:  # noqa: BLE001
        logger.warning("session.token_lookup_failed", error=str(exc))
        stored = None
    token = stored or session.state.bot_token or configured or ""
    if token and token != session.state.bot_token:
        session.set_bot_token(token)
    return token
