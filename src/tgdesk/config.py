from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Environment variable names for secrets
ENV_BOT_TOKEN = "TGDESK_BOT_TOKEN"
ENV_SUPABASE_URL = "TGDESK_SUPABASE_URL"
ENV_SUPABASE_KEY = "TGDESK_SUPABASE_KEY"
ENV_GEMINI_API_KEY = "GEMINI_API_KEY"

LOCAL_CONFIG_NAME = Path(".tgdesk") / "tgdesk.toml"
HOME_CONFIG_PATH = Path.home() / ".tgdesk" / "tgdesk.toml"
SESSION_FILENAME = "session.json"

DEFAULT_POLL_INTERVAL_S = 3.0
DEFAULT_TTS_VOICE = "Kore"


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class DeskSettings:
    config_path: Path
    bot_token: str | None = None
    supabase_url: str | None = None
    supabase_key: str | None = None
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    poll_timeout_s: int = 0
    audio_enabled: bool = True
    sound_path: Path | None = None
    tts_api_key: str | None = None
    tts_voice: str = DEFAULT_TTS_VOICE
    session_path: Path | None = None
    superadmin_username: str | None = None
    superadmin_password: str | None = None

    def resolved_session_path(self) -> Path:
        if self.session_path is not None:
            return self.session_path
        return self.config_path.with_name(SESSION_FILENAME)


def _config_candidates() -> list[Path]:
    candidates = [Path.cwd() / LOCAL_CONFIG_NAME, HOME_CONFIG_PATH]
    if candidates[0] == candidates[1]:
        return [candidates[0]]
    return candidates


def _read_config(cfg_path: Path) -> dict:
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Missing config file {cfg_path}.") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {e}") from None


def load_config(path: str | Path | None = None) -> tuple[dict, Path]:
    """Return the parsed config and its path.

    A missing default config is not an error: the dashboard can run purely
    from environment variables, so an empty table is returned together with
    the home config path.
    """
    if path:
        cfg_path = Path(path).expanduser()
        return _read_config(cfg_path), cfg_path

    for candidate in _config_candidates():
        if candidate.is_file():
            return _read_config(candidate), candidate
    return {}, HOME_CONFIG_PATH


def _env(name: str) -> str | None:
    value = os.environ.get(name)
    if value and value.strip():
        return value.strip()
    return None


def _optional_str(table: dict, key: str, config_path: Path) -> str | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"Invalid `{key}` in {config_path}; expected a string.")
    value = value.strip()
    return value or None


def _table(config: dict, key: str, config_path: Path) -> dict[str, Any]:
    value = config.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"Invalid `{key}` in {config_path}; expected a table.")
    return value


def _number(table: dict, key: str, default: float, config_path: Path) -> float:
    value = table.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"Invalid `{key}` in {config_path}; expected a number.")
    if value < 0:
        raise ConfigError(f"Invalid `{key}` in {config_path}; must be >= 0.")
    return float(value)


def _bool(table: dict, key: str, default: bool, config_path: Path) -> bool:
    value = table.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"Invalid `{key}` in {config_path}; expected a boolean.")
    return value


def _path(table: dict, key: str, config_path: Path) -> Path | None:
    value = _optional_str(table, key, config_path)
    if value is None:
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = config_path.parent / path
    return path


def parse_settings(config: dict, config_path: Path) -> DeskSettings:
    """Build settings from a parsed config; environment variables win for secrets."""
    supabase = _table(config, "supabase", config_path)
    polling = _table(config, "polling", config_path)
    audio = _table(config, "audio", config_path)
    superadmin = _table(config, "superadmin", config_path)

    return DeskSettings(
        config_path=config_path,
        bot_token=_env(ENV_BOT_TOKEN) or _optional_str(config, "bot_token", config_path),
        supabase_url=_env(ENV_SUPABASE_URL)
        or _optional_str(supabase, "url", config_path),
        supabase_key=_env(ENV_SUPABASE_KEY)
        or _optional_str(supabase, "key", config_path),
        poll_interval_s=_number(
            polling, "interval_s", DEFAULT_POLL_INTERVAL_S, config_path
        ),
        poll_timeout_s=int(_number(polling, "timeout_s", 0, config_path)),
        audio_enabled=_bool(audio, "enabled", True, config_path),
        sound_path=_path(audio, "sound_path", config_path),
        tts_api_key=_env(ENV_GEMINI_API_KEY)
        or _optional_str(audio, "tts_api_key", config_path),
        tts_voice=_optional_str(audio, "tts_voice", config_path) or DEFAULT_TTS_VOICE,
        session_path=_path(config, "session_path", config_path),
        superadmin_username=_optional_str(superadmin, "username", config_path),
        superadmin_password=_optional_str(superadmin, "password", config_path),
    )


def load_settings(path: str | Path | None = None) -> DeskSettings:
    config, config_path = load_config(path)
    return parse_settings(config, config_path)
