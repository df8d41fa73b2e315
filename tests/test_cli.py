from pathlib import Path

import pytest
from typer.testing import CliRunner

import tgdesk.cli as cli
from tgdesk import __version__
from tgdesk.cli import app
from tgdesk.model import Chat, Message, Role, Sender, User
from tgdesk.session import SessionFile
from tests.fakes import BOT_TOKEN, FakeStore

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "tgdesk.toml"
    path.write_text('[polling]\ninterval_s = 1\n', encoding="utf-8")
    return path


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_audio_toggle_persists(config_path: Path) -> None:
    result = runner.invoke(app, ["--config", str(config_path), "audio", "off"])

    assert result.exit_code == 0
    assert SessionFile(config_path.with_name("session.json")).state.audio_enabled is False


def test_audio_rejects_other_values(config_path: Path) -> None:
    result = runner.invoke(app, ["--config", str(config_path), "audio", "loud"])

    assert result.exit_code == 1


def test_logout_clears_user(config_path: Path) -> None:
    session = SessionFile(config_path.with_name("session.json"))
    session.login(
        User(id="1", full_name="Ali", username="ali", password="pw", role=Role.DISPATCHER)
    )

    result = runner.invoke(app, ["--config", str(config_path), "logout"])

    assert result.exit_code == 0
    assert SessionFile(session.path).current_user is None


def test_commands_require_login(config_path: Path) -> None:
    result = runner.invoke(app, ["--config", str(config_path), "send", "5", "salom"])

    assert result.exit_code == 1
    assert "not logged in" in result.output


def test_dispatcher_cannot_manage_users(config_path: Path) -> None:
    SessionFile(config_path.with_name("session.json")).login(
        User(id="1", full_name="Ali", username="ali", password="pw", role=Role.DISPATCHER)
    )

    result = runner.invoke(app, ["--config", str(config_path), "users", "list"])

    assert result.exit_code == 1
    assert "no access" in result.output


def test_bad_config_is_reported(tmp_path: Path) -> None:
    result = runner.invoke(app, ["--config", str(tmp_path / "missing.toml"), "logout"])

    assert result.exit_code == 1
    assert "Missing config" in result.output


def test_open_marks_chat_read_and_prints_its_messages(
    config_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = FakeStore()
    store.settings["bot_token"] = BOT_TOKEN
    store.groups[-100] = Chat(id=-100, title="Yuk", unread_count=3)
    store.groups[-200] = Chat(id=-200, title="Taksi", unread_count=1)
    store.messages["1"] = Message(
        id="1", chat_id=-100, sender=Sender(id=42, first_name="Aziz"), text="Salom", timestamp=1
    )
    store.messages["2"] = Message(
        id="2", chat_id=-200, sender=Sender(id=43, first_name="Bek"), text="Boshqa", timestamp=2
    )
    monkeypatch.setattr(cli, "_store", lambda settings: store)
    SessionFile(config_path.with_name("session.json")).login(
        User(id="1", full_name="Ali", username="ali", password="pw", role=Role.DISPATCHER)
    )

    result = runner.invoke(app, ["--config", str(config_path), "open", "--", "-100"])

    assert result.exit_code == 0, result.output
    assert store.groups[-100].unread_count == 0
    assert store.groups[-200].unread_count == 1
    assert "Salom" in result.output
    assert "Boshqa" not in result.output


def test_open_unknown_chat(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = FakeStore()
    store.settings["bot_token"] = BOT_TOKEN
    monkeypatch.setattr(cli, "_store", lambda settings: store)
    SessionFile(config_path.with_name("session.json")).login(
        User(id="1", full_name="Ali", username="ali", password="pw", role=Role.DISPATCHER)
    )

    result = runner.invoke(app, ["--config", str(config_path), "open", "5"])

    assert result.exit_code == 1
    assert "unknown chat 5" in result.output
