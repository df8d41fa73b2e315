from pathlib import Path

import pytest

from tgdesk.admin import (
    AuthorizationError,
    ResolveError,
    ValidationError,
    authenticate,
    bot_status,
    create_user,
    delete_user,
    full_reset,
    link_group,
    set_bot_token,
)
from tgdesk.model import Role, User
from tgdesk.session import SessionFile
from tgdesk.telegram.api_models import ChatInfo
from tests.fakes import FakeBot, FakeStore

ROOT = User(
    id="super-root", full_name="Root", username="root", password="pw", role=Role.SUPERADMIN
)
ADMIN = User(
    id="a", full_name="Admin", username="admin", password="pw", role=Role.ADMIN,
    parent_id="super-root",
)
DISPATCHER = User(
    id="d", full_name="Disp", username="disp", password="pw", role=Role.DISPATCHER,
    parent_id="a",
)


def test_authenticate_matches_stored_user() -> None:
    assert authenticate([ADMIN, DISPATCHER], "disp", "pw") == DISPATCHER


def test_authenticate_rejects_bad_password() -> None:
    with pytest.raises(AuthorizationError):
        authenticate([ADMIN], "admin", "wrong")


def test_authenticate_requires_username() -> None:
    with pytest.raises(ValidationError):
        authenticate([ADMIN], "  ", "pw")


def test_authenticate_configured_superadmin() -> None:
    user = authenticate([], "boss", "secret", superadmin=("boss", "secret"))

    assert user.role is Role.SUPERADMIN
    assert user.id == "super-root"


@pytest.mark.anyio
async def test_superadmin_creates_admin(fake_store: FakeStore) -> None:
    user = await create_user(
        fake_store, ROOT, [], full_name="New Admin", username="na", password="x"
    )

    assert user.role is Role.ADMIN
    assert user.parent_id == "super-root"
    assert fake_store.users[user.id] == user


@pytest.mark.anyio
async def test_admin_creates_dispatcher(fake_store: FakeStore) -> None:
    user = await create_user(
        fake_store, ADMIN, [], full_name="Nodir", username="nodir", password="x"
    )

    assert user.role is Role.DISPATCHER
    assert user.parent_id == "a"


@pytest.mark.anyio
async def test_dispatcher_cannot_create_users(fake_store: FakeStore) -> None:
    with pytest.raises(AuthorizationError):
        await create_user(
            fake_store, DISPATCHER, [], full_name="X", username="x", password="x"
        )
    assert fake_store.users == {}


@pytest.mark.anyio
async def test_create_user_validates_fields(fake_store: FakeStore) -> None:
    with pytest.raises(ValidationError, match="full_name"):
        await create_user(fake_store, ADMIN, [], full_name=" ", username="x", password="x")
    with pytest.raises(ValidationError, match="taken"):
        await create_user(
            fake_store, ADMIN, [DISPATCHER], full_name="D", username="disp", password="x"
        )


@pytest.mark.anyio
async def test_delete_user_respects_ownership(fake_store: FakeStore) -> None:
    other = User(
        id="o", full_name="O", username="o", password="pw", role=Role.DISPATCHER,
        parent_id="someone-else",
    )
    fake_store.users = {u.id: u for u in (ADMIN, DISPATCHER, other)}
    users = list(fake_store.users.values())

    with pytest.raises(AuthorizationError):
        await delete_user(fake_store, ADMIN, users, "o")
    await delete_user(fake_store, ADMIN, users, "d")

    assert "d" not in fake_store.users
    assert "o" in fake_store.users


@pytest.mark.anyio
async def test_delete_unknown_user(fake_store: FakeStore) -> None:
    with pytest.raises(ValidationError):
        await delete_user(fake_store, ADMIN, [], "missing")


@pytest.mark.anyio
async def test_link_group_saves_resolved_chat(
    fake_store: FakeStore, fake_bot: FakeBot
) -> None:
    fake_bot.chats["@yuk"] = ChatInfo(id=-42, type="supergroup", title="Yuk")

    chat = await link_group(fake_store, fake_bot, ADMIN, " @yuk ")

    assert chat.id == -42
    assert chat.title == "Yuk"
    assert chat.unread_count == 0
    assert (chat.announce_group, chat.announce_sender, chat.read_content) == (
        True,
        True,
        False,
    )
    assert fake_store.groups[-42] == chat


@pytest.mark.anyio
async def test_link_group_by_numeric_id(fake_store: FakeStore, fake_bot: FakeBot) -> None:
    fake_bot.chats[-42] = ChatInfo(id=-42, type="group")

    chat = await link_group(fake_store, fake_bot, ADMIN, "-42")

    assert chat.title == "Noma'lum"


@pytest.mark.anyio
async def test_link_group_resolve_error_carries_description(
    fake_store: FakeStore, fake_bot: FakeBot
) -> None:
    with pytest.raises(ResolveError) as excinfo:
        await link_group(fake_store, fake_bot, ADMIN, "@missing")

    assert excinfo.value.description == "Bad Request: chat not found"
    assert fake_store.groups == {}


@pytest.mark.anyio
async def test_superadmin_cannot_link_groups(fake_store: FakeStore, fake_bot: FakeBot) -> None:
    with pytest.raises(AuthorizationError, match="Superadmin"):
        await link_group(fake_store, fake_bot, ROOT, "@yuk")


@pytest.mark.anyio
async def test_link_group_requires_input(fake_store: FakeStore, fake_bot: FakeBot) -> None:
    with pytest.raises(ValidationError):
        await link_group(fake_store, fake_bot, ADMIN, "")


@pytest.mark.anyio
async def test_set_bot_token_updates_store_and_session(
    tmp_path: Path, fake_store: FakeStore
) -> None:
    session = SessionFile(tmp_path / "session.json")

    await set_bot_token(fake_store, session, " 1:abc ")

    assert fake_store.settings["bot_token"] == "1:abc"
    assert SessionFile(tmp_path / "session.json").state.bot_token == "1:abc"


@pytest.mark.anyio
async def test_bot_status(fake_bot: FakeBot) -> None:
    assert await bot_status(fake_bot) == "Desk Bot"
    fake_bot.me = None
    assert await bot_status(fake_bot) is None


@pytest.mark.anyio
async def test_full_reset_keeps_token_and_theme(
    tmp_path: Path, fake_store: FakeStore
) -> None:
    session = SessionFile(tmp_path / "session.json")
    session.state.theme = "light"
    session.set_bot_token("1:abc")
    session.login(ADMIN)

    await full_reset(fake_store, session)

    reloaded = SessionFile(tmp_path / "session.json").state
    assert fake_store.cleared
    assert reloaded.current_user is None
    assert reloaded.bot_token == "1:abc"
    assert reloaded.theme == "light"
