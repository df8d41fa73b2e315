from __future__ import annotations

import typer
from rich.table import Table

from ..admin import (
    bot_status,
    create_user,
    delete_user,
    full_reset,
    link_group,
    set_bot_token,
    visible_users,
)
from ..model import Chat, User, sort_chats
from ..reconciler import Reconciler
from ..roles import can_administer
from ..telegram.client import TelegramClient
from . import (
    _bot_token,
    _current_user,
    _fail,
    _format_time,
    _run,
    _session,
    _settings,
    _store,
    console,
)

groups_app = typer.Typer(help="Linked group chats.", no_args_is_help=True)
users_app = typer.Typer(help="Staff accounts you manage.", no_args_is_help=True)
token_app = typer.Typer(help="Shared bot token.", no_args_is_help=True)


def _admin_user(ctx: typer.Context) -> User:
    user = _current_user(_session(_settings(ctx)))
    if not can_administer(user):
        _fail(f"{user.role.value} has no access to administration.")
    return user


@groups_app.command("list")
def groups_list(ctx: typer.Context) -> None:
    """List linked chats, newest activity first."""
    settings = _settings(ctx)
    _current_user(_session(settings))

    async def _main() -> list[Chat]:
        store = _store(settings)
        try:
            return sort_chats(await store.list_groups())
        finally:
            await store.close()

    table = Table("id", "title", "type", "unread", "last message", "flags")
    for chat in _run(_main):
        flags = "".join(
            mark
            for mark, on in (
                ("G", chat.announce_group),
                ("S", chat.announce_sender),
                ("C", chat.read_content),
            )
            if on
        )
        table.add_row(
            str(chat.id),
            chat.title,
            chat.kind,
            str(chat.unread_count),
            _format_time(chat.last_message_timestamp),
            flags or "-",
        )
    console.print(table)


@groups_app.command("add")
def groups_add(
    ctx: typer.Context,
    chat_ref: str = typer.Argument(..., help="Chat id or @handle."),
) -> None:
    """Resolve a chat through the bot and start tracking it."""
    settings = _settings(ctx)
    session = _session(settings)
    user = _admin_user(ctx)

    async def _main() -> Chat:
        store = _store(settings)
        try:
            token = await _bot_token(store, session, settings)
            bot = TelegramClient(token)
            try:
                return await link_group(store, bot, user, chat_ref)
            finally:
                await bot.close()
        finally:
            await store.close()

    chat = _run(_main)
    typer.echo(f"linked {chat.title} ({chat.id})")


@groups_app.command("set")
def groups_set(
    ctx: typer.Context,
    chat_id: int = typer.Argument(...),
    announce_group: bool | None = typer.Option(
        None, "--announce-group/--no-announce-group"
    ),
    announce_sender: bool | None = typer.Option(
        None, "--announce-sender/--no-announce-sender"
    ),
    read_content: bool | None = typer.Option(None, "--read-content/--no-read-content"),
    active: bool | None = typer.Option(None, "--active/--inactive"),
) -> None:
    """Change a chat's announcement flags."""
    settings = _settings(ctx)
    session = _session(settings)
    _current_user(session)

    async def _main() -> Chat | None:
        store = _store(settings)
        try:
            token = await _bot_token(store, session, settings)
            bot = TelegramClient(token)
            try:
                desk = Reconciler(bot=bot, store=store, bot_token=token)
                await desk.reload_chats()
                return await desk.update_chat_settings(
                    chat_id,
                    announce_group=announce_group,
                    announce_sender=announce_sender,
                    read_content=read_content,
                    is_active=active,
                )
            finally:
                await bot.close()
        finally:
            await store.close()

    chat = _run(_main)
    if chat is None:
        _fail(f"unknown chat {chat_id}.")
    typer.echo(
        f"{chat.title}: group={chat.announce_group} sender={chat.announce_sender} "
        f"content={chat.read_content} active={chat.is_active}"
    )


@users_app.command("list")
def users_list(ctx: typer.Context) -> None:
    """List the accounts you manage."""
    settings = _settings(ctx)
    user = _admin_user(ctx)

    async def _main() -> list[User]:
        store = _store(settings)
        try:
            return visible_users(user, await store.list_users())
        finally:
            await store.close()

    table = Table("id", "name", "username", "role")
    for item in _run(_main):
        table.add_row(item.id, item.full_name, item.username, item.role.value)
    console.print(table)


@users_app.command("add")
def users_add(
    ctx: typer.Context,
    username: str = typer.Argument(...),
    full_name: str = typer.Option(..., "--name", prompt=True),
    password: str = typer.Option(..., prompt=True, hide_input=True),
) -> None:
    """Create an ADMIN (as superadmin) or a DISPATCHER (as admin)."""
    settings = _settings(ctx)
    user = _admin_user(ctx)

    async def _main() -> User:
        store = _store(settings)
        try:
            users = await store.list_users()
            return await create_user(
                store,
                user,
                users,
                full_name=full_name,
                username=username,
                password=password,
            )
        finally:
            await store.close()

    created = _run(_main)
    typer.echo(f"created {created.role.value} {created.username} ({created.id})")


@users_app.command("rm")
def users_rm(ctx: typer.Context, user_id: str = typer.Argument(...)) -> None:
    """Delete an account you manage."""
    settings = _settings(ctx)
    user = _admin_user(ctx)

    async def _main() -> None:
        store = _store(settings)
        try:
            await delete_user(store, user, await store.list_users(), user_id)
        finally:
            await store.close()

    _run(_main)
    typer.echo(f"deleted {user_id}")


@token_app.command("set")
def token_set(ctx: typer.Context, token: str = typer.Argument(...)) -> None:
    """Store the bot token in the backend and the local session."""
    settings = _settings(ctx)
    session = _session(settings)
    _admin_user(ctx)

    async def _main() -> str:
        store = _store(settings)
        try:
            return await set_bot_token(store, session, token)
        finally:
            await store.close()

    _run(_main)
    typer.echo("bot token saved")


@token_app.command("status")
def token_status(ctx: typer.Context) -> None:
    """Check that the bot token works."""
    settings = _settings(ctx)
    session = _session(settings)

    async def _main() -> str | None:
        store = _store(settings)
        try:
            token = await _bot_token(store, session, settings)
            bot = TelegramClient(token)
            try:
                return await bot_status(bot)
            finally:
                await bot.close()
        finally:
            await store.close()

    name = _run(_main)
    if name is None:
        _fail("bot is not reachable with the current token.")
    typer.echo(f"bot online: {name}")


def reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """Delete all messages, groups and users (the bot token is kept)."""
    settings = _settings(ctx)
    session = _session(settings)
    _admin_user(ctx)
    if not yes and not typer.confirm(
        "DIQQAT: Barcha ma'lumotlar o'chadi! Davom etasizmi?"
    ):
        raise typer.Exit(code=1)

    async def _main() -> None:
        store = _store(settings)
        try:
            await full_reset(store, session)
        finally:
            await store.close()

    _run(_main)
    typer.echo("database cleared")
