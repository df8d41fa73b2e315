from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import anyio
import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..admin import DeskError, authenticate
from ..audio import CommandPlayer, GeminiSpeaker, LogSpeaker, SoundCue, Speaker
from ..config import ConfigError, DeskSettings, load_settings
from ..logging import get_logger, setup_logging
from ..model import Chat, Message, User
from ..notify import Notifier, Toast
from ..reconciler import Reconciler
from ..replies import broadcast, send_media, send_text
from ..search import chat_stats, search_messages
from ..session import SessionFile, resolve_bot_token
from ..store import SupabaseStore
from ..telegram.client import TelegramClient

logger = get_logger(__name__)
console = Console()

T = TypeVar("T")

app = typer.Typer(
    name="tgdesk",
    help="Staff dashboard for Telegram group chats served by one bot.",
    no_args_is_help=True,
)


@dataclass(slots=True)
class CliState:
    config_path: Path | None = None
    debug: bool = False


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", help="Path to tgdesk.toml."
    ),
    debug: bool = typer.Option(False, "--debug", help="Verbose console logging."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    _ = version
    setup_logging(debug=debug)
    ctx.obj = CliState(config_path=config, debug=debug)


def _fail(message: str) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(code=1)


def _settings(ctx: typer.Context) -> DeskSettings:
    state: CliState = ctx.obj or CliState()
    try:
        return load_settings(state.config_path)
    except ConfigError as exc:
        _fail(str(exc))


def _session(settings: DeskSettings) -> SessionFile:
    return SessionFile(settings.resolved_session_path())


def _store(settings: DeskSettings) -> SupabaseStore:
    return SupabaseStore(settings.supabase_url, settings.supabase_key)


def _current_user(session: SessionFile) -> User:
    user = session.current_user
    if user is None:
        _fail("not logged in; run `tgdesk login` first.")
    return user


def _run(func: Callable[..., Awaitable[T]], *args: Any) -> T:
    try:
        return anyio.run(partial(func, *args))
    except DeskError as exc:
        _fail(str(exc))


async def _bot_token(store: SupabaseStore, session: SessionFile, settings: DeskSettings) -> str:
    token = await resolve_bot_token(store, session, settings.bot_token)
    if not token:
        _fail("bot token is not set; use `tgdesk token set` or TGDESK_BOT_TOKEN.")
    return token


def _format_time(timestamp: int | None) -> str:
    if not timestamp:
        return "-"
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M")


def _print_message(message: Message, chat: Chat) -> None:
    arrow = "->" if message.is_reply else "<-"
    console.print(
        f"[dim]{_format_time(message.timestamp)}[/dim] "
        f"[bold]{chat.title}[/bold] {arrow} "
        f"[cyan]{message.sender.first_name}[/cyan]: {message.text}",
        highlight=False,
    )


def _print_toast(toast: Toast) -> None:
    console.print(f"[reverse] {toast.text} [/reverse]", highlight=False)


def _speaker(settings: DeskSettings, player: CommandPlayer) -> Speaker:
    if settings.tts_api_key and player.available:
        return GeminiSpeaker(
            api_key=settings.tts_api_key, voice=settings.tts_voice, player=player
        )
    return LogSpeaker()


@app.command()
def login(
    ctx: typer.Context,
    username: str = typer.Argument(..., help="Login name."),
    password: str = typer.Option(..., prompt=True, hide_input=True),
) -> None:
    """Sign in and remember the user in the local session."""
    settings = _settings(ctx)
    session = _session(settings)

    async def _login() -> User:
        store = _store(settings)
        try:
            users = await store.list_users()
        finally:
            await store.close()
        superadmin = None
        if settings.superadmin_username and settings.superadmin_password:
            superadmin = (settings.superadmin_username, settings.superadmin_password)
        return authenticate(users, username, password, superadmin=superadmin)

    user = _run(_login)
    session.login(user)
    typer.echo(f"logged in as {user.full_name} ({user.role.value})")


@app.command()
def logout(ctx: typer.Context) -> None:
    """Forget the signed-in user; a running poll loop stops on its next cycle."""
    session = _session(_settings(ctx))
    session.logout()
    typer.echo("logged out")


@app.command()
def run(ctx: typer.Context) -> None:
    """Poll the bot and show incoming messages until interrupted."""
    settings = _settings(ctx)
    session = _session(settings)
    _current_user(session)

    async def _main() -> None:
        store = _store(settings)
        try:
            token = await _bot_token(store, session, settings)
            bot = TelegramClient(token)
            player = CommandPlayer()
            notifier = Notifier(
                speaker=_speaker(settings, player),
                sound=SoundCue(player, settings.sound_path),
                on_toast=_print_toast,
            )

            # Re-read so `tgdesk logout` or `tgdesk audio off` from another
            # shell reaches the running loop.
            def is_authenticated() -> bool:
                return SessionFile(session.path).current_user is not None

            def audio_setting() -> bool:
                return SessionFile(session.path).state.audio_enabled

            desk = Reconciler(
                bot=bot,
                store=store,
                bot_token=token,
                notifier=notifier,
                audio_enabled=settings.audio_enabled,
                is_authenticated=is_authenticated,
                audio_setting=audio_setting,
                poll_interval_s=settings.poll_interval_s,
                poll_timeout_s=settings.poll_timeout_s,
                on_message=_print_message,
            )
            try:
                await desk.load()
                console.print(
                    f"[green]watching {len(desk.chats) - 1} chats[/green] "
                    "(Ctrl+C to stop)"
                )
                await desk.run()
            finally:
                desk.stop()
                await bot.close()
        finally:
            await store.close()

    try:
        _run(_main)
    except KeyboardInterrupt:
        typer.echo("stopped")


@app.command("open")
def open_chat(
    ctx: typer.Context,
    chat_id: int = typer.Argument(..., help="Chat id (0 = saved notes)."),
) -> None:
    """Show a chat's messages and mark it read."""
    settings = _settings(ctx)
    session = _session(settings)
    _current_user(session)

    async def _main() -> tuple[Chat | None, list[Message]]:
        store = _store(settings)
        try:
            token = await _bot_token(store, session, settings)
            bot = TelegramClient(token)
            try:
                desk = Reconciler(bot=bot, store=store, bot_token=token)
                await desk.load()
                chat = await desk.select_chat(chat_id)
                return chat, desk.messages_for(chat_id)
            finally:
                await bot.close()
        finally:
            await store.close()

    chat, messages = _run(_main)
    if chat is None:
        _fail(f"unknown chat {chat_id}.")
    if not messages:
        typer.echo(f"{chat.title}: no messages")
    for message in messages:
        _print_message(message, chat)


@app.command()
def send(
    ctx: typer.Context,
    chat_id: int = typer.Argument(..., help="Target chat id (0 = saved notes)."),
    text: str = typer.Argument(...),
    reply_to: str | None = typer.Option(None, "--reply-to", help="Message id to reply to."),
) -> None:
    """Send a text reply signed with your name."""
    _send_command(ctx, lambda desk, bot, user: send_text(desk, bot, user, chat_id, text, reply_to))


@app.command()
def sticker(
    ctx: typer.Context,
    chat_id: int = typer.Argument(...),
    file: str = typer.Argument(..., help="Sticker file id or URL."),
    reply_to: str | None = typer.Option(None, "--reply-to"),
) -> None:
    """Send a sticker."""
    _send_command(
        ctx,
        lambda desk, bot, user: send_media(desk, bot, user, chat_id, "sticker", file, reply_to),
    )


@app.command()
def gif(
    ctx: typer.Context,
    chat_id: int = typer.Argument(...),
    file: str = typer.Argument(..., help="Animation file id or URL."),
    reply_to: str | None = typer.Option(None, "--reply-to"),
) -> None:
    """Send an animation."""
    _send_command(
        ctx,
        lambda desk, bot, user: send_media(desk, bot, user, chat_id, "animation", file, reply_to),
    )


def _send_command(
    ctx: typer.Context,
    action: Callable[[Reconciler, TelegramClient, User], Awaitable[Message | None]],
) -> None:
    settings = _settings(ctx)
    session = _session(settings)
    user = _current_user(session)

    async def _main() -> Message | None:
        store = _store(settings)
        try:
            token = await _bot_token(store, session, settings)
            bot = TelegramClient(token)
            try:
                desk = Reconciler(bot=bot, store=store, bot_token=token)
                return await action(desk, bot, user)
            finally:
                await bot.close()
        finally:
            await store.close()

    message = _run(_main)
    if message is None:
        _fail("message was not sent.")
    typer.echo(f"sent {message.id}")


@app.command("broadcast")
def broadcast_cmd(
    ctx: typer.Context,
    text: str = typer.Argument(...),
    chat: list[int] = typer.Option(
        [], "--chat", help="Target chat id; repeat. Defaults to every active chat."
    ),
) -> None:
    """Send the same text to several chats."""
    settings = _settings(ctx)
    session = _session(settings)
    user = _current_user(session)

    async def _main() -> tuple[int, int]:
        store = _store(settings)
        try:
            token = await _bot_token(store, session, settings)
            bot = TelegramClient(token)
            try:
                desk = Reconciler(bot=bot, store=store, bot_token=token)
                targets = list(chat)
                if not targets:
                    await desk.reload_chats()
                    targets = [c.id for c in desk.chats if c.id != 0 and c.is_active]
                sent = await broadcast(desk, bot, user, text, targets)
                return len(sent), len(targets)
            finally:
                await bot.close()
        finally:
            await store.close()

    sent, total = _run(_main)
    typer.echo(f"sent to {sent}/{total} chats")


@app.command()
def search(ctx: typer.Context, query: str = typer.Argument(...)) -> None:
    """Search stored messages by text or sender name."""
    settings = _settings(ctx)
    _current_user(_session(settings))

    async def _main() -> tuple[list[Message], list[Chat]]:
        store = _store(settings)
        try:
            return await store.list_messages(), await store.list_groups()
        finally:
            await store.close()

    messages, chats = _run(_main)
    table = Table("time", "chat", "from", "text")
    for hit in search_messages(messages, chats, query):
        table.add_row(
            _format_time(hit.message.timestamp),
            hit.chat_title,
            hit.message.sender.first_name,
            hit.message.text,
        )
    console.print(table)


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show message counts per chat."""
    settings = _settings(ctx)
    _current_user(_session(settings))

    async def _main() -> tuple[list[Message], list[Chat]]:
        store = _store(settings)
        try:
            return await store.list_messages(), await store.list_groups()
        finally:
            await store.close()

    messages, chats = _run(_main)
    table = Table("chat", "inbound", "outbound", "total")
    rows = chat_stats(chats, messages)
    for row in rows:
        table.add_row(row.title, str(row.inbound), str(row.outbound), str(row.total))
    table.add_row(
        "[bold]all[/bold]",
        str(sum(row.inbound for row in rows)),
        str(sum(row.outbound for row in rows)),
        str(sum(row.total for row in rows)),
    )
    console.print(table)


@app.command()
def audio(
    ctx: typer.Context,
    state: str = typer.Argument(..., help="on or off"),
) -> None:
    """Turn spoken and sound notifications on or off."""
    value = state.strip().lower()
    if value not in ("on", "off"):
        _fail("expected `on` or `off`.")
    session = _session(_settings(ctx))
    session.set_audio_enabled(value == "on")
    typer.echo(f"audio {value}")


from .admin import groups_app, reset, token_app, users_app  # noqa: E402

app.add_typer(groups_app, name="groups")
app.add_typer(users_app, name="users")
app.add_typer(token_app, name="token")
app.command()(reset)
