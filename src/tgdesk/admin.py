"""Staff administration: login, user management, group linking, bot token."""

from __future__ import annotations

import time
from collections.abc import Sequence

from .logging import get_logger
from .model import Chat, Role, User
from .roles import can_link_groups, creatable_role, managed_users, manages
from .session import SessionFile
from .store import ROOT_USER_ID, Store
from .telegram.client import BotClient, TelegramApiError

logger = get_logger(__name__)

UNKNOWN_TITLE = "Noma'lum"


class DeskError(Exception):
    pass


class ValidationError(DeskError):
    pass


class AuthorizationError(DeskError):
    pass


class ResolveError(DeskError):
    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


def _require(value: str, field: str) -> str:
    value = value.strip()
    if not value:
        raise ValidationError(f"`{field}` is required.")
    return value


def authenticate(
    users: Sequence[User],
    username: str,
    password: str,
    *,
    superadmin: tuple[str, str] | None = None,
) -> User:
    username = _require(username, "username")
    if superadmin is not None and (username, password) == superadmin:
        return User(
            id=ROOT_USER_ID,
            full_name="Superadmin",
            username=username,
            password=password,
            role=Role.SUPERADMIN,
        )
    for user in users:
        if user.username == username and user.password == password:
            return user
    raise AuthorizationError("Login yoki parol noto'g'ri.")


def visible_users(actor: User, users: Sequence[User]) -> list[User]:
    return managed_users(actor, users)


async def create_user(
    store: Store,
    actor: User,
    users: Sequence[User],
    *,
    full_name: str,
    username: str,
    password: str,
) -> User:
    role = creatable_role(actor)
    if role is None:
        raise AuthorizationError(f"{actor.role.value} cannot create users.")
    full_name = _require(full_name, "full_name")
    username = _require(username, "username")
    password = _require(password, "password")
    if any(user.username == username for user in users):
        raise ValidationError(f"Username {username!r} is already taken.")
    user = User(
        id=str(int(time.time() * 1000)),
        full_name=full_name,
        username=username,
        password=password,
        role=role,
        parent_id=actor.id,
    )
    await store.save_user(user)
    logger.info("admin.user_created", user_id=user.id, role=role.value, parent_id=actor.id)
    return user


async def delete_user(
    store: Store, actor: User, users: Sequence[User], user_id: str
) -> None:
    target = next((user for user in users if user.id == user_id), None)
    if target is None:
        raise ValidationError(f"Unknown user {user_id!r}.")
    if not manages(actor, target, users):
        raise AuthorizationError(f"{actor.role.value} cannot delete this user.")
    await store.delete_user(user_id)
    logger.info("admin.user_deleted", user_id=user_id, actor_id=actor.id)


def _parse_chat_ref(chat_ref: str) -> int | str:
    try:
        return int(chat_ref)
    except ValueError:
        return chat_ref


async def link_group(store: Store, bot: BotClient, actor: User, chat_ref: str) -> Chat:
    if not can_link_groups(actor):
        if actor.role is Role.SUPERADMIN:
            raise AuthorizationError("Superadmin guruh qo'sha olmaydi.")
        raise AuthorizationError(f"{actor.role.value} cannot link groups.")
    chat_ref = _require(chat_ref, "chat")
    try:
        info = await bot.get_chat(_parse_chat_ref(chat_ref))
    except TelegramApiError as exc:
        raise ResolveError(exc.description) from exc
    chat = Chat(
        id=info.id,
        title=info.title or info.first_name or UNKNOWN_TITLE,
        kind=info.type,
        member_count=0,
        unread_count=0,
        is_active=True,
        announce_group=True,
        announce_sender=True,
        read_content=False,
    )
    await store.save_group(chat)
    logger.info("admin.group_linked", chat_id=chat.id, title=chat.title)
    return chat


async def set_bot_token(store: Store, session: SessionFile, token: str) -> str:
    token = _require(token, "bot_token")
    session.set_bot_token(token)
    await store.save_bot_token(token)
    return token


async def bot_status(bot: BotClient) -> str | None:
    """Return the bot's display name, or None when the token is not usable."""
    me = await bot.get_me()
    if me is None:
        return None
    return me.get("first_name") or me.get("username") or ""


async def full_reset(store: Store, session: SessionFile) -> None:
    await store.clear_all()
    session.reset_keep_credentials()
    logger.info("admin.full_reset")
