from collections.abc import Callable
from typing import Any

import pytest

from tgdesk.notify import Notifier, ToastQueue
from tgdesk.reconciler import Reconciler
from tests.fakes import BOT_TOKEN, FakeBot, FakeSound, FakeSpeaker, FakeStore


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_bot() -> FakeBot:
    return FakeBot()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def speaker() -> FakeSpeaker:
    return FakeSpeaker()


@pytest.fixture
def sound() -> FakeSound:
    return FakeSound()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier(speaker: FakeSpeaker, sound: FakeSound, clock: FakeClock) -> Notifier:
    return Notifier(speaker=speaker, sound=sound, toasts=ToastQueue(clock=clock))


@pytest.fixture
def make_desk(
    fake_bot: FakeBot, fake_store: FakeStore, notifier: Notifier
) -> Callable[..., Reconciler]:
    def _factory(**overrides: Any) -> Reconciler:
        kwargs: dict[str, Any] = {
            "bot": fake_bot,
            "store": fake_store,
            "bot_token": BOT_TOKEN,
            "notifier": notifier,
            "clock_ms": lambda: 1_800_000_000_000,
        }
        kwargs.update(overrides)
        return Reconciler(**kwargs)

    return _factory
