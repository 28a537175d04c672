"""Shared fakes for wabot tests."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import pytest

from wabot.config import BotConfig, RouterConfig
from wabot.transport.base import EventHandler, Transport


class FakeTransport(Transport):
    def __init__(self, *, fail_connect: Exception | None = None, media: bytes = b"media") -> None:
        self.fail_connect = fail_connect
        self.media = media
        self.on_event: EventHandler | None = None
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.saved: list[dict[str, Any]] = []
        self.downloads: list[dict[str, Any]] = []
        self.closed = False

    async def connect(self, on_event: EventHandler) -> None:
        if self.fail_connect is not None:
            raise self.fail_connect
        self.on_event = on_event

    async def send_message(self, chat_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.sent.append((chat_id, payload))
        return {}

    async def download_media(self, raw_message: dict[str, Any]) -> bytes:
        self.downloads.append(raw_message)
        return self.media

    async def save_credentials(self, creds: dict[str, Any]) -> None:
        self.saved.append(creds)

    async def close(self) -> None:
        self.closed = True

    def texts(self) -> list[str]:
        return [payload["text"] for _, payload in self.sent if "text" in payload]


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.callback()


class FakeScheduler:
    """Records scheduled callbacks instead of running them."""

    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    @property
    def delays(self) -> list[float]:
        return [h.delay for h in self.active]


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_event(
    text: str | None,
    *,
    chat_id: str = "628123@s.whatsapp.net",
    from_me: bool = False,
    timestamp: float | None = None,
    participant: str | None = None,
    message: dict[str, Any] | None = None,
) -> dict[str, Any]:
    key: dict[str, Any] = {"remoteJid": chat_id, "fromMe": from_me, "id": "ABC"}
    if participant:
        key["participant"] = participant
    if message is None:
        message = {"conversation": text} if text is not None else {}
    return {
        "key": key,
        "message": message,
        "messageTimestamp": int(time.time() if timestamp is None else timestamp),
    }


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def config(tmp_path) -> BotConfig:
    return BotConfig(
        session_dir=str(tmp_path / "session"),
        router=RouterConfig(debounce_ms=20),
    )


@pytest.fixture
def commands_dir(tmp_path):
    path = tmp_path / "commands"
    path.mkdir()
    return path
