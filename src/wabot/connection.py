"""Connection lifecycle — reconnect, backoff and conflict handling.

WhatsApp closes a session with a "conflict" whenever the same account is busy
elsewhere (WhatsApp Web left open, another bot instance). Reconnecting
immediately makes that worse, so conflicts back off exponentially and give up
after a fixed number of attempts. Other closes retry after a short delay;
a logout is final.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import qrcode
import structlog

from wabot.config import ReconnectConfig
from wabot.transport.base import ConnectionUpdate

logger = structlog.get_logger()

# Baileys DisconnectReason.loggedOut
LOGGED_OUT_CODE = 401

CONFLICT_MARKERS = ("conflict", "stream errored")
UNAUTHORIZED_MARKERS = ("connection failure",)


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


class CloseKind(str, Enum):
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    LOGGED_OUT = "logged_out"
    DEFAULT = "default"


def classify_close(status_code: int | None, reason: str | None) -> CloseKind:
    """Map a transport close to the policy that handles it.

    Matches on the transport's free-text message, so wording changes in the
    client library only need updating here.
    """
    text = (reason or "").lower()
    if any(marker in text for marker in CONFLICT_MARKERS):
        return CloseKind.CONFLICT
    if status_code == LOGGED_OUT_CODE and any(marker in text for marker in UNAUTHORIZED_MARKERS):
        return CloseKind.UNAUTHORIZED
    if status_code == LOGGED_OUT_CODE:
        return CloseKind.LOGGED_OUT
    return CloseKind.DEFAULT


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]
ReconnectCallback = Callable[[], Awaitable[None]]
QrDisplay = Callable[[str], None]


def call_later(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


def print_qr(data: str) -> None:
    """Draw a pairing QR code in the terminal."""
    code = qrcode.QRCode(border=1)
    code.add_data(data)
    code.make(fit=True)
    code.print_ascii(invert=True)


@dataclass
class ConnectionState:
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    reconnect_attempts: int = 0
    conflict_count: int = 0
    last_reconnect_at: float | None = None
    gave_up: bool = False
    logged_out: bool = False

    @property
    def terminal(self) -> bool:
        return self.gave_up or self.logged_out


@dataclass(frozen=True)
class ReconnectPlan:
    """What the manager decided for one close event."""

    kind: CloseKind
    delay: float | None

    @property
    def scheduled(self) -> bool:
        return self.delay is not None


class ConnectionLifecycle:
    """State machine over transport connection updates."""

    def __init__(
        self,
        config: ReconnectConfig,
        on_reconnect: ReconnectCallback,
        *,
        scheduler: Scheduler = call_later,
        clock: Callable[[], float] = time.monotonic,
        qr_display: QrDisplay | None = print_qr,
    ) -> None:
        self.config = config
        self.on_reconnect = on_reconnect
        self.scheduler = scheduler
        self.clock = clock
        self.qr_display = qr_display
        self.state = ConnectionState()
        self._stability_timer: Cancellable | None = None
        self._reconnect_tasks: set[asyncio.Task[None]] = set()

    @property
    def connected(self) -> bool:
        return self.state.status is ConnectionStatus.OPEN

    def currently_connected(self) -> bool:
        return self.connected

    def reset(self) -> None:
        """Forget terminal state and counters, e.g. after an operator restart."""
        self._cancel_stability_timer()
        self.state = ConnectionState()

    def handle_update(self, update: ConnectionUpdate) -> ReconnectPlan | None:
        """Apply one connection update. Returns the reconnect decision for closes."""
        if update.qr:
            self._show_qr(update.qr)

        if update.status == "open":
            self._on_open()
        elif update.status == "connecting":
            self._on_connecting()
        elif update.status == "close":
            return self._on_close(update)
        return None

    def _show_qr(self, qr: str) -> None:
        logger.info("connection.qr_received", hint="scan with WhatsApp > Linked devices")
        if self.qr_display is None:
            return
        try:
            self.qr_display(qr)
        except Exception as e:
            logger.warning("connection.qr_display_failed", error=str(e))

    def _on_connecting(self) -> None:
        self._cancel_stability_timer()
        self.state.status = ConnectionStatus.CONNECTING
        logger.info("connection.connecting")

    def _on_open(self) -> None:
        state = self.state
        state.status = ConnectionStatus.OPEN
        state.reconnect_attempts = 0
        state.gave_up = False
        state.logged_out = False

        if (
            state.last_reconnect_at is None
            or self.clock() - state.last_reconnect_at > self.config.conflict_reset_after_s
        ):
            state.conflict_count = 0

        logger.info("connection.open", previous_conflicts=state.conflict_count)

        if state.conflict_count > 0:
            self._cancel_stability_timer()
            self._stability_timer = self.scheduler(
                self.config.conflict_reset_after_s, self._on_stable
            )

    def _on_stable(self) -> None:
        self._stability_timer = None
        if self.connected and self.state.conflict_count:
            logger.info("connection.conflicts_reset", previous=self.state.conflict_count)
            self.state.conflict_count = 0

    def _on_close(self, update: ConnectionUpdate) -> ReconnectPlan:
        self._cancel_stability_timer()
        state = self.state
        state.status = ConnectionStatus.DISCONNECTED
        kind = classify_close(update.status_code, update.reason)

        logger.info(
            "connection.closed",
            kind=kind.value,
            status_code=update.status_code,
            reason=update.reason,
        )

        if state.terminal:
            logger.error("connection.terminal", gave_up=state.gave_up, logged_out=state.logged_out)
            return ReconnectPlan(kind=kind, delay=None)

        if kind is CloseKind.CONFLICT:
            return self._on_conflict()

        if kind is CloseKind.UNAUTHORIZED:
            logger.warning(
                "connection.unauthorized",
                hint="session invalid or expired; restarting to request a new QR code",
            )
            return self._schedule(kind, self.config.retry_delay_s)

        if kind is CloseKind.LOGGED_OUT:
            state.logged_out = True
            logger.error(
                "connection.logged_out",
                hint="device was logged out; restart the bot and pair again",
            )
            return ReconnectPlan(kind=kind, delay=None)

        logger.info("connection.reconnecting", delay_s=self.config.retry_delay_s)
        return self._schedule(kind, self.config.retry_delay_s)

    def _on_conflict(self) -> ReconnectPlan:
        state = self.state
        cfg = self.config

        if state.reconnect_attempts >= cfg.max_attempts:
            state.gave_up = True
            logger.error(
                "connection.gave_up",
                attempts=state.reconnect_attempts,
                conflicts=state.conflict_count,
                hint="close other WhatsApp Web sessions, wait a few minutes, then restart",
            )
            return ReconnectPlan(kind=CloseKind.CONFLICT, delay=None)

        state.reconnect_attempts += 1
        state.conflict_count += 1
        delay = conflict_delay(
            state.conflict_count,
            base=cfg.conflict_base_delay_s,
            cap=cfg.conflict_max_delay_s,
        )
        state.last_reconnect_at = self.clock()

        logger.warning(
            "connection.conflict",
            delay_s=delay,
            attempt=state.reconnect_attempts,
            max_attempts=cfg.max_attempts,
            conflicts=state.conflict_count,
        )
        return self._schedule(CloseKind.CONFLICT, delay)

    def _schedule(self, kind: CloseKind, delay: float) -> ReconnectPlan:
        self.scheduler(delay, self._fire_reconnect)
        return ReconnectPlan(kind=kind, delay=delay)

    def _fire_reconnect(self) -> None:
        task = asyncio.get_running_loop().create_task(self._run_reconnect())
        self._reconnect_tasks.add(task)
        task.add_done_callback(self._reconnect_tasks.discard)

    async def _run_reconnect(self) -> None:
        try:
            await self.on_reconnect()
        except Exception:
            logger.exception("connection.reconnect_failed")

    def _cancel_stability_timer(self) -> None:
        if self._stability_timer is not None:
            self._stability_timer.cancel()
            self._stability_timer = None


def conflict_delay(conflict_count: int, *, base: float = 30.0, cap: float = 300.0) -> float:
    """Backoff for the n-th consecutive conflict: ``min(base * 2**(n-1), cap)``."""
    return min(base * 2 ** max(conflict_count - 1, 0), cap)
