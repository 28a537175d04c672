"""Bot orchestrator — owns the transport and wires it to the router and lifecycle."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from wabot.commands.registry import CommandRegistry
from wabot.config import BotConfig
from wabot.connection import ConnectionLifecycle, QrDisplay, Scheduler, call_later, print_qr
from wabot.router import MessageRouter
from wabot.transport.base import (
    EVENT_CONNECTION_UPDATE,
    EVENT_CREDS_UPDATE,
    EVENT_MESSAGES_UPSERT,
    ConnectionUpdate,
    Transport,
)

logger = structlog.get_logger()

TransportFactory = Callable[[], Transport]


@dataclass
class BotStatus:
    running: bool
    connected: bool


def _bridge_factory(config: BotConfig) -> TransportFactory:
    def build() -> Transport:
        from wabot.transport.bridge import BridgeTransport

        return BridgeTransport(config.bridge, config.session_dir)

    return build


class WhatsAppBot:
    """Supervises one transport at a time and forwards its events."""

    def __init__(
        self,
        config: BotConfig,
        *,
        transport_factory: TransportFactory | None = None,
        registry: CommandRegistry | None = None,
        scheduler: Scheduler = call_later,
        qr_display: QrDisplay | None = print_qr,
    ) -> None:
        self.config = config
        self.transport_factory = transport_factory or _bridge_factory(config)
        self.scheduler = scheduler
        self.registry = (
            registry
            if registry is not None
            else CommandRegistry(config.commands_dir, prefix=config.router.prefix)
        )
        self.lifecycle = ConnectionLifecycle(
            config.reconnect,
            on_reconnect=self.reconnect,
            scheduler=scheduler,
            qr_display=qr_display,
        )
        self.router = MessageRouter(config=config, registry=self.registry)

        self._transport: Transport | None = None
        self._running = False
        self._stopped = False
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def transport(self) -> Transport | None:
        return self._transport

    def status(self) -> BotStatus:
        return BotStatus(running=self._running, connected=self.lifecycle.currently_connected())

    async def start(self) -> None:
        self._stopped = False
        await self._start()

    async def _auto_start(self) -> None:
        if self._stopped:
            logger.info("bot.autostart_skipped", reason="stopped")
            return
        await self._start()

    async def _start(self) -> None:
        if self._running:
            logger.warning("bot.already_running")
            return

        self._running = True
        logger.info("bot.starting", bridge=self.config.bridge.url)
        try:
            await self.registry.ensure_loaded()
            transport = self.transport_factory()
            self._transport = transport
            await transport.connect(self._make_event_handler(transport))
        except Exception as e:
            logger.error("bot.start_failed", error=str(e), retry_in_s=self.config.reconnect.start_retry_delay_s)
            self._running = False
            await self._teardown()
            self._later(self.config.reconnect.start_retry_delay_s, self._auto_start)

    async def stop(self) -> None:
        logger.info("bot.stopping")
        self._running = False
        self._stopped = True
        self.router.cancel_pending()
        await self._teardown()
        logger.info("bot.stopped")

    async def restart(self) -> None:
        """Operator restart: clears give-up/logout state, then reconnects.

        Also revives a bot that was stopped.
        """
        self._stopped = False
        self.lifecycle.reset()
        await self._restart()

    async def reconnect(self) -> None:
        """Reconnect callback used by the lifecycle manager."""
        if self.lifecycle.connected:
            logger.info("bot.reconnect_skipped", reason="already_connected")
            return
        await self._restart()

    async def _restart(self) -> None:
        logger.info("bot.restarting", delay_s=self.config.reconnect.restart_delay_s)
        self._running = False
        await self._teardown()
        self._later(self.config.reconnect.restart_delay_s, self._auto_start)

    async def _halt(self, reason: str) -> None:
        # Terminal close: stay down until an operator calls restart()
        logger.error("bot.halted", reason=reason, hint="run restart() once the cause is fixed")
        self._running = False
        self.router.cancel_pending()
        await self._teardown()

    async def _teardown(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await transport.close()
        except Exception as e:
            logger.warning("bot.teardown_failed", error=str(e))

    def _later(self, delay: float, coro_fn: Callable[[], Any]) -> None:
        def fire() -> None:
            task = asyncio.get_running_loop().create_task(coro_fn())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            task.add_done_callback(_log_task_failure)

        self.scheduler(delay, fire)

    def _make_event_handler(self, transport: Transport):
        async def on_event(event: str, data: dict[str, Any]) -> None:
            # Events from a transport we already replaced are ignored
            if transport is not self._transport:
                logger.debug("bot.stale_event", event_name=event)
                return
            await self.handle_event(transport, event, data)

        return on_event

    async def handle_event(self, transport: Transport, event: str, data: dict[str, Any]) -> None:
        if event == EVENT_CONNECTION_UPDATE:
            plan = self.lifecycle.handle_update(ConnectionUpdate.from_payload(data))
            if plan is not None and self.lifecycle.state.terminal:
                await self._halt(plan.kind.value)
        elif event == EVENT_MESSAGES_UPSERT:
            for raw in data.get("messages") or []:
                if isinstance(raw, dict):
                    self.router.route(transport, raw)
        elif event == EVENT_CREDS_UPDATE:
            try:
                await transport.save_credentials(data)
            except Exception as e:
                logger.error("bot.creds_save_failed", error=str(e))
        else:
            logger.debug("bot.event_ignored", event_name=event)


def _log_task_failure(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("bot.task_failed", error=str(exc))
