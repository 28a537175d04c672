"""Message router — inbound event to command or auto-reply."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import structlog

from wabot.commands.base import Command, CommandContext
from wabot.commands.registry import CommandRegistry
from wabot.config import AutoReplyRule, BotConfig
from wabot.messages import InboundMessage, normalize
from wabot.transport.base import Transport

logger = structlog.get_logger()

ERROR_REPLY = "❌ An error occurred while processing your command."
TIMEOUT_REPLY = "⏱️ The command took too long and was stopped. Please try again."


def unknown_command_reply(token: str, help_token: str) -> str:
    return f"❌ Command {token} not found. Type {help_token} to see the list of commands."


def match_auto_reply(text: str, rules: list[AutoReplyRule]) -> AutoReplyRule | None:
    """First rule with any trigger contained in ``text`` (case-insensitive)."""
    lowered = text.lower()
    for rule in rules:
        if any(trigger and trigger in lowered for trigger in rule.triggers):
            return rule
    return None


class MessageRouter:
    """Filters, debounces and dispatches inbound messages.

    Only the newest message per chat within the debounce window is
    dispatched; a burst of client retries runs a command once.
    """

    def __init__(
        self,
        *,
        config: BotConfig,
        registry: CommandRegistry,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.registry = registry
        self.clock = clock
        self._pending: dict[str, asyncio.TimerHandle] = {}
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def debounce_s(self) -> float:
        return self.config.router.debounce_ms / 1000.0

    def pending_chats(self) -> list[str]:
        return list(self._pending)

    def route(self, transport: Transport, event: dict[str, Any]) -> bool:
        """Accept one raw message event. Returns True if a dispatch was scheduled."""
        message = normalize(event)
        reason = message.drop_reason(
            now=self.clock(),
            stale_after_s=self.config.router.stale_after_s,
        )
        if reason is not None:
            logger.debug("router.dropped", reason=reason, chat_id=message.chat_id)
            return False

        chat_id = message.chat_id
        previous = self._pending.pop(chat_id, None)
        if previous is not None:
            previous.cancel()
            logger.debug("router.debounced", chat_id=chat_id)

        loop = asyncio.get_running_loop()
        self._pending[chat_id] = loop.call_later(
            self.debounce_s, self._fire, transport, message
        )
        return True

    def _fire(self, transport: Transport, message: InboundMessage) -> None:
        self._pending.pop(message.chat_id, None)
        task = asyncio.get_running_loop().create_task(
            self._dispatch_safely(transport, message),
            name=f"wabot-dispatch-{message.chat_id}",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def drain(self) -> None:
        """Wait for every pending and in-flight dispatch to finish."""
        while self._pending or self._inflight:
            if self._inflight:
                await asyncio.gather(*list(self._inflight), return_exceptions=True)
            else:
                await asyncio.sleep(self.debounce_s / 2 or 0.001)

    def cancel_pending(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

    async def _dispatch_safely(self, transport: Transport, message: InboundMessage) -> None:
        try:
            await self.dispatch(transport, message)
        except Exception:
            logger.exception("router.dispatch_failed", chat_id=message.chat_id)

    async def dispatch(self, transport: Transport, message: InboundMessage) -> None:
        """Run the command or auto-reply for one message."""
        prefix = self.config.router.prefix
        logger.info(
            "router.message",
            chat_id=message.chat_id,
            sender_id=message.sender_id,
            text=message.text[:200],
        )

        if message.text.startswith(prefix):
            token, *args = message.text.split()
            await self._run_command(transport, message, token, args)
            return

        rule = match_auto_reply(message.text, self.config.router.auto_replies)
        if rule is not None:
            logger.info("router.auto_reply", chat_id=message.chat_id)
            await _send_text(transport, message.chat_id, rule.response)

    async def _run_command(
        self,
        transport: Transport,
        message: InboundMessage,
        token: str,
        args: list[str],
    ) -> None:
        await self.registry.ensure_loaded()
        command = self.registry.resolve(token)

        if command is None:
            logger.info("router.unknown_command", token=token, chat_id=message.chat_id)
            help_token = f"{self.config.router.prefix}help"
            await _send_text(transport, message.chat_id, unknown_command_reply(token, help_token))
            return

        ctx = CommandContext(
            transport=transport,
            chat_id=message.chat_id,
            sender_id=message.sender_id,
            args=args,
            message=message,
            registry=self.registry,
            config=self.config,
            token=command.token,
        )
        await self._invoke(command, ctx)

    async def _invoke(self, command: Command, ctx: CommandContext) -> None:
        timeout = self.config.router.command_timeout_s or None
        started = time.monotonic()
        logger.info("router.command", token=command.token, chat_id=ctx.chat_id, args=len(ctx.args))
        try:
            await asyncio.wait_for(command.handler(ctx), timeout=timeout)
        except TimeoutError:
            logger.error("router.command_timeout", token=command.token, timeout_s=timeout)
            await _send_text(ctx.transport, ctx.chat_id, TIMEOUT_REPLY)
        except Exception:
            logger.exception("router.command_failed", token=command.token, chat_id=ctx.chat_id)
            await _send_text(ctx.transport, ctx.chat_id, ERROR_REPLY)
        else:
            logger.info(
                "router.command_done",
                token=command.token,
                elapsed_ms=round((time.monotonic() - started) * 1000),
            )


async def _send_text(transport: Transport, chat_id: str, text: str) -> None:
    try:
        await transport.send_message(chat_id, {"text": text})
    except Exception as e:
        logger.error("router.reply_failed", chat_id=chat_id, error=str(e))
