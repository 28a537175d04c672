"""Command contract — what a command module provides and what it receives."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from wabot.commands.registry import CommandRegistry
    from wabot.config import BotConfig
    from wabot.messages import InboundMessage
    from wabot.transport.base import Transport

logger = structlog.get_logger()

Handler = Callable[["CommandContext"], Awaitable[None]]


@dataclass(frozen=True)
class Command:
    """A registry entry. Replaced wholesale on reload, never edited."""

    token: str
    handler: Handler
    source_ref: str
    description: str = ""
    usage: str = ""


@dataclass
class CommandContext:
    """Everything a command handler gets for one invocation.

    A command module looks like::

        DESCRIPTION = "Check bot status"

        async def handle(ctx: CommandContext) -> None:
            await ctx.reply("pong")
    """

    transport: Transport
    chat_id: str
    sender_id: str
    args: list[str]
    message: InboundMessage
    registry: CommandRegistry
    config: BotConfig
    token: str = ""
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def raw_event(self) -> dict[str, Any]:
        return self.message.raw

    @property
    def text_args(self) -> str:
        return " ".join(self.args).strip()

    async def reply(self, text: str) -> bool:
        """Send a text message to the originating chat. Failures are logged, not raised."""
        return await self._send({"text": text})

    async def reply_sticker(self, data: bytes) -> bool:
        return await self._send({"sticker": data, "mimetype": "image/webp"})

    async def reply_image(self, data: bytes, caption: str | None = None) -> bool:
        payload: dict[str, Any] = {"image": data}
        if caption:
            payload["caption"] = caption
        return await self._send(payload)

    async def _send(self, payload: dict[str, Any]) -> bool:
        try:
            await self.transport.send_message(self.chat_id, payload)
            return True
        except Exception as e:
            logger.error(
                "command.reply_failed",
                chat_id=self.chat_id,
                kind=next(iter(payload)),
                error=str(e),
            )
            return False
