"""Transport contract — what the bot needs from a WhatsApp client."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

EVENT_CONNECTION_UPDATE = "connection.update"
EVENT_MESSAGES_UPSERT = "messages.upsert"
EVENT_CREDS_UPDATE = "creds.update"

EventHandler = Callable[[str, dict[str, Any]], Awaitable[None]]


@dataclass
class ConnectionUpdate:
    """A connection-state change reported by the transport."""

    status: str | None = None
    status_code: int | None = None
    reason: str | None = None
    qr: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ConnectionUpdate:
        """Parse a Baileys-style ``connection.update`` payload."""
        last = data.get("lastDisconnect") or {}
        error = last.get("error") if isinstance(last, dict) else None
        status_code: int | None = None
        reason: str | None = None
        if isinstance(error, dict):
            output = error.get("output") or {}
            raw_code = error.get("statusCode", output.get("statusCode") if isinstance(output, dict) else None)
            if raw_code is not None:
                try:
                    status_code = int(raw_code)
                except (TypeError, ValueError):
                    status_code = None
            reason = str(error.get("message") or "") or None
        elif isinstance(error, str):
            reason = error

        status = data.get("connection")
        qr = data.get("qr")
        return cls(
            status=str(status) if status else None,
            status_code=status_code,
            reason=reason,
            qr=str(qr) if qr else None,
        )


class Transport(ABC):
    """Interface implemented by WhatsApp transports."""

    @abstractmethod
    async def connect(self, on_event: EventHandler) -> None:
        """Open the session and start delivering events to ``on_event``."""
        ...

    @abstractmethod
    async def send_message(self, chat_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a Baileys ``AnyMessageContent`` payload (``{"text": ...}``, ``{"sticker": ...}``)."""
        ...

    @abstractmethod
    async def download_media(self, raw_message: dict[str, Any]) -> bytes:
        """Fetch and decrypt the media attached to a raw message."""
        ...

    @abstractmethod
    async def save_credentials(self, creds: dict[str, Any]) -> None:
        """Persist updated session credentials."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...
