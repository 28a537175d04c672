"""Normalized view of raw WhatsApp message events.

Raw events follow the Baileys ``WebMessageInfo`` shape as forwarded by the
bridge::

    {
        "key": {"remoteJid": "...", "fromMe": false, "participant": "...", "id": "..."},
        "message": {"conversation": "..."} | {"extendedTextMessage": {...}} | ...,
        "messageTimestamp": 1700000000,
        "messageStubType": null,
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

BROADCAST_JID = "status@broadcast"

MEDIA_KINDS = ("image", "video", "document", "audio")


@dataclass
class InboundMessage:
    """Normalized inbound message."""

    chat_id: str
    sender_id: str
    text: str
    timestamp: float | None
    is_from_self: bool = False
    is_broadcast: bool = False
    has_payload: bool = True
    is_stub: bool = False
    message_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    def drop_reason(self, *, now: float, stale_after_s: float) -> str | None:
        """Return why this message must not be routed, or None if it may be."""
        if not self.has_payload:
            return "no_payload"
        if self.is_from_self:
            return "from_self"
        if self.is_broadcast:
            return "broadcast"
        if self.is_stub:
            return "stub"
        if not self.chat_id:
            return "no_chat"
        if self.timestamp is not None and now - self.timestamp > stale_after_s:
            return "stale"
        return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _timestamp(value: Any) -> float | None:
    # Baileys may serialize Long timestamps as {"low": ..., "high": ...}.
    # A missing or unreadable timestamp counts as fresh.
    if value is None:
        return None
    if isinstance(value, dict):
        low = int(value.get("low") or 0) & 0xFFFFFFFF
        high = int(value.get("high") or 0)
        return float((high << 32) | low)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_text(message: dict[str, Any]) -> str:
    """First non-empty of plain body, extended (reply) body, media caption."""
    candidates = [
        message.get("conversation"),
        _as_dict(message.get("extendedTextMessage")).get("text"),
        _as_dict(message.get("imageMessage")).get("caption"),
        _as_dict(message.get("videoMessage")).get("caption"),
        _as_dict(message.get("documentMessage")).get("caption"),
    ]
    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return candidate
    return ""


def normalize(event: dict[str, Any]) -> InboundMessage:
    """Build an InboundMessage from a raw transport event."""
    key = _as_dict(event.get("key"))
    message = event.get("message")
    remote_jid = str(key.get("remoteJid") or "")
    participant = str(key.get("participant") or "")

    return InboundMessage(
        chat_id=remote_jid,
        sender_id=participant or remote_jid,
        text=extract_text(_as_dict(message)).strip(),
        timestamp=_timestamp(event.get("messageTimestamp")),
        is_from_self=bool(key.get("fromMe")),
        is_broadcast=BROADCAST_JID in remote_jid,
        has_payload=bool(key) and isinstance(message, dict) and bool(message),
        is_stub=bool(event.get("messageStubType")),
        message_id=key.get("id"),
        raw=event,
    )


def media_kind(message: dict[str, Any]) -> str | None:
    """Return the media kind carried by a raw ``message`` body."""
    for kind in MEDIA_KINDS:
        if isinstance(message.get(f"{kind}Message"), dict):
            return kind
    return None


def quoted_event(event: dict[str, Any]) -> dict[str, Any] | None:
    """Rebuild the quoted message of a reply as a standalone raw event."""
    message = _as_dict(event.get("message"))
    context = _as_dict(_as_dict(message.get("extendedTextMessage")).get("contextInfo"))
    quoted = context.get("quotedMessage")
    if not isinstance(quoted, dict) or not quoted:
        return None
    key = _as_dict(event.get("key"))
    return {
        "key": {
            "remoteJid": key.get("remoteJid"),
            "participant": context.get("participant"),
            "fromMe": False,
            "id": context.get("stanzaId") or "",
        },
        "message": quoted,
        "messageTimestamp": event.get("messageTimestamp"),
    }


def media_target(event: dict[str, Any]) -> tuple[dict[str, Any], str] | None:
    """Find the media a command should operate on: the quoted message, else the event itself."""
    for candidate in (quoted_event(event), event):
        if candidate is None:
            continue
        kind = media_kind(_as_dict(candidate.get("message")))
        if kind is not None:
            return candidate, kind
    return None


def format_uptime(seconds: float) -> str:
    """Render a duration as ``1d 2h 3m``, ``2h 3m``, ``3m 4s`` or ``4s``."""
    total = int(max(0, seconds))
    days, rem = divmod(total, 86_400)
    hours, rem = divmod(rem, 3_600)
    minutes, secs = divmod(rem, 60)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
