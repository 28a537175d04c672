"""WhatsApp transport layer."""

from wabot.transport.base import ConnectionUpdate, EventHandler, Transport

__all__ = ["ConnectionUpdate", "EventHandler", "Transport"]
