"""Command contract and registry."""

from wabot.commands.base import Command, CommandContext, Handler
from wabot.commands.registry import CommandRegistry, normalize_token

__all__ = ["Command", "CommandContext", "CommandRegistry", "Handler", "normalize_token"]
