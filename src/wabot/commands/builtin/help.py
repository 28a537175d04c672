"""Help — list every loaded command."""

from __future__ import annotations

from wabot.commands.base import CommandContext

DESCRIPTION = "Show all commands"
USAGE = ".help [command]"


async def handle(ctx: CommandContext) -> None:
    if ctx.args:
        command = ctx.registry.resolve(ctx.args[0])
        if command is None:
            await ctx.reply(f"❌ Command {ctx.args[0]} not found.")
            return
        lines = [f"*{command.token}*"]
        if command.description:
            lines.append(command.description)
        if command.usage:
            lines.append(f"Usage: {command.usage}")
        await ctx.reply("\n".join(lines))
        return

    lines = [f"📋 *{ctx.config.bot_name} — Commands*", ""]
    for command in ctx.registry.list():
        suffix = f" — {command.description}" if command.description else ""
        lines.append(f"• {command.token}{suffix}")
    lines += ["", f"💡 {ctx.registry.prefix}help <command> for details"]
    await ctx.reply("\n".join(lines))
