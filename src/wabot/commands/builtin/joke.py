"""Joke — fetch a random joke from a public API."""

from __future__ import annotations

import httpx
import structlog

from wabot.commands.base import CommandContext

logger = structlog.get_logger()

DESCRIPTION = "Random joke"

JOKE_API = "https://candaan-api.vercel.app/api/text/random"
FALLBACK = "Hmm... the joke ran away. Try again later!"


async def fetch_joke(client: httpx.AsyncClient) -> str:
    resp = await client.get(JOKE_API)
    resp.raise_for_status()
    payload = resp.json()
    joke = payload.get("data") if isinstance(payload, dict) else None
    return joke if isinstance(joke, str) and joke.strip() else FALLBACK


async def handle(ctx: CommandContext) -> None:
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            joke = await fetch_joke(client)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("command.joke.fetch_failed", error=str(e))
        await ctx.reply("😢 Couldn't fetch a joke. Try again later.")
        return

    await ctx.reply(f"😂 *Random Joke*\n\n{joke}\n\n🎭 Type *.joke* again for another one!")
