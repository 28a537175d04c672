"""Quote — a random inspirational quote."""

from __future__ import annotations

import random

from wabot.commands.base import CommandContext

DESCRIPTION = "Inspirational quote"

QUOTES = [
    ("The only way to do great work is to love what you do.", "Steve Jobs"),
    ("Life is what happens to you while you're busy making other plans.", "John Lennon"),
    ("The future belongs to those who believe in the beauty of their dreams.", "Eleanor Roosevelt"),
    ("It is during our darkest moments that we must focus to see the light.", "Aristotle"),
    ("The only impossible journey is the one you never begin.", "Tony Robbins"),
    ("Success is not final, failure is not fatal: it is the courage to continue that counts.", "Winston Churchill"),
    ("Don't watch the clock; do what it does. Keep going.", "Sam Levenson"),
    ("The way to get started is to quit talking and begin doing.", "Walt Disney"),
    ("Innovation distinguishes between a leader and a follower.", "Steve Jobs"),
    ("Your time is limited, so don't waste it living someone else's life.", "Steve Jobs"),
]


async def handle(ctx: CommandContext) -> None:
    text, author = random.choice(QUOTES)
    await ctx.reply(
        "💭 *Inspirational Quote*\n\n"
        f'_"{text}"_\n\n'
        f"— *{author}*\n\n"
        f"📌 Type *{ctx.token or '.quote'}* again for another one!"
    )
