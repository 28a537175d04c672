from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from wabot.commands.registry import CommandRegistry, normalize_token
from wabot.config import BUILTIN_COMMANDS_DIR


def _write(directory: Path, name: str, body: str) -> None:
    (directory / name).write_text(body, encoding="utf-8")


def _command(reply: str, description: str = "") -> str:
    return (
        f"DESCRIPTION = {description!r}\n\n"
        "async def handle(ctx):\n"
        f"    await ctx.reply({reply!r})\n"
    )


def test_normalize_token() -> None:
    assert normalize_token("Ping") == ".ping"
    assert normalize_token(".PING") == ".ping"
    assert normalize_token("menu", "!") == "!menu"


@pytest.mark.asyncio
async def test_load_resolves_case_insensitively(commands_dir) -> None:
    _write(commands_dir, "ping.py", _command("pong", "Check bot status"))

    registry = CommandRegistry(str(commands_dir))
    count = await registry.load()

    assert count == 1
    command = registry.resolve(".PING")
    assert command is not None
    assert command.token == ".ping"
    assert command.description == "Check bot status"
    assert registry.resolve(".pin") is None
    assert registry.resolve(".pingg") is None


@pytest.mark.asyncio
async def test_ineligible_and_broken_modules_are_skipped(commands_dir) -> None:
    _write(commands_dir, "ok.py", _command("ok"))
    _write(commands_dir, "_private.py", _command("x"))
    _write(commands_dir, "index.py", _command("x"))
    _write(commands_dir, "notes.txt", "not a command")
    _write(commands_dir, "nohandler.py", "handle = 'not callable'\n")
    _write(commands_dir, "broken.py", "raise RuntimeError('boom')\n")
    _write(commands_dir, "syntax.py", "def handle(:\n")

    registry = CommandRegistry(str(commands_dir))
    count = await registry.load()

    assert count == 1
    assert registry.tokens() == [".ok"]


@pytest.mark.asyncio
async def test_missing_directory_is_created_and_empty(tmp_path) -> None:
    target = tmp_path / "does-not-exist"

    registry = CommandRegistry(str(target))

    assert await registry.load() == 0
    assert target.is_dir()
    assert registry.loaded
    assert registry.resolve(".ping") is None


@pytest.mark.asyncio
async def test_ensure_loaded_only_loads_once(commands_dir) -> None:
    _write(commands_dir, "one.py", _command("1"))
    registry = CommandRegistry(str(commands_dir))

    await registry.ensure_loaded()
    _write(commands_dir, "two.py", _command("2"))
    await registry.ensure_loaded()

    assert registry.tokens() == [".one"]


@pytest.mark.asyncio
async def test_reload_picks_up_new_and_changed_source(commands_dir) -> None:
    _write(commands_dir, "greet.py", _command("v1"))
    registry = CommandRegistry(str(commands_dir))
    await registry.load()
    first = registry.resolve(".greet")

    _write(commands_dir, "greet.py", _command("v2", "changed"))
    _write(commands_dir, "extra.py", _command("extra"))
    count = await registry.reload()

    assert count == 2
    second = registry.resolve(".greet")
    assert second is not None and first is not None
    assert second.description == "changed"
    assert second.handler is not first.handler
    assert registry.resolve(".extra") is not None


@pytest.mark.asyncio
async def test_reload_removes_deleted_commands(commands_dir) -> None:
    _write(commands_dir, "gone.py", _command("x"))
    registry = CommandRegistry(str(commands_dir))
    await registry.load()

    (commands_dir / "gone.py").unlink()
    await registry.reload()

    assert registry.resolve(".gone") is None
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_lookups_during_reload_see_the_old_map(commands_dir) -> None:
    for i in range(5):
        _write(commands_dir, f"cmd{i}.py", _command(str(i)))
    registry = CommandRegistry(str(commands_dir))
    await registry.load()
    _write(commands_dir, "late.py", _command("late"))

    observed: list[int] = []
    reload_task = asyncio.create_task(registry.reload())
    while not reload_task.done():
        observed.append(len(registry.tokens()))
        await asyncio.sleep(0)
    await reload_task

    assert set(observed) <= {5}
    assert len(registry) == 6


@pytest.mark.asyncio
async def test_manifest_selects_modules_and_overrides_metadata(commands_dir) -> None:
    _write(commands_dir, "ping.py", _command("pong", "from module"))
    _write(commands_dir, "hidden.py", _command("hidden"))
    _write(
        commands_dir,
        "commands.yaml",
        "commands:\n"
        "  - module: ping\n"
        "    token: p\n"
        "    description: from manifest\n"
        "  - missing\n",
    )

    registry = CommandRegistry(str(commands_dir))
    count = await registry.load()

    assert count == 1
    command = registry.resolve(".p")
    assert command is not None
    assert command.description == "from manifest"
    assert registry.resolve(".hidden") is None


@pytest.mark.asyncio
async def test_builtin_commands_all_load() -> None:
    registry = CommandRegistry(BUILTIN_COMMANDS_DIR)

    await registry.load()

    expected = {
        ".ping", ".help", ".menu", ".info", ".status", ".time", ".test",
        ".joke", ".quote", ".reload", ".sticker", ".stext", ".tgen", ".ffmpeg",
    }
    assert expected <= set(registry.tokens())
    assert all(command.description for command in registry.list())
