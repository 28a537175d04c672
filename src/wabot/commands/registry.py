"""Command registry — discovers command modules and maps tokens to handlers."""

from __future__ import annotations

import asyncio
import importlib.util
import itertools
from pathlib import Path
from types import ModuleType
from typing import Any

import structlog
import yaml

from wabot.commands.base import Command
from wabot.errors import CommandLoadError

logger = structlog.get_logger()

MANIFEST_FILE = "commands.yaml"
HANDLER_ATTR = "handle"

_load_generation = itertools.count(1)


def normalize_token(name: str, prefix: str = ".") -> str:
    """``Ping`` / ``.PING`` / ``ping`` → ``.ping``."""
    word = name.strip().lower()
    if word.startswith(prefix):
        word = word[len(prefix):]
    return f"{prefix}{word}"


def _eligible(path: Path) -> bool:
    if path.suffix != ".py" or not path.is_file():
        return False
    stem = path.stem
    return not (stem.startswith(("_", ".")) or "index" in stem.lower())


class CommandRegistry:
    """Maps invocation tokens to commands loaded from a directory.

    Each command is a module exposing ``async def handle(ctx)`` and optionally
    ``DESCRIPTION`` and ``USAGE``. If the directory holds a ``commands.yaml``
    manifest, only the modules it lists are loaded, in manifest order::

        commands:
          - module: ping
            description: Check bot status

    Reload builds a fresh map and swaps it in, so lookups never see a
    half-loaded registry.
    """

    def __init__(self, commands_dir: str, prefix: str = ".") -> None:
        self.commands_dir = Path(commands_dir)
        self.prefix = prefix
        self._commands: dict[str, Command] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._commands)

    async def ensure_loaded(self) -> None:
        """Load on first use; later calls are no-ops."""
        if self._loaded:
            return
        async with self._lock:
            if not self._loaded:
                await self._load_locked()

    async def load(self) -> int:
        """Scan the command directory and install the result. Returns the command count."""
        async with self._lock:
            return await self._load_locked()

    async def reload(self) -> int:
        """Re-read every command from disk and replace the registry in one step."""
        logger.info("registry.reloading", path=str(self.commands_dir))
        return await self.load()

    def resolve(self, token: str) -> Command | None:
        """Case-insensitive exact lookup."""
        return self._commands.get(normalize_token(token, self.prefix))

    def list(self) -> list[Command]:
        """Commands in load order."""
        return list(self._commands.values())

    def tokens(self) -> list[str]:
        return list(self._commands)

    async def _load_locked(self) -> int:
        fresh = await self._build()
        self._commands = fresh
        self._loaded = True

        if fresh:
            logger.info("registry.loaded", count=len(fresh), tokens=list(fresh))
        else:
            logger.warning("registry.empty", path=str(self.commands_dir))
        return len(fresh)

    async def _build(self) -> dict[str, Command]:
        commands: dict[str, Command] = {}

        if not self.commands_dir.exists():
            logger.info("registry.dir_not_found", path=str(self.commands_dir))
            self.commands_dir.mkdir(parents=True, exist_ok=True)
            return commands

        entries = await asyncio.to_thread(self._discover)
        generation = next(_load_generation)

        for module_file, meta in entries:
            try:
                command = self._load_entry(module_file, meta, generation)
            except CommandLoadError as e:
                logger.warning("registry.skipped", source=e.source_ref, reason=e.reason)
            except Exception as e:
                logger.error(
                    "registry.load_failed",
                    source=str(module_file),
                    error=f"{type(e).__name__}: {e}",
                )
            else:
                if command.token in commands:
                    logger.warning("registry.duplicate", token=command.token, action="replacing")
                commands[command.token] = command
                logger.debug("registry.command_loaded", token=command.token)
            # Importing is synchronous; give other chats a turn between modules
            await asyncio.sleep(0)

        return commands

    def _discover(self) -> list[tuple[Path, dict[str, Any]]]:
        manifest_path = self.commands_dir / MANIFEST_FILE
        if manifest_path.exists():
            return self._read_manifest(manifest_path)

        files = sorted(p for p in self.commands_dir.iterdir() if _eligible(p))
        logger.debug("registry.discovered", count=len(files), files=[p.name for p in files])
        return [(p, {}) for p in files]

    def _read_manifest(self, manifest_path: Path) -> list[tuple[Path, dict[str, Any]]]:
        with open(manifest_path) as f:
            data = yaml.safe_load(f) or {}

        raw_entries = data.get("commands", []) if isinstance(data, dict) else []
        entries: list[tuple[Path, dict[str, Any]]] = []
        for raw in raw_entries:
            meta = {"module": raw} if isinstance(raw, str) else raw
            if not isinstance(meta, dict) or not meta.get("module"):
                logger.warning("registry.manifest_entry_invalid", entry=raw)
                continue
            module = str(meta["module"]).removesuffix(".py")
            entries.append((self.commands_dir / f"{module}.py", meta))
        logger.debug("registry.manifest", path=str(manifest_path), count=len(entries))
        return entries

    def _load_entry(self, module_file: Path, meta: dict[str, Any], generation: int) -> Command:
        source_ref = str(module_file)
        if not module_file.exists():
            raise CommandLoadError(source_ref, "file not found")

        module = _import_fresh(module_file, f"wabot_command_{module_file.stem}_{generation}")
        handler = getattr(module, HANDLER_ATTR, None)
        if not callable(handler):
            raise CommandLoadError(source_ref, f"no callable '{HANDLER_ATTR}'")

        return Command(
            token=normalize_token(str(meta.get("token") or module_file.stem), self.prefix),
            handler=handler,
            source_ref=source_ref,
            description=str(meta.get("description") or getattr(module, "DESCRIPTION", "") or ""),
            usage=str(getattr(module, "USAGE", "") or ""),
        )


def _import_fresh(module_file: Path, module_name: str) -> ModuleType:
    """Execute a module from source, bypassing any cached copy."""
    spec = importlib.util.spec_from_file_location(module_name, module_file)
    if not spec or not spec.loader:
        raise CommandLoadError(str(module_file), "not importable")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
