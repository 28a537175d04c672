"""Ordered fallback over rendering strategies."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from wabot.errors import RenderChainError

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RenderResult(Generic[T]):
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> RenderResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> RenderResult[T]:
        return cls(error=error)


@dataclass(frozen=True)
class RenderStrategy(Generic[T]):
    name: str
    run: Callable[[], Awaitable[RenderResult[T]]]


async def attempt(name: str, run: Callable[[], Awaitable[T]]) -> RenderResult[T]:
    """Run a renderer and turn any exception into a failed result."""
    try:
        return RenderResult.success(await run())
    except Exception as e:
        logger.warning("render.strategy_failed", strategy=name, error=str(e))
        return RenderResult.failure(f"{type(e).__name__}: {e}")


async def render_first(strategies: Sequence[RenderStrategy[T]]) -> tuple[str, T]:
    """Try each strategy in order. Returns ``(strategy_name, value)`` of the first success."""
    failures: list[tuple[str, str]] = []
    for strategy in strategies:
        result = await strategy.run()
        if result.ok and result.value is not None:
            logger.info("render.succeeded", strategy=strategy.name, failed_before=len(failures))
            return strategy.name, result.value
        failures.append((strategy.name, result.error or "empty result"))
    raise RenderChainError(failures)
