"""Exception types shared across wabot."""

from __future__ import annotations


class WabotError(Exception):
    """Base class for wabot errors."""


class TransportError(WabotError):
    """The WhatsApp transport failed to connect or to carry out a request."""


class TransportClosedError(TransportError):
    """A request was made on a transport that is not connected."""


class CommandLoadError(WabotError):
    """A command entry could not be imported or has no usable handler."""

    def __init__(self, source_ref: str, reason: str) -> None:
        super().__init__(f"{source_ref}: {reason}")
        self.source_ref = source_ref
        self.reason = reason


class RenderError(WabotError):
    """A rendering collaborator failed."""

    def __init__(self, renderer: str, message: str) -> None:
        super().__init__(f"{renderer}: {message}")
        self.renderer = renderer


class RenderChainError(WabotError):
    """Every strategy in a render chain failed."""

    def __init__(self, failures: list[tuple[str, str]]) -> None:
        detail = "; ".join(f"{name}: {error}" for name, error in failures) or "no strategies"
        super().__init__(f"all renderers failed ({detail})")
        self.failures = failures
