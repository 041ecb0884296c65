from __future__ import annotations

from typing import Protocol

from texforge.app.events.models import BuildEvent


class BuildEventEmitter(Protocol):
    """
    Interface for broadcasting pipeline progress.

    Implementations must be:
    - non-blocking (or minimally blocking)
    - fail-safe (emission failures must not crash the build)
    - observational only
    """

    async def emit(self, event: BuildEvent) -> None:
        ...


class NullEventEmitter:
    """
    A no-op emitter.

    Used for plain request/response calls and in tests that do not
    inspect progress.
    """

    async def emit(self, event: BuildEvent) -> None:
        return
