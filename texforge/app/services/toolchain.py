"""
Toolchain availability probes.

A tool is available when `<binary> --version` exits successfully. A
missing binary or a probe that hangs past its limit counts as
unavailable; probes never raise.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from texforge.app.schemas.compilation import Engine
from texforge.app.schemas.dependencies import ToolchainAvailability
from texforge.app.services.process_runner import (
    ExecutableNotFoundError,
    ProcessRunner,
    ProcessTimeoutError,
)

logger = logging.getLogger(__name__)


async def probe_binary(
    runner: ProcessRunner,
    binary: str,
    *,
    timeout: Optional[float] = None,
) -> bool:
    try:
        result = await runner.run([binary, "--version"], timeout=timeout)
    except (ExecutableNotFoundError, ProcessTimeoutError) as exc:
        logger.info("%s unavailable: %s", binary, exc)
        return False
    return result.succeeded


async def check_toolchain(
    runner: ProcessRunner,
    *,
    engines: Iterable[Engine] = tuple(Engine),
    timeout: Optional[float] = None,
) -> ToolchainAvailability:
    """Probe each engine; one entry per engine."""
    availability = {}
    for engine in engines:
        availability[engine.value] = await probe_binary(
            runner, engine.value, timeout=timeout
        )
    return ToolchainAvailability(engines=availability)


async def check_package_manager(
    runner: ProcessRunner,
    *,
    binary: str = "tlmgr",
    timeout: Optional[float] = None,
) -> bool:
    return await probe_binary(runner, binary, timeout=timeout)
