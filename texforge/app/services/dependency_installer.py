"""
Missing package installation.

Each package is installed by its own package-manager invocation
(`tlmgr install <name>`), strictly one at a time so the manager's lock
and state stay consistent and every success or failure is attributable
to exactly one package.

A failed package is final for this batch: no retry, and no rollback of
packages already installed in the same batch.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from texforge.app.events import (
    BuildEvent,
    BuildEventEmitter,
    BuildEventType,
    NullEventEmitter,
)
from texforge.app.schemas.dependencies import DependencySyncOutcome
from texforge.app.services.process_runner import (
    ProcessRunner,
    ProcessTimeoutError,
)

logger = logging.getLogger(__name__)


def summarize_installation(installed: List[str], failed: List[str]) -> str:
    if not failed:
        return f"Successfully installed {len(installed)} packages"
    return (
        f"Installed {len(installed)} packages, {len(failed)} failed: "
        f"{', '.join(failed)}"
    )


class DependencyInstaller:
    """Sequential package-manager driver."""

    def __init__(
        self,
        *,
        runner: ProcessRunner,
        manager_binary: str = "tlmgr",
        timeout: Optional[float] = None,
    ) -> None:
        self._runner = runner
        self._manager_binary = manager_binary
        self._timeout = timeout

    async def install_one(self, name: str) -> bool:
        """
        Install a single package.

        A timed-out install counts as a failure of that package.

        Raises:
            ExecutableNotFoundError: the package manager is unavailable.
        """
        try:
            result = await self._runner.run(
                [self._manager_binary, "install", name],
                timeout=self._timeout,
            )
        except ProcessTimeoutError as exc:
            logger.warning("Install of %s timed out: %s", name, exc)
            return False

        if not result.succeeded:
            logger.warning(
                "Install of %s failed with exit status %d",
                name,
                result.returncode,
            )
            return False

        logger.info("Installed package %s", name)
        return True

    async def install(
        self,
        names: Sequence[str],
        *,
        request_id: str = "",
        emitter: Optional[BuildEventEmitter] = None,
    ) -> DependencySyncOutcome:
        """Install every name in order and aggregate the results."""
        emitter = emitter or NullEventEmitter()

        installed: List[str] = []
        failed: List[str] = []

        for name in names:
            await emitter.emit(
                BuildEvent(
                    request_id=request_id,
                    event_type=BuildEventType.PACKAGE_INSTALL_STARTED,
                    details={"package": name},
                )
            )

            ok = await self.install_one(name)
            (installed if ok else failed).append(name)

            await emitter.emit(
                BuildEvent(
                    request_id=request_id,
                    event_type=BuildEventType.PACKAGE_INSTALL_COMPLETED,
                    details={"package": name, "installed": ok},
                )
            )

        return DependencySyncOutcome(
            success=not failed,
            installed=installed,
            failed=failed,
            message=summarize_installation(installed, failed),
        )
