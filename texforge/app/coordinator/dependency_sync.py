"""
Dependency synchronization coordinator.

Reconciles the packages a document (or an essential set) declares with
what the toolchain has installed:

    EXTRACTED -> RESOLVED -> ALL_SATISFIED                      (terminal)
                          -> INSTALLATION_ATTEMPTED -> FULLY_SUCCEEDED  (terminal)
                                                    -> PARTIALLY_FAILED (terminal)

There is no retry transition; a failed package needs a new request.

Per-package install failures never raise. They are reported inside a
successful DependencySyncOutcome. Environment failures (lookup tool or
package manager missing) propagate to the caller.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, FrozenSet, List, Optional, Sequence

from texforge.app.events import (
    BuildEvent,
    BuildEventEmitter,
    BuildEventType,
    NullEventEmitter,
)
from texforge.app.schemas.dependencies import (
    DeclaredDependency,
    DependencyReport,
    DependencyStatus,
    DependencySyncOutcome,
    DependencySyncState,
    EssentialPackageSet,
)
from texforge.app.services.dependency_extractor import extract_dependencies
from texforge.app.services.dependency_installer import (
    DependencyInstaller,
    summarize_installation,
)
from texforge.app.services.dependency_resolver import DependencyResolver

logger = logging.getLogger(__name__)

ALL_PACKAGES_PRESENT = "All packages are already installed"
ALL_ESSENTIALS_PRESENT = "All essential packages are already installed"

# Package names handed to the package manager must not look like options.
PACKAGE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


SYNC_TRANSITIONS: Dict[DependencySyncState, FrozenSet[DependencySyncState]] = {
    DependencySyncState.EXTRACTED: frozenset({DependencySyncState.RESOLVED}),
    DependencySyncState.RESOLVED: frozenset(
        {
            DependencySyncState.ALL_SATISFIED,
            DependencySyncState.INSTALLATION_ATTEMPTED,
        }
    ),
    DependencySyncState.INSTALLATION_ATTEMPTED: frozenset(
        {
            DependencySyncState.FULLY_SUCCEEDED,
            DependencySyncState.PARTIALLY_FAILED,
        }
    ),
}


def transition(
    current: DependencySyncState, target: DependencySyncState
) -> DependencySyncState:
    if target not in SYNC_TRANSITIONS.get(current, frozenset()):
        raise ValueError(
            f"Illegal dependency sync transition {current.value} -> {target.value}"
        )
    return target


def is_valid_package_name(name: str) -> bool:
    return bool(PACKAGE_NAME_RE.match(name))


class DependencySyncCoordinator:
    """Extract -> resolve -> install, one request at a time."""

    def __init__(
        self,
        *,
        resolver: DependencyResolver,
        installer: DependencyInstaller,
    ) -> None:
        self._resolver = resolver
        self._installer = installer

    # ------------------------------------------------------------------
    # Document-driven operations
    # ------------------------------------------------------------------

    async def detect(self, source: str) -> DependencyReport:
        """Resolve every package the document declares."""
        statuses = await self._resolver.resolve(extract_dependencies(source))
        return DependencyReport.from_statuses(statuses)

    async def sync_document(
        self,
        source: str,
        *,
        request_id: str = "",
        emitter: Optional[BuildEventEmitter] = None,
    ) -> DependencySyncOutcome:
        """Install whatever the document declares but the toolchain lacks."""
        return await self._sync(
            extract_dependencies(source),
            satisfied_message=ALL_PACKAGES_PRESENT,
            request_id=request_id,
            emitter=emitter,
        )

    # ------------------------------------------------------------------
    # Essential-set operations
    # ------------------------------------------------------------------

    async def audit_essentials(
        self, package_set: EssentialPackageSet
    ) -> List[DependencyStatus]:
        return await self._resolver.resolve_names(package_set.packages)

    async def sync_essentials(
        self,
        package_set: EssentialPackageSet,
        *,
        request_id: str = "",
        emitter: Optional[BuildEventEmitter] = None,
    ) -> DependencySyncOutcome:
        return await self._sync(
            [DeclaredDependency(name=n) for n in package_set.packages],
            satisfied_message=ALL_ESSENTIALS_PRESENT,
            request_id=request_id,
            emitter=emitter,
        )

    # ------------------------------------------------------------------
    # Single package
    # ------------------------------------------------------------------

    async def install_package(
        self,
        name: str,
        *,
        request_id: str = "",
        emitter: Optional[BuildEventEmitter] = None,
    ) -> DependencySyncOutcome:
        """
        Install one named package without a prior status check.

        Raises:
            ValueError: the name is not a valid package identifier.
        """
        if not is_valid_package_name(name):
            raise ValueError(f"Invalid package name: {name!r}")

        return await self._install(
            [name], request_id=request_id, emitter=emitter
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _sync(
        self,
        declared: Sequence[DeclaredDependency],
        *,
        satisfied_message: str,
        request_id: str,
        emitter: Optional[BuildEventEmitter],
    ) -> DependencySyncOutcome:
        emitter = emitter or NullEventEmitter()
        state = DependencySyncState.EXTRACTED

        await emitter.emit(
            BuildEvent(
                request_id=request_id,
                event_type=BuildEventType.DEPENDENCY_SYNC_STARTED,
                details={"declared_count": len(declared)},
            )
        )

        statuses = await self._resolver.resolve(declared)
        state = transition(state, DependencySyncState.RESOLVED)

        missing = [s.name for s in statuses if not s.installed]

        if not missing:
            state = transition(state, DependencySyncState.ALL_SATISFIED)
            outcome = DependencySyncOutcome(
                success=True,
                installed=[],
                failed=[],
                message=satisfied_message,
                state=state,
            )
        else:
            state = transition(
                state, DependencySyncState.INSTALLATION_ATTEMPTED
            )
            outcome = await self._install(
                missing, request_id=request_id, emitter=emitter
            )

        await emitter.emit(
            BuildEvent(
                request_id=request_id,
                event_type=BuildEventType.DEPENDENCY_SYNC_COMPLETED,
                details={
                    "state": outcome.state.value if outcome.state else None,
                    "installed": outcome.installed,
                    "failed": outcome.failed,
                },
            )
        )
        return outcome

    async def _install(
        self,
        names: List[str],
        *,
        request_id: str,
        emitter: Optional[BuildEventEmitter],
    ) -> DependencySyncOutcome:
        accepted = [n for n in names if is_valid_package_name(n)]
        rejected = [n for n in names if not is_valid_package_name(n)]

        for name in rejected:
            logger.warning("Refusing to install invalid package name %r", name)

        batch = await self._installer.install(
            accepted, request_id=request_id, emitter=emitter
        )

        failed = [n for n in names if n in rejected or n in batch.failed]
        installed = batch.installed

        final_state = transition(
            DependencySyncState.INSTALLATION_ATTEMPTED,
            DependencySyncState.PARTIALLY_FAILED
            if failed
            else DependencySyncState.FULLY_SUCCEEDED,
        )

        return DependencySyncOutcome(
            success=not failed,
            installed=installed,
            failed=failed,
            message=summarize_installation(installed, failed),
            state=final_state,
        )
