"""
Package installation status resolution.

A package counts as installed when the toolchain's file-lookup tool
(kpsewhich) can locate either its style file (<name>.sty) or its
document-class file (<name>.cls). The registry is queried fresh on
every call; nothing is cached.

Lookups have no ordering dependency on one another, so they may run
concurrently under a small bound. A bound of 1 resolves sequentially.
Result order always follows the first declaration of each name.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from texforge.app.schemas.dependencies import (
    DeclaredDependency,
    DependencyStatus,
)
from texforge.app.services.process_runner import ProcessRunner

logger = logging.getLogger(__name__)

LOOKUP_EXTENSIONS = (".sty", ".cls")


class DependencyResolver:
    """Checks declared packages against the installed-file registry."""

    def __init__(
        self,
        *,
        runner: ProcessRunner,
        lookup_binary: str = "kpsewhich",
        timeout: Optional[float] = None,
        concurrency: int = 1,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self._runner = runner
        self._lookup_binary = lookup_binary
        self._timeout = timeout
        self._concurrency = concurrency

    async def is_installed(self, name: str) -> bool:
        """
        Raises:
            ExecutableNotFoundError: the lookup tool is unavailable.
            ProcessTimeoutError: a lookup exceeded its limit.
        """
        for extension in LOOKUP_EXTENSIONS:
            result = await self._runner.run(
                [self._lookup_binary, f"{name}{extension}"],
                timeout=self._timeout,
            )
            if result.succeeded:
                return True
        return False

    async def resolve(
        self, declared: Iterable[DeclaredDependency]
    ) -> List[DependencyStatus]:
        """One status per unique package name, in first-declaration order."""
        unique: Dict[str, Optional[str]] = {}
        for dependency in declared:
            unique.setdefault(dependency.name, dependency.options)

        names = list(unique)
        flags = await self._check_all(names)

        statuses = [
            DependencyStatus(
                name=name,
                installed=installed,
                options=unique[name],
            )
            for name, installed in zip(names, flags)
        ]

        logger.info(
            "Resolved %d package(s): %d missing",
            len(statuses),
            sum(1 for s in statuses if not s.installed),
        )
        return statuses

    async def resolve_names(self, names: Sequence[str]) -> List[DependencyStatus]:
        """Resolve bare package names (no options)."""
        return await self.resolve(DeclaredDependency(name=n) for n in names)

    async def _check_all(self, names: List[str]) -> List[bool]:
        if self._concurrency == 1:
            return [await self.is_installed(name) for name in names]

        semaphore = asyncio.Semaphore(self._concurrency)

        async def bounded(name: str) -> bool:
            async with semaphore:
                return await self.is_installed(name)

        return list(await asyncio.gather(*(bounded(n) for n in names)))
