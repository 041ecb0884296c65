"""
Dependency (TeX package) schemas.

Declared dependencies are extracted per occurrence from document
source; statuses are one per unique name after resolution; a sync
outcome aggregates one install batch.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeclaredDependency(BaseModel):
    """One package named by a package directive in the source text."""

    name: str = Field(..., min_length=1)
    options: Optional[str] = Field(
        None,
        description="Raw bracketed option string as written, if any",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def name_is_trimmed(cls, v: str) -> str:
        if v != v.strip():
            raise ValueError("Package names must be trimmed")
        return v


class DependencyStatus(BaseModel):
    """Installed state of one unique package."""

    name: str
    installed: bool
    options: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class DependencyReport(BaseModel):
    """Resolution result for a whole document."""

    packages: List[DependencyStatus] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    installed: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_statuses(
        cls, statuses: List[DependencyStatus]
    ) -> "DependencyReport":
        return cls(
            packages=list(statuses),
            missing=[s.name for s in statuses if not s.installed],
            installed=[s.name for s in statuses if s.installed],
        )


class DependencySyncState(str, Enum):
    """
    States of a dependency-sync request.

    EXTRACTED -> RESOLVED -> ALL_SATISFIED
                          -> INSTALLATION_ATTEMPTED -> FULLY_SUCCEEDED
                                                    -> PARTIALLY_FAILED

    There is no retry transition.
    """

    EXTRACTED = "extracted"
    RESOLVED = "resolved"
    ALL_SATISFIED = "all_satisfied"
    INSTALLATION_ATTEMPTED = "installation_attempted"
    FULLY_SUCCEEDED = "fully_succeeded"
    PARTIALLY_FAILED = "partially_failed"


class DependencySyncOutcome(BaseModel):
    """Aggregated result of one install batch."""

    success: bool
    installed: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    message: str
    state: Optional[DependencySyncState] = None

    model_config = ConfigDict(frozen=True)


class EssentialPackageSet(BaseModel):
    """
    A named, ordered, immutable list of packages audited and installed
    independently of any document.
    """

    name: str
    packages: Tuple[str, ...]

    model_config = ConfigDict(frozen=True)

    @field_validator("packages")
    @classmethod
    def packages_are_named(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if any(not p.strip() for p in v):
            raise ValueError("Essential package names must be non-empty")
        return v


class ToolchainAvailability(BaseModel):
    """Whether each known engine responds to a version probe."""

    engines: Dict[str, bool]

    model_config = ConfigDict(frozen=True)


class DocumentSource(BaseModel):
    """Document text submitted for dependency detection or sync."""

    content: str

    model_config = ConfigDict(frozen=True, extra="forbid")
