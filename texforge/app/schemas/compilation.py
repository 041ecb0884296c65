"""
Compilation request and outcome schemas.

These models are the public contract of the compile pipeline. A
BuildRequest is immutable once submitted; a CompilationOutcome is
produced once per request and never mutated afterward.

Diagnostics keep the editor's established convention of line 0 for
"unknown / unattributed" instead of an absent value, because existing
consumers already key their inline display on that integer.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from texforge.app.schemas.dependencies import DependencySyncOutcome


class Engine(str, Enum):
    """Supported TeX engines."""

    XELATEX = "xelatex"
    PDFLATEX = "pdflatex"
    LUALATEX = "lualatex"


DEFAULT_ENGINE = Engine.XELATEX


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class BuildRequest(BaseModel):
    """
    A document to compile.

    `files` maps workspace-relative paths to auxiliary file contents
    (bibliographies, included chapters, style files). Paths are unique by
    construction; their insertion order carries no meaning.
    """

    content: str = Field(..., description="Primary document source text")

    files: Dict[str, str] = Field(
        default_factory=dict,
        description="Auxiliary files keyed by workspace-relative path",
    )

    engine: Optional[Engine] = Field(
        None,
        description="TeX engine; the configured default applies when unset",
    )

    auto_install: bool = Field(
        False,
        description=(
            "Install missing declared packages before compiling. "
            "The sync outcome is attached to the compilation outcome."
        ),
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

class _Diagnostic(BaseModel):
    line: int = Field(
        0,
        ge=0,
        description="1-based source line; 0 when unknown",
    )
    message: str
    file: Optional[str] = Field(
        None,
        description="Originating file, when known",
    )

    model_config = ConfigDict(frozen=True)


class CompilationError(_Diagnostic):
    """An error extracted from the compiler log."""


class CompilationWarning(_Diagnostic):
    """A warning extracted from the compiler log."""


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

class CompilationOutcome(BaseModel):
    """
    Structured result of one compile request.

    A failed compilation is still a complete outcome: `success` is false
    and the diagnostics explain why. Only environment and I/O failures
    abort a request without producing one.
    """

    success: bool
    engine: Engine
    artifact: Optional[bytes] = Field(
        None,
        description="Rendered PDF bytes; present iff success",
    )
    log: str = Field("", description="Raw log of the last compiler pass run")
    passes_executed: int = Field(0, ge=0, le=2)
    errors: List[CompilationError] = Field(default_factory=list)
    warnings: List[CompilationWarning] = Field(default_factory=list)
    dependency_sync: Optional[DependencySyncOutcome] = None

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    @model_validator(mode="after")
    def artifact_iff_success(self) -> "CompilationOutcome":
        if self.success and self.artifact is None:
            raise ValueError("A successful outcome must carry the artifact")
        if not self.success and self.artifact is not None:
            raise ValueError("A failed outcome must not carry an artifact")
        return self
