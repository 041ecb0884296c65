"""
Centralized configuration for the texforge service.

Pydantic v2 settings management: values are read from TEXFORGE_*
environment variables (or a local .env file), validated once, and
frozen for the lifetime of the process.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from texforge.app.schemas.compilation import DEFAULT_ENGINE, Engine


# -------------------------------------------------------------------------
# Reusable Type Aliases
# -------------------------------------------------------------------------

TimeoutSeconds = Annotated[
    float,
    Field(gt=0, description="Upper bound for one external invocation"),
]

BinaryName = Annotated[
    str,
    Field(min_length=1, description="Executable name or absolute path"),
]


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Application settings parsed from the environment.
    """

    # ---------------------------------------------------------------------
    # Compilation
    # ---------------------------------------------------------------------

    default_engine: Engine = DEFAULT_ENGINE

    compile_timeout_seconds: TimeoutSeconds = 120.0

    workspace_parent: Annotated[
        Optional[Path],
        Field(
            default=None,
            description=(
                "Directory under which build workspaces are created. "
                "The system temporary directory is used when unset."
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # Toolchain binaries
    # ---------------------------------------------------------------------

    kpsewhich_binary: BinaryName = "kpsewhich"
    tlmgr_binary: BinaryName = "tlmgr"

    lookup_timeout_seconds: TimeoutSeconds = 15.0
    install_timeout_seconds: TimeoutSeconds = 600.0
    probe_timeout_seconds: TimeoutSeconds = 15.0

    # ---------------------------------------------------------------------
    # Resolution throughput
    # ---------------------------------------------------------------------

    resolve_concurrency: Annotated[
        int,
        Field(
            default=1,
            ge=1,
            le=8,
            description=(
                "Concurrent file lookups during resolution. "
                "1 resolves sequentially."
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # Logging
    # ---------------------------------------------------------------------

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level = v.upper()
        if level not in allowed:
            raise ValueError(
                f"Unsupported log_level '{v}'. "
                f"Allowed values: {sorted(allowed)}"
            )
        return level

    @field_validator("workspace_parent")
    @classmethod
    def workspace_parent_must_exist(
        cls, v: Optional[Path]
    ) -> Optional[Path]:
        if v is not None and not v.is_dir():
            raise ValueError(
                f"Configured workspace_parent is not a directory: {v}"
            )
        return v

    model_config = SettingsConfigDict(
        env_prefix="TEXFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )


# -------------------------------------------------------------------------
# Settings Dependency Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Dependency injection provider for application settings.
    """
    return Settings()
