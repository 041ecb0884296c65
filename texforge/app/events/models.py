from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types
# ----------------------------------------------------------------------
class BuildEventType(str, Enum):
    """
    Progress events emitted while a request runs.
    """

    # ------------------------------------------------------------------
    # Compile lifecycle
    # ------------------------------------------------------------------
    BUILD_STARTED = "build_started"
    WORKSPACE_READY = "workspace_ready"
    PASS_STARTED = "pass_started"
    PASS_COMPLETED = "pass_completed"
    BUILD_COMPLETED = "build_completed"
    BUILD_FAILED = "build_failed"

    # ------------------------------------------------------------------
    # Dependency sync
    # ------------------------------------------------------------------
    DEPENDENCY_SYNC_STARTED = "dependency_sync_started"
    PACKAGE_INSTALL_STARTED = "package_install_started"
    PACKAGE_INSTALL_COMPLETED = "package_install_completed"
    DEPENDENCY_SYNC_COMPLETED = "dependency_sync_completed"


TERMINAL_EVENT_TYPES = frozenset(
    {
        BuildEventType.BUILD_COMPLETED,
        BuildEventType.BUILD_FAILED,
    }
)


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class BuildEvent(BaseModel):
    """
    An immutable observation of a pipeline transition.

    Events never carry artifact bytes.
    """

    event_id: UUID = Field(default_factory=uuid4)
    request_id: str = Field(..., description="The originating request id")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: BuildEventType

    # Optional contextual metadata (pass number, package name, counts)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def to_sse_payload(self) -> str:
        """Serialize as one Server-Sent Events message."""
        return (
            f"event: {self.event_type.value}\n"
            f"data: {self.model_dump_json()}\n\n"
        )
