"""
Compile pipeline coordinator.

Execution order for one BuildRequest:
    1. Optional dependency sync (BuildRequest.auto_install)
    2. Workspace materialization
    3. Two-pass engine invocation
    4. Log parsing
    5. Artifact collection (presence of the expected PDF is the success signal)

The workspace is discarded when the pipeline exits, success or failure.

Environment, I/O and timeout failures propagate as exceptions. Compiler
errors do not: they come back as a CompilationOutcome with
success=False and populated diagnostics.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional
from uuid import uuid4

from texforge.app.coordinator.dependency_sync import DependencySyncCoordinator
from texforge.app.events import (
    BuildEvent,
    BuildEventEmitter,
    BuildEventType,
    NullEventEmitter,
)
from texforge.app.schemas.compilation import (
    DEFAULT_ENGINE,
    BuildRequest,
    CompilationOutcome,
    Engine,
)
from texforge.app.schemas.dependencies import DependencySyncOutcome
from texforge.app.services.latex import LaTeXCompiler
from texforge.app.services.log_parser import parse_latex_log
from texforge.app.services.workspace import (
    BuildWorkspace,
    WorkspaceError,
    materialize_workspace,
)

logger = logging.getLogger(__name__)


def _read_artifact(workspace: BuildWorkspace) -> Optional[bytes]:
    path = workspace.artifact_path
    if not path.is_file():
        return None
    try:
        return path.read_bytes()
    except OSError as exc:
        raise WorkspaceError(
            f"Failed to read {path.name}: {exc}", path=str(path)
        ) from exc


class BuildPipeline:
    """
    Compile coordinator.

    Holds no per-request state; concurrent compile calls share nothing
    but the injected collaborators.
    """

    def __init__(
        self,
        *,
        compiler: LaTeXCompiler,
        dependency_sync: Optional[DependencySyncCoordinator] = None,
        default_engine: Engine = DEFAULT_ENGINE,
        workspace_parent: Optional[Path] = None,
    ) -> None:
        self._compiler = compiler
        self._dependency_sync = dependency_sync
        self._default_engine = default_engine
        self._workspace_parent = workspace_parent

    async def compile(
        self,
        request: BuildRequest,
        *,
        request_id: Optional[str] = None,
        emitter: Optional[BuildEventEmitter] = None,
    ) -> CompilationOutcome:
        request_id = request_id or str(uuid4())
        emitter = emitter or NullEventEmitter()
        engine = request.engine or self._default_engine

        await emitter.emit(
            BuildEvent(
                request_id=request_id,
                event_type=BuildEventType.BUILD_STARTED,
                details={
                    "engine": engine.value,
                    "auxiliary_files": len(request.files),
                },
            )
        )

        try:
            outcome = await self._run(request, engine, request_id, emitter)
        except Exception as exc:
            await emitter.emit(
                BuildEvent(
                    request_id=request_id,
                    event_type=BuildEventType.BUILD_FAILED,
                    details={
                        "error_type": type(exc).__name__,
                        "message": str(exc),
                    },
                )
            )
            raise

        await emitter.emit(
            BuildEvent(
                request_id=request_id,
                event_type=BuildEventType.BUILD_COMPLETED,
                details={
                    "success": outcome.success,
                    "passes_executed": outcome.passes_executed,
                    "errors_count": len(outcome.errors),
                    "warnings_count": len(outcome.warnings),
                    "outcome": outcome.model_dump(
                        mode="json", exclude={"artifact", "log"}
                    ),
                },
            )
        )
        return outcome

    async def _run(
        self,
        request: BuildRequest,
        engine: Engine,
        request_id: str,
        emitter: BuildEventEmitter,
    ) -> CompilationOutcome:
        # --------------------------------------------------------------
        # 1. Optional dependency sync
        # --------------------------------------------------------------
        dependency_sync: Optional[DependencySyncOutcome] = None

        if request.auto_install:
            if self._dependency_sync is None:
                raise RuntimeError(
                    "auto_install requested but no dependency sync is configured"
                )
            dependency_sync = await self._dependency_sync.sync_document(
                request.content,
                request_id=request_id,
                emitter=emitter,
            )

        # --------------------------------------------------------------
        # 2-5. Materialize, invoke, parse, collect
        # --------------------------------------------------------------
        with materialize_workspace(
            request, parent=self._workspace_parent
        ) as workspace:
            await emitter.emit(
                BuildEvent(
                    request_id=request_id,
                    event_type=BuildEventType.WORKSPACE_READY,
                    details={"files_written": len(request.files) + 1},
                )
            )

            invocation = await self._compiler.run(
                workspace,
                engine,
                request_id=request_id,
                emitter=emitter,
            )

            errors, warnings = parse_latex_log(invocation.log)
            artifact = _read_artifact(workspace)

        success = artifact is not None

        logger.info(
            "Build %s finished: success=%s passes=%d errors=%d warnings=%d",
            request_id,
            success,
            invocation.passes_executed,
            len(errors),
            len(warnings),
        )

        return CompilationOutcome(
            success=success,
            engine=engine,
            artifact=artifact,
            log=invocation.log,
            passes_executed=invocation.passes_executed,
            errors=errors,
            warnings=warnings,
            dependency_sync=dependency_sync,
        )
