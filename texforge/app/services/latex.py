"""
TeX engine invocation.

Runs the selected engine over a materialized workspace using a
two-pass control flow:

    PENDING --pass 1 ok--> FIRST_PASS_SUCCEEDED --pass 2--> SECOND_PASS_COMPLETED
    PENDING --pass 1 failed--> FIRST_PASS_FAILED

Pass 2 resolves forward references (table of contents, citations).
It is never started after a failing pass 1. The log retained for
parsing is the output of the last pass that ran.

The engine's exit status is NOT the success signal: the caller decides
success by the presence of the expected artifact in the workspace.

Failure classes:
- ToolchainNotInstalledError: the engine binary could not be spawned
- CompilationTimeoutError: a pass exceeded its time limit
A pass that ran and reported errors is not a failure of this module.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from texforge.app.events import (
    BuildEvent,
    BuildEventEmitter,
    BuildEventType,
    NullEventEmitter,
)
from texforge.app.schemas.compilation import Engine
from texforge.app.services.process_runner import (
    ExecutableNotFoundError,
    ProcessResult,
    ProcessRunner,
    ProcessTimeoutError,
)
from texforge.app.services.workspace import BuildWorkspace

logger = logging.getLogger(__name__)


class LaTeXCompilationError(RuntimeError):
    """Base class for request-level compiler invocation failures."""


class ToolchainNotInstalledError(LaTeXCompilationError):
    """Raised when the selected engine binary is absent or unrunnable."""

    def __init__(self, engine: Engine, reason: str) -> None:
        super().__init__(
            f"Failed to run {engine.value}: {reason}. Is TeX Live installed?"
        )
        self.engine = engine


class CompilationTimeoutError(LaTeXCompilationError):
    """Raised when a compiler pass exceeds its time limit."""


# ------------------------------------------------------------------
# Pass state machine
# ------------------------------------------------------------------

class CompilePassState(str, Enum):
    PENDING = "pending"
    FIRST_PASS_SUCCEEDED = "first_pass_succeeded"
    FIRST_PASS_FAILED = "first_pass_failed"
    SECOND_PASS_COMPLETED = "second_pass_completed"


# (state, pass exited successfully) -> next state
PASS_TRANSITIONS: Dict[Tuple[CompilePassState, bool], CompilePassState] = {
    (CompilePassState.PENDING, True): CompilePassState.FIRST_PASS_SUCCEEDED,
    (CompilePassState.PENDING, False): CompilePassState.FIRST_PASS_FAILED,
    (CompilePassState.FIRST_PASS_SUCCEEDED, True): CompilePassState.SECOND_PASS_COMPLETED,
    (CompilePassState.FIRST_PASS_SUCCEEDED, False): CompilePassState.SECOND_PASS_COMPLETED,
}

TERMINAL_PASS_STATES = frozenset(
    {
        CompilePassState.FIRST_PASS_FAILED,
        CompilePassState.SECOND_PASS_COMPLETED,
    }
)


def advance(state: CompilePassState, pass_succeeded: bool) -> CompilePassState:
    if state in TERMINAL_PASS_STATES:
        raise ValueError(f"No pass may run from terminal state {state.value}")
    return PASS_TRANSITIONS[(state, pass_succeeded)]


class InvocationResult(BaseModel):
    """Outcome of driving the engine over a workspace."""

    engine: Engine
    state: CompilePassState
    passes: List[ProcessResult]
    log: str

    model_config = ConfigDict(frozen=True)

    @property
    def passes_executed(self) -> int:
        return len(self.passes)


def build_command(engine: Engine, workspace: BuildWorkspace) -> List[str]:
    return [
        engine.value,
        "-interaction=nonstopmode",
        "-halt-on-error",
        "-file-line-error",
        "-output-directory",
        str(workspace.root),
        str(workspace.main_document),
    ]


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------

class LaTeXCompiler:
    """Drives a TeX engine through the two-pass state machine."""

    def __init__(
        self,
        *,
        runner: ProcessRunner,
        timeout: Optional[float] = None,
    ) -> None:
        self._runner = runner
        self._timeout = timeout

    async def run(
        self,
        workspace: BuildWorkspace,
        engine: Engine,
        *,
        request_id: str = "",
        emitter: Optional[BuildEventEmitter] = None,
    ) -> InvocationResult:
        emitter = emitter or NullEventEmitter()
        command = build_command(engine, workspace)

        state = CompilePassState.PENDING
        passes: List[ProcessResult] = []

        while state not in TERMINAL_PASS_STATES:
            pass_number = len(passes) + 1

            await emitter.emit(
                BuildEvent(
                    request_id=request_id,
                    event_type=BuildEventType.PASS_STARTED,
                    details={"pass": pass_number, "engine": engine.value},
                )
            )

            result = await self._run_pass(command, workspace, engine)
            passes.append(result)
            state = advance(state, result.succeeded)

            logger.info(
                "%s pass %d exited with status %d",
                engine.value,
                pass_number,
                result.returncode,
            )

            await emitter.emit(
                BuildEvent(
                    request_id=request_id,
                    event_type=BuildEventType.PASS_COMPLETED,
                    details={
                        "pass": pass_number,
                        "returncode": result.returncode,
                        "state": state.value,
                    },
                )
            )

        return InvocationResult(
            engine=engine,
            state=state,
            passes=passes,
            log=passes[-1].combined_output,
        )

    async def _run_pass(
        self,
        command: List[str],
        workspace: BuildWorkspace,
        engine: Engine,
    ) -> ProcessResult:
        try:
            return await self._runner.run(
                command,
                cwd=workspace.root,
                timeout=self._timeout,
            )
        except ExecutableNotFoundError as exc:
            raise ToolchainNotInstalledError(engine, exc.reason) from exc
        except ProcessTimeoutError as exc:
            raise CompilationTimeoutError(str(exc)) from exc
