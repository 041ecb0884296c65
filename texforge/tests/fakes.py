"""
Scripted process runner for pipeline tests.

Simulates the TeX toolchain without spawning anything:
- binaries without a handler behave as "not installed"
- handlers return a ProcessResult or raise (e.g. ProcessTimeoutError)
- every call is recorded for ordering assertions
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from texforge.app.events import BuildEvent, BuildEventType
from texforge.app.services.process_runner import (
    ExecutableNotFoundError,
    ProcessResult,
)
from texforge.tests.fixtures.pdf_factory import minimal_valid_pdf

Handler = Callable[[Tuple[str, ...], Optional[Path]], ProcessResult]


def completed(
    argv: Sequence[str],
    returncode: int = 0,
    stdout: Union[str, bytes] = b"",
    stderr: Union[str, bytes] = b"",
) -> ProcessResult:
    if isinstance(stdout, str):
        stdout = stdout.encode("utf-8")
    if isinstance(stderr, str):
        stderr = stderr.encode("utf-8")
    return ProcessResult(
        argv=tuple(argv),
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
    )


class RecordedCall(BaseModel):
    argv: Tuple[str, ...]
    cwd: Optional[Path] = None
    timeout: Optional[float] = None


class FakeProcessRunner:
    def __init__(self, handlers: Optional[Dict[str, Handler]] = None) -> None:
        self._handlers: Dict[str, Handler] = dict(handlers or {})
        self.calls: List[RecordedCall] = []

    def register(self, executable: str, handler: Handler) -> None:
        self._handlers[executable] = handler

    def calls_to(self, executable: str) -> List[RecordedCall]:
        return [c for c in self.calls if c.argv[0] == executable]

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        argv = tuple(argv)
        self.calls.append(RecordedCall(argv=argv, cwd=cwd, timeout=timeout))

        handler = self._handlers.get(argv[0])
        if handler is None:
            raise ExecutableNotFoundError(
                argv[0], "[Errno 2] No such file or directory"
            )
        return handler(argv, cwd)


# ----------------------------------------------------------------------
# Engine simulation
# ----------------------------------------------------------------------

class EnginePass(BaseModel):
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    writes_pdf: bool = True


class ScriptedEngine:
    """
    Plays back one EnginePass per invocation and, when asked, writes a
    PDF into the -output-directory like a real engine would.
    """

    def __init__(self, *passes: EnginePass) -> None:
        self._passes = list(passes)
        self.invocations = 0

    def __call__(
        self, argv: Tuple[str, ...], cwd: Optional[Path]
    ) -> ProcessResult:
        step = self._passes[min(self.invocations, len(self._passes) - 1)]
        self.invocations += 1

        if step.writes_pdf:
            output_dir = Path(argv[argv.index("-output-directory") + 1])
            (output_dir / "main.pdf").write_bytes(minimal_valid_pdf())

        return completed(
            argv,
            returncode=step.returncode,
            stdout=step.stdout,
            stderr=step.stderr,
        )


# ----------------------------------------------------------------------
# Package registry simulation
# ----------------------------------------------------------------------

class FakeTexRegistry:
    """
    kpsewhich + tlmgr over an in-memory set of installed files.

    Successful installs add <name>.sty so later lookups observe them.
    """

    def __init__(
        self,
        installed_files: Sequence[str] = (),
        failing_installs: Sequence[str] = (),
    ) -> None:
        self.files = set(installed_files)
        self.failing_installs = set(failing_installs)

    def kpsewhich(
        self, argv: Tuple[str, ...], cwd: Optional[Path]
    ) -> ProcessResult:
        filename = argv[1]
        if filename in self.files:
            return completed(argv, stdout=f"/texmf/{filename}\n")
        return completed(argv, returncode=1)

    def tlmgr(
        self, argv: Tuple[str, ...], cwd: Optional[Path]
    ) -> ProcessResult:
        if argv[1] == "--version":
            return completed(argv, stdout="tlmgr revision 70000\n")

        name = argv[2]
        if name in self.failing_installs:
            return completed(
                argv,
                returncode=1,
                stderr=f"tlmgr install: package {name} not present in repository.\n",
            )
        self.files.add(f"{name}.sty")
        return completed(argv, stdout=f"[1/1] install: {name}\n")

    def attach(self, runner: FakeProcessRunner) -> FakeProcessRunner:
        runner.register("kpsewhich", self.kpsewhich)
        runner.register("tlmgr", self.tlmgr)
        return runner


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------

class RecordingEmitter:
    """Collects every emitted event for ordering assertions."""

    def __init__(self) -> None:
        self.events: List[BuildEvent] = []

    async def emit(self, event: BuildEvent) -> None:
        self.events.append(event)

    def types(self) -> List[BuildEventType]:
        return [e.event_type for e in self.events]
