"""
External process execution.

Every interaction with the TeX toolchain (compiler passes, file lookups,
package-manager calls, version probes) goes through a ProcessRunner. The
pipelines depend only on the Protocol, so tests substitute a scripted
runner and never need a real TeX installation.

Failure classes raised here:
- ExecutableNotFoundError: the binary is missing or not executable
  (environment error, always fatal to the current request)
- ProcessTimeoutError: the child exceeded its time limit and was killed
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class ExecutableNotFoundError(RuntimeError):
    """Raised when an external binary cannot be spawned."""

    def __init__(self, executable: str, reason: str) -> None:
        super().__init__(f"Failed to run {executable}: {reason}")
        self.executable = executable
        self.reason = reason


class ProcessTimeoutError(RuntimeError):
    """Raised when an external process exceeds its time limit."""

    def __init__(self, executable: str, timeout: float) -> None:
        super().__init__(
            f"{executable} did not finish within {timeout:g} seconds "
            "and was terminated"
        )
        self.executable = executable
        self.timeout = timeout


class ProcessResult(BaseModel):
    """Exit status and captured output of one finished process."""

    argv: Tuple[str, ...]
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    model_config = ConfigDict(frozen=True)

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def combined_output(self) -> str:
        """
        stdout and stderr joined by a newline.

        Compiler logs are not guaranteed to be valid UTF-8 (font names,
        input encodings), so undecodable bytes are replaced rather than
        rejected.
        """
        stdout = self.stdout.decode("utf-8", errors="replace")
        stderr = self.stderr.decode("utf-8", errors="replace")
        return f"{stdout}\n{stderr}"


class ProcessRunner(Protocol):
    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        ...


class AsyncioProcessRunner:
    """ProcessRunner backed by asyncio subprocesses."""

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        if not argv:
            raise ValueError("argv must name an executable")

        executable = argv[0]

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd) if cwd is not None else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise ExecutableNotFoundError(executable, str(exc)) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Process %s exceeded %ss; terminating", executable, timeout
            )
            process.kill()
            await process.wait()
            raise ProcessTimeoutError(executable, timeout or 0.0) from exc

        return ProcessResult(
            argv=tuple(argv),
            returncode=process.returncode,
            stdout=stdout,
            stderr=stderr,
        )
