"""
Build workspace materialization.

A workspace is a fresh, uniquely named directory created for exactly
one build. It receives the primary document under a fixed filename and
every auxiliary file at its relative path, and it is removed with all
of its contents when the build exits, whether it succeeded or not.

Trust boundary:
- Auxiliary paths come from the caller and are treated as untrusted.
- Absolute paths, paths containing NUL bytes, paths that resolve
  outside the workspace root and paths that would occupy the primary
  document or the expected artifact are rejected.
"""

from __future__ import annotations

import logging
import tempfile
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict

from texforge.app.schemas.compilation import BuildRequest

logger = logging.getLogger(__name__)

MAIN_DOCUMENT_NAME = "main.tex"
ARTIFACT_NAME = "main.pdf"


class WorkspaceError(RuntimeError):
    """Raised when the build workspace cannot be created or written."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class UnsafeWorkspacePathError(WorkspaceError):
    """Raised when an auxiliary file path would escape the workspace."""


class BuildWorkspace(BaseModel):
    """An isolated directory holding one materialized build."""

    root: Path
    main_document: Path

    model_config = ConfigDict(frozen=True)

    @property
    def artifact_path(self) -> Path:
        return self.root / ARTIFACT_NAME


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------

def _resolve_inside(root: Path, relative_path: str) -> Path:
    """
    Map a caller-supplied relative path to an absolute path inside root.
    """
    if not relative_path or not relative_path.strip():
        raise UnsafeWorkspacePathError(
            "Auxiliary file path must not be empty", path=relative_path
        )

    if "\x00" in relative_path:
        raise UnsafeWorkspacePathError(
            f"Auxiliary file path contains a NUL byte: {relative_path!r}",
            path=relative_path,
        )

    posix = PurePosixPath(relative_path.replace("\\", "/"))
    if posix.is_absolute() or Path(relative_path).is_absolute():
        raise UnsafeWorkspacePathError(
            f"Auxiliary file path must be relative: {relative_path}",
            path=relative_path,
        )

    candidate = (root / Path(*posix.parts)).resolve()

    try:
        candidate.relative_to(root)
    except ValueError:
        raise UnsafeWorkspacePathError(
            f"Auxiliary file path escapes the workspace: {relative_path}",
            path=relative_path,
        ) from None

    if candidate == root:
        raise UnsafeWorkspacePathError(
            f"Auxiliary file path names the workspace root: {relative_path}",
            path=relative_path,
        )

    if candidate == root / MAIN_DOCUMENT_NAME:
        raise UnsafeWorkspacePathError(
            f"Auxiliary file collides with the primary document: "
            f"{relative_path}",
            path=relative_path,
        )

    if candidate == root / ARTIFACT_NAME:
        raise UnsafeWorkspacePathError(
            f"Auxiliary file collides with the build artifact: "
            f"{relative_path}",
            path=relative_path,
        )

    return candidate


def _write_text(path: Path, content: str, display_name: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except (OSError, ValueError) as exc:
        raise WorkspaceError(
            f"Failed to write {display_name}: {exc}", path=display_name
        ) from exc


def _populate(root: Path, request: BuildRequest) -> BuildWorkspace:
    main_document = root / MAIN_DOCUMENT_NAME
    _write_text(main_document, request.content, MAIN_DOCUMENT_NAME)

    for relative_path, content in request.files.items():
        target = _resolve_inside(root, relative_path)
        _write_text(target, content, relative_path)

    logger.debug(
        "Materialized workspace %s with %d auxiliary file(s)",
        root,
        len(request.files),
    )

    return BuildWorkspace(root=root, main_document=main_document)


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------

@contextmanager
def materialize_workspace(
    request: BuildRequest,
    *,
    parent: Optional[Path] = None,
) -> Iterator[BuildWorkspace]:
    """
    Stage a BuildRequest into a disposable directory.

    Args:
        request:
            The document and auxiliary files to write.
        parent:
            Directory under which the workspace is created. Defaults to
            the system temporary directory.

    Raises:
        UnsafeWorkspacePathError:
            If an auxiliary path is absolute, escapes the workspace or
            targets the primary document or the artifact.
        WorkspaceError:
            If the directory cannot be created or any file cannot be
            written. Nothing is rolled back individually; the whole
            directory is discarded on exit.
    """
    try:
        tmp = tempfile.TemporaryDirectory(
            prefix="texforge-",
            dir=str(parent) if parent is not None else None,
        )
    except OSError as exc:
        raise WorkspaceError(
            f"Failed to create build workspace: {exc}",
            path=str(parent) if parent is not None else None,
        ) from exc

    with tmp as tmpdir:
        root = Path(tmpdir).resolve()
        yield _populate(root, request)
