"""
HTTP routes.

A thin adapter: every route delegates to a coordinator wired at
startup and maps request-level failures to status codes. Compiler
diagnostics and per-package install failures are never errors here;
they travel inside 200 responses.
"""

import asyncio
import logging
import uuid
from typing import Annotated, Any, Awaitable, Callable, List, Optional, TypeVar

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from texforge.app.config import Settings
from texforge.app.coordinator.build_pipeline import BuildPipeline
from texforge.app.coordinator.dependency_sync import (
    DependencySyncCoordinator,
    is_valid_package_name,
)
from texforge.app.events import MemoryQueueEventEmitter
from texforge.app.registry.essential_packages import ESSENTIAL_PACKAGES
from texforge.app.schemas.compilation import BuildRequest, CompilationOutcome
from texforge.app.schemas.dependencies import (
    DependencyReport,
    DependencyStatus,
    DependencySyncOutcome,
    DocumentSource,
    ToolchainAvailability,
)
from texforge.app.services.latex import (
    CompilationTimeoutError,
    ToolchainNotInstalledError,
)
from texforge.app.services.process_runner import (
    ExecutableNotFoundError,
    ProcessRunner,
    ProcessTimeoutError,
)
from texforge.app.services.toolchain import (
    check_package_manager,
    check_toolchain,
)
from texforge.app.services.workspace import (
    UnsafeWorkspacePathError,
    WorkspaceError,
)

logger = logging.getLogger("texforge.api")

router = APIRouter()

T = TypeVar("T")


# =============================================================================
# Dependency providers
# =============================================================================

def get_correlation_id(
    x_correlation_id: Annotated[
        Optional[str],
        Header(description="Request trace ID"),
    ] = None,
) -> str:
    """Extract or generate a correlation ID for log traceability."""
    if x_correlation_id and len(x_correlation_id) > 128:
        return str(uuid.uuid4())
    return x_correlation_id or str(uuid.uuid4())


def get_settings_state(request: Request) -> Settings:
    return request.app.state.settings


def get_runner(request: Request) -> ProcessRunner:
    return request.app.state.runner


def get_build_pipeline(request: Request) -> BuildPipeline:
    return request.app.state.build_pipeline


def get_dependency_sync(request: Request) -> DependencySyncCoordinator:
    return request.app.state.dependency_sync


# =============================================================================
# Error mapping
# =============================================================================

def to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, UnsafeWorkspacePathError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, (ToolchainNotInstalledError, ExecutableNotFoundError)):
        return HTTPException(
            status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        )
    if isinstance(exc, (CompilationTimeoutError, ProcessTimeoutError)):
        return HTTPException(status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc))
    if isinstance(exc, WorkspaceError):
        return HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        )
    return HTTPException(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Request failed. See service logs for details.",
    )


REQUEST_LEVEL_ERRORS = (
    WorkspaceError,
    ToolchainNotInstalledError,
    CompilationTimeoutError,
    ExecutableNotFoundError,
    ProcessTimeoutError,
)


async def _guarded(
    operation: str,
    correlation_id: str,
    call: Callable[[], Awaitable[T]],
) -> T:
    try:
        return await call()
    except REQUEST_LEVEL_ERRORS as exc:
        logger.error("%s failed [%s]: %s", operation, correlation_id, exc)
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logger.exception("%s failed [%s]", operation, correlation_id)
        raise to_http_exception(exc) from exc


# =============================================================================
# Compilation
# =============================================================================

@router.post(
    "/compile",
    response_model=CompilationOutcome,
    summary="Compile a document and return structured diagnostics",
)
async def compile_document(
    body: BuildRequest,
    pipeline: Annotated[BuildPipeline, Depends(get_build_pipeline)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
) -> CompilationOutcome:
    """
    The artifact is returned base64-encoded in `artifact` when the
    compilation produced a PDF.
    """
    return await _guarded(
        "compile",
        correlation_id,
        lambda: pipeline.compile(body, request_id=correlation_id),
    )


async def run_streamed_build(
    pipeline: BuildPipeline,
    body: BuildRequest,
    correlation_id: str,
    emitter: MemoryQueueEventEmitter,
) -> None:
    """Drive one build for the SSE stream; the stream always ends."""
    try:
        await pipeline.compile(
            body, request_id=correlation_id, emitter=emitter
        )
    except Exception:
        # BUILD_FAILED already emitted and closed the stream
        logger.exception("compile/stream failed [%s]", correlation_id)
    finally:
        # Cancellation skips the terminal event
        await emitter.close()


@router.post(
    "/compile/stream",
    summary="Compile a document while streaming progress events (SSE)",
)
async def compile_document_stream(
    body: BuildRequest,
    pipeline: Annotated[BuildPipeline, Depends(get_build_pipeline)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
) -> StreamingResponse:
    """
    The final build_completed event carries the outcome without the
    artifact bytes and raw log; build_failed carries the error.
    """
    emitter = MemoryQueueEventEmitter()
    task = asyncio.create_task(
        run_streamed_build(pipeline, body, correlation_id, emitter)
    )

    async def event_stream():
        try:
            async for event in emitter.stream():
                yield event.to_sse_payload()
        finally:
            await task

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


# =============================================================================
# Toolchain
# =============================================================================

@router.get(
    "/toolchain",
    response_model=ToolchainAvailability,
    summary="Report which TeX engines are available",
)
async def toolchain_availability(
    runner: Annotated[ProcessRunner, Depends(get_runner)],
    settings: Annotated[Settings, Depends(get_settings_state)],
) -> ToolchainAvailability:
    return await check_toolchain(
        runner, timeout=settings.probe_timeout_seconds
    )


@router.get(
    "/toolchain/package-manager",
    summary="Report whether the package manager is available",
)
async def package_manager_availability(
    runner: Annotated[ProcessRunner, Depends(get_runner)],
    settings: Annotated[Settings, Depends(get_settings_state)],
) -> dict[str, Any]:
    available = await check_package_manager(
        runner,
        binary=settings.tlmgr_binary,
        timeout=settings.probe_timeout_seconds,
    )
    return {"binary": settings.tlmgr_binary, "available": available}


# =============================================================================
# Packages
# =============================================================================

@router.post(
    "/packages/detect",
    response_model=DependencyReport,
    summary="List the packages a document declares and their status",
)
async def detect_packages(
    body: DocumentSource,
    sync: Annotated[DependencySyncCoordinator, Depends(get_dependency_sync)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
) -> DependencyReport:
    return await _guarded(
        "packages/detect", correlation_id, lambda: sync.detect(body.content)
    )


@router.post(
    "/packages/auto-install",
    response_model=DependencySyncOutcome,
    summary="Install every declared package that is missing",
)
async def auto_install_missing(
    body: DocumentSource,
    sync: Annotated[DependencySyncCoordinator, Depends(get_dependency_sync)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
) -> DependencySyncOutcome:
    return await _guarded(
        "packages/auto-install",
        correlation_id,
        lambda: sync.sync_document(body.content, request_id=correlation_id),
    )


@router.get(
    "/packages/essential",
    response_model=List[DependencyStatus],
    summary="Report the status of the essential package set",
)
async def essential_packages(
    sync: Annotated[DependencySyncCoordinator, Depends(get_dependency_sync)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
) -> List[DependencyStatus]:
    return await _guarded(
        "packages/essential",
        correlation_id,
        lambda: sync.audit_essentials(ESSENTIAL_PACKAGES),
    )


@router.post(
    "/packages/essential/install",
    response_model=DependencySyncOutcome,
    summary="Install missing packages from the essential set",
)
async def install_essential_packages(
    sync: Annotated[DependencySyncCoordinator, Depends(get_dependency_sync)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
) -> DependencySyncOutcome:
    return await _guarded(
        "packages/essential/install",
        correlation_id,
        lambda: sync.sync_essentials(
            ESSENTIAL_PACKAGES, request_id=correlation_id
        ),
    )


@router.post(
    "/packages/{name}/install",
    response_model=DependencySyncOutcome,
    summary="Install a single package",
)
async def install_package(
    name: str,
    sync: Annotated[DependencySyncCoordinator, Depends(get_dependency_sync)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
) -> DependencySyncOutcome:
    if not is_valid_package_name(name):
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid package name: {name!r}",
        )

    return await _guarded(
        "packages/install",
        correlation_id,
        lambda: sync.install_package(name, request_id=correlation_id),
    )
