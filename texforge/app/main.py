"""
FastAPI entrypoint for the texforge service.

Wires the process runner, dependency-sync coordinator and compile
pipeline once at startup and exposes them through the routes in
texforge.app.api.routes. The service is stateless between requests:
every build owns its own disposable workspace.
"""

import logging
import sys
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from texforge.app.api.routes import router
from texforge.app.config import Settings, get_settings
from texforge.app.coordinator.build_pipeline import BuildPipeline
from texforge.app.coordinator.dependency_sync import DependencySyncCoordinator
from texforge.app.services.dependency_installer import DependencyInstaller
from texforge.app.services.dependency_resolver import DependencyResolver
from texforge.app.services.latex import LaTeXCompiler
from texforge.app.services.process_runner import (
    AsyncioProcessRunner,
    ProcessRunner,
)

logger = logging.getLogger("texforge.main")


def get_app_version() -> str:
    """
    Resolve the installed distribution version, falling back when
    running from a source checkout.
    """
    try:
        return version("texforge")
    except PackageNotFoundError:
        return "0.1.0"


def build_dependency_sync(
    settings: Settings, runner: ProcessRunner
) -> DependencySyncCoordinator:
    return DependencySyncCoordinator(
        resolver=DependencyResolver(
            runner=runner,
            lookup_binary=settings.kpsewhich_binary,
            timeout=settings.lookup_timeout_seconds,
            concurrency=settings.resolve_concurrency,
        ),
        installer=DependencyInstaller(
            runner=runner,
            manager_binary=settings.tlmgr_binary,
            timeout=settings.install_timeout_seconds,
        ),
    )


def build_pipeline(
    settings: Settings,
    runner: ProcessRunner,
    dependency_sync: DependencySyncCoordinator,
) -> BuildPipeline:
    return BuildPipeline(
        compiler=LaTeXCompiler(
            runner=runner,
            timeout=settings.compile_timeout_seconds,
        ),
        dependency_sync=dependency_sync,
        default_engine=settings.default_engine,
        workspace_parent=settings.workspace_parent,
    )


def create_app(
    settings: Optional[Settings] = None,
    runner: Optional[ProcessRunner] = None,
) -> FastAPI:
    """
    Application factory.

    Tests pass explicit settings and a scripted runner; production uses
    environment settings and real subprocesses.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # --------------------------------------------------------------
        # Load and validate configuration (FAIL FAST)
        # --------------------------------------------------------------
        try:
            resolved_settings = settings or get_settings()
        except Exception:
            logger.exception("invalid_texforge_configuration")
            raise

        logging.basicConfig(
            level=resolved_settings.log_level,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

        logger.info(
            "texforge_startup version=%s default_engine=%s",
            get_app_version(),
            resolved_settings.default_engine.value,
        )

        resolved_runner = runner or AsyncioProcessRunner()
        dependency_sync = build_dependency_sync(
            resolved_settings, resolved_runner
        )

        app.state.settings = resolved_settings
        app.state.runner = resolved_runner
        app.state.dependency_sync = dependency_sync
        app.state.build_pipeline = build_pipeline(
            resolved_settings, resolved_runner, dependency_sync
        )

        try:
            yield
        finally:
            logger.info("texforge_shutdown")

    app = FastAPI(
        title="texforge",
        description=(
            "Document compilation with structured diagnostics and "
            "TeX package synchronization"
        ),
        version=get_app_version(),
        lifespan=lifespan,
    )

    app.include_router(router)

    @app.get(
        "/health",
        summary="Service health check",
    )
    def health_check() -> JSONResponse:
        """Simple health check endpoint."""
        return JSONResponse(
            content={
                "status": "ok",
                "service": "texforge",
                "version": app.version,
            }
        )

    return app


app = create_app()
