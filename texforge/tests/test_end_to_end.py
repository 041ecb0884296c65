"""
Real-toolchain smoke tests.

Skipped unless a TeX engine is on PATH; they exercise actual
subprocesses rather than the scripted runner.
"""

import io
import shutil

import pikepdf
import pytest

from texforge.app.coordinator.build_pipeline import BuildPipeline
from texforge.app.schemas.compilation import BuildRequest, Engine
from texforge.app.services.latex import LaTeXCompiler
from texforge.app.services.process_runner import AsyncioProcessRunner

pytestmark = [
    pytest.mark.anyio,
    pytest.mark.skipif(
        shutil.which("pdflatex") is None,
        reason="pdflatex is not installed",
    ),
]


def _pipeline(tmp_path) -> BuildPipeline:
    return BuildPipeline(
        compiler=LaTeXCompiler(runner=AsyncioProcessRunner(), timeout=120),
        default_engine=Engine.PDFLATEX,
        workspace_parent=tmp_path,
    )


async def test_minimal_document_compiles(tmp_path):
    request = BuildRequest(
        content=(
            "\\documentclass{article}\n"
            "\\begin{document}\n"
            "\\tableofcontents\n"
            "\\section{Hello}\n"
            "\\input{chapters/body}\n"
            "\\end{document}\n"
        ),
        files={"chapters/body.tex": "Body text."},
    )

    outcome = await _pipeline(tmp_path).compile(request)

    assert outcome.success is True
    assert outcome.passes_executed == 2
    assert outcome.errors == []
    with pikepdf.open(io.BytesIO(outcome.artifact)) as pdf:
        assert len(pdf.pages) == 1
    assert list(tmp_path.iterdir()) == []


async def test_undefined_control_sequence_is_diagnosed(tmp_path):
    request = BuildRequest(
        content=(
            "\\documentclass{article}\n"
            "\\begin{document}\n"
            "\\badcommand\n"
            "\\end{document}\n"
        )
    )

    outcome = await _pipeline(tmp_path).compile(request)

    assert outcome.success is False
    assert outcome.artifact is None
    assert outcome.passes_executed == 1
    assert any(e.line == 3 for e in outcome.errors)
