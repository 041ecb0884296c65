import asyncio

import pytest

from texforge.app.schemas.dependencies import DeclaredDependency
from texforge.app.services.dependency_resolver import DependencyResolver
from texforge.app.services.process_runner import (
    ExecutableNotFoundError,
    ProcessTimeoutError,
)
from texforge.tests.fakes import FakeProcessRunner, FakeTexRegistry, completed

pytestmark = pytest.mark.anyio


def _resolver(registry: FakeTexRegistry, **kwargs) -> tuple:
    runner = registry.attach(FakeProcessRunner())
    return DependencyResolver(runner=runner, **kwargs), runner


async def test_style_file_marks_package_installed():
    resolver, runner = _resolver(FakeTexRegistry(["amsmath.sty"]))

    assert await resolver.is_installed("amsmath") is True
    # The class-file lookup is not needed once the style file is found.
    assert [c.argv for c in runner.calls] == [("kpsewhich", "amsmath.sty")]


async def test_class_file_fallback():
    resolver, runner = _resolver(FakeTexRegistry(["beamer.cls"]))

    assert await resolver.is_installed("beamer") is True
    assert [c.argv for c in runner.calls] == [
        ("kpsewhich", "beamer.sty"),
        ("kpsewhich", "beamer.cls"),
    ]


async def test_package_missing_when_neither_file_exists():
    resolver, _ = _resolver(FakeTexRegistry())

    assert await resolver.is_installed("nonexistentpkg") is False


async def test_resolution_is_unique_and_ordered_by_first_declaration():
    resolver, _ = _resolver(FakeTexRegistry(["graphicx.sty"]))

    statuses = await resolver.resolve(
        [
            DeclaredDependency(name="nonexistentpkg"),
            DeclaredDependency(name="graphicx", options="draft"),
            DeclaredDependency(name="nonexistentpkg", options="late"),
        ]
    )

    assert [(s.name, s.installed, s.options) for s in statuses] == [
        ("nonexistentpkg", False, None),
        ("graphicx", True, "draft"),
    ]


async def test_resolution_reflects_registry_at_call_time():
    registry = FakeTexRegistry()
    resolver, _ = _resolver(registry)

    first = await resolver.resolve_names(["hyperref"])
    registry.files.add("hyperref.sty")
    second = await resolver.resolve_names(["hyperref"])

    assert first[0].installed is False
    assert second[0].installed is True


async def test_repeated_resolution_is_stable():
    resolver, _ = _resolver(FakeTexRegistry(["amsmath.sty"]))
    names = ["amsmath", "nonexistentpkg"]

    assert await resolver.resolve_names(names) == await resolver.resolve_names(
        names
    )


async def test_lookup_timeout_is_forwarded():
    resolver, runner = _resolver(FakeTexRegistry(["amsmath.sty"]), timeout=7)

    await resolver.is_installed("amsmath")

    assert runner.calls[0].timeout == 7


async def test_configured_lookup_binary_is_used():
    registry = FakeTexRegistry(["amsmath.sty"])
    runner = FakeProcessRunner({"/opt/tex/bin/kpsewhich": registry.kpsewhich})
    resolver = DependencyResolver(
        runner=runner, lookup_binary="/opt/tex/bin/kpsewhich"
    )

    assert await resolver.is_installed("amsmath") is True


async def test_missing_lookup_tool_is_fatal():
    resolver = DependencyResolver(runner=FakeProcessRunner())

    with pytest.raises(ExecutableNotFoundError):
        await resolver.resolve_names(["amsmath"])


async def test_lookup_timeout_is_fatal():
    def hanging(argv, cwd):
        raise ProcessTimeoutError(argv[0], 1)

    resolver = DependencyResolver(
        runner=FakeProcessRunner({"kpsewhich": hanging})
    )

    with pytest.raises(ProcessTimeoutError):
        await resolver.resolve_names(["amsmath"])


async def test_concurrent_resolution_keeps_declaration_order():
    registry = FakeTexRegistry(["b.sty", "d.cls"])
    resolver, runner = _resolver(registry, concurrency=4)

    statuses = await resolver.resolve_names(["a", "b", "c", "d"])

    assert [(s.name, s.installed) for s in statuses] == [
        ("a", False),
        ("b", True),
        ("c", False),
        ("d", True),
    ]


async def test_concurrency_bound_is_respected():
    in_flight = 0
    peak = 0

    class SlowRunner:
        async def run(self, argv, *, cwd=None, timeout=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return completed(argv)

    resolver = DependencyResolver(runner=SlowRunner(), concurrency=2)

    statuses = await resolver.resolve_names([f"pkg{i}" for i in range(6)])

    assert all(s.installed for s in statuses)
    assert peak == 2


def test_concurrency_must_be_positive():
    with pytest.raises(ValueError):
        DependencyResolver(runner=FakeProcessRunner(), concurrency=0)
