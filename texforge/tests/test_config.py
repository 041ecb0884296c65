import pytest
from pydantic import ValidationError

from texforge.app.config import Settings
from texforge.app.schemas.compilation import Engine


def test_defaults(monkeypatch):
    for name in (
        "TEXFORGE_DEFAULT_ENGINE",
        "TEXFORGE_LOG_LEVEL",
        "TEXFORGE_WORKSPACE_PARENT",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.default_engine is Engine.XELATEX
    assert settings.kpsewhich_binary == "kpsewhich"
    assert settings.tlmgr_binary == "tlmgr"
    assert settings.resolve_concurrency == 1
    assert settings.workspace_parent is None
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("TEXFORGE_DEFAULT_ENGINE", "lualatex")
    monkeypatch.setenv("TEXFORGE_COMPILE_TIMEOUT_SECONDS", "45")
    monkeypatch.setenv("TEXFORGE_WORKSPACE_PARENT", str(tmp_path))
    monkeypatch.setenv("TEXFORGE_LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.default_engine is Engine.LUALATEX
    assert settings.compile_timeout_seconds == 45
    assert settings.workspace_parent == tmp_path
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "overrides",
    [
        {"default_engine": "context"},
        {"compile_timeout_seconds": 0},
        {"resolve_concurrency": 0},
        {"resolve_concurrency": 9},
        {"log_level": "verbose"},
        {"tlmgr_binary": ""},
    ],
)
def test_invalid_values_fail_fast(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_workspace_parent_must_be_a_directory(tmp_path):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, workspace_parent=tmp_path / "missing")


def test_settings_are_frozen():
    settings = Settings(_env_file=None)

    with pytest.raises(ValidationError):
        settings.log_level = "DEBUG"
