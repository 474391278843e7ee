"""Pytest configuration and fixtures."""

import json
import sys
import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest

from docgate.config import get_settings
from docgate.config.settings import EngineConfig
from docgate.core.workspace import Workspace, WorkspaceManager
from docgate.engines.descriptor import EngineDescriptor

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Python script standing in for a real office engine
FAKE_ENGINE = PROJECT_ROOT / "tests" / "fixtures" / "fake_engine.py"


def fake_engine_args(mode: str) -> list[str]:
    """Argument template running the fake engine in ``mode``."""
    return [str(FAKE_ENGINE), mode, "{input}", "{output_dir}", "{stem}", "{target}"]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_engine() -> Callable[..., EngineDescriptor]:
    """Factory for descriptors backed by the fake engine."""

    def factory(
        name: str,
        mode: str = "success",
        timeout: float = 10.0,
        priority: int = 100,
        conversions: tuple[tuple[str, str], ...] = (("docx", "pdf"),),
    ) -> EngineDescriptor:
        return EngineDescriptor(
            name=name,
            executable=sys.executable,
            args=tuple(fake_engine_args(mode)),
            timeout=timeout,
            priority=priority,
            conversions=frozenset(conversions),
        )

    return factory


@pytest.fixture
def make_engine_config() -> Callable[..., EngineConfig]:
    """Factory for engine configuration entries backed by the fake engine."""

    def factory(
        name: str,
        mode: str = "success",
        timeout: float = 10.0,
        priority: int = 100,
        conversions: list[str] | None = None,
    ) -> EngineConfig:
        return EngineConfig(
            name=name,
            kind="command",
            executable=sys.executable,
            args=fake_engine_args(mode),
            timeout=timeout,
            priority=priority,
            conversions=conversions or ["docx->pdf"],
        )

    return factory


@pytest.fixture
def workspace_manager(temp_dir: Path) -> WorkspaceManager:
    """Workspace manager rooted in a temporary directory."""
    return WorkspaceManager(temp_dir / "work")


@pytest.fixture
async def workspace(workspace_manager: WorkspaceManager):
    """A populated workspace for ``Report (FINAL) v2.docx``."""
    ws: Workspace = await workspace_manager.create(
        "260101120000-abcdef01", "Report (FINAL) v2.docx", b"source document"
    )
    yield ws
    workspace_manager.destroy(ws)


@pytest.fixture
def isolated_config(temp_dir: Path, monkeypatch: pytest.MonkeyPatch):
    """Run in an empty directory with a fresh settings cache.

    Returns a writer that stores a configuration dict as ``docgate.yaml``
    (JSON is valid YAML).
    """
    monkeypatch.chdir(temp_dir)
    for name in ("DOCGATE_SOFFICE", "DOCGATE_LOG_LEVEL", "DOCGATE_ENGINES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DOCGATE_LOG_DIR", str(temp_dir / "logs"))
    monkeypatch.setenv("DOCGATE_WORKSPACE__TEMP_ROOT", str(temp_dir / "work"))
    get_settings.cache_clear()

    def write(config: dict) -> Path:
        path = temp_dir / "docgate.yaml"
        path.write_text(json.dumps(config), encoding="utf-8")
        get_settings.cache_clear()
        return path

    yield write
    get_settings.cache_clear()
