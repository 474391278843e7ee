"""Composition root: builds the pipeline from settings."""

from __future__ import annotations

from typing import Any

from docgate.config.settings import DocgateSettings, EngineConfig
from docgate.core.admission import AdmissionController
from docgate.core.fallback import FallbackCoordinator
from docgate.core.pipeline import CleanupManager
from docgate.core.router import ConversionRouter
from docgate.core.workspace import WorkspaceManager
from docgate.engines.descriptor import EngineDescriptor
from docgate.engines.executor import EngineExecutor
from docgate.engines.libreoffice import is_executable_available, resolve_executable
from docgate.utils.logging import get_logger

log = get_logger(__name__)


def build_descriptors(engines: list[EngineConfig]) -> list[EngineDescriptor]:
    """Turn enabled engine configurations into descriptors.

    Raises:
        ConfigurationError: If an argument template is invalid
    """
    descriptors = []
    for config in engines:
        if not config.enabled:
            log.debug("Engine disabled, skipping", engine=config.name)
            continue
        descriptors.append(EngineDescriptor.from_config(config, resolve_executable(config)))
    return descriptors


def build_router(settings: DocgateSettings) -> ConversionRouter:
    return ConversionRouter(build_descriptors(settings.engines))


def create_pipeline(
    settings: DocgateSettings, admission: AdmissionController | None = None
) -> CleanupManager:
    """Wire the pipeline components for one process.

    Args:
        settings: Loaded settings
        admission: Existing admission gate to share (a new one is created if omitted)

    Returns:
        Ready-to-use ``CleanupManager``
    """
    if admission is None:
        admission = AdmissionController(
            max_concurrent=settings.admission.max_concurrent_conversions,
            max_queue_size=settings.admission.max_queue_size,
        )
    router = build_router(settings)
    executor = EngineExecutor(
        diagnostic_limit=settings.pipeline.diagnostic_limit,
        kill_grace=settings.pipeline.kill_grace,
    )
    log.debug(
        "Pipeline created",
        engines=[engine.name for engine in router.engines],
        max_concurrent=admission.max_concurrent,
        max_queue_size=admission.max_queue_size,
    )
    return CleanupManager(
        admission=admission,
        workspaces=WorkspaceManager(settings.workspace.temp_root),
        router=router,
        coordinator=FallbackCoordinator(executor),
        outer_timeout=settings.pipeline.outer_timeout,
        result_dir=settings.workspace.result_dir,
        acquire_timeout=settings.admission.acquire_timeout,
    )


def describe_capabilities(settings: DocgateSettings) -> dict[str, Any]:
    """Engines, their availability and the route table, for display or health output."""
    router = build_router(settings)
    engines = [
        {
            "name": engine.name,
            "kind": engine.kind,
            "priority": engine.priority,
            "timeout": engine.timeout,
            "available": is_executable_available(engine.executable),
            "conversions": len(engine.conversions),
        }
        for engine in router.engines
    ]
    routes = {
        f"{source}->{target}": names
        for (source, target), names in router.supported_conversions().items()
    }
    return {
        "engines": engines,
        "routes": routes,
        "admission": {
            "max_concurrent_conversions": settings.admission.max_concurrent_conversions,
            "max_queue_size": settings.admission.max_queue_size,
        },
        "outer_timeout": settings.pipeline.outer_timeout,
    }
