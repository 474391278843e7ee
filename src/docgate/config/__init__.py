"""Configuration module for docgate."""

from docgate.config.settings import (
    AdmissionConfig,
    DocgateSettings,
    EngineConfig,
    PipelineConfig,
    WorkspaceConfig,
    default_engines,
    get_settings,
    reload_settings,
)

__all__ = [
    "AdmissionConfig",
    "DocgateSettings",
    "EngineConfig",
    "PipelineConfig",
    "WorkspaceConfig",
    "default_engines",
    "get_settings",
    "reload_settings",
]
