"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from docgate.config.constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_DIAGNOSTIC_LIMIT,
    DEFAULT_ENGINE_TIMEOUT,
    DEFAULT_KILL_GRACE,
    DEFAULT_LOG_DIR,
    DEFAULT_MAX_CONCURRENT_CONVERSIONS,
    DEFAULT_MAX_QUEUE_SIZE,
    DEFAULT_ORPHAN_MAX_AGE,
    DEFAULT_OUTER_TIMEOUT,
    DEFAULT_RESULT_DIR,
    DEFAULT_TEMP_ROOT,
    LIBREOFFICE_ARGS,
    LIBREOFFICE_CONVERSIONS,
    LIBREOFFICE_FORMAT_TOKENS,
    PANDOC_ARGS,
    PANDOC_CONVERSIONS,
    USER_CONFIG_FILE,
)


class AdmissionConfig(BaseModel):
    """Concurrency gate configuration."""

    max_concurrent_conversions: int = Field(default=DEFAULT_MAX_CONCURRENT_CONVERSIONS, ge=1)
    max_queue_size: int = Field(default=DEFAULT_MAX_QUEUE_SIZE, ge=0)
    acquire_timeout: float | None = Field(default=None, gt=0)  # None waits until admitted


class WorkspaceConfig(BaseModel):
    """Per-request workspace configuration."""

    temp_root: str = DEFAULT_TEMP_ROOT
    result_dir: str = DEFAULT_RESULT_DIR
    orphan_max_age: float = Field(default=DEFAULT_ORPHAN_MAX_AGE, gt=0)


class PipelineConfig(BaseModel):
    """Fallback chain configuration."""

    outer_timeout: float = Field(default=DEFAULT_OUTER_TIMEOUT, gt=0)
    diagnostic_limit: int = Field(default=DEFAULT_DIAGNOSTIC_LIMIT, ge=0)
    kill_grace: float = Field(default=DEFAULT_KILL_GRACE, ge=0)


class EngineConfig(BaseModel):
    """Configuration for a single conversion engine."""

    name: str
    kind: Literal["libreoffice", "pandoc", "command"] = "command"
    executable: str | None = None  # None resolves from kind/name
    args: list[str] = Field(default_factory=list)
    timeout: float = Field(default=DEFAULT_ENGINE_TIMEOUT, gt=0)
    priority: int = 100  # Lower runs first
    conversions: list[str] = Field(default_factory=list)  # "docx->pdf"
    format_tokens: dict[str, str] = Field(default_factory=dict)
    enabled: bool = True

    @field_validator("conversions")
    @classmethod
    def _check_conversions(cls, value: list[str]) -> list[str]:
        for pair in value:
            source, sep, target = pair.partition("->")
            if not sep or not source.strip() or not target.strip():
                raise ValueError(f"conversion must look like 'src->dst', got {pair!r}")
        return value


def default_engines() -> list[EngineConfig]:
    """Engine table used when the configuration declares none."""
    return [
        EngineConfig(
            name="libreoffice",
            kind="libreoffice",
            args=list(LIBREOFFICE_ARGS),
            timeout=DEFAULT_ENGINE_TIMEOUT,
            priority=10,
            conversions=list(LIBREOFFICE_CONVERSIONS),
            format_tokens=dict(LIBREOFFICE_FORMAT_TOKENS),
        ),
        EngineConfig(
            name="pandoc",
            kind="pandoc",
            args=list(PANDOC_ARGS),
            timeout=60.0,
            priority=50,
            conversions=list(PANDOC_CONVERSIONS),
        ),
    ]


class DocgateSettings(BaseSettings):
    """Main configuration class for docgate."""

    model_config = SettingsConfigDict(
        env_prefix="DOCGATE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            # Later files override earlier ones key by key
            YamlConfigSettingsSource(
                settings_cls, yaml_file=[USER_CONFIG_FILE, DEFAULT_CONFIG_FILE]
            ),
            file_secret_settings,
        )

    # Sub-configurations
    admission: AdmissionConfig = Field(default_factory=AdmissionConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    engines: list[EngineConfig] = Field(default_factory=default_engines)

    # Global settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR
    json_logs: bool = False

    @model_validator(mode="after")
    def _unique_engine_names(self) -> "DocgateSettings":
        names = [engine.name for engine in self.engines]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate engine names: {', '.join(duplicates)}")
        return self

    def config_warnings(self) -> list[str]:
        """Non-fatal issues worth surfacing to an operator."""
        warnings = []
        if self.admission.max_queue_size == 0:
            warnings.append("max_queue_size is 0: requests beyond the active limit are rejected")

        enabled = [engine for engine in self.engines if engine.enabled]
        if not enabled:
            warnings.append("no engines enabled: every conversion will be unsupported")
        else:
            longest = max(engine.timeout for engine in enabled)
            if self.pipeline.outer_timeout < longest:
                warnings.append(
                    f"outer_timeout ({self.pipeline.outer_timeout}s) is shorter than the "
                    f"longest engine timeout ({longest}s)"
                )
        return warnings


@lru_cache
def get_settings() -> DocgateSettings:
    """Get cached settings instance."""
    return DocgateSettings()


def reload_settings() -> DocgateSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
