"""
Configuration for cleancut.

Per-request configuration is a frozen pydantic model that rejects unknown
fields. Settings can also be loaded from ``CLEANCUT_*`` environment variables
(and a ``.env`` file) through Pydantic Settings.
"""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cleancut.exceptions import ConfigurationError, generate_correlation_id

load_dotenv()


class PipelineConfig(BaseModel):
    """Immutable configuration for one extraction run.

    Usage:
        config = PipelineConfig(enable_external_extractor_stage=False, timeout_ms=2000)
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    enable_semantic_stage: bool = True
    enable_external_extractor_stage: bool = True
    enable_heuristic_stage: bool = True
    min_quality_score: float = Field(default=0, ge=0, le=100)
    timeout_ms: int = Field(default=5000, gt=0)
    debug: bool = False
    strict_quality_mode: bool = False

    @model_validator(mode="after")
    def _require_a_stage(self) -> "PipelineConfig":
        """Reject configurations that leave no generic stage to run."""
        if not (self.enable_semantic_stage or self.enable_external_extractor_stage or self.enable_heuristic_stage):
            raise ConfigurationError(
                "At least one of the semantic, external-extractor or heuristic stages must be enabled",
                setting="enable_*_stage",
                correlation_id=generate_correlation_id(),
            )
        return self


class ValidationOptions(BaseModel):
    """Options for the output quality validator."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    min_content_length: int = Field(default=500, ge=0)
    max_content_reduction: float = Field(default=0.9, ge=0, le=1)
    min_structure_preservation: float = Field(default=0.5, ge=0, le=1)
    quality_threshold: float = Field(default=70, ge=0, le=100)
    strict_mode: bool = False
    # Processing faster than this is treated as a sign of skipped work.
    # Lowered from 100ms, which flagged ordinary in-process runs.
    fast_processing_ms: float = Field(default=1.0, ge=0)


class PostProcessOptions(BaseModel):
    """Options for Markdown post-processing."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    cleanup_whitespace: bool = True
    normalize_headings: bool = True
    strip_empty_links: bool = True
    max_consecutive_newlines: int = Field(default=2, ge=1)


class CleancutSettings(BaseSettings):
    """Environment-backed defaults for the pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="CLEANCUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Logging level")

    enable_semantic_stage: bool = Field(default=True, description="Try article/main containers first")
    enable_external_extractor_stage: bool = Field(default=True, description="Run readability-lxml stage")
    enable_heuristic_stage: bool = Field(default=True, description="Run the scoring-engine fallback")
    min_quality_score: float = Field(default=0, ge=0, le=100, description="Minimum gate score to accept a stage")
    timeout_ms: int = Field(default=5000, gt=0, description="Pipeline time budget (ms)")
    debug: bool = Field(default=False, description="Log per-stage gate reports")
    strict_quality_mode: bool = Field(default=False, description="Require every output metric >= 70")

    def to_pipeline_config(self) -> PipelineConfig:
        """Build the per-request pipeline configuration."""
        return PipelineConfig(
            enable_semantic_stage=self.enable_semantic_stage,
            enable_external_extractor_stage=self.enable_external_extractor_stage,
            enable_heuristic_stage=self.enable_heuristic_stage,
            min_quality_score=self.min_quality_score,
            timeout_ms=self.timeout_ms,
            debug=self.debug,
            strict_quality_mode=self.strict_quality_mode,
        )


@lru_cache
def get_settings() -> CleancutSettings:
    """Get cached settings instance."""
    return CleancutSettings()


def load_pipeline_config() -> PipelineConfig:
    """
    Load pipeline configuration from environment variables.

    Returns:
        PipelineConfig with validated settings.

    Raises:
        ConfigurationError: If every generic stage is disabled.
    """
    return get_settings().to_pipeline_config()
