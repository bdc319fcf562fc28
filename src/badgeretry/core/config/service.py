"""Top-level service configuration and YAML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from badgeretry.core.config.retry import RetryPolicyConfig
from badgeretry.core.config.scoring import RecommendationConfig, ScoringPolicy
from badgeretry.core.exceptions import ConfigurationError


class HistoryConfig(BaseModel):
    """Where attempt histories are persisted for audit.

    The in-memory service state is authoritative; a backend only mirrors it.
    """

    backend: Literal["memory", "json", "sqlite"] = Field(
        default="memory",
        description="Persistence backend for attempt histories",
    )
    path: Path | None = Field(
        default=None,
        description="Directory (json) or database file (sqlite)",
    )
    keep_resolved: bool = Field(
        default=False,
        description="Keep persisted history after a claim succeeds or is abandoned",
    )

    @model_validator(mode="after")
    def _check_path_required(self) -> HistoryConfig:
        if self.backend != "memory" and self.path is None:
            raise ValueError(f"path is required when backend='{self.backend}'")
        return self


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    format: Literal["json", "console", "both"] = Field(default="console")
    file_path: Path | None = Field(default=None)
    max_file_size_mb: int = Field(default=50, gt=0, le=1000)
    backup_count: int = Field(default=5, ge=0, le=100)
    include_timestamps: bool = Field(default=True)
    include_context: bool = Field(
        default=True,
        description="Include claim context (claim_id, run_id, tier) in log entries",
    )

    @model_validator(mode="after")
    def _check_file_path_required(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError("file_path is required when format='both'")
        return self


class BadgeRetryConfig(BaseModel):
    """Complete configuration for a retry service instance.

    Every section is optional; an empty file yields the defaults.

    Example:
        retry:
          global_max_retries: 5
        scoring:
          degrading_penalty: 0.25
        history:
          backend: json
          path: ./.badge-retry/history
    """

    retry: RetryPolicyConfig = Field(default_factory=RetryPolicyConfig)
    scoring: ScoringPolicy = Field(default_factory=ScoringPolicy)
    recommendation: RecommendationConfig = Field(default_factory=RecommendationConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> BadgeRetryConfig:
        """Load configuration from a YAML file.

        Raises:
            ConfigurationError: If the file is missing or not valid YAML.
            pydantic.ValidationError: If values fail validation.
        """
        try:
            with open(path) as f:
                text = f.read()
        except FileNotFoundError:
            raise ConfigurationError(f"Config file not found: {path}") from None
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> BadgeRetryConfig:
        """Load configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError("Config root must be a mapping")
        return cls.model_validate(data)
