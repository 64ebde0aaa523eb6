"""
Pipeline configuration loaded from YAML with environment overrides.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import PriorityTier, Source


logger = logging.getLogger(__name__)


DEFAULT_SOURCE_PRIORITIES: Dict[Source, int] = {
    Source.SOCIAL_FEED: 10,
    Source.NEWS_FEED: 10,
    Source.REVIEW_SITE: 5,
    Source.WEB_SEARCH_RESULT: 1,
    Source.COMPETITOR_SITE: 1,
}


class QueueConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    base_delay_s: float = Field(default=2.0, ge=0.0)
    poll_interval_s: float = Field(default=0.5, gt=0.0)
    source_priorities: Dict[Source, int] = Field(
        default_factory=lambda: dict(DEFAULT_SOURCE_PRIORITIES)
    )


class ScoringConfig(BaseModel):
    trusted_sources: List[Source] = Field(default_factory=lambda: [Source.REVIEW_SITE])
    critical_at: int = 5
    high_at: int = 3
    medium_at: int = 1
    notify_tiers: List[PriorityTier] = Field(
        default_factory=lambda: [PriorityTier.HIGH, PriorityTier.CRITICAL]
    )


class PluginSpec(BaseModel):
    """A plugin class path ("module.ClassName") plus constructor kwargs."""
    model_config = ConfigDict(populate_by_name=True)

    class_path: str = Field(alias="class")
    kwargs: Dict[str, Any] = Field(default_factory=dict)


class AdaptersConfig(BaseModel):
    sentiment: PluginSpec = Field(
        default_factory=lambda: PluginSpec(class_path="lexicon.LexiconSentimentAnalyzer")
    )
    entities: PluginSpec = Field(
        default_factory=lambda: PluginSpec(class_path="lexicon.KeywordEntityExtractor")
    )
    timeout_s: float = Field(default=15.0, gt=0.0)


class StatsReportConfig(BaseModel):
    cron: Optional[str] = None
    interval_seconds: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _one_trigger(self) -> "StatsReportConfig":
        if self.cron and self.interval_seconds:
            raise ValueError("stats_report accepts either 'cron' or 'interval_seconds', not both")
        return self


class PipelineConfig(BaseModel):
    database: str = "compintel.db"
    workers: int = Field(default=4, ge=1)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    adapters: AdaptersConfig = Field(default_factory=AdaptersConfig)
    notifiers: List[PluginSpec] = Field(
        default_factory=lambda: [PluginSpec(class_path="log_sink.LogNotifier")]
    )
    stats_report: Optional[StatsReportConfig] = None


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    db_path = os.getenv("COMPINTEL_DB_PATH")
    if db_path:
        data["database"] = db_path

    workers = os.getenv("COMPINTEL_WORKERS")
    if workers:
        data["workers"] = int(workers)

    return data


def load_config(config_path: str = "pipeline.yml") -> PipelineConfig:
    """Load pipeline configuration from a YAML file.

    A missing file yields the defaults. Environment variables
    ``COMPINTEL_DB_PATH`` and ``COMPINTEL_WORKERS`` take precedence over the
    file. Provider credentials are read by the plugins themselves.
    """
    path = Path(config_path)
    data: Dict[str, Any] = {}

    if not path.exists():
        logger.warning(f"Pipeline config file not found: {config_path}, using defaults")
    else:
        with path.open() as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Top level of {config_path} must be a mapping")
        # Allow the settings to live under a "pipeline" key
        data = loaded.get("pipeline", loaded)

    return PipelineConfig.model_validate(_apply_env_overrides(dict(data)))
