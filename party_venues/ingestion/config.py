"""
Pipeline Configuration Module
=============================

Loads per-stage pipeline settings from a YAML file. Every section is
optional; missing values fall back to the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_DENYLIST = [
    "facebook.com",
    "youtube.com",
    "instagram.com",
    "twitter.com",
    "yelp.com",
    "tripadvisor.",
    "google.com",
    "wikipedia.org",
    "indeed.com",
    "reed.co.uk",
    "gumtree.com",
]

DEFAULT_CANDIDATE_PATHS = ["/", "/parties", "/kids-parties", "/birthday-parties", "/pricing", "/packages"]

DEFAULT_KEYWORDS = ["party", "birthday", "package", "booking"]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class DiscoveryConfig:
    """Settings for the URL discovery stage."""

    provider: str = "duckduckgo"
    queries: list[str] = field(default_factory=list)
    max_results_per_query: int = 10
    query_delay_seconds: float = 2.0
    request_timeout: int = 20
    denylist: list[str] = field(default_factory=lambda: list(DEFAULT_DENYLIST))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DiscoveryConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            provider=data.get("provider", "duckduckgo"),
            queries=list(data.get("queries", [])),
            max_results_per_query=int(data.get("max_results_per_query", 10)),
            query_delay_seconds=float(data.get("query_delay_seconds", 2.0)),
            request_timeout=int(data.get("request_timeout", 20)),
            denylist=list(data.get("denylist", DEFAULT_DENYLIST)),
        )


@dataclass
class ScraperConfig:
    """Settings for the page scraper stage."""

    candidate_paths: list[str] = field(default_factory=lambda: list(DEFAULT_CANDIDATE_PATHS))
    keywords: list[str] = field(default_factory=lambda: list(DEFAULT_KEYWORDS))
    user_agent: str = DEFAULT_USER_AGENT
    page_timeout_seconds: float = 30.0
    settle_delay_seconds: float = 2.0
    wait_until: str = "networkidle"
    batch_size: int = 3
    max_items_per_run: int = 50

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ScraperConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            candidate_paths=list(data.get("candidate_paths", DEFAULT_CANDIDATE_PATHS)),
            keywords=list(data.get("keywords", DEFAULT_KEYWORDS)),
            user_agent=data.get("user_agent", DEFAULT_USER_AGENT),
            page_timeout_seconds=float(data.get("page_timeout_seconds", 30.0)),
            settle_delay_seconds=float(data.get("settle_delay_seconds", 2.0)),
            wait_until=data.get("wait_until", "networkidle"),
            batch_size=int(data.get("batch_size", 3)),
            max_items_per_run=int(data.get("max_items_per_run", 50)),
        )


@dataclass
class ExtractionConfig:
    """Settings for the extraction stage."""

    max_content_chars: int = 8000
    temperature: float = 0.1
    max_tokens: int = 2000
    batch_size: int = 10
    item_delay_seconds: float = 1.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ExtractionConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            max_content_chars=int(data.get("max_content_chars", 8000)),
            temperature=float(data.get("temperature", 0.1)),
            max_tokens=int(data.get("max_tokens", 2000)),
            batch_size=int(data.get("batch_size", 10)),
            item_delay_seconds=float(data.get("item_delay_seconds", 1.0)),
        )


@dataclass
class ReviewConfig:
    """Confidence bands and approval policy."""

    high_confidence_threshold: float = 0.8
    low_confidence_threshold: float = 0.5
    publish_on_approve: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ReviewConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            high_confidence_threshold=float(data.get("high_confidence_threshold", 0.8)),
            low_confidence_threshold=float(data.get("low_confidence_threshold", 0.5)),
            publish_on_approve=bool(data.get("publish_on_approve", False)),
        )


@dataclass
class PipelineConfig:
    """Top-level pipeline configuration."""

    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    scraper: ScraperConfig = field(default_factory=ScraperConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    config_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PipelineConfig:
        """Create from dictionary."""
        data = data or {}
        return cls(
            discovery=DiscoveryConfig.from_dict(data.get("discovery")),
            scraper=ScraperConfig.from_dict(data.get("scraper")),
            extraction=ExtractionConfig.from_dict(data.get("extraction")),
            review=ReviewConfig.from_dict(data.get("review")),
        )

    @classmethod
    def load(cls, config_path: Path | str) -> PipelineConfig:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the pipeline.yaml file

        Returns:
            The loaded PipelineConfig
        """
        config_path = Path(config_path).expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f)

        config = cls.from_dict(data)
        config.config_path = config_path
        return config


# Global config instance
_default_config: PipelineConfig | None = None


def get_default_config() -> PipelineConfig:
    """
    Get the default pipeline configuration.

    Loads configuration from the path specified in PIPELINE_CONFIG_PATH
    environment variable, or falls back to config/pipeline.yaml. Built-in
    defaults are used when no file exists.

    Returns:
        The global PipelineConfig instance
    """
    global _default_config

    if _default_config is None:
        config_path = os.environ.get("PIPELINE_CONFIG_PATH")
        if config_path:
            path = Path(config_path)
        else:
            project_root = Path(__file__).parent.parent.parent
            path = project_root / "config" / "pipeline.yaml"

        _default_config = PipelineConfig.load(path) if path.exists() else PipelineConfig()

    return _default_config


def reset_default_config() -> None:
    """Reset the default config (useful for testing)."""
    global _default_config
    _default_config = None
