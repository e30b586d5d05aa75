"""Tests for pipeline configuration loading."""

import tempfile
from pathlib import Path

import pytest
import yaml

from party_venues.ingestion.config import (
    DEFAULT_CANDIDATE_PATHS,
    DEFAULT_DENYLIST,
    PipelineConfig,
    get_default_config,
    reset_default_config,
)


class TestPipelineConfig:
    """Tests for PipelineConfig."""

    @pytest.fixture
    def config_file(self) -> str:
        """Create a temporary config file with partial settings."""
        config = {
            "discovery": {
                "provider": "serpapi",
                "queries": ["soft play party london"],
                "max_results_per_query": 5,
            },
            "scraper": {"batch_size": 2},
            "review": {"publish_on_approve": True},
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(config, f)
            return f.name

    def test_defaults(self) -> None:
        """Test built-in defaults."""
        config = PipelineConfig()

        assert config.discovery.provider == "duckduckgo"
        assert config.discovery.denylist == DEFAULT_DENYLIST
        assert config.scraper.candidate_paths == DEFAULT_CANDIDATE_PATHS
        assert config.scraper.batch_size == 3
        assert config.extraction.max_content_chars == 8000
        assert config.review.high_confidence_threshold == 0.8
        assert config.review.publish_on_approve is False

    def test_load_partial_file(self, config_file: str) -> None:
        """Test that missing values fall back to defaults."""
        config = PipelineConfig.load(config_file)

        assert config.discovery.provider == "serpapi"
        assert config.discovery.queries == ["soft play party london"]
        assert config.discovery.max_results_per_query == 5
        assert config.discovery.denylist == DEFAULT_DENYLIST
        assert config.scraper.batch_size == 2
        assert config.scraper.keywords == ["party", "birthday", "package", "booking"]
        assert config.extraction.batch_size == 10
        assert config.review.publish_on_approve is True
        assert config.config_path == Path(config_file).resolve()

    def test_load_missing_file(self) -> None:
        """Test loading a file that does not exist."""
        with pytest.raises(FileNotFoundError):
            PipelineConfig.load("/nonexistent/pipeline.yaml")

    def test_empty_file(self) -> None:
        """Test that an empty YAML file gives defaults."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("")

        config = PipelineConfig.load(f.name)

        assert config.scraper.max_items_per_run == 50

    def test_default_config_from_env(self, config_file: str, monkeypatch) -> None:
        """Test that PIPELINE_CONFIG_PATH selects the config file."""
        monkeypatch.setenv("PIPELINE_CONFIG_PATH", config_file)
        reset_default_config()

        config = get_default_config()

        assert config.discovery.provider == "serpapi"
        assert get_default_config() is config

    def test_shipped_config(self) -> None:
        """Test that the repository's pipeline.yaml loads."""
        path = Path(__file__).parent.parent / "config" / "pipeline.yaml"
        config = PipelineConfig.load(path)

        assert len(config.discovery.queries) > 20
        assert "facebook.com" in config.discovery.denylist
        assert "/parties" in config.scraper.candidate_paths
