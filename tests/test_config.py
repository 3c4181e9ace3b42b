"""Tests for GraphenConfig layering and validation."""

import os

import pytest

from graphen.config import GraphenConfig
from graphen.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("GRAPHEN_"):
            monkeypatch.delenv(name)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


class TestDefaults:
    """Built-in defaults."""

    def test_defaults(self):
        """Defaults match the documented values."""
        config = GraphenConfig()
        assert config.cache_dir == "data/cache"
        assert config.storage_path == "data/graph"
        assert config.chunk_size == 1500
        assert config.chunk_overlap == 200
        assert config.max_chunks_per_document == 500
        assert config.max_estimated_tokens == 500_000
        assert config.extraction_concurrency == 5
        assert config.embedding_concurrency == 5
        assert config.llm_max_concurrent == 5
        assert config.llm_max_retries == 3
        assert config.llm_retry_delay == 1.0
        assert config.llm_requests_per_minute == 30
        assert config.llm_timeout == 60.0
        assert config.log_level == "INFO"
        assert config.openai_api_key is None

    def test_unknown_option(self):
        """Typos in keyword overrides are rejected."""
        with pytest.raises(ValueError, match="Unknown configuration option"):
            GraphenConfig(chunk_sise=10)


class TestEnvironment:
    """Environment variable layer."""

    def test_env_overrides_defaults(self, monkeypatch):
        """GRAPHEN_* variables are converted to the attribute type."""
        monkeypatch.setenv("GRAPHEN_CHUNK_SIZE", "800")
        monkeypatch.setenv("GRAPHEN_LLM_RETRY_DELAY", "0.25")
        monkeypatch.setenv("GRAPHEN_CACHE_DIR", "/tmp/graphen-cache")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        config = GraphenConfig()

        assert config.chunk_size == 800
        assert config.llm_retry_delay == 0.25
        assert config.cache_dir == "/tmp/graphen-cache"
        assert config.openai_api_key == "sk-test"

    def test_kwargs_override_env(self, monkeypatch):
        """Explicit arguments win over the environment."""
        monkeypatch.setenv("GRAPHEN_CHUNK_SIZE", "800")
        assert GraphenConfig(chunk_size=900).chunk_size == 900

    def test_bad_env_value(self, monkeypatch):
        """Unconvertible values raise ConfigurationError naming the variable."""
        monkeypatch.setenv("GRAPHEN_LLM_MAX_RETRIES", "many")
        with pytest.raises(ConfigurationError, match="GRAPHEN_LLM_MAX_RETRIES"):
            GraphenConfig()


class TestValidate:
    """Range checks."""

    def test_valid_returns_self(self):
        """validate() chains."""
        config = GraphenConfig()
        assert config.validate() is config

    @pytest.mark.parametrize(
        "overrides",
        [
            {"chunk_size": 0},
            {"chunk_size": 100, "chunk_overlap": 100},
            {"chunk_overlap": -1},
            {"max_chunks_per_document": 0},
            {"max_estimated_tokens": 0},
            {"llm_max_concurrent": 0},
            {"llm_requests_per_minute": 0},
            {"llm_max_retries": -1},
            {"llm_retry_delay": -0.5},
        ],
    )
    def test_invalid(self, overrides):
        """Out-of-range values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            GraphenConfig(**overrides).validate()


class TestFiles:
    """TOML file layer."""

    def test_from_file_sections(self, tmp_path):
        """Sections are flattened with their prefixes."""
        path = tmp_path / "graphen.toml"
        path.write_text(
            "[paths]\n"
            'cache_dir = "/var/cache/graphen"\n'
            "\n"
            "[chunking]\n"
            "size = 1000\n"
            "overlap = 100\n"
            "\n"
            "[llm]\n"
            'model = "gpt-4o"\n'
            "requests_per_minute = 60\n"
            "\n"
            "[embedding]\n"
            'model = "text-embedding-3-large"\n'
        )

        config = GraphenConfig.from_file(path)

        assert config.cache_dir == "/var/cache/graphen"
        assert config.chunk_size == 1000
        assert config.chunk_overlap == 100
        assert config.llm_model == "gpt-4o"
        assert config.llm_requests_per_minute == 60
        assert config.embedding_model == "text-embedding-3-large"

    def test_env_outranks_file(self, tmp_path, monkeypatch):
        """Environment variables win over file values."""
        path = tmp_path / "graphen.toml"
        path.write_text("[chunking]\nsize = 1000\n")
        monkeypatch.setenv("GRAPHEN_CHUNK_SIZE", "700")

        assert GraphenConfig.from_file(path).chunk_size == 700

    def test_missing_file(self, tmp_path):
        """A missing file is an error."""
        with pytest.raises(FileNotFoundError):
            GraphenConfig.from_file(tmp_path / "nope.toml")

    def test_round_trip(self, tmp_path):
        """to_file output loads back to the same values, without secrets."""
        path = tmp_path / "out" / "graphen.toml"
        original = GraphenConfig(
            chunk_size=1200,
            chunk_overlap=150,
            llm_requests_per_minute=90,
            embed_chunks=False,
            openai_api_key="sk-secret",
        )

        original.to_file(path)
        loaded = GraphenConfig.from_file(path)

        assert "sk-secret" not in path.read_text()
        assert loaded.chunk_size == 1200
        assert loaded.chunk_overlap == 150
        assert loaded.llm_requests_per_minute == 90
        assert loaded.embed_chunks is False


class TestWithOverrides:
    """Copy-with-changes."""

    def test_copy_is_independent(self):
        """Overrides do not touch the original."""
        base = GraphenConfig(chunk_size=1000)
        derived = base.with_overrides(chunk_size=500, chunk_overlap=50)

        assert derived.chunk_size == 500
        assert derived.chunk_overlap == 50
        assert base.chunk_size == 1000
        assert derived.llm_model == base.llm_model

    def test_unknown_key(self):
        """Unknown keys are rejected."""
        with pytest.raises(ValueError):
            GraphenConfig().with_overrides(nope=1)
