"""
GraphenConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> pipeline = DocumentPipeline(store, llm)

    >>> # Explicit configuration
    >>> config = GraphenConfig(chunk_size=800, chunk_overlap=100)
    >>> pipeline = DocumentPipeline(store, llm, config=config)

    >>> # From config file
    >>> config = GraphenConfig.from_file("./graphen.toml")

Environment Variables:
    GRAPHEN_CACHE_DIR - Pipeline checkpoint cache directory
    GRAPHEN_STORAGE_PATH - Graph store directory
    GRAPHEN_CHUNK_SIZE - Characters per chunk
    GRAPHEN_CHUNK_OVERLAP - Characters shared by adjacent chunks
    GRAPHEN_MAX_CHUNKS_PER_DOCUMENT - Hard cap on chunks per document
    GRAPHEN_MAX_ESTIMATED_TOKENS - Hard cap on estimated tokens per document
    GRAPHEN_EXTRACTION_CONCURRENCY - Max concurrent extraction calls per run
    GRAPHEN_EMBEDDING_CONCURRENCY - Max concurrent embedding calls per run
    GRAPHEN_LLM_MAX_CONCURRENT - Max concurrent LLM calls (global)
    GRAPHEN_LLM_MAX_RETRIES - Retries for transient LLM failures
    GRAPHEN_LLM_RETRY_DELAY - Base backoff delay in seconds
    GRAPHEN_LLM_REQUESTS_PER_MINUTE - Sliding-window request budget
    GRAPHEN_LLM_TIMEOUT - Per-attempt timeout in seconds
    GRAPHEN_LLM_MODEL - Chat model for extraction
    GRAPHEN_EMBEDDING_MODEL - Embedding model
    GRAPHEN_LOG_LEVEL - Logging level for the CLI
    OPENAI_API_KEY - OpenAI API key (standard name)
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, cast

from graphen.errors import ConfigurationError

# (env var, attribute, converter)
_ENV_SETTINGS: list[tuple[str, str, Any]] = [
    ("GRAPHEN_CACHE_DIR", "cache_dir", str),
    ("GRAPHEN_STORAGE_PATH", "storage_path", str),
    ("GRAPHEN_CHUNK_SIZE", "chunk_size", int),
    ("GRAPHEN_CHUNK_OVERLAP", "chunk_overlap", int),
    ("GRAPHEN_MAX_CHUNKS_PER_DOCUMENT", "max_chunks_per_document", int),
    ("GRAPHEN_MAX_ESTIMATED_TOKENS", "max_estimated_tokens", int),
    ("GRAPHEN_EXTRACTION_CONCURRENCY", "extraction_concurrency", int),
    ("GRAPHEN_EMBEDDING_CONCURRENCY", "embedding_concurrency", int),
    ("GRAPHEN_LLM_MAX_CONCURRENT", "llm_max_concurrent", int),
    ("GRAPHEN_LLM_MAX_RETRIES", "llm_max_retries", int),
    ("GRAPHEN_LLM_RETRY_DELAY", "llm_retry_delay", float),
    ("GRAPHEN_LLM_REQUESTS_PER_MINUTE", "llm_requests_per_minute", int),
    ("GRAPHEN_LLM_TIMEOUT", "llm_timeout", float),
    ("GRAPHEN_LLM_MODEL", "llm_model", str),
    ("GRAPHEN_EMBEDDING_MODEL", "embedding_model", str),
    ("GRAPHEN_LOG_LEVEL", "log_level", str),
]


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return cast(dict[str, Any], tomllib.load(f))


class GraphenConfig:
    """Configuration for the graphen ingestion pipeline."""

    # === Paths ===

    cache_dir: str = "data/cache"
    """Root of the per-document checkpoint cache"""

    storage_path: str = "data/graph"
    """Directory of the embedded graph store"""

    # === Chunking ===

    chunk_size: int = 1500
    """Characters per chunk"""

    chunk_overlap: int = 200
    """Characters shared by adjacent chunks (must be < chunk_size)"""

    # === Hard Limits ===

    max_chunks_per_document: int = 500
    """Documents producing more chunks fail before any extraction call"""

    max_estimated_tokens: int = 500_000
    """Documents estimated above this many tokens fail before any extraction call"""

    # === Processing Configuration ===

    extraction_concurrency: int = 5
    """Max concurrent extraction calls issued by one pipeline run"""

    embedding_concurrency: int = 5
    """Max concurrent embedding calls issued by one pipeline run"""

    embed_nodes: bool = True
    """Attach embeddings to resolved graph nodes"""

    embed_chunks: bool = True
    """Attach embeddings to document chunks"""

    # === LLM Rate Limiting ===

    llm_max_concurrent: int = 5
    """Max in-flight LLM calls across every pipeline sharing the limiter"""

    llm_max_retries: int = 3
    """Retries for transient failures (429, 5xx, timeouts, connection resets)"""

    llm_retry_delay: float = 1.0
    """Base backoff in seconds; attempt n waits retry_delay * 2**(n-1)"""

    llm_requests_per_minute: int = 30
    """Dispatches allowed per sliding window"""

    llm_rate_window_seconds: float = 60.0
    """Length of the sliding rate window"""

    llm_timeout: float = 60.0
    """Per-attempt timeout in seconds (<= 0 disables it)"""

    # === Models ===

    llm_model: str = "gpt-4o-mini"
    """Chat model for entity/relation extraction"""

    embedding_model: str = "text-embedding-3-small"
    """Embedding model name"""

    openai_api_key: str | None = None

    # === Logging / Telemetry ===

    log_level: str = "INFO"
    """Root logging level used by the CLI"""

    cost_warn_threshold_usd: float | None = None
    """Optional warning threshold for per-run estimated cost"""

    # === Storage ===

    parquet_compression: str = "zstd"
    """Parquet compression: "zstd", "snappy", "gzip", "none" """

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        # Load from environment first
        self._load_from_env()

        # Apply explicit overrides
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        self.openai_api_key = os.getenv("OPENAI_API_KEY")

        for env_name, attr, convert in _ENV_SETTINGS:
            if value := os.getenv(env_name):
                try:
                    setattr(self, attr, convert(value))
                except ValueError as e:
                    raise ConfigurationError(
                        f"Invalid value for {env_name}: {value!r}", original_error=e
                    ) from e

    def validate(self) -> "GraphenConfig":
        """
        Check value ranges.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: If any value is out of range
        """
        if self.chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError(
                f"chunk_overlap must be in [0, chunk_size), got {self.chunk_overlap} "
                f"with chunk_size={self.chunk_size}"
            )
        positive = {
            "max_chunks_per_document": self.max_chunks_per_document,
            "max_estimated_tokens": self.max_estimated_tokens,
            "extraction_concurrency": self.extraction_concurrency,
            "embedding_concurrency": self.embedding_concurrency,
            "llm_max_concurrent": self.llm_max_concurrent,
            "llm_requests_per_minute": self.llm_requests_per_minute,
            "llm_rate_window_seconds": self.llm_rate_window_seconds,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if self.llm_max_retries < 0:
            raise ConfigurationError(f"llm_max_retries must be >= 0, got {self.llm_max_retries}")
        if self.llm_retry_delay < 0:
            raise ConfigurationError(f"llm_retry_delay must be >= 0, got {self.llm_retry_delay}")
        return self

    @classmethod
    def from_file(cls, path: str | Path) -> "GraphenConfig":
        """
        Load configuration from TOML file.

        Nested sections are flattened with a section prefix.

        Example TOML:
            [paths]
            cache_dir = "data/cache"

            [chunking]
            size = 1500
            overlap = 200

            [limits]
            max_chunks_per_document = 500

            [llm]
            model = "gpt-4o-mini"
            max_concurrent = 5
            requests_per_minute = 30

        Args:
            path: Path to TOML configuration file

        Returns:
            GraphenConfig instance with values from file

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        data = _load_toml(path)

        flat_config: dict[str, Any] = {}

        # Map section names to config key prefixes
        section_mapping = {
            "paths": "",
            "chunking": "chunk_",
            "limits": "",
            "processing": "",
            "llm": "llm_",
            "embedding": "embedding_",
            "logging": "",
            "storage": "",
        }

        for section, prefix in section_mapping.items():
            if section in data:
                for key, value in data[section].items():
                    flat_config[f"{prefix}{key}"] = value

        # Also support flat top-level keys
        for key, value in data.items():
            if key not in section_mapping and not isinstance(value, dict):
                flat_config[key] = value

        # Environment variables outrank the file
        env_set = {attr for env_name, attr, _ in _ENV_SETTINGS if os.getenv(env_name)}
        return cls(**{k: v for k, v in flat_config.items() if k not in env_set})

    @classmethod
    def from_env(cls) -> "GraphenConfig":
        """Load configuration from environment variables only."""
        return cls()

    def to_file(self, path: str | Path) -> None:
        """
        Save configuration to TOML file.

        API keys are never written.

        Args:
            path: Path to write TOML configuration file
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        sections: dict[str, dict[str, str | int | float | bool | None]] = {
            "paths": {
                "cache_dir": self.cache_dir,
                "storage_path": self.storage_path,
            },
            "chunking": {
                "size": self.chunk_size,
                "overlap": self.chunk_overlap,
            },
            "limits": {
                "max_chunks_per_document": self.max_chunks_per_document,
                "max_estimated_tokens": self.max_estimated_tokens,
            },
            "processing": {
                "extraction_concurrency": self.extraction_concurrency,
                "embedding_concurrency": self.embedding_concurrency,
                "embed_nodes": self.embed_nodes,
                "embed_chunks": self.embed_chunks,
            },
            "llm": {
                "model": self.llm_model,
                "max_concurrent": self.llm_max_concurrent,
                "max_retries": self.llm_max_retries,
                "retry_delay": self.llm_retry_delay,
                "requests_per_minute": self.llm_requests_per_minute,
                "rate_window_seconds": self.llm_rate_window_seconds,
                "timeout": self.llm_timeout,
            },
            "embedding": {
                "model": self.embedding_model,
            },
            "logging": {
                "log_level": self.log_level,
                "cost_warn_threshold_usd": self.cost_warn_threshold_usd,
            },
            "storage": {
                "parquet_compression": self.parquet_compression,
            },
        }

        # Build TOML string manually (avoids extra dependency)
        lines = ["# Graphen Configuration", ""]

        for section_name, section_values in sections.items():
            lines.append(f"[{section_name}]")
            for key, value in section_values.items():
                if isinstance(value, str):
                    lines.append(f'{key} = "{value}"')
                elif isinstance(value, bool):
                    lines.append(f"{key} = {str(value).lower()}")
                elif isinstance(value, (int, float)):
                    lines.append(f"{key} = {value}")
            lines.append("")

        lines.extend([
            "# API keys should be set via environment variables:",
            "# OPENAI_API_KEY",
            "",
        ])

        path.write_text("\n".join(lines))

    def with_overrides(self, **kwargs: Any) -> "GraphenConfig":
        """Return new config with specified overrides."""
        new_config = GraphenConfig.__new__(GraphenConfig)
        for key in dir(self):
            if not key.startswith("_") and not callable(getattr(self, key)):
                setattr(new_config, key, getattr(self, key))
        for key, value in kwargs.items():
            if not hasattr(new_config, key):
                raise ValueError(f"Unknown configuration option: {key}")
            setattr(new_config, key, value)
        return new_config
