"""
Utility Functions

Helpers used throughout the package.

Modules:
    cost_telemetry: Context-scoped usage records
    token_count: Token estimates and tiktoken counts
    text: Text normalization and id generation
"""

from graphen.utils.cost_telemetry import (
    UsageCollector,
    record_usage,
    telemetry_collector,
    telemetry_stage,
)
from graphen.utils.text import generate_chunk_id, normalize_name, stable_id
from graphen.utils.token_count import count_text_tokens, estimate_tokens

__all__ = [
    "UsageCollector",
    "record_usage",
    "telemetry_collector",
    "telemetry_stage",
    "generate_chunk_id",
    "normalize_name",
    "stable_id",
    "count_text_tokens",
    "estimate_tokens",
]
