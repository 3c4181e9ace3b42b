"""
Model price table used by usage telemetry.

Prices are USD per million tokens and are estimates. A model missing from
the table is billed at zero and flagged so the usage report can warn.
Dated snapshot names (``gpt-4o-mini-2024-07-18``) resolve to their base model.
"""

from __future__ import annotations

from dataclasses import dataclass

PRICING_VERSION = "2026-10-estimate-v1"

_PER_TOKEN = 1 / 1_000_000


@dataclass(frozen=True)
class ModelPrice:
    """USD per million tokens; embeddings have no output price."""

    input_per_million: float
    output_per_million: float = 0.0

    def cost(self, input_tokens: int, output_tokens: int = 0) -> float:
        return (
            input_tokens * self.input_per_million + output_tokens * self.output_per_million
        ) * _PER_TOKEN


CHAT_PRICES: dict[str, ModelPrice] = {
    "gpt-5.1": ModelPrice(1.25, 10.0),
    "gpt-5": ModelPrice(1.25, 10.0),
    "gpt-5-mini": ModelPrice(0.25, 2.0),
    "gpt-4.1": ModelPrice(2.0, 8.0),
    "gpt-4.1-mini": ModelPrice(0.4, 1.6),
    "gpt-4o": ModelPrice(2.5, 10.0),
    "gpt-4o-mini": ModelPrice(0.15, 0.6),
}

EMBEDDING_PRICES: dict[str, ModelPrice] = {
    "text-embedding-3-large": ModelPrice(0.13),
    "text-embedding-3-small": ModelPrice(0.02),
    "text-embedding-ada-002": ModelPrice(0.10),
}


def lookup_price(table: dict[str, ModelPrice], model: str) -> ModelPrice | None:
    """Exact name first, then the longest table key the name extends with ``-``."""
    if model in table:
        return table[model]
    candidates = [name for name in table if model.startswith(f"{name}-")]
    if not candidates:
        return None
    return table[max(candidates, key=len)]


def estimate_llm_cost_usd(
    model: str,
    *,
    input_tokens: int,
    output_tokens: int,
) -> tuple[float, bool]:
    """
    Estimate a chat call's cost.

    Returns:
        (cost_usd, priced); priced is False when the model is unknown.
    """
    price = lookup_price(CHAT_PRICES, model)
    if price is None:
        return 0.0, False
    return price.cost(input_tokens, output_tokens), True


def estimate_embedding_cost_usd(model: str, *, input_tokens: int) -> tuple[float, bool]:
    price = lookup_price(EMBEDDING_PRICES, model)
    if price is None:
        return 0.0, False
    return price.cost(input_tokens), True
