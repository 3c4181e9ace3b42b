"""
Token counting helpers.

``estimate_tokens`` is the cheap character heuristic used for the pipeline's
hard limits; it must stay in the same unit as the chunker's window size.
``count_text_tokens`` uses tiktoken and is used for usage telemetry when a
provider response carries no usage metadata.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from functools import lru_cache

import tiktoken

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate tokens as ceil(chars / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@lru_cache(maxsize=16)
def _encoding_for(model: str) -> tiktoken.Encoding:
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


def count_text_tokens(text: str, model: str) -> int:
    """Count tokens for plain text with the model's tokenizer."""
    if not text:
        return 0
    return len(_encoding_for(model).encode(text))


def count_chat_tokens(messages: Iterable[str], model: str) -> int:
    """
    Estimate tokens for chat-style inputs.

    Adds a small fixed overhead per message for role/control tokens.
    """
    total = 0
    message_count = 0
    for message in messages:
        total += count_text_tokens(message, model)
        message_count += 1

    # Approximate role/message framing overhead.
    return total + (message_count * 4)
