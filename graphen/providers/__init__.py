"""
Providers

The language-model service interface and the shared rate limiter wrapped
around every call to it.

Modules:
    base: LLMService abstract interface
    rate_limiter: LLMRateLimiter (concurrency, request rate, retry/backoff)
    llm: OpenAILLMService (LangChain ChatOpenAI + OpenAIEmbeddings)
"""

from graphen.providers.base import LLMService
from graphen.providers.rate_limiter import LLMRateLimiter, is_retryable_error

__all__ = ["LLMService", "LLMRateLimiter", "is_retryable_error"]
