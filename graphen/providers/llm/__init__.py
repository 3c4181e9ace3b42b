"""LLM service implementations."""

from graphen.providers.llm.openai import OpenAILLMService

__all__ = ["OpenAILLMService"]
