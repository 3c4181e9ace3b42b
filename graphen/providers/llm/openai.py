"""
OpenAI LLM Service (LangChain-based)

Implements LLMService using LangChain's ChatOpenAI (structured output) for
extraction and OpenAIEmbeddings for embeddings.

Every call emits a TokenUsageRecord to the active UsageCollector, tagged with
the current pipeline phase and document. Token counts come from the response
metadata when present and from tiktoken otherwise (``estimated=True``).

Example:
    >>> service = OpenAILLMService(model="gpt-4o-mini")
    >>> result = await service.extract_entities_and_relations(
    ...     "Graphen stores graphs in Neo4j."
    ... )
    >>> [e.name for e in result.entities]
    ['Graphen', 'Neo4j']
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from graphen.config.pricing import estimate_embedding_cost_usd, estimate_llm_cost_usd
from graphen.providers.base import LLMService
from graphen.types.extraction import ExtractionResult, ExtractionSchema
from graphen.types.results import TokenUsageRecord
from graphen.utils.cost_telemetry import current_document, current_stage, record_usage
from graphen.utils.token_count import count_chat_tokens, count_text_tokens

if TYPE_CHECKING:
    from langchain_openai import ChatOpenAI, OpenAIEmbeddings

    from graphen.config import GraphenConfig


DEFAULT_ENTITY_TYPES = [
    "Person",
    "Organization",
    "Technology",
    "Concept",
    "Document",
    "Event",
    "Location",
    "Metric",
]

DEFAULT_RELATION_TYPES = [
    "BELONGS_TO",
    "DEPENDS_ON",
    "IMPLEMENTS",
    "USES",
    "CREATED_BY",
    "RELATED_TO",
    "PART_OF",
    "SUCCESSOR_OF",
    "COMPARED_WITH",
]


def build_extraction_system_prompt(schema: ExtractionSchema | None = None) -> str:
    """System prompt for extraction; schema type lists replace the defaults."""
    entity_types = (schema.entity_types if schema and schema.entity_types else DEFAULT_ENTITY_TYPES)
    relation_types = (
        schema.relation_types if schema and schema.relation_types else DEFAULT_RELATION_TYPES
    )
    entity_lines = "\n".join(f"- {t}" for t in entity_types)
    relation_lines = "\n".join(f"- {t}" for t in relation_types)

    return f"""You are a knowledge graph construction assistant. Extract entities and relations from the input text.

ENTITY TYPE CANDIDATES:
{entity_lines}

RELATION TYPE CANDIDATES:
{relation_lines}

RULES:
1. Only extract information the text states explicitly. Do not speculate.
2. Normalize names: use one consistent form for abbreviations and full names.
3. Give each entity a 1-2 sentence description grounded in the text.
4. Relations must reference entity names exactly as listed in "entities".
5. Confidence is a number between 0 and 1."""


def _as_int(value: Any) -> int | None:
    """Best-effort int coercion."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _extract_token_usage(response: Any) -> tuple[int | None, int | None, int | None]:
    """
    Extract token usage from LangChain response metadata.

    Returns:
        (input_tokens, output_tokens, total_tokens)
    """
    if response is None:
        return None, None, None

    usage = getattr(response, "usage_metadata", None)
    if isinstance(usage, dict):
        input_tokens = _as_int(usage.get("input_tokens"))
        output_tokens = _as_int(usage.get("output_tokens"))
        total_tokens = _as_int(usage.get("total_tokens"))
        if any(v is not None for v in (input_tokens, output_tokens, total_tokens)):
            return input_tokens, output_tokens, total_tokens

    response_metadata = getattr(response, "response_metadata", None)
    if isinstance(response_metadata, dict):
        token_usage = response_metadata.get("token_usage") or response_metadata.get("usage")
        if isinstance(token_usage, dict):
            return (
                _as_int(token_usage.get("prompt_tokens")),
                _as_int(token_usage.get("completion_tokens")),
                _as_int(token_usage.get("total_tokens")),
            )

    return None, None, None


def _get_chat_openai(
    api_key: str | None = None,
    model: str = "gpt-4o-mini",
    temperature: float = 0.0,
) -> "ChatOpenAI":
    """
    Get a ChatOpenAI instance.

    Retries are disabled on the client; the pipeline's rate limiter owns them.
    """
    from langchain_openai import ChatOpenAI

    kwargs: dict[str, Any] = {"model": model, "temperature": temperature, "max_retries": 0}
    if api_key:
        kwargs["api_key"] = api_key

    return ChatOpenAI(**kwargs)


def _get_openai_embeddings(
    api_key: str | None = None,
    model: str = "text-embedding-3-small",
) -> "OpenAIEmbeddings":
    from langchain_openai import OpenAIEmbeddings

    if api_key:
        from pydantic import SecretStr

        return OpenAIEmbeddings(model=model, api_key=SecretStr(api_key), max_retries=0)
    return OpenAIEmbeddings(model=model, max_retries=0)


class OpenAILLMService(LLMService):
    """
    OpenAI-backed LLMService.

    Clients are created lazily on first use so constructing the service
    never needs an API key.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Chat model for extraction
        embedding_model: Embedding model
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        embedding_model: str = "text-embedding-3-small",
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._embedding_model = embedding_model
        self._chat_client: ChatOpenAI | None = None
        self._embedding_client: OpenAIEmbeddings | None = None

    @classmethod
    def from_config(cls, config: GraphenConfig) -> "OpenAILLMService":
        return cls(
            api_key=config.openai_api_key,
            model=config.llm_model,
            embedding_model=config.embedding_model,
        )

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def embedding_model_name(self) -> str:
        return self._embedding_model

    def _get_chat_client(self) -> "ChatOpenAI":
        if self._chat_client is None:
            self._chat_client = _get_chat_openai(api_key=self._api_key, model=self._model)
        return self._chat_client

    def _get_embedding_client(self) -> "OpenAIEmbeddings":
        if self._embedding_client is None:
            self._embedding_client = _get_openai_embeddings(
                api_key=self._api_key, model=self._embedding_model
            )
        return self._embedding_client

    async def extract_entities_and_relations(
        self,
        text: str,
        schema: ExtractionSchema | None = None,
    ) -> ExtractionResult:
        """
        Extract entities and relations from text with structured output.

        Args:
            text: Chunk content
            schema: Optional entity/relation type candidates

        Returns:
            ExtractionResult (empty lists if the model returned nothing parseable)
        """
        from langchain_core.messages import HumanMessage, SystemMessage

        start = time.perf_counter_ns()
        system = build_extraction_system_prompt(schema)
        messages = [SystemMessage(content=system), HumanMessage(content=text)]

        # include_raw lets us read usage metadata when available.
        structured_client = self._get_chat_client().with_structured_output(
            ExtractionResult, include_raw=True
        )
        result_obj = await structured_client.ainvoke(messages)

        raw_response: Any = None
        if isinstance(result_obj, dict) and "parsed" in result_obj:
            parsing_error = result_obj.get("parsing_error")
            if parsing_error is not None:
                raise parsing_error
            result = result_obj["parsed"]
            raw_response = result_obj.get("raw")
        else:
            result = result_obj
        if result is None:
            result = ExtractionResult()

        input_tokens, output_tokens, total_tokens = _extract_token_usage(raw_response)
        estimated = False

        if input_tokens is None:
            input_tokens = count_chat_tokens([system, text], self._model)
            estimated = True
        if output_tokens is None:
            output_tokens = count_text_tokens(result.model_dump_json(), self._model)
            estimated = True
        if total_tokens is None:
            total_tokens = input_tokens + output_tokens

        estimated_cost, pricing_found = estimate_llm_cost_usd(
            self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        elapsed_ms = (time.perf_counter_ns() - start) // 1_000_000

        record_usage(
            TokenUsageRecord(
                phase=current_stage(),
                provider="openai",
                model=self._model,
                operation="extract_entities_and_relations",
                document_id=current_document(),
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=total_tokens,
                estimated_cost_usd=estimated_cost,
                latency_ms=int(elapsed_ms),
                estimated=estimated,
                metadata={
                    "entities": len(result.entities),
                    "relations": len(result.relations),
                    "pricing_found": pricing_found,
                },
            )
        )
        return result

    async def generate_embedding(self, text: str) -> list[float]:
        """
        Embed one text.

        OpenAIEmbeddings does not report usage, so tokens are counted locally.
        """
        start = time.perf_counter_ns()
        client = self._get_embedding_client()

        # LangChain's embed_query is synchronous, run in thread pool
        embedding = await asyncio.to_thread(client.embed_query, text)

        input_tokens = count_text_tokens(text, self._embedding_model)
        estimated_cost, pricing_found = estimate_embedding_cost_usd(
            self._embedding_model, input_tokens=input_tokens
        )
        elapsed_ms = (time.perf_counter_ns() - start) // 1_000_000

        record_usage(
            TokenUsageRecord(
                phase=current_stage(),
                provider="openai",
                model=self._embedding_model,
                operation="generate_embedding",
                document_id=current_document(),
                input_tokens=input_tokens,
                total_tokens=input_tokens,
                estimated_cost_usd=estimated_cost,
                latency_ms=int(elapsed_ms),
                estimated=True,
                metadata={"dimensions": len(embedding), "pricing_found": pricing_found},
            )
        )
        return embedding
