"""
Run-scoped usage telemetry helpers.

Telemetry is enabled by attaching a UsageCollector via contextvars.
The pipeline labels each phase with ``telemetry_stage``; providers read the
active collector, phase and document and emit TokenUsageRecords.

Context variables travel with asyncio tasks, and the rate limiter copies the
submitter's context into each dispatched call, so records land in the phase
that issued them even when calls run concurrently.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from graphen.config.pricing import PRICING_VERSION
from graphen.types.results import PhaseUsage, TokenUsageRecord, UsageReport

_COLLECTOR: ContextVar[UsageCollector | None] = ContextVar(
    "graphen_usage_collector",
    default=None,
)
_STAGE: ContextVar[str] = ContextVar("graphen_usage_stage", default="unknown")
_DOCUMENT: ContextVar[str | None] = ContextVar("graphen_usage_document", default=None)


class UsageCollector:
    """Accumulates provider usage records for one or more pipeline runs."""

    def __init__(self, *, warn_threshold_usd: float | None = None) -> None:
        self._records: list[TokenUsageRecord] = []
        self._warn_threshold_usd = warn_threshold_usd

    def add(self, record: TokenUsageRecord) -> None:
        """Append one usage record."""
        self._records.append(record)

    @property
    def records(self) -> tuple[TokenUsageRecord, ...]:
        """Snapshot of every record, in arrival order."""
        return tuple(self._records)

    def for_document(self, document_id: str) -> list[TokenUsageRecord]:
        return [r for r in self._records if r.document_id == document_id]

    def summary(self) -> UsageReport:
        """Build aggregate report across all records."""
        by_phase: dict[str, PhaseUsage] = {}
        warnings: list[str] = []

        total_input = 0
        total_output = 0
        total_tokens = 0
        total_cost = 0.0

        for record in self._records:
            total_input += record.input_tokens
            total_output += record.output_tokens
            total_tokens += record.total_tokens
            total_cost += record.estimated_cost_usd

            phase = by_phase.setdefault(record.phase, PhaseUsage(phase=record.phase))
            phase.calls += 1
            phase.input_tokens += record.input_tokens
            phase.output_tokens += record.output_tokens
            phase.total_tokens += record.total_tokens
            phase.estimated_cost_usd += record.estimated_cost_usd
            phase.total_latency_ms += record.latency_ms

            if record.metadata.get("pricing_found") is False:
                warnings.append(
                    f"Missing pricing for model '{record.model}' in phase '{record.phase}'. "
                    "Cost shown as 0.0 for those calls."
                )

        if self._warn_threshold_usd is not None and total_cost >= self._warn_threshold_usd:
            warnings.append(
                f"Estimated cost ${total_cost:.6f} exceeded threshold "
                f"${self._warn_threshold_usd:.6f}."
            )

        return UsageReport(
            pricing_version=PRICING_VERSION,
            total_calls=len(self._records),
            total_input_tokens=total_input,
            total_output_tokens=total_output,
            total_tokens=total_tokens,
            total_estimated_cost_usd=total_cost,
            by_phase=sorted(by_phase.values(), key=lambda p: p.estimated_cost_usd, reverse=True),
            warnings=sorted(set(warnings)),
        )


@contextmanager
def telemetry_collector(collector: UsageCollector | None) -> Iterator[None]:
    """Set active collector for provider instrumentation."""
    token = _COLLECTOR.set(collector)
    try:
        yield
    finally:
        _COLLECTOR.reset(token)


@contextmanager
def telemetry_stage(stage: str, document_id: str | None = None) -> Iterator[None]:
    """Set phase label (and optionally the document) for provider instrumentation."""
    stage_token = _STAGE.set(stage)
    doc_token = _DOCUMENT.set(document_id) if document_id is not None else None
    try:
        yield
    finally:
        if doc_token is not None:
            _DOCUMENT.reset(doc_token)
        _STAGE.reset(stage_token)


def current_stage() -> str:
    """Return currently active phase label."""
    return _STAGE.get()


def current_document() -> str | None:
    """Return the document id of the active phase, if any."""
    return _DOCUMENT.get()


def current_collector() -> UsageCollector | None:
    return _COLLECTOR.get()


def record_usage(record: TokenUsageRecord) -> None:
    """Add record to active collector if telemetry is enabled."""
    collector = _COLLECTOR.get()
    if collector is not None:
        collector.add(record)
