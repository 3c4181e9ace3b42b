"""
Graph Resolver

Merges per-chunk extraction results into one deduplicated graph for a
document.

Entities:
    Identity key = (normalized name, normalized type). Names are trimmed,
    lowercased, whitespace-collapsed and mapped through a synonym table
    ("llm" -> "large language model"). A blank type becomes "Unknown".
    Merged node:
        - name: longest surface form (first seen wins ties)
        - description: longest non-empty description
        - confidence: maximum over mentions (one strong mention is enough
          evidence that the entity exists)
        - aliases / source_chunk_ids: union, first-seen order

Relations:
    Endpoints resolve by normalized name or alias to the first node that
    carries it. Key = (source node, target node, relation type).
    Merged edge: weight = mention count, confidence = max,
    description = longest.
    Unresolved endpoints and self-loops are dropped and counted in
    ``ResolvedGraph.dropped_relations``; they never fail the phase.

Output order is first-seen order and ids are derived from the document id
and identity key, so identical input always yields an equal graph.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from graphen.types.extraction import ChunkExtraction, ExtractedEntity, ExtractedRelation
from graphen.types.graph import GraphEdge, GraphNode, ResolvedGraph
from graphen.utils.text import collapse_whitespace, normalize_name, stable_id

logger = logging.getLogger(__name__)

DEFAULT_SYNONYMS: dict[str, str] = {
    "llm": "large language model",
    "ai": "artificial intelligence",
}

UNKNOWN_TYPE = "Unknown"

_NON_WORD = re.compile(r"[^A-Za-z0-9]+")


def normalize_relation_type(relation_type: str) -> str:
    """
    Normalize a relation type to UPPER_SNAKE_CASE.

    "depends on" -> "DEPENDS_ON"; blank -> "RELATED_TO"
    """
    words = _NON_WORD.sub(" ", relation_type).upper().split()
    return "_".join(words) if words else "RELATED_TO"


@dataclass
class _WorkingNode:
    """Mutable accumulator for one entity key."""

    key: tuple[str, str]
    name: str
    type: str
    description: str
    confidence: float
    aliases: list[str] = field(default_factory=list)
    chunk_ids: list[str] = field(default_factory=list)

    def absorb(self, name: str, entity: ExtractedEntity, chunk_id: str) -> None:
        if len(name) > len(self.name):
            self.name = name
        description = entity.description.strip()
        if len(description) > len(self.description):
            self.description = description
        self.confidence = max(self.confidence, entity.confidence)
        if name not in self.aliases:
            self.aliases.append(name)
        if chunk_id not in self.chunk_ids:
            self.chunk_ids.append(chunk_id)


@dataclass
class _WorkingEdge:
    """Mutable accumulator for one (source, target, type) key."""

    source: GraphNode
    target: GraphNode
    relation_type: str
    description: str
    confidence: float
    weight: int = 0
    chunk_ids: list[str] = field(default_factory=list)

    def absorb(self, relation: ExtractedRelation, chunk_id: str) -> None:
        self.weight += 1
        self.confidence = max(self.confidence, relation.confidence)
        description = relation.description.strip()
        if len(description) > len(self.description):
            self.description = description
        if chunk_id not in self.chunk_ids:
            self.chunk_ids.append(chunk_id)


class GraphResolver:
    """
    Deterministic entity/relation merge for one document.

    Args:
        synonyms: Normalized-name replacements applied before keying
    """

    def __init__(self, synonyms: dict[str, str] | None = None) -> None:
        self._synonyms = dict(DEFAULT_SYNONYMS if synonyms is None else synonyms)

    def normalize_name(self, name: str) -> str:
        return normalize_name(name, self._synonyms)

    def entity_key(self, entity: ExtractedEntity) -> tuple[str, str]:
        entity_type = collapse_whitespace(entity.type) or UNKNOWN_TYPE
        return self.normalize_name(entity.name), entity_type.lower()

    def resolve(self, document_id: str, extractions: list[ChunkExtraction]) -> ResolvedGraph:
        """
        Merge chunk-level results into a ResolvedGraph.

        Args:
            document_id: Owning document (part of every node/edge id)
            extractions: Per-chunk results, in chunk order

        Returns:
            ResolvedGraph with no dangling edge
        """
        working = self._merge_entities(extractions)
        nodes = [self._to_node(document_id, w) for w in working]

        # Name/alias -> first node carrying it
        by_name: dict[str, GraphNode] = {}
        for w, node in zip(working, nodes):
            by_name.setdefault(w.key[0], node)
        for w, node in zip(working, nodes):
            for alias in w.aliases:
                by_name.setdefault(self.normalize_name(alias), node)

        edges, dropped = self._merge_relations(extractions, by_name)
        graph = ResolvedGraph(
            nodes=nodes,
            edges=[self._to_edge(document_id, e) for e in edges],
            dropped_relations=dropped,
        )

        if dropped:
            logger.warning(
                f"Dropped {dropped} relations for {document_id} "
                "(unresolved endpoint or self-loop)"
            )
        logger.info(
            f"Resolved {sum(len(x.result.entities) for x in extractions)} entity mentions "
            f"into {len(graph.nodes)} nodes and {len(graph.edges)} edges"
        )
        return graph

    # -------------------------------------------------------------------------
    # Merge stages
    # -------------------------------------------------------------------------

    def _merge_entities(self, extractions: list[ChunkExtraction]) -> list[_WorkingNode]:
        grouped: dict[tuple[str, str], _WorkingNode] = {}

        for item in extractions:
            for entity in item.result.entities:
                name = collapse_whitespace(entity.name)
                if not name:
                    continue
                key = self.entity_key(entity)
                existing = grouped.get(key)
                if existing is None:
                    grouped[key] = _WorkingNode(
                        key=key,
                        name=name,
                        type=collapse_whitespace(entity.type) or UNKNOWN_TYPE,
                        description=entity.description.strip(),
                        confidence=entity.confidence,
                        aliases=[name],
                        chunk_ids=[item.chunk_id],
                    )
                else:
                    existing.absorb(name, entity, item.chunk_id)

        return list(grouped.values())

    def _merge_relations(
        self,
        extractions: list[ChunkExtraction],
        by_name: dict[str, GraphNode],
    ) -> tuple[list[_WorkingEdge], int]:
        grouped: dict[tuple[str, str, str], _WorkingEdge] = {}
        dropped = 0

        for item in extractions:
            for relation in item.result.relations:
                source = by_name.get(self.normalize_name(relation.source))
                target = by_name.get(self.normalize_name(relation.target))
                if source is None or target is None or source.id == target.id:
                    dropped += 1
                    logger.debug(
                        f"Dropping relation {relation.source!r} -[{relation.type}]-> "
                        f"{relation.target!r} in {item.chunk_id}"
                    )
                    continue

                relation_type = normalize_relation_type(relation.type)
                key = (source.id, target.id, relation_type)
                edge = grouped.get(key)
                if edge is None:
                    edge = grouped[key] = _WorkingEdge(
                        source=source,
                        target=target,
                        relation_type=relation_type,
                        description="",
                        confidence=relation.confidence,
                    )
                edge.absorb(relation, item.chunk_id)

        return list(grouped.values()), dropped

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    @staticmethod
    def _to_node(document_id: str, w: _WorkingNode) -> GraphNode:
        return GraphNode(
            id=stable_id(document_id, "node", *w.key),
            name=w.name,
            type=w.type,
            description=w.description,
            confidence=w.confidence,
            aliases=list(w.aliases),
            source_document_ids=[document_id],
            source_chunk_ids=list(w.chunk_ids),
        )

    @staticmethod
    def _to_edge(document_id: str, e: _WorkingEdge) -> GraphEdge:
        return GraphEdge(
            id=stable_id(document_id, "edge", e.source.id, e.target.id, e.relation_type),
            source_node_id=e.source.id,
            target_node_id=e.target.id,
            relation_type=e.relation_type,
            description=e.description,
            weight=e.weight,
            confidence=e.confidence,
            source_document_ids=[document_id],
            source_chunk_ids=list(e.chunk_ids),
        )
