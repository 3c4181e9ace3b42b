"""Tests for merging chunk extractions into one graph."""

import logging

from graphen.ingestion.resolution import GraphResolver, normalize_relation_type
from graphen.types import ChunkExtraction, ExtractedEntity, ExtractedRelation, ExtractionResult
from graphen.utils.text import normalize_name


def entity(name, type_="Technology", description="", confidence=0.8):
    return ExtractedEntity(name=name, type=type_, description=description, confidence=confidence)


def relation(source, target, type_="USES", description="", confidence=0.8):
    return ExtractedRelation(
        source=source, target=target, type=type_, description=description, confidence=confidence
    )


def extraction(index, entities=(), relations=(), document_id="doc-1"):
    return ChunkExtraction(
        chunk_id=f"{document_id}_chunk_{index:04d}",
        chunk_index=index,
        result=ExtractionResult(entities=list(entities), relations=list(relations)),
    )


class TestNormalizeRelationType:
    """Relation type normalization."""

    def test_upper_snake(self):
        """Free-form types become UPPER_SNAKE_CASE."""
        assert normalize_relation_type("depends on") == "DEPENDS_ON"
        assert normalize_relation_type("part-of") == "PART_OF"
        assert normalize_relation_type("USES") == "USES"

    def test_blank(self):
        """Blank types fall back to RELATED_TO."""
        assert normalize_relation_type("  ") == "RELATED_TO"
        assert normalize_relation_type("--") == "RELATED_TO"


class TestNormalizeName:
    """Identity keys for entity names."""

    def test_case_and_whitespace(self):
        """Case and runs of whitespace do not matter."""
        assert normalize_name("  Neo4j\tGraph   DB ") == "neo4j graph db"

    def test_punctuation_is_significant(self):
        """Punctuation is kept, so "Node.js" and "Nodejs" stay distinct."""
        assert normalize_name("Node.js") == "node.js"
        assert normalize_name("Node.js") != normalize_name("Nodejs")

    def test_synonyms_map_whole_name(self):
        """Synonyms apply to the full normalized name only."""
        synonyms = {"llm": "large language model"}
        assert normalize_name("LLM", synonyms) == "large language model"
        assert normalize_name("LLM agent", synonyms) == "llm agent"


class TestEntityMerge:
    """Entity deduplication across chunks."""

    def test_same_name_and_type_merge(self):
        """Case and whitespace variants resolve to one node."""
        resolver = GraphResolver()
        graph = resolver.resolve(
            "doc-1",
            [
                extraction(0, [entity("Neo4j", confidence=0.6, description="A database")]),
                extraction(1, [entity("  neo4j ", confidence=0.9, description="A graph database")]),
            ],
        )

        assert len(graph.nodes) == 1
        node = graph.nodes[0]
        assert node.name == "Neo4j"
        assert node.confidence == 0.9
        assert node.description == "A graph database"
        assert node.source_chunk_ids == ["doc-1_chunk_0000", "doc-1_chunk_0001"]
        assert node.source_document_ids == ["doc-1"]

    def test_different_types_stay_apart(self):
        """Same name with different types is two entities."""
        graph = GraphResolver().resolve(
            "doc-1",
            [extraction(0, [entity("Mercury", "Planet"), entity("Mercury", "Element")])],
        )
        assert len(graph.nodes) == 2

    def test_type_case_insensitive(self):
        """Type comparison ignores case."""
        graph = GraphResolver().resolve(
            "doc-1",
            [extraction(0, [entity("Python", "Language"), entity("python", "language")])],
        )
        assert len(graph.nodes) == 1

    def test_synonyms(self):
        """Synonym table maps abbreviations onto the full name."""
        graph = GraphResolver().resolve(
            "doc-1",
            [extraction(0, [entity("LLM", "Concept"), entity("Large Language Model", "Concept")])],
        )

        assert len(graph.nodes) == 1
        node = graph.nodes[0]
        assert node.name == "Large Language Model"
        assert node.aliases == ["LLM", "Large Language Model"]

    def test_longest_name_first_wins_ties(self):
        """Preferred name is the longest surface form; ties keep the first."""
        graph = GraphResolver().resolve(
            "doc-1",
            [extraction(0, [entity("ACME"), entity("acme")])],
        )
        assert graph.nodes[0].name == "ACME"
        assert graph.nodes[0].aliases == ["ACME", "acme"]

    def test_custom_synonyms(self):
        """Callers can replace the synonym table."""
        resolver = GraphResolver(synonyms={"k8s": "kubernetes"})
        graph = resolver.resolve(
            "doc-1",
            [extraction(0, [entity("K8s"), entity("Kubernetes")])],
        )
        assert len(graph.nodes) == 1

    def test_first_seen_order(self):
        """Nodes come out in first-mention order."""
        graph = GraphResolver().resolve(
            "doc-1",
            [
                extraction(0, [entity("Beta"), entity("Alpha")]),
                extraction(1, [entity("Gamma"), entity("beta")]),
            ],
        )
        assert [n.name for n in graph.nodes] == ["Beta", "Alpha", "Gamma"]


class TestRelationMerge:
    """Relation resolution and deduplication."""

    def test_relations_merge_by_endpoints_and_type(self):
        """Repeated mentions become one weighted edge."""
        graph = GraphResolver().resolve(
            "doc-1",
            [
                extraction(
                    0,
                    [entity("Graphen"), entity("DuckDB")],
                    [relation("Graphen", "DuckDB", "uses", confidence=0.7)],
                ),
                extraction(
                    1,
                    [entity("graphen"), entity("duckdb")],
                    [relation("graphen", "duckdb", "USES", "Reads parquet", confidence=0.95)],
                ),
            ],
        )

        assert len(graph.edges) == 1
        edge = graph.edges[0]
        assert edge.relation_type == "USES"
        assert edge.weight == 2
        assert edge.confidence == 0.95
        assert edge.description == "Reads parquet"
        assert edge.source_chunk_ids == ["doc-1_chunk_0000", "doc-1_chunk_0001"]

    def test_endpoint_resolves_through_alias(self):
        """A relation naming a synonym reaches the merged node."""
        graph = GraphResolver().resolve(
            "doc-1",
            [
                extraction(
                    0,
                    [entity("Large Language Model", "Concept"), entity("OpenAI", "Organization")],
                    [relation("OpenAI", "LLM", "BUILDS")],
                ),
            ],
        )
        assert len(graph.edges) == 1
        assert graph.dropped_relations == 0

    def test_drops_unresolved_and_self_loops(self, caplog):
        """Unknown endpoints and self-loops are dropped, counted and logged once."""
        with caplog.at_level(logging.WARNING, logger="graphen.ingestion.resolution.resolver"):
            graph = GraphResolver().resolve(
                "doc-1",
                [
                    extraction(
                        0,
                        [entity("Graphen"), entity("Neo4j")],
                        [
                            relation("Graphen", "Nowhere"),
                            relation("Graphen", "graphen"),
                            relation("Graphen", "Neo4j"),
                        ],
                    ),
                ],
            )

        assert len(graph.edges) == 1
        assert graph.dropped_relations == 2
        assert graph.dangling_edges() == []
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Dropped 2 relations" in warnings[0].getMessage()

    def test_direction_matters(self):
        """A->B and B->A are distinct edges."""
        graph = GraphResolver().resolve(
            "doc-1",
            [
                extraction(
                    0,
                    [entity("A1"), entity("B1")],
                    [relation("A1", "B1"), relation("B1", "A1")],
                ),
            ],
        )
        assert len(graph.edges) == 2


class TestDeterminism:
    """Stable output for identical input."""

    def test_same_input_same_graph(self):
        """Two resolutions of the same extractions are equal, ids included."""
        extractions = [
            extraction(0, [entity("Graphen"), entity("Neo4j")], [relation("Graphen", "Neo4j")]),
            extraction(1, [entity("Neo4j"), entity("Cypher", "Language")]),
        ]
        first = GraphResolver().resolve("doc-1", extractions)
        second = GraphResolver().resolve("doc-1", extractions)
        assert first == second

    def test_ids_scoped_to_document(self):
        """The same entity in two documents gets distinct ids."""
        extractions = [extraction(0, [entity("Graphen")])]
        a = GraphResolver().resolve("doc-a", extractions)
        b = GraphResolver().resolve("doc-b", extractions)
        assert a.nodes[0].id != b.nodes[0].id

    def test_empty_input(self):
        """No extractions, empty graph."""
        graph = GraphResolver().resolve("doc-1", [])
        assert graph.nodes == []
        assert graph.edges == []
        assert graph.dropped_relations == 0
