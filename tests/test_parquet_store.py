"""Tests for the Parquet graph store."""

import json

import pytest

from graphen.config import GraphenConfig
from graphen.storage.parquet import ParquetGraphStore
from graphen.types import Document, DocumentChunk, GraphEdge, GraphNode


def make_nodes():
    return [
        GraphNode(
            id="n1",
            name="Graphen",
            type="Technology",
            description="Ingestion library",
            confidence=0.9,
            aliases=["Graphen", "graphen"],
            source_document_ids=["doc-1"],
            source_chunk_ids=["doc-1_chunk_0000"],
            embedding=[0.1, 0.2, 0.3],
        ),
        GraphNode(
            id="n2",
            name="DuckDB",
            type="Technology",
            source_document_ids=["doc-2"],
        ),
    ]


def make_store(tmp_path):
    return ParquetGraphStore(tmp_path / "graph", config=GraphenConfig(parquet_compression="none"))


class TestLifecycle:
    """Connect, health and metadata."""

    @pytest.mark.asyncio
    async def test_connect_creates_layout(self, tmp_path):
        """Connecting creates the directory and metadata file."""
        path = tmp_path / "graph"
        async with ParquetGraphStore(path) as graph_store:
            assert await graph_store.health_check() is True
        metadata = json.loads((path / "metadata.json").read_text())
        assert metadata["schema_version"] == ParquetGraphStore.SCHEMA_VERSION

    @pytest.mark.asyncio
    async def test_requires_connect(self, tmp_path):
        """Writes before connect() are refused."""
        graph_store = ParquetGraphStore(tmp_path / "graph")
        with pytest.raises(RuntimeError, match="not connected"):
            await graph_store.save_nodes(make_nodes())
        assert await graph_store.health_check() is False

    @pytest.mark.asyncio
    async def test_empty_counts(self, tmp_path):
        """A fresh store counts zero everywhere."""
        async with make_store(tmp_path) as store:
            assert await store.count_nodes() == 0
            assert await store.count_edges() == 0
            assert await store.count_chunks() == 0
            assert await store.count_documents() == 0
            assert await store.get_document("missing") is None


class TestNodesAndEdges:
    """Graph writes and reads."""

    @pytest.mark.asyncio
    async def test_nodes_round_trip(self, tmp_path):
        """Lists and embeddings survive storage; timestamps are stamped."""
        async with make_store(tmp_path) as store:
            await store.save_nodes(make_nodes())

            nodes = {n.id: n for n in await store.get_nodes()}
            assert set(nodes) == {"n1", "n2"}
            assert nodes["n1"].aliases == ["Graphen", "graphen"]
            assert nodes["n1"].embedding == pytest.approx([0.1, 0.2, 0.3])
            assert nodes["n1"].created_at is not None
            assert nodes["n2"].embedding is None

    @pytest.mark.asyncio
    async def test_save_does_not_mutate_models(self, tmp_path):
        """Store timestamps are not written back into caller objects."""
        async with make_store(tmp_path) as store:
            nodes = make_nodes()
            await store.save_nodes(nodes)
            assert nodes[0].created_at is None

    @pytest.mark.asyncio
    async def test_nodes_filtered_by_document(self, tmp_path):
        """get_nodes can restrict to one source document."""
        async with make_store(tmp_path) as store:
            await store.save_nodes(make_nodes())
            assert [n.id for n in await store.get_nodes("doc-2")] == ["n2"]

    @pytest.mark.asyncio
    async def test_latest_row_wins(self, tmp_path):
        """Re-saving an id replaces it for reads and counts."""
        async with make_store(tmp_path) as store:
            await store.save_nodes(make_nodes())
            updated = make_nodes()[0].model_copy(update={"description": "Updated"})
            await store.save_nodes([updated])

            nodes = {n.id: n for n in await store.get_nodes()}
            assert nodes["n1"].description == "Updated"
            assert await store.count_nodes() == 2
            assert len(list((store.path / "nodes").glob("*.parquet"))) == 2

    @pytest.mark.asyncio
    async def test_edges_round_trip(self, tmp_path):
        """Edges keep endpoints, weight and chunk ids."""
        async with make_store(tmp_path) as store:
            await store.save_nodes(make_nodes())
            await store.save_edges(
                [
                    GraphEdge(
                        id="e1",
                        source_node_id="n1",
                        target_node_id="n2",
                        relation_type="USES",
                        weight=3,
                        confidence=0.8,
                        source_chunk_ids=["doc-1_chunk_0000"],
                    )
                ]
            )

            edges = await store.get_edges()
            assert len(edges) == 1
            assert edges[0].weight == 3
            assert edges[0].source_chunk_ids == ["doc-1_chunk_0000"]
            assert await store.count_edges() == 1

    @pytest.mark.asyncio
    async def test_empty_batches_write_nothing(self, tmp_path):
        """Empty lists create no part files."""
        async with make_store(tmp_path) as store:
            await store.save_nodes([])
            await store.save_edges([])
            await store.save_chunks([])
            assert not (store.path / "nodes").exists()


class TestDocumentsAndChunks:
    """Document records and chunks."""

    @pytest.mark.asyncio
    async def test_document_round_trip(self, tmp_path):
        """Status and metadata are stored and read back."""
        async with make_store(tmp_path) as store:
            document = Document(
                id="doc-1",
                filename="notes.md",
                file_type="md",
                file_size=120,
                status="completed",
                metadata={"chunk_count": 2, "entity_count": 5},
            )
            await store.save_document(document)

            loaded = await store.get_document("doc-1")
            assert loaded is not None
            assert loaded.status == "completed"
            assert loaded.metadata == {"chunk_count": 2, "entity_count": 5}
            assert loaded.uploaded_at == document.uploaded_at
            assert await store.count_documents() == 1

    @pytest.mark.asyncio
    async def test_chunks_in_index_order(self, tmp_path):
        """Chunks of a document come back ordered by index."""
        async with make_store(tmp_path) as store:
            chunks = [
                DocumentChunk(id=f"doc-1_chunk_{i:04d}", document_id="doc-1", content=f"c{i}", index=i)
                for i in (2, 0, 1)
            ]
            chunks[0].embedding = [1.0, 0.0]
            await store.save_chunks(chunks)

            loaded = await store.get_chunks("doc-1")
            assert [c.index for c in loaded] == [0, 1, 2]
            assert loaded[2].embedding == [1.0, 0.0]
            assert await store.get_chunks("doc-2") == []
