"""Tests for the per-document pipeline checkpoint cache."""

import json

import pytest
from fakes import default_extraction

from graphen.ingestion.cache import CHUNKS_FILE, EXTRACTIONS_FILE, PipelineCache
from graphen.ingestion.chunking import chunk_document
from graphen.types import ChunkExtraction, DocumentChunk


def make_chunks(document_id="doc-1", count=3):
    text = " ".join(f"Sentence number {i} about Graphen." for i in range(count * 10))
    chunks = chunk_document(document_id, text, chunk_size=120, overlap=20)
    return chunks[:count]


def make_extractions(chunks):
    return [
        ChunkExtraction(chunk_id=c.id, chunk_index=c.index, result=default_extraction(c.content))
        for c in chunks
    ]


class TestDocumentDir:
    """Document id validation."""

    def test_valid_id(self, tmp_path):
        """Safe ids map to a subdirectory."""
        cache = PipelineCache(tmp_path)
        assert cache.document_dir("report-2026_v1.2") == tmp_path / "report-2026_v1.2"

    @pytest.mark.parametrize("bad_id", ["", "../escape", "a/b", ".hidden", "..", "with space"])
    def test_rejects_unsafe_ids(self, tmp_path, bad_id):
        """Ids that are not a single safe path component are refused."""
        cache = PipelineCache(tmp_path)
        with pytest.raises(ValueError):
            cache.document_dir(bad_id)


class TestChunkCache:
    """Chunk checkpoint read/write."""

    @pytest.mark.asyncio
    async def test_miss_when_absent(self, tmp_path):
        """No file means a miss."""
        cache = PipelineCache(tmp_path)
        assert await cache.load_chunks("doc-1") is None
        assert not cache.has_chunks("doc-1")

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path):
        """Saved chunks load back equal, in order."""
        cache = PipelineCache(tmp_path)
        chunks = make_chunks()

        await cache.save_chunks("doc-1", chunks)
        loaded = await cache.load_chunks("doc-1")

        assert loaded == chunks
        assert cache.has_chunks("doc-1")

    @pytest.mark.asyncio
    async def test_embeddings_not_cached(self, tmp_path):
        """Embeddings are stripped from the checkpoint, not from the caller's chunks."""
        cache = PipelineCache(tmp_path)
        chunks = make_chunks()
        chunks[0].embedding = [0.1, 0.2]

        await cache.save_chunks("doc-1", chunks)
        loaded = await cache.load_chunks("doc-1")

        assert loaded is not None
        assert all(c.embedding is None for c in loaded)
        assert chunks[0].embedding == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, tmp_path):
        """Atomic writes leave only the final artifact."""
        cache = PipelineCache(tmp_path)
        await cache.save_chunks("doc-1", make_chunks())
        assert sorted(p.name for p in (tmp_path / "doc-1").iterdir()) == [CHUNKS_FILE]

    @pytest.mark.asyncio
    async def test_corrupt_file_is_a_miss(self, tmp_path):
        """Unparseable JSON is ignored."""
        cache = PipelineCache(tmp_path)
        (tmp_path / "doc-1").mkdir()
        (tmp_path / "doc-1" / CHUNKS_FILE).write_text("{not json")
        assert await cache.load_chunks("doc-1") is None

    @pytest.mark.asyncio
    async def test_non_dense_indices_are_a_miss(self, tmp_path):
        """A gap in chunk indices invalidates the cache."""
        cache = PipelineCache(tmp_path)
        chunks = make_chunks()
        await cache.save_chunks("doc-1", chunks)

        path = tmp_path / "doc-1" / CHUNKS_FILE
        data = json.loads(path.read_text())
        data[1]["index"] = 5
        path.write_text(json.dumps(data))

        assert await cache.load_chunks("doc-1") is None

    @pytest.mark.asyncio
    async def test_foreign_document_id_is_a_miss(self, tmp_path):
        """Chunks belonging to another document are ignored."""
        cache = PipelineCache(tmp_path)
        await cache.save_chunks("doc-1", make_chunks())

        path = tmp_path / "doc-1" / CHUNKS_FILE
        data = json.loads(path.read_text())
        for item in data:
            item["document_id"] = "other"
        path.write_text(json.dumps(data))

        assert await cache.load_chunks("doc-1") is None

    @pytest.mark.asyncio
    async def test_save_refuses_non_dense_list(self, tmp_path):
        """Writing a chunk list with gaps is a caller error."""
        cache = PipelineCache(tmp_path)
        chunks = [
            DocumentChunk(id="doc-1_chunk_0000", document_id="doc-1", content="a", index=0),
            DocumentChunk(id="doc-1_chunk_0002", document_id="doc-1", content="b", index=2),
        ]
        with pytest.raises(ValueError):
            await cache.save_chunks("doc-1", chunks)


class TestExtractionCache:
    """Extraction checkpoint read/write and invalidation."""

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path):
        """Extractions load back when they match the chunks."""
        cache = PipelineCache(tmp_path)
        chunks = make_chunks()
        extractions = make_extractions(chunks)

        await cache.save_chunks("doc-1", chunks)
        await cache.save_extractions("doc-1", extractions)

        assert await cache.load_extractions("doc-1", chunks) == extractions
        assert cache.has_extractions("doc-1")

    @pytest.mark.asyncio
    async def test_requires_chunk_cache(self, tmp_path):
        """Extractions cannot be cached ahead of chunks."""
        cache = PipelineCache(tmp_path)
        chunks = make_chunks()
        with pytest.raises(ValueError, match="no chunk cache"):
            await cache.save_extractions("doc-1", make_extractions(chunks))

    @pytest.mark.asyncio
    async def test_saving_chunks_invalidates_extractions(self, tmp_path):
        """A new chunk list removes the old extraction checkpoint."""
        cache = PipelineCache(tmp_path)
        chunks = make_chunks()
        await cache.save_chunks("doc-1", chunks)
        await cache.save_extractions("doc-1", make_extractions(chunks))

        await cache.save_chunks("doc-1", chunks)

        assert not (tmp_path / "doc-1" / EXTRACTIONS_FILE).exists()
        assert await cache.load_extractions("doc-1", chunks) is None

    @pytest.mark.asyncio
    async def test_count_mismatch_is_a_miss(self, tmp_path):
        """Fewer extractions than chunks is not a valid checkpoint."""
        cache = PipelineCache(tmp_path)
        chunks = make_chunks()
        await cache.save_chunks("doc-1", chunks)
        await cache.save_extractions("doc-1", make_extractions(chunks)[:-1])

        assert await cache.load_extractions("doc-1", chunks) is None

    @pytest.mark.asyncio
    async def test_order_mismatch_is_a_miss(self, tmp_path):
        """Extractions must follow chunk order."""
        cache = PipelineCache(tmp_path)
        chunks = make_chunks()
        await cache.save_chunks("doc-1", chunks)
        await cache.save_extractions("doc-1", list(reversed(make_extractions(chunks))))

        assert await cache.load_extractions("doc-1", chunks) is None


class TestClear:
    """Cache removal."""

    @pytest.mark.asyncio
    async def test_clear_removes_everything(self, tmp_path):
        """Clear drops the document directory."""
        cache = PipelineCache(tmp_path)
        chunks = make_chunks()
        await cache.save_chunks("doc-1", chunks)
        await cache.save_extractions("doc-1", make_extractions(chunks))

        assert await cache.clear("doc-1") is True
        assert not (tmp_path / "doc-1").exists()
        assert await cache.load_chunks("doc-1") is None

    @pytest.mark.asyncio
    async def test_clear_missing(self, tmp_path):
        """Clearing nothing reports False."""
        assert await PipelineCache(tmp_path).clear("doc-1") is False
