"""
Pipeline Cache

Per-document checkpoints that let a re-run skip completed phases.

Directory structure:
    cache_dir/
    └── <document_id>/
        ├── chunks.json        # ordered DocumentChunk list
        └── extractions.json   # ordered ChunkExtraction list, one per chunk

Rules:
    - Each artifact is written to a temp file in the same directory and
      renamed into place, so readers see a complete file or none
    - Writing chunks removes extractions.json first (phase order)
    - Extractions are refused unless a chunk cache exists
    - Loads validate: dense chunk indices, matching document id, one
      extraction per cached chunk in chunk order. Anything else is a miss

The cache takes no lock. Running two pipelines for the same document id at
the same time is a caller error; DocumentPipeline guards against it within
one instance.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from graphen.types.documents import DocumentChunk
from graphen.types.extraction import ChunkExtraction

logger = logging.getLogger(__name__)

CHUNKS_FILE = "chunks.json"
EXTRACTIONS_FILE = "extractions.json"

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

_chunks_adapter = TypeAdapter(list[DocumentChunk])
_extractions_adapter = TypeAdapter(list[ChunkExtraction])


def _atomic_write(path: Path, payload: bytes) -> None:
    """Write payload to path via a same-directory temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def chunks_are_consistent(document_id: str, chunks: list[DocumentChunk]) -> bool:
    """True if chunks belong to the document and are indexed 0..n-1 in order."""
    return all(
        chunk.document_id == document_id and chunk.index == position
        for position, chunk in enumerate(chunks)
    )


def extractions_match(chunks: list[DocumentChunk], extractions: list[ChunkExtraction]) -> bool:
    """True if there is exactly one extraction per chunk, in chunk order."""
    if len(chunks) != len(extractions):
        return False
    return all(
        ext.chunk_id == chunk.id and ext.chunk_index == chunk.index
        for chunk, ext in zip(chunks, extractions)
    )


class PipelineCache:
    """
    File-backed checkpoint store keyed by document id.

    Args:
        cache_dir: Root directory; created on first write
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self._cache_dir = Path(cache_dir)

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def document_dir(self, document_id: str) -> Path:
        """
        Directory holding a document's artifacts.

        Raises:
            ValueError: If the id is not a safe single path component
        """
        if not _SAFE_ID.match(document_id) or document_id in {".", ".."}:
            raise ValueError(
                f"Invalid document id for cache: {document_id!r}. "
                "Must be alphanumeric, '.', '_' or '-' and not start with a separator."
            )
        return self._cache_dir / document_id

    def has_chunks(self, document_id: str) -> bool:
        return (self.document_dir(document_id) / CHUNKS_FILE).is_file()

    def has_extractions(self, document_id: str) -> bool:
        return (self.document_dir(document_id) / EXTRACTIONS_FILE).is_file()

    # -------------------------------------------------------------------------
    # Chunks
    # -------------------------------------------------------------------------

    async def load_chunks(self, document_id: str) -> list[DocumentChunk] | None:
        """Cached chunks, or None if absent, unreadable or inconsistent."""
        path = self.document_dir(document_id) / CHUNKS_FILE

        def _load() -> list[DocumentChunk] | None:
            if not path.is_file():
                return None
            try:
                chunks = _chunks_adapter.validate_json(path.read_bytes())
            except (OSError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable chunk cache {path}: {e}")
                return None
            if not chunks or not chunks_are_consistent(document_id, chunks):
                logger.warning(f"Ignoring inconsistent chunk cache {path}")
                return None
            return chunks

        chunks = await asyncio.to_thread(_load)
        if chunks is None:
            logger.debug(f"Chunk cache miss for {document_id}")
        else:
            logger.debug(f"Chunk cache hit for {document_id}: {len(chunks)} chunks")
        return chunks

    async def save_chunks(self, document_id: str, chunks: list[DocumentChunk]) -> None:
        """
        Commit the chunk list, invalidating any extraction cache.

        Raises:
            ValueError: If the chunks are not a dense list for this document
        """
        if not chunks_are_consistent(document_id, chunks):
            raise ValueError(f"Refusing to cache non-dense chunk list for {document_id}")

        doc_dir = self.document_dir(document_id)
        # Embeddings belong to the store, not the checkpoint
        payload = _chunks_adapter.dump_json(
            [chunk.model_copy(update={"embedding": None}) for chunk in chunks], indent=2
        )

        def _save() -> None:
            (doc_dir / EXTRACTIONS_FILE).unlink(missing_ok=True)
            _atomic_write(doc_dir / CHUNKS_FILE, payload)

        await asyncio.to_thread(_save)
        logger.debug(f"Cached {len(chunks)} chunks for {document_id}")

    # -------------------------------------------------------------------------
    # Extractions
    # -------------------------------------------------------------------------

    async def load_extractions(
        self,
        document_id: str,
        chunks: list[DocumentChunk],
    ) -> list[ChunkExtraction] | None:
        """Cached extractions, or None unless they match ``chunks`` one-to-one."""
        path = self.document_dir(document_id) / EXTRACTIONS_FILE

        def _load() -> list[ChunkExtraction] | None:
            if not path.is_file():
                return None
            try:
                extractions = _extractions_adapter.validate_json(path.read_bytes())
            except (OSError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable extraction cache {path}: {e}")
                return None
            if not extractions_match(chunks, extractions):
                logger.warning(f"Ignoring extraction cache {path}: does not match chunks")
                return None
            return extractions

        extractions = await asyncio.to_thread(_load)
        logger.debug(
            f"Extraction cache {'hit' if extractions is not None else 'miss'} for {document_id}"
        )
        return extractions

    async def save_extractions(
        self,
        document_id: str,
        extractions: list[ChunkExtraction],
    ) -> None:
        """
        Commit the extraction results.

        Raises:
            ValueError: If no chunk cache exists for the document
        """
        doc_dir = self.document_dir(document_id)
        payload = _extractions_adapter.dump_json(extractions, indent=2)

        def _save() -> None:
            if not (doc_dir / CHUNKS_FILE).is_file():
                raise ValueError(
                    f"Refusing to cache extractions for {document_id}: no chunk cache"
                )
            _atomic_write(doc_dir / EXTRACTIONS_FILE, payload)

        await asyncio.to_thread(_save)
        logger.debug(f"Cached {len(extractions)} extractions for {document_id}")

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    async def clear(self, document_id: str) -> bool:
        """Remove every artifact for a document. Returns True if anything existed."""
        doc_dir = self.document_dir(document_id)

        def _clear() -> bool:
            if not doc_dir.exists():
                return False
            # Extractions first so a partial clear never leaves them orphaned
            (doc_dir / EXTRACTIONS_FILE).unlink(missing_ok=True)
            shutil.rmtree(doc_dir)
            return True

        removed = await asyncio.to_thread(_clear)
        if removed:
            logger.info(f"Cleared pipeline cache for {document_id}")
        return removed
