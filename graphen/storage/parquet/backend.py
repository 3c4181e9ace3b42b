"""
Parquet Graph Store

Embedded GraphStore: pyarrow writes, DuckDB reads.
"""

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

import pyarrow as pa
import pyarrow.parquet as pq
from filelock import FileLock

from graphen.config import GraphenConfig
from graphen.storage.base import GraphStore
from graphen.storage.duckdb.queries import DuckDBQueries
from graphen.types import Document, DocumentChunk, GraphEdge, GraphNode

logger = logging.getLogger(__name__)

_EMBEDDING = pa.list_(pa.float64())

NODE_SCHEMA = pa.schema([
    ("id", pa.string()),
    ("name", pa.string()),
    ("type", pa.string()),
    ("description", pa.string()),
    ("confidence", pa.float64()),
    ("aliases", pa.string()),
    ("source_document_ids", pa.string()),
    ("source_chunk_ids", pa.string()),
    ("embedding", _EMBEDDING),
    ("created_at", pa.string()),
    ("updated_at", pa.string()),
    ("written_at", pa.int64()),
])

EDGE_SCHEMA = pa.schema([
    ("id", pa.string()),
    ("source_node_id", pa.string()),
    ("target_node_id", pa.string()),
    ("relation_type", pa.string()),
    ("description", pa.string()),
    ("weight", pa.int64()),
    ("confidence", pa.float64()),
    ("source_document_ids", pa.string()),
    ("source_chunk_ids", pa.string()),
    ("created_at", pa.string()),
    ("written_at", pa.int64()),
])

CHUNK_SCHEMA = pa.schema([
    ("id", pa.string()),
    ("document_id", pa.string()),
    ("content", pa.string()),
    ("chunk_index", pa.int64()),
    ("embedding", _EMBEDDING),
    ("metadata", pa.string()),
    ("written_at", pa.int64()),
])

DOCUMENT_SCHEMA = pa.schema([
    ("id", pa.string()),
    ("filename", pa.string()),
    ("file_type", pa.string()),
    ("file_size", pa.int64()),
    ("status", pa.string()),
    ("uploaded_at", pa.string()),
    ("parsed_at", pa.string()),
    ("metadata", pa.string()),
    ("error_message", pa.string()),
    ("written_at", pa.int64()),
])


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class ParquetGraphStore(GraphStore):
    """
    Parquet-based graph store.

    Directory structure:
        storage_path/
        ├── nodes/        part-*.parquet
        ├── edges/        part-*.parquet
        ├── chunks/       part-*.parquet
        ├── documents/    part-*.parquet
        ├── metadata.json
        └── .graph.lock

    Every save appends one immutable part file (written to a temp name and
    renamed). Re-saving an id appends a newer row; reads keep the latest.

    Thread safety:
        - Write operations use file locking (.graph.lock)
        - Read operations are concurrent-safe (part files are immutable)
    """

    SCHEMA_VERSION = "1.0.0"

    def __init__(self, storage_path: Path | str, config: GraphenConfig | None = None):
        self._path = Path(storage_path)
        self.config = config or GraphenConfig()
        self._lock = FileLock(str(self._path / ".graph.lock"), timeout=30)
        self._duckdb = DuckDBQueries(self._path)
        self._connected = False

    @property
    def path(self) -> Path:
        return self._path

    async def connect(self) -> None:
        if self._connected:
            return

        def _init() -> None:
            self._path.mkdir(parents=True, exist_ok=True)
            self._write_metadata_if_missing()

        await asyncio.to_thread(_init)
        await self._duckdb.initialize()
        self._connected = True
        logger.debug(f"Connected graph store at {self._path}")

    async def disconnect(self) -> None:
        await self._duckdb.close()
        self._connected = False

    async def health_check(self) -> bool:
        if not self._connected or not self._path.is_dir():
            return False
        try:
            return await self._duckdb.ping()
        except Exception as e:
            logger.warning(f"Graph store health check failed: {e}")
            return False

    def _write_metadata_if_missing(self) -> None:
        meta_path = self._path / "metadata.json"
        if not meta_path.exists():
            metadata = {
                "schema_version": self.SCHEMA_VERSION,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            meta_path.write_text(json.dumps(metadata, indent=2))

    def _require_connected(self) -> None:
        if not self._connected:
            raise RuntimeError("Graph store not connected. Call connect() first.")

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    async def save_nodes(self, nodes: list[GraphNode]) -> None:
        if not nodes:
            return
        self._require_connected()
        now = datetime.now(timezone.utc).isoformat()
        data: dict[str, list[Any]] = {
            "id": [n.id for n in nodes],
            "name": [n.name for n in nodes],
            "type": [n.type for n in nodes],
            "description": [n.description for n in nodes],
            "confidence": [n.confidence for n in nodes],
            "aliases": [json.dumps(n.aliases) for n in nodes],
            "source_document_ids": [json.dumps(n.source_document_ids) for n in nodes],
            "source_chunk_ids": [json.dumps(n.source_chunk_ids) for n in nodes],
            "embedding": [n.embedding for n in nodes],
            "created_at": [n.created_at or now for n in nodes],
            "updated_at": [now for _ in nodes],
        }
        await self._write("nodes", data, NODE_SCHEMA)

    async def save_edges(self, edges: list[GraphEdge]) -> None:
        if not edges:
            return
        self._require_connected()
        now = datetime.now(timezone.utc).isoformat()
        data: dict[str, list[Any]] = {
            "id": [e.id for e in edges],
            "source_node_id": [e.source_node_id for e in edges],
            "target_node_id": [e.target_node_id for e in edges],
            "relation_type": [e.relation_type for e in edges],
            "description": [e.description for e in edges],
            "weight": [e.weight for e in edges],
            "confidence": [e.confidence for e in edges],
            "source_document_ids": [json.dumps(e.source_document_ids) for e in edges],
            "source_chunk_ids": [json.dumps(e.source_chunk_ids) for e in edges],
            "created_at": [e.created_at or now for e in edges],
        }
        await self._write("edges", data, EDGE_SCHEMA)

    async def save_chunks(self, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            return
        self._require_connected()
        data: dict[str, list[Any]] = {
            "id": [c.id for c in chunks],
            "document_id": [c.document_id for c in chunks],
            "content": [c.content for c in chunks],
            "chunk_index": [c.index for c in chunks],
            "embedding": [c.embedding for c in chunks],
            "metadata": [json.dumps(c.metadata) for c in chunks],
        }
        await self._write("chunks", data, CHUNK_SCHEMA)

    async def save_document(self, document: Document) -> None:
        self._require_connected()
        data: dict[str, list[Any]] = {
            "id": [document.id],
            "filename": [document.filename],
            "file_type": [document.file_type],
            "file_size": [document.file_size],
            "status": [document.status],
            "uploaded_at": [_iso(document.uploaded_at)],
            "parsed_at": [_iso(document.parsed_at)],
            "metadata": [json.dumps(document.metadata, default=str)],
            "error_message": [document.error_message],
        }
        await self._write("documents", data, DOCUMENT_SCHEMA)

    async def _write(self, table: str, data: dict[str, list[Any]], schema: pa.Schema) -> None:
        rows = len(data["id"])
        data["written_at"] = [time.time_ns()] * rows

        def _locked_write() -> None:
            with self._lock:
                self._append_to_parquet(table, data, schema)

        await asyncio.to_thread(_locked_write)
        logger.debug(f"Wrote {rows} rows to {table}")

    def _append_to_parquet(
        self,
        table_name: str,
        data: dict[str, list[Any]],
        schema: pa.Schema,
    ) -> None:
        """Append one immutable part file to the table's dataset directory."""
        dataset = self._path / table_name
        dataset.mkdir(parents=True, exist_ok=True)
        table = pa.Table.from_pydict(data, schema=schema)

        now_part = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        part_name = f"part-{now_part}-{uuid4().hex}.parquet"
        temp_part_path = dataset / f".{part_name}.tmp"
        compression = self.config.parquet_compression
        pq.write_table(
            table,
            temp_part_path,
            compression=None if compression == "none" else compression,
        )
        temp_part_path.replace(dataset / part_name)

    # -------------------------------------------------------------------------
    # Read Operations (delegate to DuckDB)
    # -------------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document | None:
        self._require_connected()
        return await self._duckdb.get_document(document_id)

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        self._require_connected()
        return await self._duckdb.get_chunks(document_id)

    async def get_nodes(self, document_id: str | None = None) -> list[GraphNode]:
        self._require_connected()
        return await self._duckdb.get_nodes(document_id)

    async def get_edges(self) -> list[GraphEdge]:
        self._require_connected()
        return await self._duckdb.get_edges()

    async def count_nodes(self) -> int:
        self._require_connected()
        return await self._duckdb.count("nodes")

    async def count_edges(self) -> int:
        self._require_connected()
        return await self._duckdb.count("edges")

    async def count_chunks(self) -> int:
        self._require_connected()
        return await self._duckdb.count("chunks")

    async def count_documents(self) -> int:
        self._require_connected()
        return await self._duckdb.count("documents")
