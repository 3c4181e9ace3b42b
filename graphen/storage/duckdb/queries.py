"""
DuckDB Query Layer

SQL reads over the Parquet dataset directories written by ParquetGraphStore.

Every table is append-only; an id may appear in several part files. Reads
keep the most recently written row per id (latest-row-wins).
"""

import asyncio
import json
import threading
from pathlib import Path
from typing import Any

import duckdb

from graphen.types import Document, DocumentChunk, GraphEdge, GraphNode

TABLES = ("nodes", "edges", "chunks", "documents")


def _json_list(value: Any) -> list[Any]:
    if isinstance(value, str):
        return json.loads(value) if value else []
    return list(value or [])


def _json_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, str):
        return json.loads(value) if value else {}
    return dict(value or {})


class DuckDBQueries:
    """
    DuckDB query layer for the graph store's Parquet datasets.

    Thread safety:
        Uses thread-local storage for connections since DuckDB connections
        are not thread-safe and asyncio.to_thread() may use different threads.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self._local = threading.local()
        self._connections: list[duckdb.DuckDBPyConnection] = []
        self._connections_lock = threading.Lock()
        self._initialized = False

    async def initialize(self) -> None:
        """Mark as ready; connections are created per thread on first use."""
        self._initialized = True

    async def close(self) -> None:
        """Close every connection opened by any worker thread."""
        self._initialized = False
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local = threading.local()

    def _get_conn(self) -> duckdb.DuckDBPyConnection:
        """Get thread-local DuckDB connection, creating if needed."""
        if not self._initialized:
            raise RuntimeError("DuckDB not initialized. Call initialize() first.")

        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = duckdb.connect()
            self._local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def _has_data(self, table: str) -> bool:
        dataset = self.root / table
        return dataset.is_dir() and any(dataset.glob("*.parquet"))

    def _latest(self, table: str) -> str:
        """SQL relation of the latest row per id for a table."""
        pattern = str(self.root / table / "*.parquet").replace("'", "''")
        return f"""(
            SELECT * EXCLUDE (filename)
            FROM read_parquet('{pattern}', filename = true)
            QUALIFY ROW_NUMBER() OVER (
                PARTITION BY id ORDER BY written_at DESC, filename DESC
            ) = 1
        )"""

    def _fetch(self, table: str, where: str = "", params: list[Any] | None = None,
               order_by: str = "") -> list[dict[str, Any]]:
        if not self._has_data(table):
            return []
        conn = self._get_conn()
        sql = f"SELECT * FROM {self._latest(table)} AS t"
        if where:
            sql += f" WHERE {where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        cursor = conn.execute(sql, params or [])
        col_names = [desc[0] for desc in cursor.description]
        return [dict(zip(col_names, row)) for row in cursor.fetchall()]

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document | None:
        def _query() -> Document | None:
            rows = self._fetch("documents", "id = ?", [document_id])
            return self._row_to_document(rows[0]) if rows else None

        return await asyncio.to_thread(_query)

    def _row_to_document(self, row: dict[str, Any]) -> Document:
        return Document(
            id=row["id"],
            filename=row["filename"],
            file_type=row["file_type"],
            file_size=row["file_size"],
            status=row["status"],
            uploaded_at=row["uploaded_at"],
            parsed_at=row.get("parsed_at"),
            metadata=_json_dict(row.get("metadata")),
            error_message=row.get("error_message"),
        )

    # -------------------------------------------------------------------------
    # Chunks
    # -------------------------------------------------------------------------

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Chunks of a document, in index order."""
        def _query() -> list[DocumentChunk]:
            rows = self._fetch("chunks", "document_id = ?", [document_id], "chunk_index")
            return [
                DocumentChunk(
                    id=row["id"],
                    document_id=row["document_id"],
                    content=row["content"],
                    index=row["chunk_index"],
                    embedding=row.get("embedding"),
                    metadata=_json_dict(row.get("metadata")),
                )
                for row in rows
            ]

        return await asyncio.to_thread(_query)

    # -------------------------------------------------------------------------
    # Graph
    # -------------------------------------------------------------------------

    async def get_nodes(self, document_id: str | None = None) -> list[GraphNode]:
        """Nodes, optionally restricted to those sourced from one document."""
        def _query() -> list[GraphNode]:
            rows = self._fetch("nodes", order_by="name, id")
            nodes = [
                GraphNode(
                    id=row["id"],
                    name=row["name"],
                    type=row["type"],
                    description=row["description"],
                    confidence=row["confidence"],
                    aliases=_json_list(row.get("aliases")),
                    source_document_ids=_json_list(row.get("source_document_ids")),
                    source_chunk_ids=_json_list(row.get("source_chunk_ids")),
                    embedding=row.get("embedding"),
                    created_at=row.get("created_at"),
                    updated_at=row.get("updated_at"),
                )
                for row in rows
            ]
            if document_id is not None:
                nodes = [n for n in nodes if document_id in n.source_document_ids]
            return nodes

        return await asyncio.to_thread(_query)

    async def get_edges(self) -> list[GraphEdge]:
        def _query() -> list[GraphEdge]:
            rows = self._fetch("edges", order_by="relation_type, id")
            return [
                GraphEdge(
                    id=row["id"],
                    source_node_id=row["source_node_id"],
                    target_node_id=row["target_node_id"],
                    relation_type=row["relation_type"],
                    description=row["description"],
                    weight=row["weight"],
                    confidence=row["confidence"],
                    source_document_ids=_json_list(row.get("source_document_ids")),
                    source_chunk_ids=_json_list(row.get("source_chunk_ids")),
                    created_at=row.get("created_at"),
                )
                for row in rows
            ]

        return await asyncio.to_thread(_query)

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def count(self, table: str) -> int:
        """Distinct ids in a table (0 if nothing was written yet)."""
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")

        def _query() -> int:
            if not self._has_data(table):
                return 0
            pattern = str(self.root / table / "*.parquet").replace("'", "''")
            result = self._get_conn().execute(
                f"SELECT COUNT(DISTINCT id) FROM read_parquet('{pattern}')"
            ).fetchone()
            return int(result[0]) if result else 0

        return await asyncio.to_thread(_query)

    async def ping(self) -> bool:
        def _query() -> bool:
            result = self._get_conn().execute("SELECT 1").fetchone()
            return bool(result and result[0] == 1)

        return await asyncio.to_thread(_query)
