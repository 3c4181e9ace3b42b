"""
Storage

Graph store interface and the embedded Parquet implementation.

Modules:
    base: GraphStore abstract interface
    parquet: ParquetGraphStore (pyarrow part files, file lock)
    duckdb: DuckDB read layer
"""

from graphen.storage.base import GraphStore
from graphen.storage.parquet import ParquetGraphStore

__all__ = ["GraphStore", "ParquetGraphStore"]
