"""DuckDB read layer over Parquet datasets."""

from graphen.storage.duckdb.queries import DuckDBQueries

__all__ = ["DuckDBQueries"]
