"""Parquet-backed graph store."""

from graphen.storage.parquet.backend import ParquetGraphStore

__all__ = ["ParquetGraphStore"]
