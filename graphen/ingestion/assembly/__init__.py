"""
Assembly

Writes the resolved, embedded graph to the graph store.
"""

from graphen.ingestion.assembly.persistence import PersistenceAdapter, completed_document

__all__ = ["PersistenceAdapter", "completed_document"]
