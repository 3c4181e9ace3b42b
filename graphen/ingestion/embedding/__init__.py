"""
Embedding

Node and chunk embeddings through the shared rate limiter.
"""

from graphen.ingestion.embedding.coordinator import EmbeddingCoordinator, node_embedding_text

__all__ = ["EmbeddingCoordinator", "node_embedding_text"]
