"""
Similarity search over the indexed chunks
"""
import logging
from typing import List

from codeindex.schemas import SearchResult

# Set up logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def search(query: str, top_k: int, embedder, vector_store) -> List[SearchResult]:
    """
    Embed a query and return the nearest chunks.

    Args:
        query: Free-text query
        top_k: Maximum number of results
        embedder: EmbeddingService used at index time
        vector_store: PGVectorStore to search

    Returns:
        Up to top_k results ordered by ascending distance
    """
    if not query or not query.strip():
        raise ValueError("query must be a non-empty string")
    if top_k < 1:
        raise ValueError(f"top_k must be at least 1, got {top_k}")

    logger.info(f"[Retriever] Starting retrieval for query: '{query[:100]}' (top_k={top_k})")
    query_vector = embedder.embed(query)
    logger.debug(f"[Retriever] Query embedding dimension: {len(query_vector)}")

    hits = vector_store.similarity_search(query_vector, k=top_k)
    results = [
        SearchResult(id=row.id, content=row.content, metadata=row.metadata, distance=distance)
        for row, distance in hits
    ]

    if results:
        logger.info(f"[Retriever] Best match distance: {results[0].distance:.4f}")
    else:
        logger.warning("[Retriever] No documents retrieved - the vector table may be empty")
    return results
