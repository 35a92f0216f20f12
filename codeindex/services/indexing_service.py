"""
Incremental indexing of chunks into the vector table.

Each chunk gets a stable key derived from its namespace, content and
metadata. The key doubles as the vector row id, so a chunk whose key is
already recorded is unchanged and is skipped. Keys the run did not touch are
stale and are removed from both tables according to the cleanup mode:

- "incremental": every stale key in the namespace (sources that disappeared
  are cleared too, so an empty run empties the namespace)
- "scoped": only stale keys whose source was seen in this run
- None: nothing is deleted
"""
import hashlib
import json
import logging
import uuid
from typing import Dict, Iterable, List, Optional, Sequence

from langchain_core.documents import Document

from codeindex.exceptions import EmbeddingError
from codeindex.schemas import IndexingResult, VectorRow

# Set up logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

CLEANUP_MODES = ("incremental", "scoped", None)

# Fixed so keys are reproducible across runs and machines
KEY_NAMESPACE = uuid.UUID("6f3c4b2e-9d1a-4c55-8e7b-2a0f6d9e1c34")


def _sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def chunk_key(chunk: Document, namespace: str) -> str:
    """Stable key (a UUID string) for a chunk within a namespace"""
    content_hash = _sha256(chunk.page_content)
    try:
        metadata_hash = _sha256(json.dumps(chunk.metadata, sort_keys=True))
    except TypeError as e:
        raise ValueError(f"Chunk metadata must be JSON serializable: {chunk.metadata!r}") from e
    return str(uuid.uuid5(KEY_NAMESPACE, f"{namespace}:{content_hash}:{metadata_hash}"))


def _batches(items: Sequence, size: int) -> Iterable[Sequence]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _delete_stale(record_manager, vector_store, keys: List[str]) -> int:
    if not keys:
        return 0
    vector_store.delete_by_ids(keys)
    record_manager.delete_keys(keys)
    return len(keys)


def run_index(
    chunks: Iterable[Document],
    record_manager,
    vector_store,
    embedder,
    *,
    cleanup: Optional[str] = "incremental",
    source_id_key: str = "source",
    batch_size: int = 100,
) -> IndexingResult:
    """
    Index chunks, skipping unchanged ones and removing stale ones.

    Args:
        chunks: Chunks to index; each must carry metadata[source_id_key]
            when cleanup is enabled
        record_manager: PostgresRecordManager bound to the target namespace
        vector_store: PGVectorStore for the vector table
        embedder: EmbeddingService used for new chunks
        cleanup: "incremental", "scoped" or None
        source_id_key: Metadata key naming the chunk's source
        batch_size: Chunks processed per embed/upsert round

    Returns:
        IndexingResult with added, skipped and deleted counts

    Raises:
        ValueError: For an unknown cleanup mode or a chunk without a source
        EmbeddingError: If the embedder returns a different number of vectors than chunks
    """
    if cleanup not in CLEANUP_MODES:
        raise ValueError(f"cleanup must be one of {CLEANUP_MODES}, got {cleanup!r}")
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    chunks = list(chunks)
    namespace = record_manager.namespace

    sources: List[Optional[str]] = []
    for chunk in chunks:
        source = chunk.metadata.get(source_id_key)
        if cleanup is not None and source is None:
            raise ValueError(
                f"Chunk has no '{source_id_key}' in metadata: {chunk.page_content[:50]!r}"
            )
        sources.append(source)

    run_start = record_manager.get_time()
    logger.info(f"[Indexer] Indexing {len(chunks)} chunk(s) into namespace {namespace} (cleanup={cleanup})")

    result = IndexingResult()
    seen: Dict[str, Optional[str]] = {}

    pairs = list(zip(chunks, sources))
    for batch in _batches(pairs, batch_size):
        keyed = []
        for chunk, source in batch:
            key = chunk_key(chunk, namespace)
            if key in seen:
                result.num_skipped += 1
                continue
            seen[key] = source
            keyed.append((key, chunk, source))

        if not keyed:
            continue

        keys = [key for key, _, _ in keyed]
        exists = record_manager.exists(keys)

        unchanged = [item for item, present in zip(keyed, exists) if present]
        changed = [item for item, present in zip(keyed, exists) if not present]

        if unchanged:
            record_manager.update(
                [key for key, _, _ in unchanged],
                group_ids=[source for _, _, source in unchanged],
                time_at_least=run_start,
            )
            result.num_skipped += len(unchanged)

        if changed:
            vectors = embedder.embed_batch([chunk.page_content for _, chunk, _ in changed])
            if len(vectors) != len(changed):
                raise EmbeddingError(
                    f"Got {len(vectors)} embedding(s) for {len(changed)} chunk(s); nothing recorded for this batch"
                )
            rows = [
                VectorRow(id=uuid.UUID(key), content=chunk.page_content, metadata=dict(chunk.metadata), vector=vector)
                for (key, chunk, _), vector in zip(changed, vectors)
            ]
            vector_store.upsert(rows)
            record_manager.update(
                [key for key, _, _ in changed],
                group_ids=[source for _, _, source in changed],
                time_at_least=run_start,
            )
            result.num_added += len(changed)

        logger.debug(f"[Indexer] Batch done: {len(changed)} added, {len(unchanged)} unchanged")

    if cleanup == "incremental":
        stale = record_manager.list_keys(before=run_start)
        result.num_deleted = _delete_stale(record_manager, vector_store, stale)
    elif cleanup == "scoped":
        seen_sources = sorted({source for source in seen.values() if source is not None})
        if seen_sources:
            stale = record_manager.list_keys(before=run_start, group_ids=seen_sources)
            result.num_deleted = _delete_stale(record_manager, vector_store, stale)

    logger.info(
        f"[Indexer] Done: {result.num_added} added, {result.num_skipped} skipped, "
        f"{result.num_deleted} deleted"
    )
    return result
