"""
Shared test fixtures: in-memory stand-ins for the record manager, vector
store and embedding backend.
"""

import hashlib
import math
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import pytest

# Root-level scripts (index_dir, retrieval, recreate_schema) are imported by the CLI tests
sys.path.insert(0, str(Path(__file__).parent.parent))

from codeindex.schemas import VectorRow  # noqa: E402


class FakeEmbedder:
    """Deterministic bag-of-words embedding; identical texts give identical vectors."""

    def __init__(self, dimension: int = 16):
        self.dimension = dimension
        self.calls: List[List[str]] = []

    def _vector(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        for word in text.split():
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        return vector

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed(self, text: str) -> List[float]:
        return self.embed_batch([text])[0]

    def get_embedding_dimension(self) -> int:
        return self.dimension

    @property
    def embedded_count(self) -> int:
        return sum(len(batch) for batch in self.calls)


class FakeRecordManager:
    """Record manager backed by a dict, with a strictly increasing clock."""

    def __init__(self, namespace: str = "code_index"):
        self.namespace = namespace
        self.records: Dict[str, Tuple[float, Optional[str]]] = {}
        self._clock = 1000.0
        self.ended = False

    def get_time(self) -> float:
        self._clock += 1.0
        return self._clock

    def update(self, keys, group_ids=None, time_at_least=None):
        now = self.get_time()
        if time_at_least is not None:
            assert now >= time_at_least
        group_ids = group_ids or [None] * len(keys)
        for key, group_id in zip(keys, group_ids):
            self.records[key] = (now, group_id)

    def exists(self, keys):
        return [key in self.records for key in keys]

    def list_keys(self, before=None, after=None, group_ids=None, limit=None):
        keys = []
        for key, (updated_at, group_id) in sorted(self.records.items()):
            if before is not None and updated_at >= before:
                continue
            if after is not None and updated_at <= after:
                continue
            if group_ids is not None and group_id not in group_ids:
                continue
            keys.append(key)
        return keys[:limit] if limit is not None else keys

    def list_keys_older_than(self, cutoff):
        return self.list_keys(before=cutoff)

    def delete_keys(self, keys):
        for key in keys:
            self.records.pop(key, None)

    def end(self):
        self.ended = True


class FakeVectorStore:
    """Vector store backed by a dict keyed by row id, exact L2 search."""

    def __init__(self):
        self.rows: Dict[UUID, VectorRow] = {}

    def upsert(self, rows: Sequence[VectorRow]) -> None:
        for row in rows:
            self.rows[row.id] = row

    def delete_by_ids(self, ids) -> int:
        deleted = 0
        for i in ids:
            if self.rows.pop(UUID(str(i)), None) is not None:
                deleted += 1
        return deleted

    def similarity_search(self, query_vector, k=3):
        scored = [
            (row, math.sqrt(sum((a - b) ** 2 for a, b in zip(row.vector, query_vector))))
            for row in self.rows.values()
        ]
        scored.sort(key=lambda pair: (pair[1], str(pair[0].id)))
        return [(row.model_copy(update={"vector": []}), distance) for row, distance in scored[:k]]

    def sources(self) -> List[str]:
        return sorted({row.metadata.get("source") for row in self.rows.values()})

    def end(self):
        pass


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def record_manager():
    return FakeRecordManager()


@pytest.fixture
def vector_store():
    return FakeVectorStore()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove codeindex variables so defaults apply"""
    for name in list(os.environ):
        if name.startswith(("DB_", "EMBEDDING_", "OLLAMA_", "JINA_")) or name in (
            "VECTOR_TABLE", "RECORD_TABLE", "LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def make_record_manager():
    return FakeRecordManager
