# vector_store.py
import json
import logging
from typing import Any, Dict, Iterable, List, Sequence, Tuple
from uuid import UUID

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine
from sqlmodel import Session

from codeindex.db import quote_identifier
from codeindex.schemas import VectorRow

# Set up logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def to_pgvector(vector: Sequence[float]) -> str:
    """Text form of a vector accepted by CAST(... AS vector)"""
    return "[" + ",".join(repr(float(x)) for x in vector) + "]"


def _load_metadata(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    return value if isinstance(value, dict) else json.loads(value)


class PGVectorStore:
    """
    Vector table client: id, content, metadata (jsonb) and a pgvector column
    searched by L2 distance.
    """

    def __init__(self, engine: Engine, table_name: str = "code_vectors", batch_size: int = 100):
        self.engine = engine
        self.table_name = table_name
        self.table = quote_identifier(table_name)
        self.batch_size = batch_size

    def __enter__(self) -> "PGVectorStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end()

    def upsert(self, rows: Sequence[VectorRow]) -> None:
        """Insert rows, replacing content, metadata and vector of existing ids"""
        if not rows:
            return
        logger.info(f"[VectorStore] Upserting {len(rows)} row(s) into {self.table_name}")

        stmt = text(
            f"""
            INSERT INTO {self.table} (id, content, metadata, vector)
            VALUES (:id, :content, CAST(:metadata AS jsonb), CAST(:vector AS vector))
            ON CONFLICT (id) DO UPDATE
            SET content = EXCLUDED.content,
                metadata = EXCLUDED.metadata,
                vector = EXCLUDED.vector;
            """
        )
        try:
            with Session(self.engine) as session:
                for i in range(0, len(rows), self.batch_size):
                    batch = rows[i:i + self.batch_size]
                    session.execute(
                        stmt,
                        [
                            {
                                "id": row.id,
                                "content": row.content,
                                "metadata": json.dumps(row.metadata or {}),
                                "vector": to_pgvector(row.vector),
                            }
                            for row in batch
                        ],
                    )
                session.commit()
        except Exception as e:
            logger.error(f"[VectorStore] Error during upsert: {str(e)}", exc_info=True)
            raise

    def delete_by_ids(self, ids: Iterable[UUID]) -> int:
        """Delete rows by id, returning how many rows were removed"""
        ids = [UUID(str(i)) for i in ids]
        if not ids:
            return 0

        stmt = text(f"DELETE FROM {self.table} WHERE id IN :ids").bindparams(
            bindparam("ids", expanding=True)
        )
        deleted = 0
        with Session(self.engine) as session:
            for i in range(0, len(ids), self.batch_size):
                result = session.execute(stmt, {"ids": ids[i:i + self.batch_size]})
                deleted += result.rowcount
            session.commit()
        logger.info(f"[VectorStore] Deleted {deleted} row(s) from {self.table_name}")
        return deleted

    def similarity_search(self, query_vector: Sequence[float], k: int = 3) -> List[Tuple[VectorRow, float]]:
        """
        Nearest rows to query_vector by L2 distance.

        Returns at most k (row, distance) pairs ordered by ascending distance.
        Results come from the HNSW index and are approximate.
        """
        sql = text(
            f"""
            SELECT id, content, metadata,
                   vector <-> CAST(:query_embedding AS vector) AS distance
            FROM {self.table}
            ORDER BY vector <-> CAST(:query_embedding AS vector)
            LIMIT :top_k;
            """
        )
        with Session(self.engine) as session:
            results = session.execute(
                sql, {"query_embedding": to_pgvector(query_vector), "top_k": k}
            ).fetchall()
        logger.info(f"[VectorStore] Similarity search returned {len(results)} result(s)")

        return [
            (
                VectorRow(id=r.id, content=r.content, metadata=_load_metadata(r.metadata)),
                float(r.distance),
            )
            for r in results
        ]

    def count(self) -> int:
        with Session(self.engine) as session:
            return session.execute(text(f"SELECT COUNT(*) FROM {self.table}")).scalar_one()

    def list_sources(self) -> List[str]:
        """Distinct metadata.source values present in the table"""
        with Session(self.engine) as session:
            rows = session.execute(
                text(
                    f"""
                    SELECT DISTINCT metadata->>'source' AS source
                    FROM {self.table}
                    WHERE metadata ? 'source'
                    ORDER BY source
                    """
                )
            ).fetchall()
        return [row.source for row in rows]

    def end(self) -> None:
        """Release pooled connections"""
        self.engine.dispose()
