# record_manager.py
import logging
from typing import List, Optional, Sequence

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine
from sqlmodel import Session

from codeindex.db import quote_identifier
from codeindex.exceptions import ClockSkewError

# Set up logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class PostgresRecordManager:
    """
    Tracks which chunk keys were written to the vector table and when.

    One row per (key, namespace); updated_at is the database clock in epoch
    seconds at the time the key was last seen by an indexing run.
    """

    def __init__(self, engine: Engine, table_name: str = "code_records", namespace: str = "code_index",
                 batch_size: int = 500):
        if not namespace:
            raise ValueError("namespace must be a non-empty string")
        self.engine = engine
        self.table_name = table_name
        self.table = quote_identifier(table_name)
        self.namespace = namespace
        self.batch_size = batch_size

    def __enter__(self) -> "PostgresRecordManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end()

    def _now(self, session: Session) -> float:
        return float(session.execute(text("SELECT EXTRACT(EPOCH FROM CURRENT_TIMESTAMP)")).scalar_one())

    def get_time(self) -> float:
        """Current database time in epoch seconds"""
        with Session(self.engine) as session:
            return self._now(session)

    def update(
        self,
        keys: Sequence[str],
        group_ids: Optional[Sequence[Optional[str]]] = None,
        time_at_least: Optional[float] = None,
    ) -> None:
        """
        Insert or refresh keys with the current database time.

        Args:
            keys: Record keys
            group_ids: Optional group per key (the chunk's source)
            time_at_least: Start of the indexing run; the database clock must
                not be behind it

        Raises:
            ClockSkewError: If the database time is earlier than time_at_least
        """
        if not keys:
            return
        if group_ids is None:
            group_ids = [None] * len(keys)
        if len(group_ids) != len(keys):
            raise ValueError(f"Got {len(group_ids)} group id(s) for {len(keys)} key(s)")

        stmt = text(
            f"""
            INSERT INTO {self.table} ("key", namespace, updated_at, group_id)
            VALUES (:key, :namespace, :updated_at, :group_id)
            ON CONFLICT ("key", namespace) DO UPDATE
            SET updated_at = EXCLUDED.updated_at,
                group_id = EXCLUDED.group_id;
            """
        )
        with Session(self.engine) as session:
            updated_at = self._now(session)
            if time_at_least is not None and updated_at < time_at_least:
                raise ClockSkewError(
                    f"Database time {updated_at} is earlier than run start {time_at_least}"
                )
            params = [
                {"key": key, "namespace": self.namespace, "updated_at": updated_at, "group_id": group_id}
                for key, group_id in zip(keys, group_ids)
            ]
            for i in range(0, len(params), self.batch_size):
                session.execute(stmt, params[i:i + self.batch_size])
            session.commit()
        logger.debug(f"[RecordManager] Recorded {len(keys)} key(s) in namespace {self.namespace}")

    def exists(self, keys: Sequence[str]) -> List[bool]:
        """For each key, whether it is recorded in this namespace"""
        if not keys:
            return []
        stmt = text(
            f'SELECT "key" FROM {self.table} WHERE namespace = :namespace AND "key" IN :keys'
        ).bindparams(bindparam("keys", expanding=True))

        found = set()
        with Session(self.engine) as session:
            for i in range(0, len(keys), self.batch_size):
                rows = session.execute(
                    stmt, {"namespace": self.namespace, "keys": list(keys[i:i + self.batch_size])}
                ).fetchall()
                found.update(row.key for row in rows)
        return [key in found for key in keys]

    def list_keys(
        self,
        before: Optional[float] = None,
        after: Optional[float] = None,
        group_ids: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> List[str]:
        """
        Keys recorded in this namespace, optionally filtered.

        Args:
            before: Only keys with updated_at strictly earlier than this
            after: Only keys with updated_at strictly later than this
            group_ids: Only keys belonging to one of these groups
            limit: Maximum number of keys
        """
        clauses = ["namespace = :namespace"]
        params = {"namespace": self.namespace}
        bind = []
        if before is not None:
            clauses.append("updated_at < :before")
            params["before"] = before
        if after is not None:
            clauses.append("updated_at > :after")
            params["after"] = after
        if group_ids is not None:
            if not group_ids:
                return []
            clauses.append("group_id IN :group_ids")
            params["group_ids"] = list(group_ids)
            bind.append(bindparam("group_ids", expanding=True))

        sql = f'SELECT "key" FROM {self.table} WHERE {" AND ".join(clauses)} ORDER BY "key"'
        if limit is not None:
            sql += " LIMIT :limit"
            params["limit"] = limit
        stmt = text(sql)
        if bind:
            stmt = stmt.bindparams(*bind)

        with Session(self.engine) as session:
            rows = session.execute(stmt, params).fetchall()
        return [row.key for row in rows]

    def list_keys_older_than(self, cutoff: float) -> List[str]:
        return self.list_keys(before=cutoff)

    def delete_keys(self, keys: Sequence[str]) -> None:
        if not keys:
            return
        stmt = text(
            f'DELETE FROM {self.table} WHERE namespace = :namespace AND "key" IN :keys'
        ).bindparams(bindparam("keys", expanding=True))
        with Session(self.engine) as session:
            for i in range(0, len(keys), self.batch_size):
                session.execute(stmt, {"namespace": self.namespace, "keys": list(keys[i:i + self.batch_size])})
            session.commit()
        logger.info(f"[RecordManager] Deleted {len(keys)} key(s) from namespace {self.namespace}")

    def end(self) -> None:
        """Release pooled connections"""
        self.engine.dispose()
