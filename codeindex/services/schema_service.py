# schema_service.py
import logging
from typing import List

from sqlalchemy import text
from sqlalchemy.engine import Engine

from codeindex.config import Settings
from codeindex.db import quote_identifier

# Set up logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def drop_statements(settings: Settings) -> List[str]:
    return [
        f"DROP TABLE IF EXISTS {quote_identifier(settings.record_table)}",
        f"DROP TABLE IF EXISTS {quote_identifier(settings.vector_table)}",
    ]


def record_table_statements(settings: Settings) -> List[str]:
    table = quote_identifier(settings.record_table)
    name = settings.record_table
    return [
        'CREATE EXTENSION IF NOT EXISTS "pgcrypto"',  # gen_random_uuid()
        f"""
        CREATE TABLE IF NOT EXISTS {table} (
          uuid UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          "key" TEXT NOT NULL,
          namespace TEXT NOT NULL,
          updated_at DOUBLE PRECISION NOT NULL,
          group_id TEXT,
          UNIQUE ("key", namespace)
        )
        """,
        f'CREATE INDEX IF NOT EXISTS "{name}_updated_at_idx" ON {table} (updated_at)',
        f'CREATE INDEX IF NOT EXISTS "{name}_namespace_idx" ON {table} (namespace)',
        f'CREATE INDEX IF NOT EXISTS "{name}_group_id_idx" ON {table} (group_id)',
    ]


def vector_table_statements(settings: Settings) -> List[str]:
    table = quote_identifier(settings.vector_table)
    name = settings.vector_table
    dimension = int(settings.embedding_dimension)
    if dimension < 1:
        raise ValueError(f"Invalid embedding dimension: {dimension}")
    return [
        "CREATE EXTENSION IF NOT EXISTS vector",
        f"""
        CREATE TABLE IF NOT EXISTS {table} (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          content TEXT NOT NULL,
          metadata JSONB,
          vector VECTOR({dimension})
        )
        """,
        f'CREATE INDEX IF NOT EXISTS "{name}_vector_idx" ON {table} USING hnsw (vector vector_l2_ops)',
    ]


def create_schema(engine: Engine, settings: Settings) -> None:
    """Create both tables and their indexes if they do not exist"""
    _run(engine, record_table_statements(settings) + vector_table_statements(settings))
    logger.info("[Schema] Schema created")


def recreate_schema(engine: Engine, settings: Settings) -> None:
    """
    Drop and recreate the record and vector tables.

    Destructive: every indexed chunk and record is lost. Runs in a single
    transaction, so a failure leaves the previous schema in place.
    """
    logger.info("[Schema] Dropping existing tables...")
    _run(
        engine,
        drop_statements(settings) + record_table_statements(settings) + vector_table_statements(settings),
    )
    logger.info("[Schema] Schema recreated successfully!")


def _run(engine: Engine, statements: List[str]) -> None:
    try:
        with engine.begin() as conn:
            for statement in statements:
                logger.debug(f"[Schema] {' '.join(statement.split())}")
                conn.execute(text(statement))
    except Exception as e:
        logger.error(f"[Schema] Error creating schema: {str(e)}", exc_info=True)
        raise
