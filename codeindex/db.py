# db.py
import logging
import re

from sqlalchemy.engine import URL, Engine
from sqlmodel import create_engine

from codeindex.config import Settings
from codeindex.exceptions import ConfigurationError

# Set up logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

POOL_SETTINGS = {
    "pool_size": 5,  # Number of connections to maintain
    "max_overflow": 10,  # Additional connections allowed beyond pool_size
    "pool_recycle": 3600,  # Recycle connections after 1 hour
    "pool_pre_ping": True,  # Test connections before using them (handles dropped connections)
    "pool_reset_on_return": "commit",  # Reset connections when returned to pool
}


def quote_identifier(name: str) -> str:
    """
    Validate a table name from configuration and return it double-quoted.

    Table names cannot be bound as query parameters, so anything that is not a
    plain Postgres identifier is rejected.
    """
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ConfigurationError(f"Invalid table name: {name!r}")
    return f'"{name}"'


def database_url(settings: Settings) -> URL:
    # psycopg (psycopg3) sync driver
    return URL.create(
        "postgresql+psycopg",
        username=settings.db_user,
        password=settings.db_password,
        host=settings.db_host,
        port=settings.db_port,
        database=settings.db_name,
    )


def get_engine(settings: Settings) -> Engine:
    url = database_url(settings)
    logger.info(
        f"[DB] Creating engine for {settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )
    return create_engine(url, **POOL_SETTINGS)
