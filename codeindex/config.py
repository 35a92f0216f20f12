"""
Settings for the indexing, search and schema tools
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from codeindex.exceptions import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """Connection parameters, table names and embedding options.

    Built once by the command-line entry points and handed to each component,
    so nothing below the CLI reads the environment.
    """
    db_host: str = "127.0.0.1"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_name: str = "langchain"
    vector_table: str = "code_vectors"
    record_table: str = "code_records"

    embedding_provider: str = "ollama"
    # None picks the provider's default model
    embedding_model: Optional[str] = None
    embedding_dimension: int = 768
    embedding_batch_size: int = 32
    embedding_timeout: float = 60.0
    ollama_base_url: str = "http://127.0.0.1:11434"
    jina_api_key: Optional[str] = None

    chunk_size: int = 2000
    chunk_overlap: int = 400
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Create settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings instance

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        try:
            return cls(
                db_host=env.get("DB_HOST", defaults.db_host),
                db_port=int(env.get("DB_PORT", defaults.db_port)),
                db_user=env.get("DB_USER", defaults.db_user),
                db_password=env.get("DB_PASSWORD", defaults.db_password),
                db_name=env.get("DB_NAME", defaults.db_name),
                vector_table=env.get("VECTOR_TABLE", defaults.vector_table),
                record_table=env.get("RECORD_TABLE", defaults.record_table),
                embedding_provider=env.get("EMBEDDING_PROVIDER", defaults.embedding_provider).lower(),
                embedding_model=env.get("EMBEDDING_MODEL") or None,
                embedding_dimension=int(env.get("EMBEDDING_DIMENSION", defaults.embedding_dimension)),
                embedding_batch_size=int(env.get("EMBEDDING_BATCH_SIZE", defaults.embedding_batch_size)),
                embedding_timeout=float(env.get("EMBEDDING_TIMEOUT", defaults.embedding_timeout)),
                ollama_base_url=env.get("OLLAMA_BASE_URL", defaults.ollama_base_url),
                jina_api_key=env.get("JINA_API_KEY") or None,
                log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e
