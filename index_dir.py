# index_dir.py
# Index a directory of source files into the pgvector store

import logging
import os
import sys
from dataclasses import replace

from codeindex.cli import UsageArgumentParser, configure_logging, load_settings
from codeindex.config import Settings
from codeindex.db import get_engine
from codeindex.exceptions import ConfigurationError
from codeindex.schemas import IndexingResult
from codeindex.services.document_service import DocumentService, load_directory
from codeindex.services.embedding_service import EmbeddingService
from codeindex.services.indexing_service import run_index
from codeindex.services.record_manager import PostgresRecordManager
from codeindex.services.vector_store import PGVectorStore

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "code_index"


def index_directory(dir_path: str, namespace: str, settings: Settings, cleanup="incremental") -> IndexingResult:
    logger.info(f"Indexing directory: {dir_path}")

    docs = load_directory(dir_path)
    chunks = DocumentService(settings.chunk_size, settings.chunk_overlap).split(docs)
    if not chunks and cleanup == "incremental":
        logger.warning(f"No chunks found in {dir_path}; every record in namespace {namespace} will be removed")

    embedder = EmbeddingService.from_settings(settings)
    engine = get_engine(settings)
    try:
        vector_store = PGVectorStore(engine, settings.vector_table)
        record_manager = PostgresRecordManager(engine, settings.record_table, namespace)
        result = run_index(chunks, record_manager, vector_store, embedder, cleanup=cleanup)
    finally:
        engine.dispose()

    logger.info("Indexing complete!")
    return result


def build_parser() -> UsageArgumentParser:
    parser = UsageArgumentParser(
        prog="codeindex-index",
        description="Index a directory of text and source files into the vector store",
    )
    parser.add_argument("directory", help="Path to the directory to index")
    parser.add_argument("namespace", nargs="?", default=DEFAULT_NAMESPACE,
                        help=f"Record namespace (default: {DEFAULT_NAMESPACE})")
    parser.add_argument("--chunk-size", type=int, default=None, help="Maximum chunk size in characters")
    parser.add_argument("--chunk-overlap", type=int, default=None, help="Characters shared by adjacent chunks")
    parser.add_argument("--cleanup", choices=["incremental", "scoped", "none"], default="incremental",
                        help="Which stale records to delete (default: incremental)")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not os.path.isdir(args.directory):
        print(f"Error: Directory not found: {args.directory}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"Invalid configuration: {str(e)}")
        return 1
    overrides = {}
    if args.chunk_size is not None:
        overrides["chunk_size"] = args.chunk_size
    if args.chunk_overlap is not None:
        overrides["chunk_overlap"] = args.chunk_overlap
    if overrides:
        settings = replace(settings, **overrides)
    configure_logging(settings.log_level)

    logger.info(f"Using namespace: {args.namespace}")
    cleanup = None if args.cleanup == "none" else args.cleanup

    try:
        result = index_directory(args.directory, args.namespace, settings, cleanup=cleanup)
    except Exception as e:
        logger.error(f"Error during indexing: {str(e)}", exc_info=True)
        return 1

    print(f"Results: {result.model_dump()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
