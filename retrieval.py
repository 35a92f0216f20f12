# retrieval.py
# Search the indexed chunks for the ones closest to a query

import argparse
import logging
import sys
from typing import List

from codeindex.cli import UsageArgumentParser, configure_logging, load_settings
from codeindex.config import Settings
from codeindex.db import get_engine
from codeindex.exceptions import ConfigurationError
from codeindex.schemas import SearchResult
from codeindex.services.embedding_service import EmbeddingService
from codeindex.services.search_service import search
from codeindex.services.vector_store import PGVectorStore

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 200


def search_vector_store(query: str, top_k: int, settings: Settings) -> List[SearchResult]:
    embedder = EmbeddingService.from_settings(settings)
    with PGVectorStore(get_engine(settings), settings.vector_table) as vector_store:
        return search(query, top_k, embedder, vector_store)


def print_results(results: List[SearchResult]) -> None:
    print(f"\nFound {len(results)} results:\n")
    for i, doc in enumerate(results, 1):
        preview = doc.content[:PREVIEW_CHARS] + "..." if len(doc.content) > PREVIEW_CHARS else doc.content
        print(f"Result {i}:")
        print(f"Source: {doc.source}")
        print(f"Distance: {doc.distance:.4f}")
        print(f"Content (preview): {preview}")
        print("-" * 80)


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        number = 0
    if number < 1:
        raise argparse.ArgumentTypeError(f"topK must be a positive integer, got {value!r}")
    return number


def build_parser() -> UsageArgumentParser:
    parser = UsageArgumentParser(
        prog="codeindex-search",
        description="Find the indexed chunks most similar to a query",
    )
    parser.add_argument("query", help="Search query text")
    parser.add_argument("top_k", nargs="?", type=positive_int, default=3, help="Number of results (default: 3)")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.query.strip():
        parser.error("Search query is required")

    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"Invalid configuration: {str(e)}")
        return 1
    configure_logging(settings.log_level)

    try:
        results = search_vector_store(args.query, args.top_k, settings)
    except Exception as e:
        logger.error(f"Error during search: {str(e)}", exc_info=True)
        return 1

    print_results(results)
    return 0


if __name__ == "__main__":
    sys.exit(main())
