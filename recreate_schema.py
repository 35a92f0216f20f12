# recreate_schema.py
# Drop and recreate the record and vector tables (destructive)

import logging
import sys

from codeindex.cli import UsageArgumentParser, configure_logging, load_settings
from codeindex.db import get_engine
from codeindex.exceptions import ConfigurationError
from codeindex.services.schema_service import create_schema, recreate_schema

logger = logging.getLogger(__name__)


def build_parser() -> UsageArgumentParser:
    parser = UsageArgumentParser(
        prog="codeindex-schema",
        description="Recreate the record and vector tables. All indexed data is lost.",
    )
    parser.add_argument("--no-drop", action="store_true", help="Only create missing tables, keep existing data")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"Invalid configuration: {str(e)}")
        return 1
    configure_logging(settings.log_level)

    engine = get_engine(settings)
    try:
        if args.no_drop:
            create_schema(engine, settings)
        else:
            recreate_schema(engine, settings)
    except Exception as e:
        logger.error(f"Error recreating schema: {str(e)}")
        return 1
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
