"""
Helpers shared by the command-line scripts
"""
import argparse
import logging
import sys

from dotenv import load_dotenv

from codeindex.config import Settings


class UsageArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors"""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}\n")


def load_settings() -> Settings:
    load_dotenv()
    return Settings.from_env()


def configure_logging(level: str = "INFO") -> None:
    # Logs to stdout, search results are printed alongside
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
