"""Logging utilities."""

import logging
import sys


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO"):
    """Configure the root logger for CLI use.

    Records go to stderr so command output on stdout (tables, container
    logs) can be piped cleanly.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

    # Keep library chatter out of debug sessions
    if log_level < logging.WARNING:
        logging.getLogger("markdown_it").setLevel(logging.WARNING)
