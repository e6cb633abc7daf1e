"""Logging utilities."""

import logging
import sys


PACKAGE_LOGGER = "grafana_forge"


def setup_logging(level: str = "INFO"):
    """Send pipeline logs to stderr at the requested level.

    Only the ``grafana_forge`` loggers follow ``level``. The root logger
    never goes below WARNING, so asyncio subprocess chatter and the
    markdown_it parser used by rich stay quiet at DEBUG.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=max(log_level, logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[
            logging.StreamHandler(sys.stderr)
        ],
        force=True,
    )
    logging.getLogger(PACKAGE_LOGGER).setLevel(log_level)
