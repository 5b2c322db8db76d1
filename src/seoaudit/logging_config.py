"""Logging setup for the seoaudit command line."""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# HTTP, LLM SDK and Turso client loggers log every request at INFO/DEBUG
NOISY_LIBRARIES = ('httpx', 'httpcore', 'openai', 'anthropic', 'libsql_client')


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    library_level: str = "WARNING",
) -> None:
    """Configure the root logger for an audit run.

    Records go to stderr so ``--json`` output on stdout stays parseable, and
    optionally to a log file as well.

    Args:
        level: Level for seoaudit records (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path; missing directories are created
        format_string: Optional custom format string
        library_level: Level applied to NOISY_LIBRARIES
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    quiet_level = getattr(logging, library_level.upper(), logging.WARNING)
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(quiet_level)
