"""Logging configuration for the quote scraper."""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers kept at WARNING
NOISY_LOGGERS = ('asyncio', 'playwright')


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Configure root logging.

    Records go to stderr so --json output on stdout stays parseable.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path, parent directories are created
        format_string: Optional custom format string
        quiet: Logger names capped at WARNING
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


class FlowLogger(logging.LoggerAdapter):
    """Prefixes messages with the quote flow's request id.

    Concurrent flows interleave in one log; the prefix keeps them apart
    and matches the id in snapshot file names.
    """

    def process(self, msg, kwargs):
        return f"[{self.extra['request_id']}] {msg}", kwargs


def flow_logger(name: str, request_id: str) -> FlowLogger:
    """Logger for one quote flow.

    Args:
        name: Logger name (usually __name__)
        request_id: Short id of the flow
    """
    return FlowLogger(logging.getLogger(name), {"request_id": request_id})
