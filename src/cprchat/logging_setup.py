"""Rich console logging."""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Libraries that log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def setup_logging(level: str = "INFO", *, console: Console | None = None) -> None:
    """Install a RichHandler on the root logger.

    Safe to call more than once; the previous handlers are replaced.
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
