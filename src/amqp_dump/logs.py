"""Logging setup for the dump CLI.

Diagnostics go to stderr through the root logger. Progress lines are sent to
the ``amqp_dump.progress`` logger, which prints to stdout prefixed with ``*``
and is silent unless verbose output was requested.
"""

import logging
import sys

PROGRESS_LOGGER = "amqp_dump.progress"

progress = logging.getLogger(PROGRESS_LOGGER)


def configure_logging(level: str = "WARNING", verbose: bool = False) -> None:
    """Configure root logging on stderr and the progress logger on stdout."""
    logging.basicConfig(
        level=level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )

    for handler in list(progress.handlers):
        progress.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("* %(message)s"))
    progress.addHandler(handler)
    progress.propagate = False
    progress.setLevel(logging.INFO if verbose else logging.CRITICAL + 1)
