"""
Logging for modelforge runs.

Every module logs through `get_logger(__name__)`, which hangs off a single
"modelforge" logger; the CLI picks the level once per run:

    -v   DEBUG    [CONFIG], [CACHE] decisions, [UNCHANGED] files, each file written
    ---  INFO     [REBUILD], [DISPATCH], [GENERATED], [SCAFFOLD], [DRY-RUN], [DONE]
    -q   WARNING  [SKIP] for undeclared modules, [ERROR] for the module that failed

Records go to stderr as the bare message; warnings and errors get a
lowercase level prefix so they stand out from the progress lines.
"""

import logging
import sys

_LOGGER_NAME = "modelforge"


def get_logger(name: str = None) -> logging.Logger:
    """`modelforge.<last part of name>`, or the "modelforge" logger itself for None."""
    if name is None or name == _LOGGER_NAME:
        return logging.getLogger(_LOGGER_NAME)
    return logging.getLogger(f"{_LOGGER_NAME}.{name.rsplit('.', 1)[-1]}")


def log_level(verbose: bool = False, quiet: bool = False) -> int:
    """`-v` wins over `-q`; neither means INFO."""
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def configure_gen_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """
    Route the modelforge hierarchy to stderr at the level chosen on the
    command line. Safe to call again: the existing handler is re-levelled
    instead of a second one being added.
    """
    level = log_level(verbose, quiet)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_GenFormatter())
        logger.addHandler(handler)
        # the CLI owns stderr; keep records away from any root handlers
        logger.propagate = False

    for handler in logger.handlers:
        handler.setLevel(level)
    return logger


class _GenFormatter(logging.Formatter):
    """Tagged message as-is; `warning: ` / `error: ` in front of WARNING and above."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.levelno >= logging.WARNING:
            return f"{record.levelname.lower()}: {message}"
        return message
