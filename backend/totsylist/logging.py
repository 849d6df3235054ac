"""Shared structlog configuration for the API process."""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog

from totsylist.config import settings

_LOG_LEVEL_MAP: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class _LogFileTee:
    """File-like target for PrintLoggerFactory: stdout first, then LOG_FILE.

    A log file that cannot be opened or written is dropped with a warning on
    stderr; stdout keeps receiving every line.
    """

    def __init__(self, file_path: str) -> None:
        self._path = file_path
        self._file = self._open(file_path)

    @staticmethod
    def _open(file_path: str) -> IO[str] | None:
        try:
            return open(file_path, "a", encoding="utf-8")  # noqa: SIM115
        except OSError as exc:
            # structlog is not configured yet
            print(
                f"WARNING: Could not open log file {file_path!r}: {exc}. "
                "Falling back to stdout-only logging.",
                file=sys.stderr,
            )
            return None

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        self._to_file("write", data)

    def flush(self) -> None:
        sys.stdout.flush()
        self._to_file("flush")

    def _to_file(self, operation: str, data: str | None = None) -> None:
        if self._file is None:
            return
        try:
            if data is not None:
                self._file.write(data)
            self._file.flush()
        except (OSError, ValueError):
            self._file = None
            print(
                f"WARNING: Log file {operation} to {self._path!r} failed. File logging disabled.",
                file=sys.stderr,
            )



def resolve_level(name: str) -> int:
    """Map a LOG_LEVEL string to a logging level, defaulting to INFO."""
    return _LOG_LEVEL_MAP.get(name.upper(), logging.INFO)


def configure_logging(
    environment: str | None = None,
    log_level: str | None = None,
    log_file: str | None = None,
) -> None:
    """Configure structlog with console renderer in dev, JSON elsewhere.

    Arguments default to the values in ``settings``. When a log file is set,
    lines go to both stdout and the file. Standard-library loggers (uvicorn,
    httpx, google-genai) are set to the same level so their output is not
    noisier than ours.
    """
    environment = environment if environment is not None else settings.environment
    log_level = log_level if log_level is not None else settings.log_level
    log_file = log_file if log_file is not None else settings.log_file

    renderer = (
        structlog.dev.ConsoleRenderer()
        if environment == "development"
        else structlog.processors.JSONRenderer()
    )

    level = resolve_level(log_level)

    logger_factory: structlog.types.WrappedLogger
    if log_file:
        # PrintLoggerFactory only uses write() and flush() from the file object
        logger_factory = structlog.PrintLoggerFactory(file=_LogFileTee(log_file))  # type: ignore[arg-type]
    else:
        logger_factory = structlog.PrintLoggerFactory()

    logging.basicConfig(level=level, stream=sys.stdout, format="%(name)s %(levelname)s %(message)s")
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )
