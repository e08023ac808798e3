"""Logging for uefi-run.

Modules log under the ``uefi_run`` logger, which only carries a
NullHandler until the CLI calls configure_logging(). UEFI_RUN_LOG_LEVEL
(e.g. "DEBUG", "WARNING") sets the initial level.

QEMU usually owns stdout (serial console), so records go to stderr via
click.echo, one line each, with the structured ``extra`` context of the
call appended:

    uefi-run WARNING: Killing qemu-system-x86_64 [pid=4242]
"""

import logging
import os

import click

LIBRARY_LOGGER_NAME: str = "uefi_run"

logging.getLogger(LIBRARY_LOGGER_NAME).addHandler(logging.NullHandler())

_env_level = os.environ.get("UEFI_RUN_LOG_LEVEL", "").strip().upper()
_env_level_value = logging.getLevelNamesMapping().get(_env_level)
if _env_level_value:  # excludes NOTSET (0) and missing keys (None)
    logging.getLogger(LIBRARY_LOGGER_NAME).setLevel(_env_level_value)

_FMT = "uefi-run %(levelname)s: %(message)s"

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class _ContextFormatter(logging.Formatter):
    """Formats a record and appends its ``extra`` fields as ``key=value``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
        if context:
            line += " [" + ", ".join(f"{key}={value}" for key, value in context.items()) + "]"
        return line


class _ClickHandler(logging.Handler):
    """Writes records to stderr via click.echo, warnings and errors in color."""

    _COLORS = {logging.WARNING: "yellow", logging.ERROR: "red", logging.CRITICAL: "red"}

    def __init__(self) -> None:
        super().__init__()
        self.setFormatter(_ContextFormatter(fmt=_FMT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = click.style(
                self.format(record),
                fg=self._COLORS.get(record.levelno),
                dim=record.levelno < logging.WARNING,
            )
            click.echo(msg, err=True)
        except Exception:  # noqa: BLE001
            self.handleError(record)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name.

    All uefi_run modules use this instead of logging.getLogger()
    directly for a consistent logger hierarchy.
    """
    return logging.getLogger(name)


def configure_logging(
    *,
    level: int | str | None = None,
    quiet: bool = False,
) -> None:
    """Configure library logging for the CLI entry point.

    Adds a _ClickHandler if none exists (idempotent), then sets the log
    level. Without an explicit level or UEFI_RUN_LOG_LEVEL the CLI logs
    warnings and errors only.

    Args:
        level: Log level (e.g. logging.DEBUG, "WARNING"). Overrides env var.
        quiet: If True, set level to ERROR. Takes precedence over level.
    """
    lib_logger = logging.getLogger(LIBRARY_LOGGER_NAME)

    if not any(isinstance(h, _ClickHandler) for h in lib_logger.handlers):
        lib_logger.addHandler(_ClickHandler())

    if quiet:
        lib_logger.setLevel(logging.ERROR)
    elif level is not None:
        lib_logger.setLevel(level)
