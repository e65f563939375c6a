"""Logging setup for the PoopPal backend.

All loggers live under the ``pooppal`` namespace so a single handler on the
root package logger captures everything. Operation helpers emit one line per
event in a fixed ``OP | user | target | result`` shape that is easy to grep.
"""

import logging
import sys

ROOT_LOGGER = "pooppal"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Install a stream handler on the package logger (idempotent)."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())
    if not any(getattr(h, "_pooppal", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._pooppal = True
        logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger in the ``pooppal`` namespace."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def _result(success: bool, error: str | None) -> str:
    if success:
        return "ok"
    return f"FAILED ({error})" if error else "FAILED"


def log_log_operation(
    user_id: str,
    operation: str,
    log_id: str | None,
    success: bool,
    error: str | None = None,
) -> None:
    """Log a single log-entry mutation (add/delete/restore)."""
    logger = get_logger("logs")
    level = logging.INFO if success else logging.WARNING
    logger.log(level, f"{operation.upper()} | {user_id} | log={log_id or '-'} | {_result(success, error)}")


def log_friend_event(
    user_id: str,
    event: str,
    target: str | None,
    success: bool,
    error: str | None = None,
) -> None:
    """Log a friend-graph event (request/accept/decline)."""
    logger = get_logger("friends")
    level = logging.INFO if success else logging.WARNING
    logger.log(level, f"{event.upper()} | {user_id} | target={target or '-'} | {_result(success, error)}")


def log_auth_event(event: str, user_id: str | None, success: bool, error: str | None = None) -> None:
    """Log sign-in / sign-out / token verification."""
    logger = get_logger("auth")
    level = logging.INFO if success else logging.WARNING
    logger.log(level, f"{event.upper()} | {user_id or 'anonymous'} | {_result(success, error)}")
