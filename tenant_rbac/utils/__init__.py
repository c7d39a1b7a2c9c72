import logging
import sys

from tenant_rbac.core import config


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger. Usage: ``log = get_logger(__name__)``."""
    return logging.getLogger(name)


def configure_logging(level: str | None = None) -> None:
    """Attach a stream handler to the package logger. Safe to call more than once."""
    root = logging.getLogger("tenant_rbac")
    root.setLevel(level or config.LOG_LEVEL)
    if not any(getattr(h, "_tenant_rbac", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._tenant_rbac = True  # type: ignore[attr-defined]
        root.addHandler(handler)
