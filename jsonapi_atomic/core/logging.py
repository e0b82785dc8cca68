import logging
import sys


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(log_level: str = "INFO") -> None:
    """Configure root logging once for the service."""
    root = logging.getLogger()
    if any(getattr(h, "_jsonapi_atomic", False) for h in root.handlers):
        root.setLevel(log_level.upper())
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._jsonapi_atomic = True  # type: ignore[attr-defined]

    root.addHandler(handler)
    root.setLevel(log_level.upper())
