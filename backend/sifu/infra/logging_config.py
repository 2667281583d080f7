"""Logging setup -- one stream handler, request id stamped on every record."""

from __future__ import annotations

import asyncio
import contextvars
import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] [%(request_id)s] %(message)s"

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class SifuFormatter(logging.Formatter):

    def _shorten_logger_name(self, name: str) -> str:
        if name == "uvicorn.error":
            return "uvicorn"
        if name.startswith(("sifu.", "uvicorn.")):
            return name
        if "." in name:
            return ".".join(name.split(".")[-2:])
        return name

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        original_name = record.name
        record.name = self._shorten_logger_name(record.name)
        try:
            return self._safe_format(record)
        finally:
            record.name = original_name

    def _safe_format(self, record: logging.LogRecord) -> str:
        """Format with fallback for mismatched %-style args from third-party SDKs."""
        try:
            return super().format(record)
        except TypeError:
            record.msg = f"{record.msg} {record.args}"
            record.args = None
            return super().format(record)


class ReloadCancelledErrorFilter(logging.Filter):
    """Downgrade CancelledError tracebacks logged by uvicorn lifespan on reload."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR and record.exc_info:
            exc_type = record.exc_info[0]
            if exc_type is not None and issubclass(exc_type, asyncio.CancelledError):
                record.levelno = logging.DEBUG
                record.levelname = "DEBUG"
        return True


def configure_logging(level: int = logging.INFO, formatter: logging.Formatter | None = None) -> None:
    if formatter is None:
        formatter = SifuFormatter(LOG_FORMAT)

    request_filter = RequestIdFilter()
    reload_filter = ReloadCancelledErrorFilter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(request_filter)
    handler.addFilter(reload_filter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # uvicorn has its own handlers -- override them
    for name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.addHandler(handler)
        lg.propagate = False
