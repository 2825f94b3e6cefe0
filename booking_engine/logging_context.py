"""Request ID logging context for tracing booking operations.

Every public engine operation runs under a request ID. A caller can bind
its own (an HTTP request id, a push job id) with ``request_scope``;
otherwise the ``traced`` entry point generates one. The ID is carried in
a ContextVar, so it follows ``asyncio.shield`` and ``gather`` into child
tasks, and is printed by the root log format.

Usage:
    from booking_engine.logging_context import request_scope

    with request_scope("REQ-abc123"):
        await lifecycle.accept_booking("bk_1", "salon-1")
    # 2030-03-15 10:00:00 [REQ-abc123] [booking_engine.lifecycle.state_machine] INFO: ...
"""

import functools
import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

NO_REQUEST_ID = "NO_REQUEST_ID"
LOG_FORMAT = "%(asctime)s [%(request_id)s] [%(name)s] %(levelname)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST_ID)


def new_request_id() -> str:
    return f"REQ-{uuid.uuid4().hex[:12]}"


def set_request_id(request_id: str) -> None:
    """Bind a request ID for the rest of the current async context."""
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind ``request_id`` (or a fresh one) for the block, then restore the previous ID."""
    bound = request_id or new_request_id()
    token = _request_id.set(bound)
    try:
        yield bound
    finally:
        _request_id.reset(token)


def traced(func):
    """Run an async operation under a fresh request ID unless the caller bound one."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        if _request_id.get() != NO_REQUEST_ID:
            return await func(*args, **kwargs)
        with request_scope():
            return await func(*args, **kwargs)

    return wrapper


class RequestIdFilter(logging.Filter):
    """Stamps the bound request ID onto each record as ``record.request_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def configure_logging(level: int) -> None:
    """Root logging with the request ID in the format.

    The filter goes on the root handlers as well as on package loggers, so
    records from other libraries also carry ``request_id`` and never break
    the format string.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


def get_request_logger(name: str) -> logging.Logger:
    """Return a logger whose records always carry ``request_id``."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
