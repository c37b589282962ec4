# src/mongo_queryset/mongodb/deadline.py
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

import pymongo
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from mongo_queryset.base.exceptions import DeadlineExceeded
from mongo_queryset.base.query import QuerySet
from mongo_queryset.config import DEFAULT_OPERATION_TIMEOUT

T = TypeVar("T")


def resolve_timeout(
    timeout: Optional[float] = None, query: Optional[QuerySet] = None
) -> float:
    """
    Picks the deadline for one store call: the explicit argument, then the
    query's own timeout, then the library default. Never unbounded.
    """
    if timeout is not None:
        return timeout
    if query is not None and query.timeout_seconds is not None:
        return query.timeout_seconds
    return DEFAULT_OPERATION_TIMEOUT


async def with_deadline(
    call: Callable[[], Awaitable[T]], timeout: float, operation: str = "operation"
) -> T:
    """
    Runs `call()` inside `pymongo.timeout(timeout)` and raises DeadlineExceeded
    when the driver reports a timeout. A server selection timeout that fires
    before the deadline means the store is unreachable and propagates as is.

    The driver deadline travels with the context into Motor's worker thread,
    so the server aborts the operation once it passes. `call` must start the
    store operation itself: Motor captures the context when the method is
    called, not when it is awaited.
    """
    if timeout <= 0:
        # pymongo reads a zero timeout as "no limit".
        raise DeadlineExceeded(operation, timeout)
    started = time.monotonic()
    try:
        with pymongo.timeout(timeout):
            return await call()
    except DeadlineExceeded:
        raise
    except ServerSelectionTimeoutError as e:
        if time.monotonic() - started >= timeout:
            raise DeadlineExceeded(operation, timeout) from e
        raise
    except PyMongoError as e:
        if e.timeout:
            raise DeadlineExceeded(operation, timeout) from e
        raise


async def next_with_deadline(cursor: Any, timeout: float, operation: str) -> Any:
    """Fetches the next document from a Motor cursor under a deadline."""
    return await with_deadline(cursor.next, timeout, operation)
