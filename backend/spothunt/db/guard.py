"""Bounded storage round-trips.

Every call into MongoDB or Redis goes through :func:`guarded` so that a slow
store surfaces as a retryable ``StorageTimeout`` instead of a hung request.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from pymongo.errors import DuplicateKeyError, ExecutionTimeout, NetworkTimeout, ServerSelectionTimeoutError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from ..core.config import settings
from ..core.errors import StorageConflict, StorageTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TIMEOUT_ERRORS = (
    asyncio.TimeoutError,
    RedisTimeoutError,
    ExecutionTimeout,
    NetworkTimeout,
    ServerSelectionTimeoutError,
)


async def guarded(awaitable: Awaitable[T], *, timeout: float | None = None, op: str = "storage") -> T:
    limit = settings.storage_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=limit)
    except _TIMEOUT_ERRORS as exc:
        logger.error("%s timed out after %.2fs", op, limit)
        raise StorageTimeout(op=op) from exc
    except (WatchError, DuplicateKeyError) as exc:
        logger.warning("%s lost a concurrent update: %s", op, exc)
        raise StorageConflict(op=op) from exc
