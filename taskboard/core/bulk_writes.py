"""Concurrent multi-document writes with retry-to-convergence.

The store has no cross-document transaction, so bulk operations (reorder,
cascading delete) issue one write per document concurrently and retry the
failed subset with exponential backoff. Every write must be idempotent: it
sets an absolute value or deletes, so repeating it is harmless.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from taskboard.core.config import settings
from taskboard.core.errors import PartialFailureError


logger = logging.getLogger(__name__)


async def converge(
    *,
    operation: str,
    writes: Mapping[str, Callable[[], Awaitable[Any]]],
    max_retries: int | None = None,
    base_delay: float | None = None,
) -> None:
    """Run keyed writes concurrently until all succeed or retries run out.

    A write that raises KeyError targets a document that no longer exists and
    counts as converged.

    Args:
        operation: Name used in logs and in the raised error
        writes: Record id -> factory returning a fresh awaitable for that write
        max_retries: Attempts per write (defaults to settings.write_max_retries)
        base_delay: Base delay in seconds for exponential backoff

    Raises:
        PartialFailureError: If some writes still fail after the last attempt
    """
    attempts = max_retries if max_retries is not None else settings.write_max_retries
    delay = base_delay if base_delay is not None else settings.write_retry_base_delay
    pending = dict(writes)
    last_errors: dict[str, BaseException] = {}

    for attempt in range(max(attempts, 1)):
        keys = list(pending)
        results = await asyncio.gather(*(pending[key]() for key in keys), return_exceptions=True)

        failed = {}
        for key, result in zip(keys, results, strict=True):
            if isinstance(result, KeyError):
                logger.info("Bulk write target already gone", extra={"operation": operation, "record_id": key})
            elif isinstance(result, Exception):
                failed[key] = pending[key]
                last_errors[key] = result
            elif isinstance(result, BaseException):
                raise result

        if not failed:
            return

        pending = failed
        if attempt < attempts - 1:
            backoff = delay * (2**attempt)
            logger.warning(
                "Bulk write failed for %d record(s) (attempt %d/%d). Retrying in %.2fs",
                len(pending),
                attempt + 1,
                attempts,
                backoff,
                extra={"operation": operation},
            )
            await asyncio.sleep(backoff)

    failed_ids = list(pending)
    logger.error(
        "Bulk write did not converge",
        extra={
            "operation": operation,
            "failed_ids": failed_ids,
            "errors": {key: str(last_errors[key]) for key in failed_ids},
        },
    )
    raise PartialFailureError(operation, failed_ids)
