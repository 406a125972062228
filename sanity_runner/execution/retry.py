"""
Bounded retry loop around engine attempts.

Every unsuccessful attempt is retried until the bound is reached. The last
attempt taken is authoritative, whether it passed or failed.
"""

import logging
from typing import Awaitable, Callable, Optional

from ..core.exceptions import ExecutionError
from ..core.logging_config import get_logger
from .models import AggregateRunResult, ExecutionResult


Attempt = Callable[[], Awaitable[ExecutionResult]]


async def run_with_retry(
    attempt: Attempt,
    max_retries: int,
    logger: Optional[logging.Logger] = None,
) -> AggregateRunResult:
    """
    Invoke attempt up to max_retries + 1 times.

    Test failures are retried. An ExecutionError means the engine could not
    run at all, so it ends the loop on whichever attempt raises it, and the
    remaining retries are not spent.

    Args:
        attempt: Coroutine function running the engine once
        max_retries: Retries allowed after the first attempt
        logger: Optional logger instance

    Returns:
        Aggregate holding the final attempt's result and the retries consumed

    Raises:
        ExecutionError: as soon as any attempt fails to run, annotated with
            the retries consumed so far
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")

    logger = logger or get_logger(__name__)
    retry_count = 0

    while True:
        try:
            result = await attempt()
        except ExecutionError as e:
            logger.error(
                f"Execution engine failed on attempt {retry_count + 1}: {e}",
                extra={"metadata": {"retry_count": retry_count, **e.to_dict()}},
            )
            raise e.with_retry_count(retry_count)

        if result.success or retry_count == max_retries:
            break

        retry_count += 1
        logger.warning(
            f"Attempt {retry_count} failed with {result.num_failed_tests} failed tests, "
            f"retrying ({retry_count}/{max_retries})",
            extra={"metadata": {"retry_count": retry_count, "max_retries": max_retries}},
        )

    logger.info(
        f"Run finished after {retry_count + 1} attempt(s): "
        f"{'passed' if result.success else 'failed'}",
        extra={"metadata": {"retry_count": retry_count, "success": result.success}},
    )
    return AggregateRunResult(result=result, retry_count=retry_count)
