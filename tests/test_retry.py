"""
Unit tests for the retry loop.

Tests attempt counting, the authority of the last attempt and how engine
errors propagate.
"""

from unittest.mock import AsyncMock

import pytest

from sanity_runner.core.exceptions import ExecutionError
from sanity_runner.execution.models import (
    CaseStatus,
    ExecutionResult,
    TestCaseResult,
    TestFileResult,
)
from sanity_runner.execution.retry import run_with_retry


def result(success: bool, failed_cases: int = 0) -> ExecutionResult:
    cases = tuple(
        TestCaseResult(title=f"case {i}", full_name=f"case {i}", status=CaseStatus.FAILED)
        for i in range(failed_cases)
    )
    return ExecutionResult(
        success=success,
        files={"login.test.js": TestFileResult(file_name="login.test.js", cases=cases)},
    )


class TestRunWithRetry:
    """Test cases for run_with_retry."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        attempt = AsyncMock(return_value=result(True))

        aggregate = await run_with_retry(attempt, max_retries=3)

        assert attempt.await_count == 1
        assert aggregate.retry_count == 0
        assert aggregate.success is True

    @pytest.mark.asyncio
    async def test_stops_at_first_success(self):
        attempt = AsyncMock(side_effect=[result(False, 1), result(False, 1), result(True)])

        aggregate = await run_with_retry(attempt, max_retries=5)

        assert attempt.await_count == 3
        assert aggregate.retry_count == 2
        assert aggregate.success is True

    @pytest.mark.asyncio
    async def test_exhausted_retries_keep_last_failure(self):
        last = result(False, 2)
        attempt = AsyncMock(side_effect=[result(False, 1), result(False, 1), last])

        aggregate = await run_with_retry(attempt, max_retries=2)

        assert attempt.await_count == 3
        assert aggregate.retry_count == 2
        assert aggregate.result == last
        assert aggregate.num_failed == 2

    @pytest.mark.asyncio
    async def test_zero_retries_runs_once(self):
        attempt = AsyncMock(return_value=result(False, 1))

        aggregate = await run_with_retry(attempt, max_retries=0)

        assert attempt.await_count == 1
        assert aggregate.retry_count == 0
        assert aggregate.success is False

    @pytest.mark.asyncio
    async def test_retry_count_never_exceeds_bound(self):
        for max_retries in range(4):
            attempt = AsyncMock(return_value=result(False, 1))

            aggregate = await run_with_retry(attempt, max_retries=max_retries)

            assert aggregate.retry_count == max_retries
            assert attempt.await_count == max_retries + 1

    @pytest.mark.asyncio
    async def test_execution_error_aborts_without_further_attempts(self):
        attempt = AsyncMock(
            side_effect=[result(False, 1), ExecutionError("engine crashed"), result(True)]
        )

        with pytest.raises(ExecutionError) as exc_info:
            await run_with_retry(attempt, max_retries=5)

        assert attempt.await_count == 2
        assert exc_info.value.retry_count == 1
        assert exc_info.value.context["retry_count"] == 1

    @pytest.mark.asyncio
    async def test_negative_bound_rejected(self):
        attempt = AsyncMock(return_value=result(True))

        with pytest.raises(ValueError):
            await run_with_retry(attempt, max_retries=-1)

        attempt.assert_not_awaited()
