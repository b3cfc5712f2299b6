"""
Strata Backend: Retry Policy Tests
==================================

Test Strategy:
    ✅ BackendUnavailableError is retried up to max_attempts
    ✅ Every other error is raised on the first attempt
    ✅ Building the backoff emits no deprecation warnings
"""

import warnings
from unittest.mock import AsyncMock

import pytest

from strata.exceptions import BackendUnavailableError, ConflictError
from strata.services.retry import RetryPolicy


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_retries_backend_unavailable(self, retry):
        operation = AsyncMock(side_effect=[BackendUnavailableError(), BackendUnavailableError(), "ok"])
        assert await retry.call(operation, "arg", flag=True) == "ok"
        assert operation.await_count == 3
        operation.assert_awaited_with("arg", flag=True)

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, retry):
        operation = AsyncMock(side_effect=ConflictError("taken"))
        with pytest.raises(ConflictError):
            await retry.call(operation)
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_backoff_without_deprecation_warnings(self):
        policy = RetryPolicy(max_attempts=2, min_wait=0.001, max_wait=0.002)
        operation = AsyncMock(side_effect=[BackendUnavailableError(), "ok"])

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            assert await policy.call(operation) == "ok"

    def test_from_settings(self, settings_factory):
        policy = RetryPolicy.from_settings(
            settings_factory(retry_max_attempts=5, retry_min_wait=0.5, retry_max_wait=4)
        )
        assert (policy.max_attempts, policy.min_wait, policy.max_wait) == (5, 0.5, 4)
