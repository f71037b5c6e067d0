"""Unit tests for the retry handler."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from periodicos.models.config import RetryConfig
from periodicos.utils.exceptions import (
    FetchError,
    NetworkError,
    TransientBlockError,
)
from periodicos.utils.retry import RetryHandler


@pytest.fixture
def retry_config():
    """Default backoff: 1s doubling, capped at 30s, no jitter."""
    return RetryConfig()


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def retry_handler(retry_config, sleep):
    return RetryHandler(retry_config, sleep=sleep)


class TestCalculateDelay:
    """Tests for delay calculation."""

    def test_exponential_backoff(self, retry_handler):
        assert retry_handler.calculate_delay(0) == 1.0
        assert retry_handler.calculate_delay(1) == 2.0
        assert retry_handler.calculate_delay(2) == 4.0

    def test_delay_is_capped(self, retry_handler):
        assert retry_handler.calculate_delay(10) == 30.0

    def test_jitter_stays_in_bounds(self, sleep):
        handler = RetryHandler(
            RetryConfig(base_delay_seconds=1.0, jitter_factor=0.5), sleep=sleep
        )
        for _ in range(20):
            assert 0.5 <= handler.calculate_delay(0) <= 1.5


class TestExecute:
    """Tests for retry execution."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, retry_handler, sleep):
        func = AsyncMock(return_value="ok")

        result = await retry_handler.execute(func, {TransientBlockError})

        assert result == "ok"
        assert func.call_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_transient_block_twice_then_success(self, retry_handler, sleep):
        func = AsyncMock(
            side_effect=[
                TransientBlockError("blocked", status=520),
                TransientBlockError("blocked", status=520),
                "<html></html>",
            ]
        )

        result = await retry_handler.execute(func, {TransientBlockError})

        assert result == "<html></html>"
        assert func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_transient_block_exhausted(self, retry_handler, sleep):
        func = AsyncMock(side_effect=TransientBlockError("blocked", status=520))

        with pytest.raises(TransientBlockError):
            await retry_handler.execute(func, {TransientBlockError})

        assert func.call_count == 3
        assert sleep.call_count == 2

    @pytest.mark.asyncio
    async def test_attempt_limit_per_type(self, retry_handler, sleep):
        func = AsyncMock(side_effect=NetworkError("reset"))

        with pytest.raises(NetworkError):
            await retry_handler.execute(
                func,
                {TransientBlockError, NetworkError},
                attempt_limits={NetworkError: 2},
            )

        assert func.call_count == 2
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self, retry_handler, sleep):
        func = AsyncMock(side_effect=FetchError("HTTP 403", status=403))

        with pytest.raises(FetchError):
            await retry_handler.execute(func, {TransientBlockError, NetworkError})

        assert func.call_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_on_retry_callback(self, retry_handler):
        callback = MagicMock()
        error = TransientBlockError("blocked", status=520)
        func = AsyncMock(side_effect=[error, "ok"])

        await retry_handler.execute(func, {TransientBlockError}, on_retry=callback)

        callback.assert_called_once_with(1, error, 1.0)
