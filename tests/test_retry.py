import asyncio

import pytest

from live_interview.errors import (
    QUOTA_MESSAGE,
    RATE_LIMIT_EXHAUSTED_MESSAGE,
    ErrorKind,
    LiveSessionError,
)
from live_interview.session.retry import RetryPolicy, RetryState, retry_rate_limited


class RateLimited(Exception):
    def __init__(self) -> None:
        super().__init__("429 RESOURCE_EXHAUSTED")


class QuotaExhausted(Exception):
    def __init__(self) -> None:
        super().__init__("429 RESOURCE_EXHAUSTED: daily limit reached")


class FlakyOperation:
    def __init__(self, failures: list[Exception], result: str = "ok") -> None:
        self._failures = list(failures)
        self._result = result
        self.attempts = 0

    async def __call__(self) -> str:
        self.attempts += 1
        if self._failures:
            raise self._failures.pop(0)
        return self._result


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_three_rate_limits_then_success():
    op = FlakyOperation([RateLimited(), RateLimited(), RateLimited()])
    sleep = RecordingSleep()
    narrated: list[str] = []

    result = asyncio.run(
        retry_rate_limited(
            op,
            policy=RetryPolicy(max_retries=3, base_delay_s=30.0),
            on_retry=lambda state, details: narrated.append(state.describe()),
            sleep=sleep,
        )
    )

    assert result == "ok"
    assert op.attempts == 4
    assert sleep.delays == [30.0, 60.0, 90.0]
    assert all(a < b for a, b in zip(sleep.delays, sleep.delays[1:]))
    assert narrated == [
        "Retrying in 30s… (attempt 1/3)",
        "Retrying in 60s… (attempt 2/3)",
        "Retrying in 90s… (attempt 3/3)",
    ]


def test_fourth_rate_limit_is_terminal_without_fifth_attempt():
    op = FlakyOperation([RateLimited() for _ in range(4)])
    sleep = RecordingSleep()

    with pytest.raises(LiveSessionError) as exc_info:
        asyncio.run(retry_rate_limited(op, sleep=sleep))

    assert op.attempts == 4
    assert len(sleep.delays) == 3
    assert exc_info.value.kind is ErrorKind.RATE_LIMITED
    assert exc_info.value.details.message == RATE_LIMIT_EXHAUSTED_MESSAGE


def test_quota_exhaustion_never_retries():
    op = FlakyOperation([QuotaExhausted()])
    sleep = RecordingSleep()

    with pytest.raises(LiveSessionError) as exc_info:
        asyncio.run(retry_rate_limited(op, sleep=sleep))

    assert op.attempts == 1
    assert sleep.delays == []
    assert exc_info.value.kind is ErrorKind.QUOTA_EXHAUSTED
    assert exc_info.value.details.message == QUOTA_MESSAGE


def test_quota_message_can_be_replaced_per_operation():
    op = FlakyOperation([QuotaExhausted()])

    with pytest.raises(LiveSessionError) as exc_info:
        asyncio.run(retry_rate_limited(op, sleep=RecordingSleep(), quota_message="Pick another model."))

    assert exc_info.value.kind is ErrorKind.QUOTA_EXHAUSTED
    assert exc_info.value.details.message == "Pick another model."


def test_other_errors_fail_immediately_with_provider_message():
    op = FlakyOperation([RuntimeError("API key not valid")])

    with pytest.raises(LiveSessionError) as exc_info:
        asyncio.run(retry_rate_limited(op, sleep=RecordingSleep()))

    assert op.attempts == 1
    assert exc_info.value.kind is ErrorKind.OTHER
    assert exc_info.value.details.message == "API key not valid"


def test_each_operation_gets_a_fresh_budget():
    sleep = RecordingSleep()
    policy = RetryPolicy(max_retries=1, base_delay_s=1.0)

    async def _run() -> None:
        for _ in range(2):
            await retry_rate_limited(FlakyOperation([RateLimited()]), policy=policy, sleep=sleep)

    asyncio.run(_run())
    assert sleep.delays == [1.0, 1.0]


@pytest.mark.asyncio
async def test_cancellation_during_backoff_propagates():
    async def _never_succeeds() -> None:
        raise RateLimited()

    task = asyncio.create_task(
        retry_rate_limited(_never_succeeds, policy=RetryPolicy(base_delay_s=60.0))
    )
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


def test_retry_state_describe():
    state = RetryState.from_policy(RetryPolicy())
    state.attempt = 2
    state.current_delay_s = 60.0
    assert state.describe() == "Retrying in 60s… (attempt 2/3)"
    assert not state.exhausted
