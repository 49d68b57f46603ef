"""
Failure Injection Tests.

Validates retry behaviour and the error envelope returned to clients.
"""

import pytest

from clubfunds.app.core.exceptions import PartialFetchFailure, RecomputeFailure
from clubfunds.app.core.reliability import retry_async


async def test_retry_recovers_after_transient_failure(mocker):
    sleep = mocker.patch("clubfunds.app.core.reliability.asyncio.sleep", new_callable=mocker.AsyncMock)
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise PartialFetchFailure(["event:1"])
        return "ok"

    result = await retry_async(flaky, "refresh event:1", max_attempts=3, backoff_seconds=0.5)

    assert result == "ok"
    assert calls == 3
    # exponential backoff between attempts
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]


async def test_retry_exhaustion_raises_recompute_failure(mocker):
    mocker.patch("clubfunds.app.core.reliability.asyncio.sleep", new_callable=mocker.AsyncMock)

    async def failing():
        raise PartialFetchFailure(["campaign:7"])

    with pytest.raises(RecomputeFailure) as exc_info:
        await retry_async(failing, "refresh campaign:7", max_attempts=2)

    assert exc_info.value.attempts == 2
    assert isinstance(exc_info.value.last_error, PartialFetchFailure)
    assert exc_info.value.error_code == "ERR_RECOMPUTE_001"


async def test_unlisted_errors_are_not_retried():
    calls = 0

    async def broken():
        nonlocal calls
        calls += 1
        raise KeyError("missing")

    with pytest.raises(KeyError):
        await retry_async(broken, "refresh club:1", retry_on=(PartialFetchFailure,))
    assert calls == 1


async def test_error_responses_are_consistent(client, hierarchy, auth_headers):
    """
    All error responses should follow consistent format with error_code.
    """
    # 404 from the domain
    response = await client.get("/v1/events/999999/financials", headers=auth_headers)
    assert response.status_code == 404
    data = response.json()
    assert "error_code" in data
    assert "message" in data

    # No token
    response = await client.get(f"/v1/clubs/{hierarchy['club_id']}/financials")
    assert response.status_code in (401, 403)
    assert "error_code" in response.json()
