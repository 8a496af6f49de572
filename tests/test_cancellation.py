import asyncio

import pytest

from composer.domain.invariants.exceptions import ErrorKind, OperationCancelled, PersistenceFailed
from composer.engine import CancelToken, report_error, run_cancellable

from conftest import RecordingEvents


@pytest.mark.asyncio
async def test_run_cancellable_returns_result():
    async def call():
        return 42

    assert await run_cancellable(call(), CancelToken()) == 42
    assert await run_cancellable(call(), None) == 42


@pytest.mark.asyncio
async def test_run_cancellable_abandons_pending_call():
    token = CancelToken()
    started = asyncio.Event()

    async def slow():
        started.set()
        await asyncio.sleep(60)

    task = asyncio.create_task(run_cancellable(slow(), token))
    await started.wait()
    token.cancel("superseded")

    with pytest.raises(OperationCancelled, match="superseded"):
        await task


@pytest.mark.asyncio
async def test_already_cancelled_token_skips_the_call():
    token = CancelToken()
    token.cancel()
    calls = []

    async def call():
        calls.append(1)

    with pytest.raises(OperationCancelled):
        await run_cancellable(call(), token)

    assert calls == []


@pytest.mark.asyncio
async def test_store_errors_propagate():
    async def failing():
        raise PersistenceFailed("boom")

    with pytest.raises(PersistenceFailed):
        await run_cancellable(failing(), CancelToken())


def test_report_error_suppresses_cancellation():
    events = RecordingEvents()

    report_error(events, OperationCancelled("superseded"))
    report_error(events, PersistenceFailed("write rejected"))

    assert events.errors == [(ErrorKind.PERSISTENCE_FAILED, "write rejected")]


def test_report_error_survives_listener_failure():
    class Broken(RecordingEvents):
        def on_error(self, kind, message):
            raise RuntimeError("listener")

    report_error(Broken(), PersistenceFailed("write rejected"))
