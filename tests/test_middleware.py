# tests/test_middleware.py
import asyncio
import logging

import pytest

from hostping.driver.dummy import dummy
from hostping.middleware.errors import inject_errors
from hostping.middleware.log import format_packet, log_calls
from hostping.middleware.stats import track
from hostping.utils.errors import ForcedError, NotConnectedError, PingCancelled
from hostping.core.scope import CancelScope

# 평균 RTT 의 허용 상한 (타이밍 편차 감안)
STATS_WAIT = 0.05
STATS_ALLOW_MAX_RTT = 0.15


async def _ping_concurrently(pinger, n):
    return await asyncio.gather(*(pinger.ping() for _ in range(n)), return_exceptions=True)


async def test_stats():
    pinger, stats = track(dummy(STATS_WAIT))
    await pinger.connect()
    try:
        await _ping_concurrently(pinger, 10)
    finally:
        await pinger.disconnect()

    report = stats.calculate()
    assert report.num_pings == 10
    assert report.num_successful == 10
    assert report.num_failed == 0
    assert report.mean_rtt >= STATS_WAIT * 0.95
    assert report.mean_rtt <= STATS_ALLOW_MAX_RTT


async def test_stats_errors():
    pinger, stats = track(inject_errors(1, dummy(STATS_WAIT)))
    await pinger.connect()
    try:
        results = await _ping_concurrently(pinger, 10)
    finally:
        await pinger.disconnect()

    assert all(isinstance(r, ForcedError) for r in results)
    report = stats.calculate()
    assert report.num_pings == 10
    assert report.num_successful == 0
    assert report.num_failed == 10
    assert report.mean_rtt == 0.0


async def test_stats_keeps_error_values():
    pinger, stats = track(dummy(0))
    with pytest.raises(NotConnectedError):
        await pinger.disconnect()
    await pinger.connect()
    await pinger.ping()
    await pinger.disconnect()

    results = stats.results()
    assert len(results) == 1
    assert results[0].error is None
    assert results[0].packet.size == 0


async def test_inject_errors_never_fires_at_zero():
    pinger = inject_errors(0.0, dummy(0))
    await pinger.connect()
    try:
        for _ in range(20):
            await pinger.ping()
    finally:
        await pinger.disconnect()


async def test_inject_errors_is_seeded_on_connect():
    a = inject_errors(0.5, dummy(0), seed=123)
    b = inject_errors(0.5, dummy(0), seed=123)
    outcomes = []
    for p in (a, b):
        await p.connect()
        run = []
        for _ in range(20):
            try:
                await p.ping()
                run.append(True)
            except ForcedError:
                run.append(False)
        await p.disconnect()
        outcomes.append(run)
    assert outcomes[0] == outcomes[1]
    assert True in outcomes[0] and False in outcomes[0]


async def test_log_calls(caplog):
    logger = logging.getLogger("test.pinger")
    pinger = log_calls(logger, "unit", dummy(0))
    with caplog.at_level(logging.DEBUG, logger="test.pinger"):
        await pinger.connect()
        pkt = await pinger.ping()
        await pinger.disconnect()
        with pytest.raises(NotConnectedError):
            await pinger.disconnect()

    msgs = [(r.levelno, r.getMessage()) for r in caplog.records]
    assert (logging.DEBUG, "[unit] func=connect OK") in msgs
    assert (logging.DEBUG, f"[unit] func=ping {format_packet(pkt)}") in msgs
    assert (logging.DEBUG, "[unit] func=disconnect OK") in msgs
    assert (logging.ERROR, "[unit] func=disconnect not connected") in msgs
    assert format_packet(pkt).startswith("received 0B from 127.0.0.1 in ")


async def test_dummy_honours_cancellation():
    scope = CancelScope()
    pinger = dummy(5.0)
    await pinger.connect(scope)
    asyncio.get_running_loop().call_later(0.02, scope.cancel)
    with pytest.raises(PingCancelled):
        await asyncio.wait_for(pinger.ping(), timeout=1.0)
    await pinger.disconnect()
