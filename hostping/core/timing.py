# hostping/core/timing.py
import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class Timer:
    """
    probe 1회의 시작/종료 시각.
    - started: 전송 직전 wall clock (UTC)
    - elapsed: monotonic 기준 경과 시간(초)
    """

    def __init__(self):
        self.started: Optional[datetime] = None
        self.stopped: Optional[datetime] = None
        self._t0: Optional[float] = None
        self._t1: Optional[float] = None

    def start(self) -> None:
        self.started = datetime.now(timezone.utc)
        self._t0 = time.perf_counter()

    def stop(self) -> None:
        self.stopped = datetime.now(timezone.utc)
        self._t1 = time.perf_counter()

    @property
    def elapsed(self) -> float:
        if self._t0 is None or self._t1 is None:
            return 0.0
        return max(0.0, self._t1 - self._t0)


async def retry_transient(
    func: Callable[[], T],
    is_transient: Callable[[BaseException], bool],
    delay: float = 0.0,
) -> T:
    """
    func()를 성공할 때까지 반복. is_transient(exc)가 False인 예외는 그대로 전파.
    재시도 사이에는 이벤트 루프에 양보한다.
    """
    while True:
        try:
            return func()
        except Exception as e:
            if not is_transient(e):
                raise
        await asyncio.sleep(delay)


async def sleep_or_cancel(seconds: float, cancelled: Awaitable) -> bool:
    """seconds 동안 대기. 그 전에 cancelled 가 완료되면 True."""
    waiter = asyncio.ensure_future(cancelled)
    try:
        done, _ = await asyncio.wait({waiter}, timeout=seconds)
        return waiter in done
    finally:
        if not waiter.done():
            waiter.cancel()
