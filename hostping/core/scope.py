# hostping/core/scope.py
"""
취소 범위(CancelScope)와 수신 → probe 간 핸드오프
- CancelScope: 부모 취소가 자식으로 전파되는 트리 구조
- Handoff: 버퍼 없는 전달. put()은 소비자가 가져간 뒤에야 반환
"""
from __future__ import annotations
import asyncio
from typing import Generic, List, Optional, TypeVar

from ..utils.errors import PingCancelled, ReceiverClosedError

T = TypeVar("T")


class CancelScope:
    def __init__(self, parent: Optional["CancelScope"] = None):
        self._event = asyncio.Event()
        self._parent = parent
        self._children: List[CancelScope] = []
        self._reason: Optional[str] = None
        if parent is not None:
            parent._children.append(self)
            if parent.cancelled:
                self.cancel(parent._reason)

    def child(self) -> "CancelScope":
        return CancelScope(self)

    def cancel(self, reason: Optional[str] = None) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        for c in self._children:
            c.cancel(reason)
        # 부모에서 분리 (반복 connect 시 누적 방지)
        if self._parent is not None:
            try:
                self._parent._children.remove(self)
            except ValueError:
                pass
        self._children.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def error(self) -> Optional[PingCancelled]:
        if not self._event.is_set():
            return None
        return PingCancelled(self._reason or "cancelled")

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise self.error

    async def wait(self) -> None:
        await self._event.wait()


class Handoff(Generic[T]):
    """
    버퍼 없는 rendezvous 채널.
    - put(): 항목을 넘기고 소비자가 get()으로 가져갈 때까지 대기
    - close(): 더 이상 항목이 오지 않음을 알림. 이후 get()은 ReceiverClosedError
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._closed = asyncio.Event()
        self._cause: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def put(self, item: T) -> None:
        await self._queue.put(item)
        await self._queue.join()

    async def get(self) -> T:
        getter = asyncio.ensure_future(self._queue.get())
        closer = asyncio.ensure_future(self._closed.wait())
        claimed = False
        try:
            done, _ = await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                item = getter.result()
                claimed = True
                self._queue.task_done()
                return item
            raise ReceiverClosedError() from self._cause
        finally:
            for fut in (getter, closer):
                if not fut.done():
                    fut.cancel()
            # 취소되는 사이 이미 꺼낸 항목은 버리되 producer는 풀어준다
            if not claimed and getter.done() and not getter.cancelled():
                self._queue.task_done()

    def close(self, cause: Optional[BaseException] = None) -> None:
        if cause is not None and self._cause is None:
            self._cause = cause
        self._closed.set()
