# hostping/middleware/log.py
from __future__ import annotations
import logging
from typing import Optional

from ..core.models import Packet
from ..core.pinger import Pinger
from ..core.scope import CancelScope


class PingerLogger(Pinger):
    """connect/disconnect/ping 호출 결과를 로그로 남김 (성공: DEBUG, 실패: ERROR)"""

    def __init__(self, logger: logging.Logger, context: str, next_pinger: Pinger):
        self.log = logger
        self.context = context
        self.next = next_pinger

    def _ok(self, func: str, msg: str) -> None:
        self.log.debug("[%s] func=%s %s", self.context, func, msg)

    def _fail(self, func: str, err: BaseException) -> None:
        self.log.error("[%s] func=%s %s", self.context, func, err)

    async def connect(self, scope: Optional[CancelScope] = None) -> None:
        try:
            await self.next.connect(scope)
        except Exception as e:
            self._fail("connect", e)
            raise
        self._ok("connect", "OK")

    async def disconnect(self) -> None:
        try:
            await self.next.disconnect()
        except Exception as e:
            self._fail("disconnect", e)
            raise
        self._ok("disconnect", "OK")

    async def ping(self) -> Packet:
        try:
            pkt = await self.next.ping()
        except Exception as e:
            self._fail("ping", e)
            raise
        self._ok("ping", format_packet(pkt))
        return pkt


def format_packet(pkt: Packet) -> str:
    return f"received {pkt.size}B from {pkt.address} in {int(pkt.rtt * 1000)}ms"


def log_calls(logger: logging.Logger, context: str, next_pinger: Pinger) -> Pinger:
    return PingerLogger(logger, context, next_pinger)
