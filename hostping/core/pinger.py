# hostping/core/pinger.py
"""
Pinger / Driver 계약
- Driver: 실제 전송 담당 (ICMP, HTTP, dummy ...)
- Pinger: 표준 ping API. StandardPinger 가 Driver 를 감싸 연결 상태를 관리하고
  응답에 주소/타이밍을 붙여 Packet 으로 반환
- 데코레이터(stats/log/errors)는 Pinger 를 감싸 같은 계약으로 전달
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Optional

from .models import Packet, PacketMeta, RawPacket, TimedPacket
from .scope import CancelScope
from .timing import Timer
from ..utils.errors import AlreadyConnectedError, NotConnectedError


class Driver(ABC):
    @property
    @abstractmethod
    def address(self) -> Any:
        """ping 대상 주소"""
        raise NotImplementedError

    @abstractmethod
    async def connect(self, scope: CancelScope) -> None:
        raise NotImplementedError

    @abstractmethod
    async def disconnect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def ping(self, timer: Timer) -> RawPacket:
        """probe 1회. 전송 직전 timer.start(), 응답 수락 시 timer.stop()"""
        raise NotImplementedError


class Pinger(ABC):
    @abstractmethod
    async def connect(self, scope: Optional[CancelScope] = None) -> None:
        raise NotImplementedError

    @abstractmethod
    async def disconnect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> Packet:
        raise NotImplementedError


class StandardPinger(Pinger):
    def __init__(self, driver: Driver):
        self.driver = driver
        self.connected = False

    async def connect(self, scope: Optional[CancelScope] = None) -> None:
        if self.connected:
            raise AlreadyConnectedError()
        await self.driver.connect(scope if scope is not None else CancelScope())
        self.connected = True

    async def disconnect(self) -> None:
        if not self.connected:
            raise NotConnectedError()
        await self.driver.disconnect()
        self.connected = False

    async def ping(self) -> Packet:
        timer = Timer()
        raw = await self.driver.ping(timer)
        return Packet(
            meta=PacketMeta(address=self.driver.address),
            raw=raw,
            timing=TimedPacket(rtt=timer.elapsed, sent=timer.started),
        )


def new(driver: Driver) -> Pinger:
    return StandardPinger(driver)
