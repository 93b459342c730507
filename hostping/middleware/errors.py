# hostping/middleware/errors.py
from __future__ import annotations
import random
from typing import Optional

from ..core.models import Packet
from ..core.pinger import Pinger
from ..core.scope import CancelScope
from ..utils.errors import ForcedError


class ErrorPinger(Pinger):
    """
    ping 호출에 강제 실패 확률을 추가 (주로 테스트용).
    chance: 0.0 ~ 1.0. 0 이면 실패 없음, 1 이면 모든 ping 실패
    """

    def __init__(self, chance: float, next_pinger: Pinger, seed: Optional[int] = None):
        self.next = next_pinger
        self.chance = chance
        self.seed = seed
        self.rng = random.Random(seed)

    async def connect(self, scope: Optional[CancelScope] = None) -> None:
        self.rng = random.Random(self.seed)
        await self.next.connect(scope)

    async def disconnect(self) -> None:
        await self.next.disconnect()

    async def ping(self) -> Packet:
        if self.has_error():
            raise ForcedError()
        return await self.next.ping()

    def has_error(self) -> bool:
        return self.chance > self.rng.random()


def inject_errors(chance: float, next_pinger: Pinger, seed: Optional[int] = None) -> Pinger:
    return ErrorPinger(chance, next_pinger, seed)
