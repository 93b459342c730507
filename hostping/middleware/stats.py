# hostping/middleware/stats.py
"""
통계 집계 데코레이터
예) 한 호스트에 5번 ping 후 평균 RTT 확인
track() 은 감싼 Pinger 와, 언제든 보고서를 계산할 수 있는 Stats 를 함께 반환
"""
from __future__ import annotations
import threading
from dataclasses import dataclass, asdict
from typing import List, Optional, Tuple

from ..core.models import Packet
from ..core.pinger import Pinger
from ..core.scope import CancelScope


@dataclass
class Report:
    num_pings: int = 0
    num_successful: int = 0
    num_failed: int = 0
    mean_rtt: float = 0.0  # 성공한 ping 만으로 계산. 없으면 0

    def to_dict(self):
        return asdict(self)


@dataclass
class StatResult:
    packet: Optional[Packet] = None
    error: Optional[BaseException] = None


class Stats:
    def __init__(self):
        self._lock = threading.Lock()
        self._agg: List[StatResult] = []

    def add(self, result: StatResult) -> None:
        with self._lock:
            self._agg.append(result)

    def results(self) -> List[StatResult]:
        with self._lock:
            return list(self._agg)

    def calculate(self) -> Report:
        agg = self.results()
        pkts = [r.packet for r in agg if r.error is None]

        rep = Report(
            num_pings=len(agg),
            num_successful=len(pkts),
            num_failed=len(agg) - len(pkts),
        )
        if pkts:
            rep.mean_rtt = sum(p.rtt for p in pkts) / len(pkts)
        return rep


class Tracker(Pinger):
    def __init__(self, next_pinger: Pinger, stats: Stats):
        self.next = next_pinger
        self.stats = stats

    async def connect(self, scope: Optional[CancelScope] = None) -> None:
        await self.next.connect(scope)

    async def disconnect(self) -> None:
        await self.next.disconnect()

    async def ping(self) -> Packet:
        try:
            pkt = await self.next.ping()
        except Exception as e:
            self.stats.add(StatResult(error=e))
            raise
        self.stats.add(StatResult(packet=pkt))
        return pkt


def track(next_pinger: Pinger) -> Tuple[Pinger, Stats]:
    stats = Stats()
    return Tracker(next_pinger, stats), stats
