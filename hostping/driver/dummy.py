# hostping/driver/dummy.py
import ipaddress

from ..core.models import RawPacket
from ..core.pinger import Driver, Pinger, new
from ..core.scope import CancelScope
from ..core.timing import Timer, sleep_or_cancel
from ..utils.errors import PingCancelled

LOCALHOST = ipaddress.IPv4Address("127.0.0.1")


class DummyDriver(Driver):
    """wait 만큼 기다린 뒤 빈 응답을 돌려주는 가짜 드라이버 (실제 I/O 없음)"""

    def __init__(self, wait: float):
        self.wait = wait
        self.scope = None

    @property
    def address(self):
        return LOCALHOST

    async def connect(self, scope: CancelScope) -> None:
        self.scope = scope.child()

    async def disconnect(self) -> None:
        self.scope.cancel("disconnected")

    async def ping(self, timer: Timer) -> RawPacket:
        self.scope.raise_if_cancelled()
        timer.start()
        if await sleep_or_cancel(self.wait, self.scope.wait()):
            raise self.scope.error or PingCancelled()
        timer.stop()
        return RawPacket(message=b"")


def dummy(wait: float) -> Pinger:
    return new(DummyDriver(wait))
