"""
hostping - 호스트 도달성 probe 라이브러리
- 드라이버: ICMP echo (raw 소켓), HTTP GET/HEAD, dummy
- 데코레이터: 통계, 로그, 강제 실패 주입
"""
from .core import (
    AppConfig,
    CancelScope,
    Driver,
    HTTPConfig,
    ICMPConfig,
    Packet,
    Pinger,
    RawPacket,
    Timer,
    new,
)
from .driver import dummy, http, icmp
from .middleware import Report, inject_errors, log_calls, track

__version__ = "0.1.0"
