# hostping/core/runner.py
"""
단일 대상 ping 실행기
- AppConfig → 드라이버 선택 + 데코레이터 조합
  (안쪽부터: 드라이버 → 강제 실패(error_chance > 0) → 로그 → 통계)
- count 회 순차 ping (interval 간격), 실패는 기록 후 계속
"""
from __future__ import annotations
from typing import Callable, Optional, Tuple

from .models import AppConfig, ICMPConfig, Packet
from .pinger import Pinger
from .scope import CancelScope
from .timing import sleep_or_cancel
from ..driver.dummy import dummy
from ..driver.http import http
from ..driver.icmp import icmp
from ..middleware.errors import inject_errors
from ..middleware.log import log_calls
from ..middleware.stats import Report, Stats, track
from ..utils.errors import ConfigError, NoAddressError
from ..utils.log import get_logger

log = get_logger("runner")

DRIVERS = ("icmp", "http", "dummy")


def build_driver(config: AppConfig) -> Pinger:
    kind = (config.driver or "icmp").lower()
    if kind == "icmp":
        return icmp(ICMPConfig(
            addr=config.target,
            read_timeout=config.read_timeout,
            payload_size=config.payload_size,
        ))
    if kind == "http":
        if not config.target:
            raise NoAddressError()
        return http(config.http_method, config.target, timeout=config.http_timeout)
    if kind == "dummy":
        return dummy(config.dummy_wait)
    raise ConfigError(f"unknown driver {config.driver!r} (choose from {', '.join(DRIVERS)})")


def build_pinger(config: AppConfig) -> Tuple[Pinger, Stats]:
    p = build_driver(config)
    if config.error_chance and config.error_chance > 0:
        p = inject_errors(config.error_chance, p)
    p = log_calls(get_logger("pinger"), f"{config.driver}:{config.target}", p)
    return track(p)


async def run(
    config: AppConfig,
    on_packet: Optional[Callable[[int, Packet], None]] = None,
    on_error: Optional[Callable[[int, BaseException], None]] = None,
    scope: Optional[CancelScope] = None,
) -> Report:
    pinger, stats = build_pinger(config)
    scope = scope or CancelScope()

    await pinger.connect(scope)
    log.info("pinging %s via %s (%d probes)", config.target, config.driver, config.count)
    try:
        for i in range(config.count):
            if i > 0 and config.interval > 0:
                if await sleep_or_cancel(config.interval, scope.wait()):
                    break
            try:
                pkt = await pinger.ping()
            except Exception as e:
                if on_error:
                    on_error(i, e)
                if scope.cancelled:
                    break
                continue
            if on_packet:
                on_packet(i, pkt)
    finally:
        await pinger.disconnect()

    report = stats.calculate()
    log.info(
        "done: %d sent, %d ok, %d failed, mean rtt %.3fms",
        report.num_pings, report.num_successful, report.num_failed, report.mean_rtt * 1000.0,
    )
    return report
