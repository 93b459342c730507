# hostping/driver/http.py
"""
HTTP 드라이버
- GET/HEAD 요청 1회의 응답 시간 측정 (인증 없음)
- 더 복잡한 요구사항은 별도 드라이버를 작성하는 편이 낫습니다.
"""
from __future__ import annotations
import asyncio
from dataclasses import dataclass, replace
from typing import Optional
from urllib.parse import urlsplit

import aiohttp

from ..core.models import DEFAULT_HTTP_TIMEOUT, HTTPConfig, RawPacket
from ..core.pinger import Driver, Pinger, new
from ..core.scope import CancelScope
from ..core.timing import Timer
from ..utils.errors import ConfigError, InvalidHTTPMethodError, PingCancelled

ALLOWED_METHODS = ("GET", "HEAD")


@dataclass(frozen=True)
class HTTPAddress:
    method: str
    url: str

    def __str__(self) -> str:
        return f"{self.method} {self.url}"


class HTTPDriver(Driver):
    def __init__(self, config: HTTPConfig):
        self.config = config
        self.addr = HTTPAddress(config.method, config.url)
        self.scope: Optional[CancelScope] = None
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def address(self) -> HTTPAddress:
        return self.addr

    async def connect(self, scope: CancelScope) -> None:
        self.scope = scope.child()
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.config.timeout)
        )

    async def disconnect(self) -> None:
        self.scope.cancel("disconnected")
        if self._session and not self._session.closed:
            await self._session.close()

    async def ping(self, timer: Timer) -> RawPacket:
        req = asyncio.ensure_future(self._send(timer))
        cancelled = asyncio.ensure_future(self.scope.wait())
        try:
            done, _ = await asyncio.wait({req, cancelled}, return_when=asyncio.FIRST_COMPLETED)
            if req in done:
                return req.result()
            raise self.scope.error or PingCancelled()
        finally:
            for fut in (req, cancelled):
                if not fut.done():
                    fut.cancel()

    async def _send(self, timer: Timer) -> RawPacket:
        timer.start()
        async with self._session.request(self.addr.method, self.addr.url) as response:
            msg = await response.read()
        timer.stop()
        return RawPacket(message=msg, size=len(msg), ttl=0)


def validate_http_config(cfg: HTTPConfig) -> HTTPConfig:
    method = (cfg.method or "").upper()
    if method not in ALLOWED_METHODS:
        raise InvalidHTTPMethodError(cfg.method)
    parts = urlsplit(cfg.url or "")
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigError(f"invalid url {cfg.url!r}")
    timeout = cfg.timeout
    if not timeout or timeout <= 0:
        timeout = DEFAULT_HTTP_TIMEOUT
    return replace(cfg, method=method, timeout=timeout)


def http(method: str, url: str, timeout: float = DEFAULT_HTTP_TIMEOUT) -> Pinger:
    cfg = validate_http_config(HTTPConfig(method=method, url=url, timeout=timeout))
    return new(HTTPDriver(cfg))
