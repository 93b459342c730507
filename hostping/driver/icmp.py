# hostping/driver/icmp.py
"""
ICMP echo 드라이버
- 연결(connect) 동안 raw 소켓 1개 + 백그라운드 수신 태스크 1개 유지
- ping() 마다 전송 태스크를 띄우고, 취소 / 전송 실패 / 응답 도착 중 먼저 오는 것을 처리
- 응답은 identifier + tracker 로 자기 요청에 대한 것인지 확인 (불일치는 조용히 버림)

주의: raw 소켓이므로 root 권한(또는 CAP_NET_RAW)이 필요합니다.
"""
from __future__ import annotations
import asyncio
import errno
import socket
from dataclasses import replace
from typing import Optional

from ..core.models import DEFAULT_READ_TIMEOUT, ICMPConfig, RawPacket
from ..core.pinger import Driver, Pinger, new
from ..core.scope import CancelScope, Handoff
from ..core.timing import Timer, retry_transient
from ..utils.errors import NoAddressError, PingCancelled
from ..utils.log import get_logger
from ..utils.net import resolve_host
from .icmp_handler import ICMPProtocolHandler, new_protocol_handler
from .icmp_message import MessageProvider

log = get_logger("icmp")

# 송신 버퍼가 가득 찬 경우 → 재시도
_TRANSIENT_SEND_ERRNOS = {errno.ENOBUFS, errno.EAGAIN, errno.EWOULDBLOCK}


def _is_transient_send_error(e: BaseException) -> bool:
    return isinstance(e, OSError) and e.errno in _TRANSIENT_SEND_ERRNOS


def _consume_result(task: asyncio.Future) -> None:
    # 포기한 전송 태스크의 예외는 로그만 남긴다
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.debug("abandoned send finished with error: %s", exc)


def _resolve_on_ready(fut: asyncio.Future) -> None:
    if not fut.done():
        fut.set_result(None)


class ICMPDriver(Driver):
    def __init__(self, config: ICMPConfig, handler: Optional[ICMPProtocolHandler] = None):
        self.config = config
        self.protocol_handler = handler or new_protocol_handler(config.addr)

        self.scope: Optional[CancelScope] = None
        self.message_provider: Optional[MessageProvider] = None
        self.sock: Optional[socket.socket] = None
        self.handoff: Optional[Handoff[RawPacket]] = None
        self._recv_task: Optional[asyncio.Task] = None

    @property
    def address(self):
        return self.config.addr

    # ---------- 연결 ----------
    async def connect(self, scope: CancelScope) -> None:
        sock = self.protocol_handler.listen(self.config.local_addr)

        self.scope = scope.child()
        self.message_provider = MessageProvider(self.protocol_handler, self.config.payload_size)
        self.sock = sock
        self.handoff = Handoff()
        self._recv_task = asyncio.ensure_future(self._receive())
        log.debug(
            "connected to %s (id=%d, tracker=%d)",
            self.config.addr, self.message_provider.ident, self.message_provider.tracker,
        )

    async def disconnect(self) -> None:
        self.scope.cancel("disconnected")
        task, self._recv_task = self._recv_task, None
        try:
            if task is not None:
                await asyncio.wait({task})
                if not task.cancelled() and task.exception() is not None:
                    log.error("receiver had failed: %r", task.exception())
        finally:
            # 수신 태스크 결과와 무관하게 소켓은 항상 닫는다
            self.sock.close()
        log.debug("disconnected from %s", self.config.addr)

    # ---------- 수신 ----------
    async def _receive(self) -> Optional[BaseException]:
        """
        연결 수명 동안 도는 수신 루프. 종료 사유(취소 오류 또는 치명적 read 오류)를 반환.
        종료 시 handoff 를 닫아 대기 중인 probe 에게 더 이상 응답이 없음을 알림.
        """
        log.debug("receiver started")
        status: Optional[BaseException] = None
        try:
            while not self.scope.cancelled:
                try:
                    packet = await self._recv_packet()
                except (asyncio.TimeoutError, BlockingIOError, InterruptedError):
                    continue
                except OSError as e:
                    log.error("receiver stopped on read error: %s", e)
                    status = e
                    return status
                except Exception as e:
                    log.exception("receiver crashed")
                    status = e
                    raise
                await self._deliver(packet)
            status = self.scope.error
            return status
        finally:
            self.handoff.close(status)
            log.debug("receiver stopped")

    async def _recv_packet(self) -> RawPacket:
        loop = asyncio.get_running_loop()
        readable = loop.create_future()
        fd = self.sock.fileno()
        loop.add_reader(fd, _resolve_on_ready, readable)
        try:
            await asyncio.wait_for(readable, self.config.read_timeout)
        finally:
            loop.remove_reader(fd)
        b, nb, ttl = self.protocol_handler.read(self.sock)
        return RawPacket(message=b, size=nb, ttl=ttl)

    async def _deliver(self, packet: RawPacket) -> None:
        """probe 가 가져갈 때까지 대기. 그 사이 취소되면 버림"""
        put = asyncio.ensure_future(self.handoff.put(packet))
        cancelled = asyncio.ensure_future(self.scope.wait())
        try:
            await asyncio.wait({put, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (put, cancelled):
                if not fut.done():
                    fut.cancel()

    # ---------- 송신 ----------
    async def _send(self, timer: Timer) -> None:
        msg = self.message_provider.provide()
        msg_bytes = self.protocol_handler.marshal(msg)
        dest = self.protocol_handler.sockaddr(self.config.addr)

        timer.start()
        await retry_transient(
            lambda: self.sock.sendto(msg_bytes, dest),
            _is_transient_send_error,
        )

    # ---------- ping ----------
    async def ping(self, timer: Timer) -> RawPacket:
        self.scope.raise_if_cancelled()
        send_task = asyncio.ensure_future(self._send(timer))
        try:
            while True:
                packet = await self._await_reply(send_task)
                if not self._matches(packet):
                    continue
                # 전송 완료 이후에만 수락 (타이머 시작 보장)
                await send_task
                timer.stop()
                return packet
        finally:
            if send_task.done():
                _consume_result(send_task)
            else:
                send_task.add_done_callback(_consume_result)

    async def _await_reply(self, send_task: asyncio.Future) -> RawPacket:
        claim = asyncio.ensure_future(self.handoff.get())
        cancelled = asyncio.ensure_future(self.scope.wait())
        try:
            while True:
                waiters = {claim, cancelled}
                if not send_task.done():
                    waiters.add(send_task)
                elif not send_task.cancelled() and send_task.exception() is not None:
                    raise send_task.exception()

                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                if cancelled in done:
                    raise self.scope.error or PingCancelled()
                if claim in done:
                    return claim.result()
                # 전송 태스크만 끝남 → 결과 확인 후 계속 대기
        finally:
            for fut in (claim, cancelled):
                if not fut.done():
                    fut.cancel()

    def _matches(self, packet: RawPacket) -> bool:
        msg = self.protocol_handler.parse(packet.message)
        if msg.type != self.protocol_handler.reply_type:
            return False
        if msg.ident != self.message_provider.ident:
            log.debug("discarding reply with foreign id %d", msg.ident)
            return False
        tracker, _ = self.message_provider.read_data(msg)
        if tracker != self.message_provider.tracker:
            log.debug("discarding reply with foreign tracker (id=%d seq=%d)", msg.ident, msg.seq)
            return False
        return True


def validate_icmp_config(cfg: ICMPConfig) -> ICMPConfig:
    """검증/기본값이 반영된 사본을 반환 (호출자의 cfg 는 그대로)"""
    # Addr 필수
    if cfg.addr is None or (isinstance(cfg.addr, str) and not cfg.addr.strip()):
        raise NoAddressError()
    read_timeout = cfg.read_timeout
    # ReadTimeout 선택
    if not read_timeout or read_timeout <= 0:
        read_timeout = DEFAULT_READ_TIMEOUT
    return replace(cfg, addr=resolve_host(cfg.addr), read_timeout=read_timeout)


def icmp(cfg: ICMPConfig, handler: Optional[ICMPProtocolHandler] = None) -> Pinger:
    """
    ICMP pinger 생성. 주소가 없으면 소켓을 열기 전에 NoAddressError.
    handler 를 주면 주소 체계 기반 선택 대신 사용 (테스트용 전송 계층 주입).
    """
    cfg = validate_icmp_config(cfg)
    return new(ICMPDriver(cfg, handler))
