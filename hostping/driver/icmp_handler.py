# hostping/driver/icmp_handler.py
"""
주소 체계별(IPv4/IPv6) ICMP 처리
- raw 소켓 생성 + TTL/hop limit 보고 옵션
- 수신 1회 (ancillary 데이터에서 TTL 추출)
- scapy 로 echo 메시지 생성/해석
- echo request/reply 타입 상수
"""
from __future__ import annotations
import ipaddress
import socket
import struct
from abc import ABC, abstractmethod
from typing import Tuple, Union

from scapy.all import ICMP, Raw, ICMPv6EchoRequest, ICMPv6EchoReply

from .icmp_message import EchoMessage
from ..utils.errors import MessageParseError

READ_BUFFER_SIZE = 1500
ICMP_HEADER_SIZE = 4
ECHO_HEADER_SIZE = 8

# Python 버전에 따라 socket 에 노출되지 않음 (Linux 값)
IP_RECVTTL = getattr(socket, "IP_RECVTTL", 12)

_INT = struct.Struct("=i")
_ANC_BUFFER_SIZE = socket.CMSG_SPACE(_INT.size)


def _unpack_int(cdata: bytes) -> int:
    if len(cdata) >= _INT.size:
        return _INT.unpack_from(cdata)[0]
    if len(cdata) == 1:  # 일부 BSD 는 IP_RECVTTL 을 1바이트로 전달
        return cdata[0]
    return 0


class ICMPProtocolHandler(ABC):
    family: int
    protocol: int      # ICMP 프로토콜 번호 (v4=1, v6=58)
    reply_type: int
    request_type: int

    @abstractmethod
    def listen(self, local_addr: str = "") -> socket.socket:
        raise NotImplementedError

    @abstractmethod
    def parse(self, data: bytes) -> EchoMessage:
        raise NotImplementedError

    @abstractmethod
    def marshal(self, msg: EchoMessage) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def read(self, sock: socket.socket) -> Tuple[bytes, int, int]:
        """수신 1회: (payload, size, ttl). ttl 은 OS 가 주지 않으면 0"""
        raise NotImplementedError

    def sockaddr(self, addr) -> tuple:
        return (str(addr), 0)

    def _open(self, local_addr: str, opt_level: int, opt_name: int, bind_addr: tuple) -> socket.socket:
        sock = socket.socket(self.family, socket.SOCK_RAW, self.protocol)
        try:
            sock.setsockopt(opt_level, opt_name, 1)
            sock.setblocking(False)
            if local_addr:
                sock.bind(bind_addr)
        except Exception:
            sock.close()
            raise
        return sock

    def _check_size(self, data: bytes, msg_type: int) -> None:
        if len(data) < ICMP_HEADER_SIZE:
            raise MessageParseError(f"message too short ({len(data)}B)")
        if msg_type in (self.reply_type, self.request_type) and len(data) < ECHO_HEADER_SIZE:
            raise MessageParseError(f"echo message too short ({len(data)}B)")


class IPv4Handler(ICMPProtocolHandler):
    family = socket.AF_INET
    protocol = 1
    reply_type = 0
    request_type = 8

    def listen(self, local_addr: str = "") -> socket.socket:
        return self._open(local_addr, socket.IPPROTO_IP, IP_RECVTTL, (local_addr, 0))

    def parse(self, data: bytes) -> EchoMessage:
        self._check_size(data, data[0] if data else -1)
        try:
            pkt = ICMP(data)
        except Exception as e:
            raise MessageParseError(f"cannot parse icmp message: {e}") from e
        if pkt.type in (self.reply_type, self.request_type):
            return EchoMessage(
                type=pkt.type,
                code=pkt.code,
                ident=pkt.id,
                seq=pkt.seq,
                data=bytes(pkt.payload),
            )
        return EchoMessage(type=pkt.type, code=pkt.code)

    def marshal(self, msg: EchoMessage) -> bytes:
        pkt = ICMP(type=msg.type, code=msg.code, id=msg.ident, seq=msg.seq)
        if msg.data:
            pkt = pkt / Raw(load=msg.data)
        return bytes(pkt)

    def read(self, sock: socket.socket) -> Tuple[bytes, int, int]:
        data, ancdata, _flags, _addr = sock.recvmsg(READ_BUFFER_SIZE, _ANC_BUFFER_SIZE)
        ttl = 0
        for level, kind, cdata in ancdata:
            if level == socket.IPPROTO_IP and kind == socket.IP_TTL:
                ttl = _unpack_int(cdata)
        payload = _strip_ipv4_header(data)
        return payload, len(payload), ttl


class IPv6Handler(ICMPProtocolHandler):
    family = socket.AF_INET6
    protocol = 58
    reply_type = 129
    request_type = 128

    def listen(self, local_addr: str = "") -> socket.socket:
        return self._open(
            local_addr, socket.IPPROTO_IPV6, socket.IPV6_RECVHOPLIMIT, (local_addr, 0, 0, 0)
        )

    def parse(self, data: bytes) -> EchoMessage:
        self._check_size(data, data[0] if data else -1)
        msg_type, code = data[0], data[1]
        cls = {self.reply_type: ICMPv6EchoReply, self.request_type: ICMPv6EchoRequest}.get(msg_type)
        if cls is None:
            return EchoMessage(type=msg_type, code=code)
        try:
            pkt = cls(data)
        except Exception as e:
            raise MessageParseError(f"cannot parse icmpv6 message: {e}") from e
        return EchoMessage(type=pkt.type, code=pkt.code, ident=pkt.id, seq=pkt.seq, data=bytes(pkt.data))

    def marshal(self, msg: EchoMessage) -> bytes:
        cls = ICMPv6EchoReply if msg.type == self.reply_type else ICMPv6EchoRequest
        # 체크섬은 커널이 계산 (raw ICMPv6 소켓)
        return bytes(cls(code=msg.code, id=msg.ident, seq=msg.seq, data=msg.data, cksum=0))

    def read(self, sock: socket.socket) -> Tuple[bytes, int, int]:
        data, ancdata, _flags, _addr = sock.recvmsg(READ_BUFFER_SIZE, _ANC_BUFFER_SIZE)
        ttl = 0
        for level, kind, cdata in ancdata:
            if level == socket.IPPROTO_IPV6 and kind == socket.IPV6_HOPLIMIT:
                ttl = _unpack_int(cdata)
        return data, len(data), ttl

    def sockaddr(self, addr) -> tuple:
        return (str(addr), 0, 0, 0)


def _strip_ipv4_header(data: bytes) -> bytes:
    """raw IPv4 소켓은 IP 헤더를 포함해 전달 → ICMP 메시지만 남김"""
    if len(data) < 20 or (data[0] >> 4) != 4:
        return data
    ihl = (data[0] & 0x0F) * 4
    return data[ihl:]


def new_protocol_handler(addr: Union[ipaddress.IPv4Address, ipaddress.IPv6Address]) -> ICMPProtocolHandler:
    if addr.version == 4:
        return IPv4Handler()
    return IPv6Handler()
