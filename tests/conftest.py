# tests/conftest.py
import socket
import time
from typing import Callable, List, Optional

import pytest

from hostping.driver.icmp_handler import IPv4Handler
from hostping.driver.icmp_message import EchoMessage, encode_data

_V4 = IPv4Handler()


class FakeSocket:
    """
    raw 소켓 대역. socketpair 한쪽(local)의 fd 를 드라이버가 감시하고,
    sendto() 시 responder 가 돌려준 응답을 반대쪽(remote)에서 써 넣는다.
    """

    def __init__(self, responder: Callable[[bytes], List[bytes]]):
        self.local, self.remote = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
        self.local.setblocking(False)
        self.responder = responder
        self.send_errors: List[OSError] = []
        self.attempts = 0
        self.sent: List[bytes] = []
        self.closed = False

    def fileno(self) -> int:
        return self.local.fileno()

    def sendto(self, data: bytes, addr) -> int:
        self.attempts += 1
        if self.send_errors:
            raise self.send_errors.pop(0)
        self.sent.append(data)
        for reply in self.responder(data):
            self.remote.send(reply)
        return len(data)

    def inject(self, data: bytes) -> None:
        self.remote.send(data)

    def close(self) -> None:
        self.closed = True
        self.local.close()
        self.remote.close()


class FakeEchoHandler(IPv4Handler):
    """IPv4 코덱은 그대로 쓰고 소켓 계층만 FakeSocket 으로 바꾼 핸들러"""

    def __init__(self, responder: Callable[[bytes], List[bytes]], ttl: int = 64):
        self.sock = FakeSocket(responder)
        self.ttl = ttl
        self.read_error: Optional[Exception] = None
        self.listen_calls = 0

    def listen(self, local_addr: str = ""):
        self.listen_calls += 1
        return self.sock

    def read(self, sock):
        if self.read_error is not None:
            raise self.read_error
        data = sock.local.recv(1500)
        return data, len(data), self.ttl


def echo_reply(request: bytes, **override) -> bytes:
    """요청을 그대로 되돌려주는 echo reply (필드 덮어쓰기 가능)"""
    req = _V4.parse(request)
    fields = dict(type=0, code=0, ident=req.ident, seq=req.seq, data=req.data)
    fields.update(override)
    return _V4.marshal(EchoMessage(**fields))


def foreign_tracker_data(request: bytes) -> bytes:
    req = _V4.parse(request)
    tracker = int.from_bytes(req.data[8:16], "big")
    return encode_data(time.time_ns(), (tracker + 1) & 0x7FFFFFFFFFFFFFFF)


@pytest.fixture
def echo_handler():
    handler = FakeEchoHandler(lambda req: [echo_reply(req)])
    yield handler
    if not handler.sock.closed:
        handler.sock.close()


@pytest.fixture
def silent_handler():
    handler = FakeEchoHandler(lambda req: [])
    yield handler
    if not handler.sock.closed:
        handler.sock.close()
