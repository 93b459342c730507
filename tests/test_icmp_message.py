# tests/test_icmp_message.py
import random
import socket
import threading
from datetime import datetime, timezone

import pytest
from scapy.all import IP, ICMP, Raw
from scapy.utils import checksum

from hostping.driver import icmp_handler
from hostping.driver.icmp_handler import IPv4Handler, IPv6Handler, new_protocol_handler
from hostping.driver.icmp_message import (
    DATA_MIN_SIZE,
    EchoMessage,
    MessageProvider,
    decode_data,
    encode_data,
)
from hostping.utils.errors import MessageParseError, ReplyTooShortError
from hostping.utils.net import resolve_host

FIXED_NS = 1_700_000_000_123_456_789


def _provider(handler=None, **kw):
    return MessageProvider(handler or IPv4Handler(), rng=random.Random(7), clock=lambda: FIXED_NS, **kw)


# ---------- 코덱 ----------
def test_provide_builds_echo_request():
    p = _provider()
    msg = p.provide()
    assert msg.type == 8
    assert msg.code == 0
    assert msg.ident == p.ident
    assert msg.seq == 0
    assert len(msg.data) == DATA_MIN_SIZE
    assert p.seq == 1


def test_provide_uses_family_request_type():
    p = _provider(IPv6Handler())
    assert p.provide().type == 128


def test_identifier_and_tracker_ranges():
    p = MessageProvider(IPv4Handler())
    assert 0 <= p.ident < 0x7FFF
    assert 0 <= p.tracker < 2 ** 63


def test_round_trip_recovers_tracker_and_timestamp():
    p = _provider()
    tracker, ts = p.read_data(p.provide())
    assert tracker == p.tracker
    expected = datetime.fromtimestamp(FIXED_NS // 1_000_000_000, tz=timezone.utc).replace(
        microsecond=(FIXED_NS % 1_000_000_000) // 1000
    )
    assert ts == expected


def test_padding_is_ignored_on_decode():
    p = _provider(payload_size=56)
    msg = p.provide()
    assert len(msg.data) == 56
    assert msg.data[DATA_MIN_SIZE:] == b"\x01" * (56 - DATA_MIN_SIZE)
    tracker, _ = p.read_data(msg)
    assert tracker == p.tracker


def test_payload_size_below_minimum_is_raised_to_minimum():
    assert len(_provider(payload_size=4).provide().data) == DATA_MIN_SIZE


@pytest.mark.parametrize("size", [0, 1, 8, 15])
def test_short_payload(size):
    with pytest.raises(ReplyTooShortError) as ei:
        decode_data(b"\x00" * size)
    assert ei.value.expected == 16
    assert ei.value.actual == size
    assert "expected 16B; actual %dB" % size in str(ei.value)


def test_extreme_timestamps_decode_on_every_platform():
    # int64 최솟값 → 1677년 (음수 epoch)
    data = b"\x80" + b"\x00" * 7 + (42).to_bytes(8, "big")
    tracker, ts = decode_data(data)
    assert tracker == 42
    assert ts == datetime(1677, 9, 21, 0, 12, 43, 145224, tzinfo=timezone.utc)

    # int64 최댓값 → 2262년
    _, ts = decode_data(encode_data(2 ** 63 - 1, 1))
    assert ts == datetime(2262, 4, 11, 23, 47, 16, 854775, tzinfo=timezone.utc)


def test_sequence_is_thread_safe():
    p = _provider()
    seen = []
    lock = threading.Lock()

    def worker():
        local = [p.provide().seq for _ in range(200)]
        with lock:
            seen.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(seen) == list(range(1600))
    assert p.seq == 1600


def test_sequence_wraps_at_16_bits():
    p = _provider()
    p.seq = 0xFFFF
    assert p.provide().seq == 0xFFFF
    assert p.seq == 0


# ---------- 주소 체계 핸들러 ----------
def test_handler_selection():
    assert isinstance(new_protocol_handler(resolve_host("127.0.0.1")), IPv4Handler)
    assert isinstance(new_protocol_handler(resolve_host("::1")), IPv6Handler)


def test_type_constants():
    v4, v6 = IPv4Handler(), IPv6Handler()
    assert (v4.protocol, v4.request_type, v4.reply_type) == (1, 8, 0)
    assert (v6.protocol, v6.request_type, v6.reply_type) == (58, 128, 129)


def test_ipv4_marshal_parse():
    h = IPv4Handler()
    data = encode_data(FIXED_NS, 99)
    wire = h.marshal(EchoMessage(type=8, ident=1234, seq=7, data=data))

    # scapy 가 체크섬을 채움 (전체 합이 0 이면 유효)
    assert checksum(wire) == 0
    assert ICMP(wire).id == 1234

    msg = h.parse(wire)
    assert msg == EchoMessage(type=8, code=0, ident=1234, seq=7, data=data)


def test_ipv4_parse_non_echo():
    wire = bytes(ICMP(type=3, code=1) / Raw(load=b"\x45" + b"\x00" * 27))
    msg = IPv4Handler().parse(wire)
    assert msg.type == 3
    assert msg.code == 1
    assert msg.ident == 0
    assert msg.data == b""


def test_ipv6_marshal_parse():
    h = IPv6Handler()
    data = encode_data(FIXED_NS, 5)
    wire = h.marshal(EchoMessage(type=129, ident=77, seq=3, data=data))
    assert wire[0] == 129
    assert h.parse(wire) == EchoMessage(type=129, code=0, ident=77, seq=3, data=data)


def test_ipv6_parse_non_echo():
    msg = IPv6Handler().parse(bytes([1, 4, 0, 0, 0, 0, 0, 0]))
    assert msg == EchoMessage(type=1, code=4)


@pytest.mark.parametrize("handler", [IPv4Handler(), IPv6Handler()])
def test_parse_too_short(handler):
    with pytest.raises(MessageParseError):
        handler.parse(b"\x00")
    with pytest.raises(MessageParseError):
        handler.parse(bytes([handler.reply_type, 0, 0, 0, 0]))


def test_ipv4_read_strips_header_without_ttl_metadata():
    a, b = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        icmp_part = ICMP(type=0, id=1, seq=2) / Raw(load=b"x" * 16)
        a.send(bytes(IP(src="127.0.0.1", dst="127.0.0.1") / icmp_part))
        payload, size, ttl = IPv4Handler().read(b)
    finally:
        a.close()
        b.close()
    assert payload == bytes(icmp_part)
    assert size == len(payload)
    assert ttl == 0


def test_ipv6_read_passes_message_through():
    a, b = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        a.send(b"\x81\x00\x00\x00abcd")
        payload, size, ttl = IPv6Handler().read(b)
    finally:
        a.close()
        b.close()
    assert payload == b"\x81\x00\x00\x00abcd"
    assert (size, ttl) == (8, 0)


def test_listen_closes_socket_on_setup_failure(monkeypatch):
    closed = []

    class BrokenSocket:
        def __init__(self, *args):
            pass

        def setsockopt(self, *args):
            raise OSError("setsockopt failed")

        def close(self):
            closed.append(True)

    monkeypatch.setattr(icmp_handler.socket, "socket", BrokenSocket)
    with pytest.raises(OSError, match="setsockopt failed"):
        IPv4Handler().listen()
    assert closed == [True]
