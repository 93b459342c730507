# hostping/driver/icmp_message.py
"""
ICMP echo 메시지 코덱
- 요청 페이로드: [0:8] 전송 시각(ns, big-endian) + [8:16] tracker(big-endian) + filler
- 응답에서 tracker/시각 추출
"""
from __future__ import annotations
import random
import struct
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Optional, Tuple

from ..utils.errors import ReplyTooShortError

if TYPE_CHECKING:
    from .icmp_handler import ICMPProtocolHandler

TIMESTAMP_WIDTH = 8
TRACKER_WIDTH = 8
DATA_MIN_SIZE = TIMESTAMP_WIDTH + TRACKER_WIDTH
FILLER = b"\x01"

_TIMESTAMP = struct.Struct(">q")
_TRACKER = struct.Struct(">Q")

MAX_IDENT = 0x7FFF
MAX_TRACKER = 0x7FFFFFFFFFFFFFFF
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class EchoMessage:
    """주소 체계와 무관한 ICMP 메시지. echo 계열이 아니면 ident/seq/data 는 비어 있음"""
    type: int
    code: int = 0
    ident: int = 0
    seq: int = 0
    data: bytes = b""


def encode_data(timestamp_ns: int, tracker: int, size: int = 0) -> bytes:
    data = _TIMESTAMP.pack(timestamp_ns) + _TRACKER.pack(tracker)
    if size > len(data):
        data += FILLER * (size - len(data))
    return data


def decode_data(data: bytes) -> Tuple[int, datetime]:
    if len(data) < DATA_MIN_SIZE:
        raise ReplyTooShortError(DATA_MIN_SIZE, len(data))
    (ts_ns,) = _TIMESTAMP.unpack_from(data, 0)
    (tracker,) = _TRACKER.unpack_from(data, TIMESTAMP_WIDTH)
    # int64 ns 전 범위(1677~2262년)를 플랫폼과 무관하게 변환
    return tracker, EPOCH + timedelta(microseconds=ts_ns // 1000)


class MessageProvider:
    """
    연결 1회 동안 고정되는 identifier/tracker 와 probe 마다 증가하는 sequence 관리.
    provide() 는 스레드 안전.
    """

    def __init__(
        self,
        handler: "ICMPProtocolHandler",
        payload_size: int = 0,
        rng: Optional[random.Random] = None,
        clock: Callable[[], int] = time.time_ns,
    ):
        rng = rng or random.Random()
        self._lock = threading.Lock()
        self.ident = rng.randrange(MAX_IDENT)
        self.msg_type = handler.request_type
        self.seq = 0
        self.tracker = rng.randrange(MAX_TRACKER)
        self.payload_size = max(payload_size, DATA_MIN_SIZE)
        self._clock = clock

    def provide(self) -> EchoMessage:
        with self._lock:
            msg = EchoMessage(
                type=self.msg_type,
                code=0,
                ident=self.ident,
                seq=self.seq,
                data=encode_data(self._clock(), self.tracker, self.payload_size),
            )
            # sequence 는 16bit 필드
            self.seq = (self.seq + 1) & 0xFFFF
        return msg

    def read_data(self, msg: EchoMessage) -> Tuple[int, datetime]:
        return decode_data(msg.data)
