from __future__ import annotations
import yaml
from dataclasses import dataclass, field, asdict, fields
from datetime import datetime
from typing import Any, Optional
import os

DEFAULT_READ_TIMEOUT = 0.1
DEFAULT_HTTP_TIMEOUT = 10.0

# ========== probe 결과 데이터 모델 ==========

@dataclass(frozen=True)
class PacketMeta:
    """요청 측 메타데이터 (응답이 아닌 ping 환경에서 온 정보)"""
    address: Any = None


@dataclass(frozen=True)
class RawPacket:
    """응답에서 얻은 원시 데이터"""
    message: bytes = b""
    size: int = 0
    ttl: int = 0  # 응답의 TTL/hop limit (없으면 0)


@dataclass(frozen=True)
class TimedPacket:
    rtt: float = 0.0                    # 초 단위 왕복 시간
    sent: Optional[datetime] = None     # 요청 전송 시각


@dataclass(frozen=True)
class Packet:
    meta: PacketMeta = field(default_factory=PacketMeta)
    raw: RawPacket = field(default_factory=RawPacket)
    timing: TimedPacket = field(default_factory=TimedPacket)

    @property
    def address(self):
        return self.meta.address

    @property
    def message(self) -> bytes:
        return self.raw.message

    @property
    def size(self) -> int:
        return self.raw.size

    @property
    def ttl(self) -> int:
        return self.raw.ttl

    @property
    def rtt(self) -> float:
        return self.timing.rtt

    @property
    def sent(self) -> Optional[datetime]:
        return self.timing.sent

    def to_dict(self):
        return {
            "address": str(self.address) if self.address is not None else None,
            "size": self.size,
            "ttl": self.ttl,
            "rtt_ms": round(self.rtt * 1000.0, 3),
            "sent": self.sent.isoformat() if self.sent else None,
        }


# ========== 드라이버 설정 ==========

@dataclass
class ICMPConfig:
    addr: Any = None            # 대상 주소 (str 또는 ipaddress 객체, 필수)
    read_timeout: float = 0.0   # 수신 루프 대기 시간(초). 0 이하면 기본값
    payload_size: int = 0       # echo 데이터 크기. 타임스탬프+tracker 보다 작으면 무시
    local_addr: str = ""        # bind 주소 (선택)


@dataclass
class HTTPConfig:
    method: str = "GET"
    url: str = ""
    timeout: float = DEFAULT_HTTP_TIMEOUT


# ========== 실행 설정 (YAML) ==========

@dataclass
class AppConfig:
    target: Optional[str] = None
    driver: str = "icmp"            # "icmp" | "http" | "dummy"
    count: int = 4
    interval: float = 1.0
    read_timeout: float = DEFAULT_READ_TIMEOUT
    payload_size: int = 0
    http_method: str = "GET"
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    dummy_wait: float = 0.05
    error_chance: float = 0.0
    log_dir: Optional[str] = "logs"
    log_level: str = "INFO"

    @staticmethod
    def load(path: Optional[str]) -> "AppConfig":
        if path and os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            if not isinstance(raw, dict):
                raw = {}
            return AppConfig.from_dict(raw)
        return AppConfig()

    @staticmethod
    def from_dict(raw: dict) -> "AppConfig":
        known = {f.name for f in fields(AppConfig)}
        return AppConfig(**{k: v for k, v in raw.items() if k in known})

    def merged(self, **overrides) -> "AppConfig":
        """None 이 아닌 값만 덮어쓴 사본"""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return AppConfig.from_dict(data)

    def to_dict(self):
        return asdict(self)
